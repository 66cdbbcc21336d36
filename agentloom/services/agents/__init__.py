from .tool_loop import AgentToolLoop, ToolLoopCancelledError, ToolLoopResult, run_tool_call

__all__ = ["AgentToolLoop", "ToolLoopCancelledError", "ToolLoopResult", "run_tool_call"]
