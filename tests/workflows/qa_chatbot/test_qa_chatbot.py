"""Tests for the QA chatbot workflow: intent detection, routing and full conversations."""
import pytest

from agentloom.models.dto.messages import ChatMessage
from agentloom.workflows.engine import InMemoryCheckpointSaver, RunConfig
from agentloom.workflows.qa_chatbot import (
    build_qa_chatbot_graph,
    detect_user_intent,
    last_user_message,
    route_after_router,
)

PRD = "PRD: a login page with email and password fields"


async def say(graph, thread_id: str, text: str) -> dict:
    """One conversational turn."""
    return await graph.ainvoke(
        {"messages": [ChatMessage.user(text).to_state()]},
        RunConfig(thread_id=thread_id),
    )


# ============================================================================
# Intent detection
# ============================================================================

class TestDetectUserIntent:

    @pytest.mark.parametrize("text", ["继续", "OK", "  continue ", "好的", "yes, go on", "可以，继续"])
    def test_continue(self, text):
        assert detect_user_intent(text) == "continue"

    @pytest.mark.parametrize("text", ["Please add boundary cases", "再增加一些异常场景的测试"])
    def test_revise(self, text):
        assert detect_user_intent(text) == "revise"

    @pytest.mark.parametrize("text", ["hmm", "", "why?"])
    def test_other(self, text):
        assert detect_user_intent(text) == "other"

    def test_continue_word_inside_longer_text_is_not_continue(self):
        assert detect_user_intent("okay but change the second case") == "revise"

    def test_last_user_message(self):
        assert last_user_message({"messages": []}) == ""
        assert last_user_message({"messages": [{"role": "assistant", "content": "hi"}]}) == ""
        assert last_user_message({"messages": [{"role": "user", "content": "go"}]}) == "go"


# ============================================================================
# Routing
# ============================================================================

class TestRouting:

    @pytest.mark.parametrize(
        "stage,intent,target",
        [
            ("init", "other", "gen_test_points"),
            ("init", "continue", "gen_test_points"),
            ("test_points", "continue", "gen_test_cases"),
            ("test_points", "revise", "gen_test_points"),
            ("test_cases", "continue", "gen_review"),
            ("test_cases", "revise", "gen_test_cases"),
            ("completed", "revise", "handle_revise"),
            ("completed", "continue", "handle_other"),
            ("test_points", "other", "handle_other"),
        ],
    )
    def test_route_table(self, stage, intent, target):
        assert route_after_router({"stage": stage, "user_intent": intent}) == target


# ============================================================================
# Conversations
# ============================================================================

class TestConversation:

    @pytest.mark.asyncio
    async def test_full_flow_to_completion(self, make_llm):
        llm = make_llm(["TP: valid login", "TC-1: valid login", "TC-1 (reviewed)", "TC-1 + lockout case", "Ask me about the cases."])
        graph = build_qa_chatbot_graph(llm, InMemoryCheckpointSaver())

        state = await say(graph, "qa-1", PRD)
        assert state["stage"] == "test_points"
        assert state["prd_content"] == PRD
        assert state["test_points"] == "TP: valid login"
        assert llm.calls[0]["messages"][1].content == PRD

        state = await say(graph, "qa-1", "continue")
        assert state["stage"] == "test_cases"
        assert state["test_cases"] == "TC-1: valid login"

        state = await say(graph, "qa-1", "好的")
        assert state["stage"] == "completed"
        assert state["test_cases"] == "TC-1 (reviewed)"

        state = await say(graph, "qa-1", "Please add an account lockout case")
        assert state["stage"] == "completed"
        assert state["test_cases"] == "TC-1 + lockout case"
        assert llm.calls[3]["messages"][1].content == "User feedback: Please add an account lockout case"

        state = await say(graph, "qa-1", "hm")
        assert state["stage"] == "completed"
        assert state["test_cases"] == "TC-1 + lockout case"

        roles = [m["role"] for m in state["messages"]]
        assert roles == ["user", "assistant"] * 5
        assert state["messages"][-1]["content"] == "Ask me about the cases."
        assert state["error"] == ""

    @pytest.mark.asyncio
    async def test_revising_test_points_keeps_prd(self, make_llm):
        llm = make_llm(["TP v1", "TP v2"])
        graph = build_qa_chatbot_graph(llm, InMemoryCheckpointSaver())

        await say(graph, "qa-2", PRD)
        state = await say(graph, "qa-2", "Add password reset coverage")

        assert state["stage"] == "test_points"
        assert state["prd_content"] == PRD
        assert state["test_points"] == "TP v2"
        assert llm.calls[1]["messages"][1].content == "User feedback: Add password reset coverage"
        assert "TP v1" in llm.calls[1]["messages"][0].content

    @pytest.mark.asyncio
    async def test_model_failure_keeps_stage(self, make_llm):
        llm = make_llm(["TP v1", RuntimeError("upstream timeout"), "TC v1"])
        graph = build_qa_chatbot_graph(llm, InMemoryCheckpointSaver())

        await say(graph, "qa-3", PRD)
        failed = await say(graph, "qa-3", "continue")

        assert failed["stage"] == "test_points"
        assert failed["error"] == "upstream timeout"
        reply = failed["messages"][-1]
        assert reply["content"] == "Sorry, generating a response failed: upstream timeout. Please try again."
        assert reply["metadata"] == {"error": True}

        retried = await say(graph, "qa-3", "continue")
        assert retried["stage"] == "test_cases"
        assert retried["test_cases"] == "TC v1"
        assert retried["error"] == ""

    @pytest.mark.asyncio
    async def test_threads_are_isolated(self, make_llm):
        llm = make_llm(["TP for A", "TP for B"])
        graph = build_qa_chatbot_graph(llm, InMemoryCheckpointSaver())

        await say(graph, "thread-a", "PRD A: search box")
        await say(graph, "thread-b", "PRD B: checkout flow")

        a = graph.get_state({"thread_id": "thread-a"}).values
        b = graph.get_state({"thread_id": "thread-b"}).values
        assert (a["prd_content"], a["test_points"]) == ("PRD A: search box", "TP for A")
        assert (b["prd_content"], b["test_points"]) == ("PRD B: checkout flow", "TP for B")
