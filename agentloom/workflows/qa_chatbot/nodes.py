"""
QA Chatbot Nodes

Node factories close over the model so one compiled graph serves one
model id. Model failures become an apologetic assistant message plus
``error`` in state; the stage does not advance.
"""
import logging
from typing import Any, Awaitable, Callable, Dict, List

from langsmith import traceable

from agentloom.models.dto.messages import ChatMessage
from agentloom.services.llm.clients.base import BaseLLMClient
from .intent import detect_user_intent, last_user_message
from .prompts import (
    completed_revise_prompt,
    other_prompt,
    review_prompt,
    test_cases_prompt,
    test_points_prompt,
)
from .state import QAState

logger = logging.getLogger(__name__)

Node = Callable[[QAState], Awaitable[Dict[str, Any]]]

FAILURE_REPLY = "Sorry, generating a response failed: {error}. Please try again."


async def _generate(model: BaseLLMClient, node: str, messages: List[ChatMessage]) -> Dict[str, Any]:
    """Call the model; returns {"content"} or {"error"}."""
    try:
        response = await model.ainvoke(messages)
    except Exception as e:
        logger.error(f"[qa_chatbot] {node} model call failed: {e}")
        return {"error": str(e)}
    return {"content": response.content, "message": response}


def _failure(error: str) -> Dict[str, Any]:
    reply = ChatMessage.assistant(FAILURE_REPLY.format(error=error), metadata={"error": True})
    return {"messages": [reply.to_state()], "error": error}


def _reply(result: Dict[str, Any], **update: Any) -> Dict[str, Any]:
    message: ChatMessage = result["message"]
    return {"messages": [ChatMessage.assistant(message.content, usage=message.usage).to_state()], "error": "", **update}


def create_router_node() -> Node:
    async def router(state: QAState) -> Dict[str, Any]:
        intent = detect_user_intent(last_user_message(state))
        logger.info(f"[qa_chatbot] router stage={state.get('stage')} intent={intent}")
        return {"user_intent": intent}

    return router


def create_gen_test_points_node(model: BaseLLMClient) -> Node:
    @traceable(name="qa_gen_test_points", tags=["llm", "qa_chatbot"])
    async def gen_test_points(state: QAState) -> Dict[str, Any]:
        user_message = last_user_message(state)
        revise = state.get("stage") == "test_points" and state.get("user_intent") == "revise"

        system = test_points_prompt(state.get("prd_content", ""), state.get("test_points", ""), revise=revise)
        human = f"User feedback: {user_message}" if revise else user_message
        result = await _generate(model, "gen_test_points", [ChatMessage.system(system), ChatMessage.user(human)])
        if "error" in result:
            return _failure(result["error"])

        return _reply(
            result,
            stage="test_points",
            prd_content=state.get("prd_content", "") if revise else user_message,
            test_points=result["content"],
        )

    return gen_test_points


def create_gen_test_cases_node(model: BaseLLMClient) -> Node:
    @traceable(name="qa_gen_test_cases", tags=["llm", "qa_chatbot"])
    async def gen_test_cases(state: QAState) -> Dict[str, Any]:
        revise = state.get("stage") == "test_cases" and state.get("user_intent") == "revise"

        system = test_cases_prompt(state.get("test_points", ""), state.get("test_cases", ""), revise=revise)
        human = (
            f"User feedback: {last_user_message(state)}" if revise
            else "Generate test cases from the test points above."
        )
        result = await _generate(model, "gen_test_cases", [ChatMessage.system(system), ChatMessage.user(human)])
        if "error" in result:
            return _failure(result["error"])

        return _reply(result, stage="test_cases", test_cases=result["content"])

    return gen_test_cases


def create_gen_review_node(model: BaseLLMClient) -> Node:
    @traceable(name="qa_gen_review", tags=["llm", "qa_chatbot"])
    async def gen_review(state: QAState) -> Dict[str, Any]:
        system = review_prompt(state.get("prd_content", ""), state.get("test_points", ""), state.get("test_cases", ""))
        result = await _generate(model, "gen_review", [
            ChatMessage.system(system),
            ChatMessage.user("Review and improve the test cases above."),
        ])
        if "error" in result:
            return _failure(result["error"])

        return _reply(result, stage="completed", test_cases=result["content"])

    return gen_review


def create_handle_revise_node(model: BaseLLMClient) -> Node:
    @traceable(name="qa_handle_revise", tags=["llm", "qa_chatbot"])
    async def handle_revise(state: QAState) -> Dict[str, Any]:
        system = completed_revise_prompt(
            state.get("prd_content", ""), state.get("test_points", ""), state.get("test_cases", "")
        )
        result = await _generate(model, "handle_revise", [
            ChatMessage.system(system),
            ChatMessage.user(f"User feedback: {last_user_message(state)}"),
        ])
        if "error" in result:
            return _failure(result["error"])

        return _reply(result, test_cases=result["content"])

    return handle_revise


def create_handle_other_node(model: BaseLLMClient) -> Node:
    @traceable(name="qa_handle_other", tags=["llm", "qa_chatbot"])
    async def handle_other(state: QAState) -> Dict[str, Any]:
        result = await _generate(model, "handle_other", [
            ChatMessage.system(other_prompt(state.get("stage", "init"))),
            ChatMessage.user(last_user_message(state)),
        ])
        if "error" in result:
            return _failure(result["error"])

        return _reply(result)

    return handle_other
