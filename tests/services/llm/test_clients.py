"""
Tests for multi-provider LLM client (using mocks to avoid API calls).
"""
import json

import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from pydantic import BaseModel

from agentloom.models.dto.messages import ChatMessage, StreamChunk, ToolCall
from agentloom.services.llm import (
    get_llm_client,
    get_llm_client_for,
    AnthropicClient,
    ModelProvider,
    ModelSpec,
    OpenAIClient,
    StructuredOutputError,
)
from agentloom.services.llm.clients.anthropic import to_anthropic_messages
from agentloom.services.llm.clients.base import collect_stream
from agentloom.services.llm.clients.openai import to_openai_messages


# ============================================================================
# Factory Tests
# ============================================================================

def test_get_llm_client_anthropic():
    """Test factory returns Anthropic client when configured."""
    with patch('agentloom.services.llm.factory.settings.LLM_PROVIDER', 'anthropic'), \
         patch('agentloom.services.llm.clients.anthropic.anthropic.AsyncAnthropic'), \
         patch('agentloom.services.llm.clients.anthropic.settings.ANTHROPIC_API_KEY', 'test-key'):
        client = get_llm_client()
        assert isinstance(client, AnthropicClient)


def test_get_llm_client_openai():
    """Test factory returns OpenAI client when configured."""
    with patch('agentloom.services.llm.factory.settings.LLM_PROVIDER', 'openai'), \
         patch('agentloom.services.llm.clients.openai.openai.AsyncOpenAI'), \
         patch('agentloom.services.llm.clients.openai.settings.OPENAI_API_KEY', 'test-key'):
        client = get_llm_client()
        assert isinstance(client, OpenAIClient)


@patch('agentloom.services.llm.factory.settings.LLM_PROVIDER', 'invalid')
def test_get_llm_client_invalid_provider():
    """Test factory raises on invalid provider."""
    with pytest.raises(ValueError, match="Unknown LLM provider"):
        get_llm_client()


def test_missing_api_key():
    """Clients refuse to start without credentials."""
    with patch('agentloom.services.llm.clients.anthropic.settings.ANTHROPIC_API_KEY', ''):
        with pytest.raises(ValueError, match="ANTHROPIC_API_KEY"):
            AnthropicClient()


def test_get_llm_client_for_model_id():
    """Provider-prefixed ids pick the provider and override the model."""
    with patch('agentloom.services.llm.clients.anthropic.anthropic.AsyncAnthropic'), \
         patch('agentloom.services.llm.clients.anthropic.settings.ANTHROPIC_API_KEY', 'test-key'):
        client = get_llm_client_for("anthropic:claude-test")
        assert isinstance(client, AnthropicClient)
        assert client.model == "claude-test"


def test_model_spec_parse():
    assert ModelSpec.parse("anthropic:claude-x") == ModelSpec(ModelProvider.ANTHROPIC, "claude-x")
    assert ModelSpec.parse("OpenAI:gpt-4o").provider == ModelProvider.OPENAI
    assert ModelSpec(ModelProvider.OPENAI).model_id == "openai:default"

    with patch('agentloom.services.llm.providers.settings.LLM_PROVIDER', 'openai'):
        # No known prefix: whole id is a model of the default provider
        assert ModelSpec.parse("my-org:fine-tune") == ModelSpec(ModelProvider.OPENAI, "my-org:fine-tune")


# ============================================================================
# Anthropic Client Tests
# ============================================================================

@pytest.fixture
def mock_anthropic_client():
    """Mock Anthropic async client."""
    with patch('agentloom.services.llm.clients.anthropic.anthropic.AsyncAnthropic') as mock:
        yield mock


@pytest.mark.asyncio
async def test_anthropic_call_success(mock_anthropic_client):
    """Test successful API call with Anthropic."""
    # Setup mock response
    mock_response = MagicMock()
    mock_response.content = [
        MagicMock(type="text", text='{"summary": "User discussed API integration", "importance": 0.8}')
    ]
    mock_response.usage = MagicMock(input_tokens=12, output_tokens=7)

    mock_client = AsyncMock()
    mock_client.messages.create = AsyncMock(return_value=mock_response)
    mock_anthropic_client.return_value = mock_client

    # Test API call
    with patch('agentloom.services.llm.clients.anthropic.settings.ANTHROPIC_API_KEY', 'test-key'):
        llm_client = AnthropicClient()
        result = await llm_client.call("Test prompt", system="Be brief")

        assert result == '{"summary": "User discussed API integration", "importance": 0.8}'
        kwargs = mock_client.messages.create.call_args.kwargs
        assert kwargs["system"] == "Be brief"
        assert kwargs["messages"] == [{"role": "user", "content": [{"type": "text", "text": "Test prompt"}]}]


@pytest.mark.asyncio
async def test_anthropic_tool_use(mock_anthropic_client):
    """tool_use blocks become ToolCalls; usage is reported."""
    tool_block = MagicMock(type="tool_use", id="toolu_1", input={"query": "coffee"})
    tool_block.name = "archival_memory_search"

    mock_response = MagicMock()
    mock_response.content = [MagicMock(type="text", text="Let me check."), tool_block]
    mock_response.usage = MagicMock(input_tokens=20, output_tokens=9)

    mock_client = AsyncMock()
    mock_client.messages.create = AsyncMock(return_value=mock_response)
    mock_anthropic_client.return_value = mock_client

    with patch('agentloom.services.llm.clients.anthropic.settings.ANTHROPIC_API_KEY', 'test-key'):
        llm_client = AnthropicClient()
        tools = [{"name": "archival_memory_search", "description": "search", "parameters": {"type": "object"}}]
        message = await llm_client.ainvoke([ChatMessage.user("coffee?")], tools=tools)

    assert message.content == "Let me check."
    assert message.tool_calls == [ToolCall(id="toolu_1", name="archival_memory_search", args={"query": "coffee"})]
    assert message.usage.total_tokens == 29
    sent_tools = mock_client.messages.create.call_args.kwargs["tools"]
    assert sent_tools[0]["input_schema"] == {"type": "object"}


def test_to_anthropic_messages_merges_tool_results():
    """Parallel tool results share one user turn; system is split out."""
    system, messages = to_anthropic_messages([
        ChatMessage.system("sys"),
        ChatMessage.user("hi"),
        ChatMessage.assistant("", tool_calls=[ToolCall(id="a", name="t", args={}), ToolCall(id="b", name="t", args={})]),
        ChatMessage.tool("one", tool_call_id="a"),
        ChatMessage.tool("two", tool_call_id="b"),
    ])

    assert system == "sys"
    assert [m["role"] for m in messages] == ["user", "assistant", "user"]
    assert [b["tool_use_id"] for b in messages[2]["content"]] == ["a", "b"]


# ============================================================================
# OpenAI Client Tests
# ============================================================================

@pytest.fixture
def mock_openai_client():
    """Mock OpenAI async client."""
    with patch('agentloom.services.llm.clients.openai.openai.AsyncOpenAI') as mock:
        yield mock


@pytest.mark.asyncio
async def test_openai_call_success(mock_openai_client):
    """Test successful API call with OpenAI."""
    # Setup mock response
    mock_choice = MagicMock()
    mock_choice.message.content = '{"summary": "User asked about features", "importance": 0.7}'
    mock_choice.message.tool_calls = None

    mock_response = MagicMock()
    mock_response.choices = [mock_choice]
    mock_response.usage = MagicMock(prompt_tokens=5, completion_tokens=3)

    mock_client = AsyncMock()
    mock_client.chat.completions.create = AsyncMock(return_value=mock_response)
    mock_openai_client.return_value = mock_client

    # Test API call
    with patch('agentloom.services.llm.clients.openai.settings.OPENAI_API_KEY', 'test-key'):
        llm_client = OpenAIClient()
        result = await llm_client.call("Test prompt")

        assert result == '{"summary": "User asked about features", "importance": 0.7}'


@pytest.mark.asyncio
async def test_openai_tool_calls(mock_openai_client):
    """function tool calls are decoded from their JSON arguments."""
    call = MagicMock(id="call_1")
    call.function.name = "core_memory_append"
    call.function.arguments = json.dumps({"label": "human", "content": "likes tea"})

    mock_choice = MagicMock()
    mock_choice.message.content = None
    mock_choice.message.tool_calls = [call]

    mock_response = MagicMock()
    mock_response.choices = [mock_choice]
    mock_response.usage = MagicMock(prompt_tokens=5, completion_tokens=3)

    mock_client = AsyncMock()
    mock_client.chat.completions.create = AsyncMock(return_value=mock_response)
    mock_openai_client.return_value = mock_client

    with patch('agentloom.services.llm.clients.openai.settings.OPENAI_API_KEY', 'test-key'):
        message = await OpenAIClient().ainvoke([ChatMessage.user("remember I like tea")])

    assert message.content == ""
    assert message.tool_calls[0].name == "core_memory_append"
    assert message.tool_calls[0].args == {"label": "human", "content": "likes tea"}
    assert message.usage.input_tokens == 5


def test_to_openai_messages_encodes_tool_calls():
    wire = to_openai_messages([
        {"role": "assistant", "content": "", "tool_calls": [{"id": "c1", "name": "t", "args": {"x": 1}}]},
        ChatMessage.tool("done", tool_call_id="c1"),
    ])

    assert wire[0]["content"] is None
    assert wire[0]["tool_calls"][0]["function"] == {"name": "t", "arguments": '{"x": 1}'}
    assert wire[1] == {"role": "tool", "tool_call_id": "c1", "content": "done"}


# ============================================================================
# Shared Functionality Tests
# ============================================================================

@pytest.mark.asyncio
async def test_parse_json_response_raw_json(mock_anthropic_client):
    """Test parsing raw JSON response."""
    mock_anthropic_client.return_value = AsyncMock()

    with patch('agentloom.services.llm.clients.anthropic.settings.ANTHROPIC_API_KEY', 'test-key'):
        llm_client = AnthropicClient()
        result = llm_client.parse_json_response('{"summary": "Test", "importance": 0.5}')

        assert result["summary"] == "Test"
        assert result["importance"] == 0.5


@pytest.mark.asyncio
async def test_parse_json_response_markdown_block(mock_anthropic_client):
    """Test parsing JSON from markdown code blocks."""
    mock_anthropic_client.return_value = AsyncMock()

    with patch('agentloom.services.llm.clients.anthropic.settings.ANTHROPIC_API_KEY', 'test-key'):
        llm_client = AnthropicClient()
        result = llm_client.parse_json_response('```json\n{"summary": "Test", "importance": 0.5}\n```')

        assert result["summary"] == "Test"
        assert result["importance"] == 0.5


@pytest.mark.asyncio
async def test_parse_json_response_invalid_json(mock_anthropic_client):
    """Test that parser raises error on invalid JSON."""
    mock_anthropic_client.return_value = AsyncMock()

    with patch('agentloom.services.llm.clients.anthropic.settings.ANTHROPIC_API_KEY', 'test-key'):
        llm_client = AnthropicClient()

        with pytest.raises(ValueError, match="Failed to parse LLM response"):
            llm_client.parse_json_response('This is not JSON')


class Verdict(BaseModel):
    approved: bool
    reason: str


@pytest.mark.asyncio
async def test_structured_output(make_llm):
    """Schema-bound calls return the parsed model plus the raw message."""
    llm = make_llm(['Sure: {"approved": true, "reason": "complete"}'])

    result = await llm.with_structured_output(Verdict).ainvoke([ChatMessage.user("judge")])

    assert result.parsed == Verdict(approved=True, reason="complete")
    assert result.raw.content.startswith("Sure:")
    instruction = llm.calls[0]["messages"][0]
    assert instruction.role == "system"
    assert instruction.content.startswith("Respond with a single JSON object")


@pytest.mark.asyncio
async def test_structured_output_errors(make_llm):
    llm = make_llm(["no json here", '{"approved": "maybe"}'])
    runner = llm.with_structured_output(Verdict)

    with pytest.raises(StructuredOutputError) as unparseable:
        await runner.ainvoke([ChatMessage.user("judge")])
    assert unparseable.value.raw.content == "no json here"

    with pytest.raises(StructuredOutputError, match="does not match Verdict"):
        await runner.ainvoke([ChatMessage.user("judge")])


@pytest.mark.asyncio
async def test_collect_stream_folds_chunks():
    async def chunks():
        yield StreamChunk(kind="content", content="Hel")
        yield StreamChunk(kind="content", content="lo")
        yield StreamChunk(kind="tool_call", index=0, tool_call_id="c1", tool_name="lookup")
        yield StreamChunk(kind="tool_call", index=0, args_delta='{"key": ')
        yield StreamChunk(kind="tool_call", index=0, args_delta='"river"}')

    message = await collect_stream(chunks())

    assert message.content == "Hello"
    assert message.tool_calls == [ToolCall(id="c1", name="lookup", args={"key": "river"})]
