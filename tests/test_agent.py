import json

import pytest

from taskforce.agents.base import MAX_ITERATIONS_REACHED, AgentStatus
from taskforce.llm import (
    NO_FALLBACK,
    ProviderConfig,
    ProviderError,
    ProviderRegistry,
    ProviderType,
    Role,
    StaticResponseProvider,
    tool_call_reply,
)
from taskforce.tasks.base import Task
from taskforce.tools import Tool, ToolParameter, ToolResult


class EchoTool(Tool):
    """Echo the given text back."""

    name = "echo"
    parameters = {"text": ToolParameter("string", "Text to echo", required=True)}

    def run(self, params):
        return ToolResult.ok(params["text"])


def test_agent_without_tools_answers_after_one_call(scripted, make_agent):
    registry, provider = scripted(tool_call_reply(("echo", {"text": "x"}), content="thinking"))
    agent = make_agent(registry)

    outcome = agent.run_agent_loop([], max_iterations=5)

    assert outcome.result == "thinking"
    assert outcome.iterations == 1
    assert outcome.exhausted is False
    assert len(provider.requests) == 1
    assert provider.requests[0].tools == []


def test_iteration_cap_returns_sentinel(scripted, make_agent):
    registry, provider = scripted(tool_call_reply(("echo", {"text": "again"})))
    agent = make_agent(registry, tools=[EchoTool()])

    outcome = agent.run_agent_loop([], max_iterations=1)

    assert outcome.result == MAX_ITERATIONS_REACHED
    assert outcome.exhausted is True
    assert len(provider.requests) == 1
    assert agent.state.status is AgentStatus.IDLE


def test_tool_results_are_correlated_with_calls(scripted, make_agent):
    registry, provider = scripted(tool_call_reply(("echo", {"text": "hi"})), "done")
    agent = make_agent(registry, tools=[EchoTool()])

    result = agent.execute(Task(description="Say hi"))

    assert result.success
    assert result.output == "done"
    assert result.iterations == 2
    assert provider.requests[0].tools[0]["function"]["name"] == "echo"

    followup = provider.requests[1].messages
    assert [message.role for message in followup] == [Role.SYSTEM, Role.USER, Role.ASSISTANT, Role.TOOL]
    assert followup[2].tool_calls[0].id == "call_echo_1"
    assert followup[3].tool_call_id == "call_echo_1"
    assert json.loads(followup[3].content) == {"success": True, "data": "hi"}


def test_bad_tool_calls_are_answered_and_loop_continues(scripted, make_agent):
    registry, provider = scripted(
        tool_call_reply(("missing", {}), ("echo", "{not json")),
        "recovered",
    )
    agent = make_agent(registry, tools=[EchoTool()])

    outcome = agent.run_agent_loop([], max_iterations=3)

    assert outcome.result == "recovered"
    tool_messages = [message for message in provider.requests[1].messages if message.role is Role.TOOL]
    errors = [json.loads(message.content)["error"] for message in tool_messages]
    assert errors[0] == "Unknown tool: missing"
    assert errors[1].startswith("Invalid tool arguments")


def test_non_positive_iteration_cap_is_rejected(scripted, make_agent):
    registry, _ = scripted("unused")

    with pytest.raises(ValueError):
        make_agent(registry).run_agent_loop([], max_iterations=0)


def test_model_failure_sets_error_and_propagates(scripted, make_agent):
    registry, _ = scripted(ProviderError("backend down"))
    agent = make_agent(registry)

    with pytest.raises(ProviderError):
        agent.run_agent_loop([])

    assert agent.state.status is AgentStatus.ERROR


def test_execute_reports_model_failure(scripted, make_agent):
    registry, _ = scripted(ProviderError("backend down"))
    agent = make_agent(registry)

    result = agent.execute(Task(description="Anything"))

    assert result.success is False
    assert result.error == "backend down"
    assert result.execution_time_ms is not None


def test_state_and_history_after_a_run(scripted, make_agent):
    registry, _ = scripted("hello")
    agent = make_agent(registry)
    task = Task(description="Greet")

    agent.execute(task)

    status = agent.get_status()
    assert status.status is AgentStatus.IDLE
    assert status.last_activity is not None
    assert status.current_task == task.id
    assert [message.content for message in agent.message_history] == ["hello"]

    agent.clear_history()
    assert agent.message_history == []


def test_status_snapshot_is_a_copy(scripted, make_agent):
    registry, _ = scripted("hello")
    agent = make_agent(registry)

    snapshot = agent.get_status()
    snapshot.status = AgentStatus.ERROR

    assert agent.state.status is AgentStatus.IDLE


def test_model_resolution_order(scripted, make_agent):
    registry, provider = scripted("a", "b", "c")

    make_agent(registry, model="pinned").run_agent_loop([])
    make_agent(registry).run_agent_loop([])
    registry.initialize_provider(ProviderType.OPENAI, ProviderConfig(type=ProviderType.OPENAI, default_model="gpt-4o-mini"))
    make_agent(registry).run_agent_loop([])

    assert [request.model for request in provider.requests] == ["pinned", "gpt-4o", "gpt-4o-mini"]


def test_request_carries_config_sampling(scripted, make_agent):
    registry, provider = scripted("ok")

    make_agent(registry, temperature=0.2, max_tokens=256).run_agent_loop([])

    assert provider.requests[0].temperature == 0.2
    assert provider.requests[0].max_tokens == 256


def _failing_ollama_registry():
    ollama = StaticResponseProvider([ProviderError("Ollama API error: model not found")], type=ProviderType.OLLAMA)
    openai = StaticResponseProvider(["rescued"], type=ProviderType.OPENAI)
    registry = ProviderRegistry(
        providers={ProviderType.OLLAMA: ollama, ProviderType.OPENAI: openai}, active=ProviderType.OLLAMA
    )
    registry.register(openai, ProviderConfig(type=ProviderType.OPENAI, enabled=True, default_model="gpt-4o-mini"))
    return registry, openai


def test_agent_falls_back_to_default_backend(make_agent):
    registry, openai = _failing_ollama_registry()

    result = make_agent(registry, model="llama3.2").execute(Task(description="Hi"))

    assert result.success
    assert result.output == "rescued"
    assert openai.requests[0].model == "gpt-4o-mini"


def test_agent_without_fallback_reports_failure(make_agent):
    registry, openai = _failing_ollama_registry()

    result = make_agent(registry, fallback=NO_FALLBACK).execute(Task(description="Hi"))

    assert result.success is False
    assert "model not found" in result.error
    assert openai.requests == []
