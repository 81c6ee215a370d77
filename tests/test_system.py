import threading

import pytest

from taskforce import create_agent_system
from taskforce.config import SystemSettings, TaskSpec, ToolSpec
from taskforce.llm import ProviderError, ProviderRegistry, ProviderType, StaticResponseProvider
from taskforce.tasks.runner import TaskRunner
from taskforce.tasks.base import TaskResult


def build(scripted, *replies, **settings):
    registry, provider = scripted(*replies)
    system = create_agent_system(SystemSettings(**settings), providers=registry)
    return system, provider


def test_factory_wires_models_and_fallback(scripted):
    system, _ = build(
        scripted,
        master_model="gpt-4o",
        sub_orchestrator_model="gpt-4o-mini",
        tool_model="gpt-3.5-turbo",
        fallback_enabled=False,
    )

    assert system.master.config.model == "gpt-4o"
    for orchestrator in system.master.domain_orchestrators().values():
        assert orchestrator.config.model == "gpt-4o-mini"
        assert orchestrator.fallback.enabled is False
    summarize = system.orchestrator("research").tools.get("summarize_content")
    assert summarize.model == "gpt-3.5-turbo"
    assert system.master.fallback.enabled is False
    assert set(system.get_status()) == {"master", "analytics", "research", "content"}


def test_factory_asks_settings_for_each_domain_model(scripted, monkeypatch):
    registry, _ = scripted()
    settings = SystemSettings()
    monkeypatch.setattr(settings, "model_for", lambda domain: f"{domain}-model")

    system = create_agent_system(settings, providers=registry)

    assert system.master.config.model == "general-model"
    assert {domain: agent.config.model for domain, agent in system.master.domain_orchestrators().items()} == {
        "analytics": "analytics-model",
        "research": "research-model",
        "content": "content-model",
    }


def test_execute_through_master(scripted):
    system, provider = build(scripted, "Hello there.", master_model="gpt-4o-mini")

    result = system.execute("Say hello")

    assert result.success
    assert result.output == "Hello there."
    assert provider.requests[0].model == "gpt-4o-mini"
    assert provider.requests[0].messages[1].content == "Say hello"


def test_empty_description_fails_without_model_calls(scripted):
    system, provider = build(scripted)

    result = system.execute("   ")

    assert result.success is False
    assert provider.requests == []


def test_direct_to_domain_copies_prompt_fields(scripted):
    system, provider = build(scripted, "The average is 2.")

    result = system.execute("Average these numbers", {"data": [1, 2, 3], "note": "quick"}, direct_to="analytics")

    assert result.output == "The average is 2."
    system_prompt, user_prompt = provider.requests[0].messages
    assert system_prompt.content.startswith("You are the Analytics Orchestrator")
    assert user_prompt.content.startswith("Task: Average these numbers")
    assert "Data provided:" in user_prompt.content
    assert '"note": "quick"' in user_prompt.content
    assert provider.requests[0].temperature == 0.3


def test_unknown_domain_is_a_failure(scripted):
    system, provider = build(scripted)

    result = system.execute("anything", direct_to="finance")

    assert result.success is False
    assert "Unknown domain 'finance'" in result.error
    assert provider.requests == []


def test_run_tool_directly(scripted):
    system, _ = build(scripted)

    assert system.run_tool("analytics", "statistical_analysis", {"data": [1, 2, 3]}).data["mean"] == 2
    assert system.run_tool("analytics", "nope", {}).error == "Unknown tool: nope"
    assert system.run_tool("finance", "statistical_analysis", {}).success is False


def test_configured_tools_are_attached_to_their_domains(scripted):
    spec = ToolSpec(name="extra_stats", type="taskforce.tools.analytics:StatisticalAnalysisTool", agents=["content"])
    system, _ = build(scripted, tools={"extra_stats": spec})

    assert "extra_stats" in system.orchestrator("content").tools
    assert "extra_stats" not in system.orchestrator("analytics").tools
    assert system.run_tool("content", "extra_stats", {"data": [4, 6]}).data["mean"] == 5


def test_broken_tool_spec_does_not_fail_its_domain(scripted):
    spec = ToolSpec(name="ghost", type="nope.module:Tool", agents=["analytics"])
    system, provider = build(scripted, "Still working.", tools={"ghost": spec})

    result = system.execute("Average these numbers", {"data": [1, 2]}, direct_to="analytics")

    assert result.success
    assert result.output == "Still working."
    offered = [tool["function"]["name"] for tool in provider.requests[0].tools]
    assert "ghost" not in offered
    assert "statistical_analysis" in offered


def test_runner_executes_specs(scripted):
    system, _ = build(scripted, "first", "second", timeout=None)
    runner = system.runner()

    results = runner.run_all([TaskSpec(id="a", description="one"), TaskSpec(id="b", description="two")])

    assert {key: result.output for key, result in results.items()} == {"a": "first", "b": "second"}


def test_runner_times_out_slow_tasks():
    release = threading.Event()

    def slow(spec):
        release.wait(5)
        return TaskResult(success=True, output="late")

    runner = TaskRunner(slow, timeout=0.05)
    try:
        result = runner.run(TaskSpec(id="slow", description="wait"))
    finally:
        release.set()

    assert result.success is False
    assert result.error == "Task slow timed out after 0.05s"
    assert runner.results() == {"slow": result}


def test_runner_refuses_new_tasks_while_timed_out_run_is_alive():
    release = threading.Event()
    dispatched = []

    def dispatch(spec):
        dispatched.append(spec.id)
        if spec.id == "a":
            release.wait(5)
        return TaskResult(success=True, output=spec.id)

    runner = TaskRunner(dispatch, timeout=0.05)
    try:
        first = runner.run(TaskSpec(id="a", description="slow"))
        second = runner.run(TaskSpec(id="b", description="blocked"))
    finally:
        release.set()

    assert first.error == "Task a timed out after 0.05s"
    assert second.success is False
    assert second.error == "Task b not started: task a is still running after timing out"
    assert dispatched == ["a"]

    assert runner.wait(1) is True
    assert runner.run(TaskSpec(id="c", description="after")).output == "c"
    assert dispatched == ["a", "c"]


def test_runner_reraises_dispatch_errors():
    def broken(spec):
        raise RuntimeError("dispatch failed")

    runner = TaskRunner(broken, timeout=1)

    with pytest.raises(RuntimeError, match="dispatch failed"):
        runner.run(TaskSpec(id="x", description="boom"))


def _ollama_then_openai(openai_replies):
    ollama = StaticResponseProvider([ProviderError("Ollama API error: connection refused")], type=ProviderType.OLLAMA)
    openai = StaticResponseProvider(openai_replies, type=ProviderType.OPENAI)
    registry = ProviderRegistry(providers={ProviderType.OLLAMA: ollama, ProviderType.OPENAI: openai})
    return registry, openai


def test_system_falls_back_to_openai():
    registry, openai = _ollama_then_openai(["rescued"])
    system = create_agent_system(SystemSettings(active_provider=ProviderType.OLLAMA), providers=registry)

    result = system.execute("Hi")

    assert result.output == "rescued"
    # retried with the fallback backend's default model
    assert openai.requests[0].model == "gpt-4o"


def test_system_without_fallback_reports_backend_error():
    registry, openai = _ollama_then_openai(["unused"])
    settings = SystemSettings(active_provider=ProviderType.OLLAMA, fallback_enabled=False)
    system = create_agent_system(settings, providers=registry)

    result = system.execute("Hi")

    assert result.success is False
    assert "connection refused" in result.error
    assert openai.requests == []
