import io
import json
import urllib.error
from http.client import HTTPMessage

import pytest

from taskforce.agents.base import Agent, AgentConfig
from taskforce.llm import ChatMessage, ProviderRegistry, ProviderType, Role, StaticResponseProvider
from taskforce.tasks.base import Task, TaskResult


class ScriptedAgent(Agent):
    """Minimal concrete agent: system prompt plus the task description."""

    def execute(self, task: Task) -> TaskResult:
        messages = [
            ChatMessage(role=Role.SYSTEM, content="You are a test agent."),
            ChatMessage(role=Role.USER, content=task.description),
        ]
        return self.run_prompted_task(task, messages)


class FakeResponse:
    def __init__(self, body, content_type="application/json"):
        self._body = body if isinstance(body, bytes) else body.encode("utf-8")
        self.headers = HTTPMessage()
        self.headers["Content-Type"] = content_type

    def read(self):
        return self._body

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


@pytest.fixture
def scripted():
    """Build a registry whose active backend replays ``replies``."""

    def build(*replies, provider_type=ProviderType.OPENAI):
        provider = StaticResponseProvider(replies, type=provider_type)
        registry = ProviderRegistry(providers={provider_type: provider}, active=provider_type)
        return registry, provider

    return build


@pytest.fixture
def make_agent():
    def build(registry, tools=(), fallback=None, **config):
        config.setdefault("id", "agent-1")
        config.setdefault("name", "Test Agent")
        return ScriptedAgent(AgentConfig(**config), registry, tools=tools, fallback=fallback)

    return build


@pytest.fixture
def http(monkeypatch):
    """Replace ``urllib.request.urlopen``; queued replies are served in order."""

    class Recorder:
        def __init__(self):
            self.requests = []
            self.replies = []

        def reply(self, body, content_type="application/json"):
            if not isinstance(body, (str, bytes)):
                body = json.dumps(body)
            self.replies.append(FakeResponse(body, content_type))

        def fail(self, exc):
            self.replies.append(exc)

        def fail_status(self, code, body):
            self.replies.append(
                urllib.error.HTTPError("http://test", code, "error", HTTPMessage(), io.BytesIO(body.encode("utf-8")))
            )

        def __call__(self, request, timeout=None):
            self.requests.append(request)
            reply = self.replies.pop(0)
            if isinstance(reply, Exception):
                raise reply
            return reply

        def last_json(self):
            return json.loads(self.requests[-1].data.decode("utf-8"))

    recorder = Recorder()
    monkeypatch.setattr("urllib.request.urlopen", recorder)
    return recorder
