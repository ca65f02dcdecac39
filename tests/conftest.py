"""
Pytest fixtures for openrouter-agent tests.
"""

import os
from types import SimpleNamespace

import pytest

from openrouter_agent.core.provider import StreamedModelResult
from openrouter_agent.models.agent_config import AgentConfig
from openrouter_agent.models.catalog import ModelDescriptor


@pytest.fixture(autouse=True)
def _clean_env():
    """Prevent environment variable pollution between tests.

    OPENROUTER_API_KEY / OPENROUTER_MODEL from the developer's shell would
    otherwise change which code paths the CLI tests take.
    """
    original_env = os.environ.copy()
    os.environ.pop("OPENROUTER_API_KEY", None)
    os.environ.pop("OPENROUTER_MODEL", None)
    yield
    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def agent_config():
    return AgentConfig(api_key="sk-or-test", model="test/model", instructions="Be brief.")


class FakeProvider:
    """
    Provider double that plays back scripted fragment generators.

    Each script is a generator function; its return value is the final text.
    """

    def __init__(self, *scripts):
        self._scripts = list(scripts)
        self.requests = []
        self.cancels = []

    def call_model(self, request, cancel=None):
        self.requests.append(request)
        self.cancels.append(cancel)
        script = self._scripts.pop(0)
        return StreamedModelResult(script())


@pytest.fixture
def fake_provider_cls():
    return FakeProvider


def make_chunk(content=None, reasoning=None, tool_calls=None):
    """A LiteLLM-style streaming chunk."""
    delta = SimpleNamespace(content=content, reasoning_content=reasoning, tool_calls=tool_calls)
    return SimpleNamespace(choices=[SimpleNamespace(delta=delta)])


def make_tool_call_delta(index, call_id=None, name=None, arguments=None):
    function = SimpleNamespace(name=name, arguments=arguments)
    return SimpleNamespace(index=index, id=call_id, function=function)


def make_model(
    model_id,
    context_length=None,
    prompt=None,
    completion=None,
    request=None,
    moderated=None,
    text_only=True,
):
    """A ModelDescriptor built from a raw /models entry."""
    raw = {"id": model_id}
    if context_length is not None:
        raw["context_length"] = context_length
    pricing = {
        k: v
        for k, v in (("prompt", prompt), ("completion", completion), ("request", request))
        if v is not None
    }
    if pricing:
        raw["pricing"] = pricing
    if moderated is not None:
        raw["top_provider"] = {"is_moderated": moderated}
    if text_only is not None:
        modalities = ["text"] if text_only else ["text", "image"]
        raw["architecture"] = {"input_modalities": modalities, "output_modalities": ["text"]}
    return ModelDescriptor.from_payload(raw)
