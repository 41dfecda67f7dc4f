from dataclasses import replace
from types import SimpleNamespace

import pytest
from google.api_core import exceptions as google_exceptions

from support_bot import gemini_client
from support_bot.errors import CompletionError
from support_bot.gemini_client import GeminiClient, _normalize_model_name, _to_contents


class FakeResponse:
    def __init__(self, text=None, blocked=False):
        self._text = text
        self._blocked = blocked

    @property
    def text(self):
        if self._blocked:
            raise ValueError("no parts")
        return self._text


class FakeModel:
    instances = []

    def __init__(self, model_name, system_instruction=None):
        self.model_name = model_name
        self.system_instruction = system_instruction
        self.calls = []
        self.outcome = FakeResponse("ok")
        FakeModel.instances.append(self)

    def generate_content(self, contents, **kwargs):
        self.calls.append((contents, kwargs))
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


@pytest.fixture
def fake_genai(monkeypatch):
    FakeModel.instances = []
    configured = {}
    fake = SimpleNamespace(
        configure=lambda api_key: configured.setdefault("api_key", api_key),
        GenerativeModel=FakeModel,
    )
    monkeypatch.setattr(gemini_client, "genai", fake)
    return configured


@pytest.fixture
def client(settings, fake_genai):
    return GeminiClient(replace(settings, gemini_api_key="key-123", gemini_model="models/gemini-test"))


MESSAGES = [
    {"role": "system", "content": "Be nice."},
    {"role": "user", "content": "hi"},
    {"role": "assistant", "content": "hello"},
    {"role": "user", "content": "price?"},
]


def test_requires_api_key(settings, fake_genai):
    with pytest.raises(ValueError):
        GeminiClient(settings)


def test_complete_maps_roles_and_options(client, fake_genai):
    answer = client.complete(MESSAGES, temperature=0.7, max_output_tokens=1024)

    assert answer == "ok"
    assert fake_genai["api_key"] == "key-123"
    model = FakeModel.instances[-1]
    assert model.model_name == "gemini-test"
    assert model.system_instruction == "Be nice."
    contents, kwargs = model.calls[0]
    assert [c["role"] for c in contents] == ["user", "model", "user"]
    assert contents[-1]["parts"] == [{"text": "price?"}]
    assert kwargs["generation_config"] == {"temperature": 0.7, "max_output_tokens": 1024}
    assert kwargs["request_options"] == {"timeout": 30}


def test_models_are_cached_per_system_instruction(client):
    client.complete(MESSAGES)
    client.complete(MESSAGES)
    assert len(FakeModel.instances) == 1


def test_text_is_returned_unmodified(client):
    client.complete(MESSAGES)
    FakeModel.instances[-1].outcome = FakeResponse("  spaced  \n")
    assert client.complete(MESSAGES) == "  spaced  \n"


@pytest.mark.parametrize(
    "outcome,reason",
    [
        (google_exceptions.DeadlineExceeded("timed out"), "Completion service error"),
        (google_exceptions.ServiceUnavailable("down"), "Completion service error"),
        (FakeResponse(blocked=True), "No response from completion service"),
        (FakeResponse(""), "No response from completion service"),
    ],
)
def test_failures_raise_completion_error(client, outcome, reason):
    client.complete(MESSAGES)
    FakeModel.instances[-1].outcome = outcome
    with pytest.raises(CompletionError, match=reason):
        client.complete(MESSAGES)


def test_to_contents_rejects_unknown_role():
    with pytest.raises(CompletionError):
        _to_contents([{"role": "tool", "content": "x"}])


def test_normalize_model_name():
    assert _normalize_model_name(" models/gemini-2.5-flash ") == "gemini-2.5-flash"
    assert _normalize_model_name(None) == ""
