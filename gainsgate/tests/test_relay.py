import asyncio
import logging

import pytest

from gainsgate.adapters.openai_compat.mapper import FALLBACK_REPLY
from gainsgate.core.credentials import EnvCredentialProvider, StaticCredentialProvider
from gainsgate.core.errors import (
    API_KEY_MISSING_MESSAGE,
    INTERNAL_MESSAGE,
    INVALID_MESSAGES_MESSAGE,
    UNAUTHENTICATED_MESSAGE,
    FailedPreconditionError,
    InternalError,
    InvalidArgumentError,
    UnauthenticatedError,
    UpstreamError,
)
from gainsgate.core.models import CallerIdentity
from gainsgate.core.relay import AiChatRelay
from gainsgate.util import logger as logger_module


CALLER = CallerIdentity(uid="user-1")


class FakeInvoker:
    def __init__(self, body=None, exc: Exception | None = None, delay: float = 0.0) -> None:
        self.body = body if body is not None else {"choices": [{"message": {"content": "ok"}}]}
        self.exc = exc
        self.delay = delay
        self.calls = []

    async def complete(self, request, api_key):
        self.calls.append((request, api_key))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.exc is not None:
            raise self.exc
        return self.body


def _relay(invoker: FakeInvoker, api_key: str = "sk-test", **kwargs) -> AiChatRelay:
    return AiChatRelay(invoker=invoker, credentials=StaticCredentialProvider(api_key), **kwargs)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "data",
    [
        {"messages": [{"role": "user", "content": "hi"}]},
        {},
        None,
        {"messages": "not a list"},
        {"messages": [{"role": "user", "content": [{"type": "bogus"}]}]},
    ],
)
async def test_unauthenticated_caller_is_rejected_first(data):
    invoker = FakeInvoker()
    with pytest.raises(UnauthenticatedError) as excinfo:
        await _relay(invoker).handle(data, None)
    assert excinfo.value.message == UNAUTHENTICATED_MESSAGE
    assert invoker.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("data", [None, {}, {"messages": None}, {"messages": {}}, {"messages": "hi"}, {"messages": 3}, "text", []])
async def test_messages_must_be_a_list(data):
    invoker = FakeInvoker()
    with pytest.raises(InvalidArgumentError) as excinfo:
        await _relay(invoker).handle(data, CALLER)
    assert excinfo.value.message == INVALID_MESSAGES_MESSAGE
    assert excinfo.value.status == "INVALID_ARGUMENT"
    assert invoker.calls == []


@pytest.mark.asyncio
async def test_missing_api_key_fails_before_upstream_call(monkeypatch):
    monkeypatch.delenv("GAINS_TEST_OPENAI_KEY", raising=False)
    invoker = FakeInvoker()
    relay = AiChatRelay(invoker=invoker, credentials=EnvCredentialProvider("GAINS_TEST_OPENAI_KEY"))

    with pytest.raises(FailedPreconditionError) as excinfo:
        await relay.handle({"messages": [{"role": "user", "content": "hi"}]}, CALLER)

    assert excinfo.value.message == API_KEY_MISSING_MESSAGE
    assert invoker.calls == []


@pytest.mark.asyncio
async def test_api_key_is_read_from_environment_at_call_time(monkeypatch):
    invoker = FakeInvoker()
    relay = AiChatRelay(invoker=invoker, credentials=EnvCredentialProvider("GAINS_TEST_OPENAI_KEY"))
    monkeypatch.setenv("GAINS_TEST_OPENAI_KEY", "sk-late")

    await relay.handle({"messages": [{"role": "user", "content": "hi"}]}, CALLER)

    assert invoker.calls[0][1] == "sk-late"


@pytest.mark.asyncio
async def test_successful_call_builds_upstream_request():
    invoker = FakeInvoker(body={"choices": [{"message": {"role": "assistant", "content": "Drink water."}}]})
    messages = [
        {"role": "system", "content": "You are a coach."},
        {
            "role": "user",
            "content": [
                {"type": "text", "text": "What is this?"},
                {"type": "image_url", "image_url": {"url": "data:image/jpeg;base64,AAAA"}},
            ],
        },
    ]

    reply = await _relay(invoker).handle({"messages": messages}, CALLER)

    assert reply.text == "Drink water."
    assert reply.to_result() == {"reply": "Drink water."}
    request, api_key = invoker.calls[0]
    assert api_key == "sk-test"
    assert request.model == "gpt-4o-mini"
    assert request.temperature == 0.7
    assert request.max_tokens == 1000
    assert request.messages == [
        {"role": "system", "content": "You are a coach."},
        {
            "role": "user",
            "content": [
                {"type": "text", "text": "What is this?"},
                {"type": "image_url", "image_url": {"url": "data:image/jpeg;base64,AAAA"}},
            ],
        },
    ]


@pytest.mark.asyncio
async def test_structured_plan_request_gets_large_budget():
    invoker = FakeInvoker()
    data = {"messages": [{"role": "user", "content": "Generate a workout plan as JSON with 4 days."}]}

    await _relay(invoker).handle(data, CALLER)

    assert invoker.calls[0][0].max_tokens == 4000


@pytest.mark.asyncio
async def test_mixed_content_plan_request_keeps_small_budget():
    invoker = FakeInvoker()
    data = {
        "messages": [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": "Make a meal plan from this fridge photo, JSON only"},
                    {"type": "image_url", "image_url": {"url": "https://img.example.com/fridge.jpg"}},
                ],
            }
        ]
    }

    await _relay(invoker).handle(data, CALLER)

    assert invoker.calls[0][0].max_tokens == 1000


@pytest.mark.asyncio
async def test_empty_upstream_content_returns_fallback():
    invoker = FakeInvoker(body={"choices": [{"message": {"role": "assistant", "content": None}}]})
    reply = await _relay(invoker).handle({"messages": [{"role": "user", "content": "hi"}]}, CALLER)
    assert reply.text == FALLBACK_REPLY


@pytest.mark.asyncio
async def test_malformed_part_is_internal_and_skips_upstream():
    invoker = FakeInvoker()
    data = {"messages": [{"role": "user", "content": [{"type": "text", "text": "a"}, {"type": "image_url"}]}]}

    with pytest.raises(InternalError) as excinfo:
        await _relay(invoker).handle(data, CALLER)

    assert excinfo.value.message == INTERNAL_MESSAGE
    assert invoker.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "exc",
    [
        UpstreamError("upstream_http_error:429:Rate limit reached for sk-secret-123"),
        RuntimeError("Traceback: boom at /srv/app.py line 7"),
        KeyError("choices"),
    ],
)
async def test_upstream_failures_are_opaque(exc):
    invoker = FakeInvoker(exc=exc)

    with pytest.raises(InternalError) as excinfo:
        await _relay(invoker).handle({"messages": [{"role": "user", "content": "hi"}]}, CALLER)

    error = excinfo.value
    assert error.status == "INTERNAL"
    assert error.to_payload() == {"error": {"status": "INTERNAL", "message": "AI service failed."}}
    assert str(exc) not in str(error.to_payload())


@pytest.mark.asyncio
async def test_deadline_abandons_upstream_call():
    invoker = FakeInvoker(delay=1.0)

    with pytest.raises(InternalError):
        await _relay(invoker, deadline_seconds=0.01).handle({"messages": [{"role": "user", "content": "hi"}]}, CALLER)


@pytest.mark.asyncio
async def test_typed_error_from_invoker_is_not_rewrapped():
    invoker = FakeInvoker(exc=FailedPreconditionError())

    with pytest.raises(FailedPreconditionError):
        await _relay(invoker).handle({"messages": [{"role": "user", "content": "hi"}]}, CALLER)


@pytest.mark.asyncio
async def test_config_check_logs_key_presence_but_never_the_key(caplog, monkeypatch):
    monkeypatch.setattr(logger_module.logger, "propagate", True)
    caplog.set_level(logging.DEBUG, logger="gainsgate")
    secret_key = "sk-proj-do-not-log-4f9a"

    await _relay(FakeInvoker(), api_key=secret_key).handle({"messages": [{"role": "user", "content": "hi"}]}, CALLER)

    assert "has_api_key=True" in caplog.text
    assert secret_key not in caplog.text


@pytest.mark.asyncio
async def test_config_check_logs_missing_key(caplog, monkeypatch):
    monkeypatch.setattr(logger_module.logger, "propagate", True)
    caplog.set_level(logging.INFO, logger="gainsgate")

    with pytest.raises(FailedPreconditionError):
        await _relay(FakeInvoker(), api_key="").handle({"messages": [{"role": "user", "content": "hi"}]}, CALLER)

    assert "has_api_key=False" in caplog.text
