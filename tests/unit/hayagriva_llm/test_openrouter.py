from __future__ import annotations

import json
from typing import TYPE_CHECKING

import httpx
import pytest
from conftest import chat_response

from hayagriva_llm.config import OPENROUTER_URL, ProbeFailure
from hayagriva_llm.exceptions import JsonParseError, ResponseValidationError, TransportError
from hayagriva_llm.openrouter import CompletionOptions, complete, complete_validated, probe, strip_markdown_json
from hayagriva_llm.validators import validate_export_names

if TYPE_CHECKING:
    from collections.abc import Callable

OPTIONS = CompletionOptions(api_key="sk-test", model="openai/gpt-4o-mini", system_prompt="SYS", user_content="USER")


@pytest.mark.unit
@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ('{"a": 1}', '{"a": 1}'),
        ('```json\n{"a": 1}\n```', '{"a": 1}'),
        ('```\n{"a": 1}\n```', '{"a": 1}'),
        ('Here you go:\n```json\n{"a": 1}\n```\nAnything else?', '{"a": 1}'),
        ('Sure! {"a": {"b": 2}} hope it helps', '{"a": {"b": 2}}'),
        ('\ufeff  {"a": 1}  ', '{"a": 1}'),
        ("no json here", "no json here"),
    ],
)
def test_strip_markdown_json(text: str, expected: str) -> None:
    assert strip_markdown_json(text) == expected


@pytest.mark.unit
def test_complete_sends_prompts_and_decodes_reply(
    make_client: Callable[..., httpx.Client],
) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return chat_response('```json\n{"names": ["a"]}\n```')

    result = complete(OPTIONS, client=make_client(handler))

    assert result == {"names": ["a"]}
    request = seen[0]
    assert str(request.url) == OPENROUTER_URL
    assert request.headers["authorization"] == "Bearer sk-test"
    body = json.loads(request.content)
    assert body["model"] == "openai/gpt-4o-mini"
    assert body["messages"] == [
        {"role": "system", "content": "SYS"},
        {"role": "user", "content": "USER"},
    ]


@pytest.mark.unit
def test_complete_non_2xx_raises_with_truncated_body(make_client: Callable[..., httpx.Client]) -> None:
    client = make_client(lambda _request: httpx.Response(500, text="x" * 800))

    with pytest.raises(TransportError) as exc_info:
        complete(OPTIONS, client=client)

    assert exc_info.value.status_code == 500
    assert exc_info.value.body == "x" * 500
    assert str(exc_info.value).startswith("OpenRouter API error 500: ")


@pytest.mark.unit
@pytest.mark.parametrize(
    "payload",
    [
        {"choices": []},
        {"choices": [{"message": {}}]},
        {"choices": [{"message": {"content": None}}]},
        {"error": "nope"},
    ],
)
def test_complete_missing_content_raises(make_client: Callable[..., httpx.Client], payload: dict) -> None:
    client = make_client(lambda _request: httpx.Response(200, json=payload))

    with pytest.raises(TransportError, match=r"missing choices\[0\]\.message\.content"):
        complete(OPTIONS, client=client)


@pytest.mark.unit
def test_complete_invalid_json_keeps_snippet(make_client: Callable[..., httpx.Client]) -> None:
    client = make_client(lambda _request: chat_response("I cannot help with that."))

    with pytest.raises(JsonParseError) as exc_info:
        complete(OPTIONS, client=client)

    assert exc_info.value.snippet == "I cannot help with that."
    assert "code block" not in str(exc_info.value)


@pytest.mark.unit
def test_complete_invalid_json_hints_at_unstripped_fence(make_client: Callable[..., httpx.Client]) -> None:
    client = make_client(lambda _request: chat_response('```json\n{"names": ["a"]'))

    with pytest.raises(JsonParseError, match="Response may be in a code block"):
        complete(OPTIONS, client=client)


@pytest.mark.unit
def test_complete_network_failure_is_transport_error(make_client: Callable[..., httpx.Client]) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        msg = "connection refused"
        raise httpx.ConnectError(msg, request=request)

    with pytest.raises(TransportError, match="OpenRouter request failed") as exc_info:
        complete(OPTIONS, client=make_client(handler))

    assert exc_info.value.status_code is None


@pytest.mark.unit
def test_complete_validated_prefixes_step(make_client: Callable[..., httpx.Client]) -> None:
    client = make_client(lambda _request: chat_response({"names": "a"}))

    with pytest.raises(ResponseValidationError) as exc_info:
        complete_validated(OPTIONS, validate_export_names, "export-names", client=client)

    assert exc_info.value.step == "export-names"
    assert str(exc_info.value).startswith('[AI step "export-names"] Validation failed: Missing or invalid "names"')


@pytest.mark.unit
def test_complete_validated_returns_validator_result(make_client: Callable[..., httpx.Client]) -> None:
    client = make_client(lambda _request: chat_response({"names": ["a", "useB"]}))

    assert complete_validated(OPTIONS, validate_export_names, "export-names", client=client) == ["a", "useB"]


@pytest.mark.unit
def test_probe_ok_sends_one_token_request(make_client: Callable[..., httpx.Client]) -> None:
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return chat_response("pong")

    result = probe("sk-test", "some/model", client=make_client(handler))

    assert result.ok is True
    assert result.reason is None
    assert bodies == [{"model": "some/model", "messages": [{"role": "user", "content": "ping"}], "max_tokens": 1}]


@pytest.mark.unit
@pytest.mark.parametrize("status", [401, 403])
def test_probe_unauthorized(make_client: Callable[..., httpx.Client], status: int) -> None:
    client = make_client(
        lambda _request: httpx.Response(status, json={"error": {"message": "No auth credentials found"}}),
    )

    result = probe("bad", "some/model", client=client)

    assert result.ok is False
    assert result.reason is ProbeFailure.INVALID_CREDENTIALS
    assert result.message == "No auth credentials found"


@pytest.mark.unit
def test_probe_rate_limited_reports_retry_after(make_client: Callable[..., httpx.Client]) -> None:
    client = make_client(
        lambda _request: httpx.Response(
            429,
            json={"error": {"message": "Rate limit exceeded"}},
            headers={"Retry-After": "30"},
        ),
    )

    result = probe("sk-test", "free/model", client=client)

    assert result.ok is False
    assert result.reason is ProbeFailure.RATE_LIMITED
    assert result.message == "Rate limit exceeded (retry after 30s)"


@pytest.mark.unit
def test_probe_other_errors_raise(make_client: Callable[..., httpx.Client]) -> None:
    client = make_client(lambda _request: httpx.Response(503, text="upstream down"))

    with pytest.raises(TransportError) as exc_info:
        probe("sk-test", "some/model", client=client)

    assert exc_info.value.status_code == 503
