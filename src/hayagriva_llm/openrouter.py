"""OpenRouter chat-completion client with JSON extraction and validator hand-off."""

from __future__ import annotations

import json
import re
from typing import TYPE_CHECKING, Any, TypeVar

import httpx
from pydantic import BaseModel, ConfigDict

from hayagriva_llm.config import DEFAULT_TIMEOUT, ERROR_SNIPPET_CHARS, OPENROUTER_URL, ProbeFailure
from hayagriva_llm.exceptions import JsonParseError, ResponseValidationError, TransportError
from hayagriva_llm.logging import logger
from hayagriva_llm.schemas import ProbeResult

if TYPE_CHECKING:
    from collections.abc import Callable

T = TypeVar("T")

_FENCE_PATTERN = re.compile(r"```(?:json)?\s*\n?([\s\S]*?)```")
_BOM = "\ufeff"
_CREDENTIAL_STATUSES = frozenset({httpx.codes.UNAUTHORIZED, httpx.codes.FORBIDDEN})


class CompletionOptions(BaseModel):
    """One system/user prompt pair addressed to a model."""

    model_config = ConfigDict(frozen=True)

    api_key: str
    model: str
    system_prompt: str
    user_content: str


def _matching_brace(text: str, start: int) -> int:
    depth = 0
    for index in range(start, len(text)):
        char = text[index]
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index
    return -1


def strip_markdown_json(text: str) -> str:
    """Extract the JSON object from a model reply.

    Handles plain JSON, fenced blocks (tagged ``json`` or untagged), fenced blocks
    surrounded by prose, and an object embedded in narrative text. The brace
    scan is only a fallback, used when the text does not already start with ``{``.

    Args:
        text (str): Raw message content.

    Returns:
        str: The best candidate span for ``json.loads``; the trimmed input if nothing better is found.
    """
    trimmed = text.strip().removeprefix(_BOM).strip()
    match = _FENCE_PATTERN.search(trimmed)
    if match:
        trimmed = match.group(1).strip()
    if not trimmed.startswith("{"):
        start = trimmed.find("{")
        if start != -1:
            end = _matching_brace(trimmed, start)
            if end != -1:
                trimmed = trimmed[start : end + 1]
    return trimmed


def _post(api_key: str, payload: dict[str, Any], *, client: httpx.Client | None) -> httpx.Response:
    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }
    try:
        if client is not None:
            return client.post(OPENROUTER_URL, json=payload, headers=headers)
        with httpx.Client(timeout=DEFAULT_TIMEOUT) as owned:
            return owned.post(OPENROUTER_URL, json=payload, headers=headers)
    except httpx.HTTPError as exc:
        msg = f"OpenRouter request failed: {exc}"
        raise TransportError(msg) from exc


def _messages(system_prompt: str, user_content: str) -> list[dict[str, str]]:
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_content},
    ]


def _extract_content(payload: Any) -> str | None:  # noqa: ANN401
    if not isinstance(payload, dict):
        return None
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    message = choices[0].get("message")
    if not isinstance(message, dict):
        return None
    content = message.get("content")
    return content if isinstance(content, str) else None


def complete(options: CompletionOptions, *, client: httpx.Client | None = None) -> Any:  # noqa: ANN401
    """Send one completion request and return the decoded JSON payload of the reply.

    Args:
        options (CompletionOptions): Credentials, model and the two prompts.
        client (httpx.Client | None): Client to send through; a short-lived one is created when None.

    Raises:
        TransportError: On a non-2xx status, a network failure or a reply without text content.
        JsonParseError: If the stripped reply is not valid JSON.

    Returns:
        Any: The decoded JSON value, not yet validated.
    """
    payload = {"model": options.model, "messages": _messages(options.system_prompt, options.user_content)}
    response = _post(options.api_key, payload, client=client)
    if not response.is_success:
        body = response.text[:ERROR_SNIPPET_CHARS]
        msg = f"OpenRouter API error {response.status_code}: {body}"
        raise TransportError(msg, status_code=response.status_code, body=body)

    try:
        data = response.json()
    except ValueError as exc:
        msg = "OpenRouter response body is not JSON"
        raise TransportError(msg, status_code=response.status_code) from exc
    content = _extract_content(data)
    if content is None:
        msg = "OpenRouter response missing choices[0].message.content"
        raise TransportError(msg, status_code=response.status_code)

    raw_json = strip_markdown_json(content)
    try:
        return json.loads(raw_json)
    except json.JSONDecodeError as exc:
        snippet = raw_json[:ERROR_SNIPPET_CHARS]
        hint = " (Response may be in a code block; strip failed.)" if "```" in raw_json else ""
        msg = f"OpenRouter returned invalid JSON.{hint} Raw (first {ERROR_SNIPPET_CHARS} chars): {snippet}"
        raise JsonParseError(msg, snippet=snippet) from exc


def complete_validated(
    options: CompletionOptions,
    validator: Callable[[Any], T],
    step: str,
    *,
    client: httpx.Client | None = None,
) -> T:
    """Run :func:`complete` and hand the decoded value to ``validator``.

    Raises:
        ResponseValidationError: If the validator rejects the value; the message is prefixed with ``step``.
    """
    parsed = complete(options, client=client)
    try:
        return validator(parsed)
    except ResponseValidationError as exc:
        msg = f'[AI step "{step}"] Validation failed: {exc}'
        raise ResponseValidationError(msg, step=step) from exc


def _error_text(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:ERROR_SNIPPET_CHARS].strip()
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"]
    return response.text[:ERROR_SNIPPET_CHARS].strip()


def probe(api_key: str, model: str, *, client: httpx.Client | None = None) -> ProbeResult:
    """Check that ``api_key`` is accepted and ``model`` is not rate-limited.

    Sends a one-token completion. A 401 or 403 means invalid credentials and a 429 a
    rate-limited model (with the provider text and any ``Retry-After`` value).

    Args:
        api_key (str): OpenRouter API key.
        model (str): Model id the main flow will use.
        client (httpx.Client | None): Client to send through.

    Raises:
        TransportError: On any other non-2xx status or a network failure.

    Returns:
        ProbeResult: ``ok=True`` when the request succeeded.
    """
    payload = {"model": model, "messages": [{"role": "user", "content": "ping"}], "max_tokens": 1}
    response = _post(api_key, payload, client=client)
    if response.status_code in _CREDENTIAL_STATUSES:
        message = _error_text(response) or "Invalid API key"
        logger.warning("probe_failed", reason=ProbeFailure.INVALID_CREDENTIALS.value, model=model)
        return ProbeResult(ok=False, reason=ProbeFailure.INVALID_CREDENTIALS, message=message)
    if response.status_code == httpx.codes.TOO_MANY_REQUESTS:
        message = _error_text(response) or "Rate limited"
        retry_after = response.headers.get("Retry-After")
        if retry_after:
            message = f"{message} (retry after {retry_after}s)"
        logger.warning("probe_failed", reason=ProbeFailure.RATE_LIMITED.value, model=model)
        return ProbeResult(ok=False, reason=ProbeFailure.RATE_LIMITED, message=message)
    if not response.is_success:
        body = response.text[:ERROR_SNIPPET_CHARS]
        msg = f"OpenRouter API error {response.status_code}: {body}"
        raise TransportError(msg, status_code=response.status_code, body=body)
    logger.debug("probe_ok", model=model)
    return ProbeResult(ok=True)
