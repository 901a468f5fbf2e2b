from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import httpx
import pytest

from hayagriva_llm import ai_mode, cli
from hayagriva_llm.config import ENV_API_KEY_KEYS, ENV_MODEL_KEYS

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator


def chat_response(content: Any, status_code: int = 200) -> httpx.Response:  # noqa: ANN401
    """Build an OpenRouter-shaped reply; non-string content is JSON-encoded."""
    text = content if isinstance(content, str) else json.dumps(content)
    return httpx.Response(status_code, json={"choices": [{"message": {"content": text}}]})


def describe_names(names: list[str]) -> dict[str, Any]:
    """Deterministic export-batch reply for ``names``."""
    exports = {
        name: {
            "type": "function" if name[0].islower() else "class",
            "description": f"Describes {name}.",
            "hook": name.startswith("use") and len(name) > 3,  # noqa: PLR2004
        }
        for name in names
    }
    return {"exports": exports, "hooks": [name for name, info in exports.items() if info["hook"]]}


class FakeOpenRouter:
    """Routes requests by system prompt and records every payload it receives."""

    def __init__(
        self,
        *,
        names: list[str] | None = None,
        overview: Any = None,  # noqa: ANN401
        probe_status: int = 200,
        describe: Callable[[list[str]], Any] = describe_names,
    ) -> None:
        self.names = names or []
        self.overview = overview or {
            "summary": "A demo package.",
            "sideEffects": [],
            "keywords": ["demo"],
            "frameworks": ["react"],
        }
        self.probe_status = probe_status
        self.describe = describe
        self.payloads: list[dict[str, Any]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        self.payloads.append(payload)
        if payload.get("max_tokens") == 1:
            if self.probe_status == 200:  # noqa: PLR2004
                return chat_response("pong")
            return httpx.Response(self.probe_status, json={"error": {"message": "probe rejected"}})
        system = payload["messages"][0]["content"]
        if system == ai_mode.STEP_NAMES_PROMPT:
            return chat_response({"names": self.names})
        if system == ai_mode.STEP_OVERVIEW_PROMPT:
            return chat_response(self.overview)
        if system == ai_mode.STEP_EXPORTS_BATCH_PROMPT:
            return chat_response(self.describe(batch_names(payload)))
        return httpx.Response(400, text="unexpected prompt")

    def batch_payloads(self) -> list[dict[str, Any]]:
        return [p for p in self.payloads if p["messages"][0]["content"] == ai_mode.STEP_EXPORTS_BATCH_PROMPT]


def batch_names(payload: dict[str, Any]) -> list[str]:
    """Extract the JSON-encoded name chunk from the last line of a batch request."""
    return json.loads(payload["messages"][1]["content"].rsplit("\n", 1)[1])


@pytest.fixture
def make_client() -> Iterator[Callable[[Callable[[httpx.Request], httpx.Response]], httpx.Client]]:
    clients: list[httpx.Client] = []

    def factory(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.Client:
        client = httpx.Client(transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    yield factory
    for client in clients:
        client.close()


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep real credentials and a stray ``.env`` out of every test."""
    for key in (*ENV_API_KEY_KEYS, *ENV_MODEL_KEYS):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(cli, "ENV_FILE", "")
