from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class HayagrivaError(Exception):
    """Base exception for errors in the hayagriva_llm package."""

    message: str = "LLM metadata generation failed."

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class TransportError(HayagrivaError):
    """Raised when the completion endpoint fails or answers with an unexpected shape."""

    status_code: int | None = None
    body: str = ""


@dataclass(frozen=True)
class JsonParseError(HayagrivaError):
    """Raised when the model output cannot be parsed as JSON, even after stripping."""

    snippet: str = ""


@dataclass(frozen=True)
class ResponseValidationError(HayagrivaError):
    """Raised when a decoded response does not match the shape a step requires."""

    step: str = ""


@dataclass(frozen=True)
class AuthError(HayagrivaError):
    """Raised when the auth/liveness probe fails before the multi-step flow."""

    reason: str = ""
    hint: str = ""


@dataclass(frozen=True)
class MissingApiKeyError(HayagrivaError):
    """Raised when AI mode is requested without an API key."""

    message: str = "AI mode requires --api-key or OPEN_ROUTER_API_KEY (or OPENROUTER_API_KEY)."


@dataclass(frozen=True)
class ManifestError(HayagrivaError):
    """Raised when ``package.json`` is missing or unreadable."""

    path: Path | None = None
