"""Pydantic records for generated package metadata.

Records that accept model-supplied fields beyond the known schema keep a typed
core and a side-map (``extra`` / ``extras``) for the rest. The side-map is
flattened back onto the record when serialized and never overrides a core key.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from hayagriva_llm.config import ExportKind, GenerationMode, ProbeFailure


class ExportDescriptor(BaseModel):
    """Metadata for one exported symbol."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: ExportKind = Field(..., description="function, class or type")
    description: str = Field(default="", description="One-line summary")
    hook: bool = Field(default=False, description="True for hook-like function names")
    params: str | None = Field(default=None, description="Parameter list or signature")
    returns: str | None = Field(default=None, description="Return type or one-liner")
    side_effect: bool | None = Field(default=None, alias="sideEffect", description="Performs IO or mutates state")
    example: str | None = Field(default=None, description="One-line usage example")
    extra: dict[str, Any] = Field(default_factory=dict, description="Additional model-supplied fields")

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the on-disk shape (camelCase keys, unset optionals omitted)."""
        data = self.model_dump(mode="json", by_alias=True, exclude_none=True, exclude={"extra"})
        for key, value in self.extra.items():
            data.setdefault(key, value)
        return data


class PackageOverview(BaseModel):
    """Package-level descriptive fields returned by the overview step."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    summary: str
    side_effects: list[str] = Field(default_factory=list, alias="sideEffects")
    keywords: list[str] = Field(default_factory=list)
    frameworks: list[str] = Field(default_factory=list)
    when_to_use: str | None = Field(default=None, alias="whenToUse")
    reason_to_use: list[str] | None = Field(default=None, alias="reasonToUse")
    use_cases: list[str] | None = Field(default=None, alias="useCases")
    documentation: str | None = None
    related_packages: list[str] | None = Field(default=None, alias="relatedPackages")
    extras: dict[str, Any] = Field(default_factory=dict)


class ExportsBatch(BaseModel):
    """Validated result of one export-detail batch."""

    model_config = ConfigDict(frozen=True)

    exports: dict[str, ExportDescriptor] = Field(default_factory=dict)
    hooks: list[str] = Field(default_factory=list)


class AiModeResult(BaseModel):
    """Merged output of every AI step."""

    model_config = ConfigDict(frozen=True)

    overview: PackageOverview
    exports: dict[str, ExportDescriptor] = Field(default_factory=dict)
    hooks: list[str] = Field(default_factory=list)


class ProgressEvent(BaseModel):
    """One completed step of the AI protocol."""

    model_config = ConfigDict(frozen=True)

    current: int = Field(..., ge=1)
    total: int = Field(..., ge=1)
    message: str


class ProbeResult(BaseModel):
    """Outcome of the auth/liveness probe."""

    model_config = ConfigDict(frozen=True)

    ok: bool
    reason: ProbeFailure | None = None
    message: str = ""


class CanonicalMetadata(BaseModel):
    """The persisted ``llm.package.json`` structure."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    version: str
    description: str = ""
    summary: str | None = None
    when_to_use: str | None = Field(default=None, alias="whenToUse")
    reason_to_use: list[str] | None = Field(default=None, alias="reasonToUse")
    use_cases: list[str] | None = Field(default=None, alias="useCases")
    side_effects: list[str] | None = Field(default=None, alias="sideEffects")
    keywords: list[str] | None = None
    documentation: str | None = None
    related_packages: list[str] | None = Field(default=None, alias="relatedPackages")
    exports: dict[str, ExportDescriptor] = Field(default_factory=dict)
    hooks: list[str] = Field(default_factory=list)
    frameworks: list[str] = Field(default_factory=list)
    generated_by: str = Field(..., alias="generatedBy")
    mode: GenerationMode
    extras: dict[str, Any] = Field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the on-disk shape: known keys first, then the pass-through extras."""
        data = self.model_dump(mode="json", by_alias=True, exclude_none=True, exclude={"extras"})
        data["exports"] = {name: info.to_dict() for name, info in self.exports.items()}
        for key, value in self.extras.items():
            data.setdefault(key, value)
        return data
