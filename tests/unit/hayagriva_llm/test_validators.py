from __future__ import annotations

from typing import Any

import pytest

from hayagriva_llm.config import ExportKind
from hayagriva_llm.exceptions import ResponseValidationError
from hayagriva_llm.validators import (
    normalize_export_entry,
    validate_export_names,
    validate_exports_batch,
    validate_package_overview,
)

VALID_OVERVIEW: dict[str, Any] = {
    "summary": "  Tiny fetch wrapper with retries.  ",
    "sideEffects": ["reads process.env"],
    "keywords": ["http", "fetch"],
    "frameworks": [],
}


@pytest.mark.unit
def test_overview_trims_summary_and_keeps_arrays() -> None:
    overview = validate_package_overview(dict(VALID_OVERVIEW))

    assert overview.summary == "Tiny fetch wrapper with retries."
    assert overview.side_effects == ["reads process.env"]
    assert overview.keywords == ["http", "fetch"]
    assert overview.frameworks == []
    assert overview.when_to_use is None
    assert overview.extras == {}


@pytest.mark.unit
@pytest.mark.parametrize(
    ("field", "bad_value"),
    [
        ("summary", None),
        ("summary", 42),
        ("sideEffects", "patches globals"),
        ("keywords", ["ok", 1]),
        ("frameworks", None),
    ],
)
def test_overview_rejects_malformed_required_field(field: str, bad_value: Any) -> None:  # noqa: ANN401
    raw = dict(VALID_OVERVIEW)
    if bad_value is None:
        del raw[field]
    else:
        raw[field] = bad_value

    with pytest.raises(ResponseValidationError, match=field):
        validate_package_overview(raw)


@pytest.mark.unit
@pytest.mark.parametrize("raw", [None, [], "summary", 3])
def test_overview_requires_object(raw: Any) -> None:  # noqa: ANN401
    with pytest.raises(ResponseValidationError, match="JSON object"):
        validate_package_overview(raw)


@pytest.mark.unit
def test_overview_extended_fields_are_optional_and_type_checked() -> None:
    raw = {
        **VALID_OVERVIEW,
        "whenToUse": "When you need retries.",
        "reasonToUse": ["small", "typed"],
        "useCases": "not a list",
        "documentation": 7,
        "relatedPackages": ["ky", "got"],
        "license": "MIT",
        "audience": None,
    }

    overview = validate_package_overview(raw)

    assert overview.when_to_use == "When you need retries."
    assert overview.reason_to_use == ["small", "typed"]
    assert overview.use_cases is None
    assert overview.documentation is None
    assert overview.related_packages == ["ky", "got"]
    assert overview.extras == {"license": "MIT"}


@pytest.mark.unit
def test_exports_batch_drops_entry_with_unknown_type() -> None:
    batch = validate_exports_batch(
        {
            "exports": {
                "fetchJson": {"type": "function", "description": "Fetch and parse JSON.", "hook": False},
                "Thing": {"type": "interface", "description": "Not a recognized kind."},
            },
            "hooks": [],
        },
    )

    assert list(batch.exports) == ["fetchJson"]
    assert batch.exports["fetchJson"].type is ExportKind.FUNCTION


@pytest.mark.unit
def test_exports_batch_tolerates_noise_per_entry() -> None:
    batch = validate_exports_batch(
        {
            "exports": {
                "useToggle": {
                    "type": "function",
                    "hook": 1,
                    "params": "initial?: boolean",
                    "returns": 5,
                    "sideEffect": "yes",
                    "example": "const [on, toggle] = useToggle()",
                    "since": "2.1.0",
                    "deprecated": None,
                },
                "broken": "function",
                "Client": {"type": "class", "description": "HTTP client.", "sideEffect": True},
            },
        },
    )

    assert set(batch.exports) == {"useToggle", "Client"}
    toggle = batch.exports["useToggle"]
    assert toggle.description == ""
    assert toggle.hook is True
    assert toggle.params == "initial?: boolean"
    assert toggle.returns is None
    assert toggle.side_effect is None
    assert toggle.example == "const [on, toggle] = useToggle()"
    assert toggle.extra == {"since": "2.1.0"}
    assert batch.exports["Client"].side_effect is True
    assert batch.hooks == []


@pytest.mark.unit
@pytest.mark.parametrize("hooks", [None, "useA", ["useA", 3]])
def test_exports_batch_defaults_malformed_hooks(hooks: Any) -> None:  # noqa: ANN401
    raw: dict[str, Any] = {"exports": {}}
    if hooks is not None:
        raw["hooks"] = hooks

    assert validate_exports_batch(raw).hooks == []


@pytest.mark.unit
@pytest.mark.parametrize("raw", [{}, {"exports": None}, {"exports": ["a"]}, []])
def test_exports_batch_requires_exports_object(raw: Any) -> None:  # noqa: ANN401
    with pytest.raises(ResponseValidationError):
        validate_exports_batch(raw)


@pytest.mark.unit
def test_normalize_export_entry_serializes_extras_after_core_keys() -> None:
    entry = normalize_export_entry(
        "Kind",
        {"type": "type", "description": "A union.", "hook": False, "sideEffect": False, "tags": ["x"]},
    )

    assert entry is not None
    assert entry.to_dict() == {
        "type": "type",
        "description": "A union.",
        "hook": False,
        "sideEffect": False,
        "tags": ["x"],
    }


@pytest.mark.unit
def test_export_names_returns_list() -> None:
    assert validate_export_names({"names": ["a", "b", "a"]}) == ["a", "b", "a"]


@pytest.mark.unit
@pytest.mark.parametrize("raw", [{}, {"names": "a"}, {"names": [1]}, None])
def test_export_names_rejects_invalid(raw: Any) -> None:  # noqa: ANN401
    with pytest.raises(ResponseValidationError):
        validate_export_names(raw)
