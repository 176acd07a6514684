"""Schema validation for action input and output.

Schemas are anything pydantic can build a `TypeAdapter` for: `BaseModel`
subclasses, dataclasses, `TypedDict`s, builtin and `Annotated` types. The
validator never raises; it reports either the parsed value or the list of
issues pydantic produced.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import TypeAdapter, ValidationError


@dataclass(frozen=True)
class ValidationIssue:
    """A single problem found while validating a value."""

    loc: tuple[str | int, ...]
    message: str
    type: str = "value_error"

    @property
    def field(self) -> str | None:
        """Top-level field the issue belongs to, or None for whole-object issues."""
        return str(self.loc[0]) if self.loc else None


@dataclass(frozen=True)
class ValidationSuccess:
    value: Any
    ok: bool = field(default=True, init=False)


@dataclass(frozen=True)
class ValidationFailure:
    issues: list[ValidationIssue]
    ok: bool = field(default=False, init=False)

    def field_errors(self) -> dict[str, list[str]]:
        """Messages grouped by top-level field."""
        errors: dict[str, list[str]] = {}
        for issue in self.issues:
            if issue.field is not None:
                errors.setdefault(issue.field, []).append(issue.message)
        return errors

    def form_errors(self) -> list[str]:
        """Messages that apply to the whole object rather than a field."""
        return [issue.message for issue in self.issues if issue.field is None]

    def formatted_errors(self) -> dict[str, Any]:
        """Nested error tree mirroring the shape of the validated value.

        Every node has an `_errors` list; child nodes are keyed by field name
        or stringified list index.
        """
        tree: dict[str, Any] = {"_errors": []}
        for issue in self.issues:
            node = tree
            for part in issue.loc:
                node = node.setdefault(str(part), {"_errors": []})
            node["_errors"].append(issue.message)
        return tree


ValidationOutcome = ValidationSuccess | ValidationFailure


class SchemaValidator:
    """Reusable validator bound to one schema.

    Example:
        validator = SchemaValidator(MultiplyInput)
        outcome = validator.validate({"number": 5})
        if outcome.ok:
            print(outcome.value.number)
    """

    def __init__(self, schema: Any) -> None:
        self.schema = schema
        self._adapter: TypeAdapter[Any] = TypeAdapter(schema)

    def validate(self, value: Any) -> ValidationOutcome:
        try:
            return ValidationSuccess(self._adapter.validate_python(value))
        except ValidationError as e:
            return ValidationFailure(_issues_from_error(e))

    def __repr__(self) -> str:
        return f"SchemaValidator({getattr(self.schema, '__name__', self.schema)!r})"


def _issues_from_error(error: ValidationError) -> list[ValidationIssue]:
    return [
        ValidationIssue(loc=tuple(detail.get("loc", ())), message=detail.get("msg", ""), type=detail.get("type", ""))
        for detail in error.errors()
    ]


def validate(schema: Any, value: Any) -> ValidationOutcome:
    """Validate `value` against `schema` without keeping the adapter around."""
    validator = schema if isinstance(schema, SchemaValidator) else SchemaValidator(schema)
    return validator.validate(value)


def merge_input(raw_input: Any, override_input: Mapping[str, Any] | None) -> Any:
    """Overlay `override_input` keys on top of a mapping input.

    Non-mapping inputs are returned untouched unless there is no input at
    all, in which case the override becomes the input.
    """
    if not override_input:
        return raw_input
    if raw_input is None:
        return dict(override_input)
    if isinstance(raw_input, Mapping):
        return {**raw_input, **override_input}
    return raw_input


def flatten_form(form: Any) -> Any:
    """Flatten a form mapping into a plain dict.

    Multi-dicts (Starlette `FormData`, werkzeug-style objects exposing
    `multi_items()` or `getlist()`) keep repeated keys as lists. Anything that
    is not a mapping is returned untouched.
    """
    if not isinstance(form, Mapping):
        return form

    items: list[tuple[str, Any]]
    if hasattr(form, "multi_items"):
        items = list(form.multi_items())
    else:
        items = list(form.items())

    flat: dict[str, Any] = {}
    for key, value in items:
        if key in flat:
            existing = flat[key]
            flat[key] = existing + [value] if isinstance(existing, list) else [existing, value]
        else:
            flat[key] = value
    return flat
