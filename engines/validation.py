"""Validation errors and checks shared by the placement and plan engines."""

from typing import Any, Dict, Iterable, Mapping


class ValidationError(ValueError):
    """Base class for validation errors."""
    pass


class EmptyInputError(ValidationError):
    """Raised when a computation needs at least one input record."""
    pass


class UnknownBandError(ValidationError):
    """Raised when a value does not name a recognised proficiency band."""

    def __init__(self, value: Any):
        self.value = value
        super().__init__(f"Unknown proficiency band: {value!r}")


class CatalogValidationError(ValidationError):
    """Raised when curriculum content fails validation."""
    pass


def validate_mcq_template(data: Mapping[str, Any], *, where: str) -> None:
    """Validate a multiple-choice template from the curriculum catalog.

    Raises CatalogValidationError if validation fails.
    """
    correct = data.get("correct")
    if not isinstance(correct, str) or not correct.strip():
        raise CatalogValidationError(f"{where}: missing non-empty 'correct' answer")

    distractors = data.get("distractors")
    if not isinstance(distractors, list) or not distractors:
        raise CatalogValidationError(f"{where}: 'distractors' must be a non-empty list")

    seen = {correct.strip().lower()}
    for distractor in distractors:
        if not isinstance(distractor, str) or not distractor.strip():
            raise CatalogValidationError(f"{where}: distractors must be non-empty strings")
        key = distractor.strip().lower()
        if key in seen:
            raise CatalogValidationError(
                f"{where}: duplicate option {distractor!r} among correct answer and distractors"
            )
        seen.add(key)


def validate_required_text(data: Mapping[str, Any], fields: Iterable[str], *, where: str) -> None:
    for field in fields:
        value = data.get(field)
        if not isinstance(value, str) or not value.strip():
            raise CatalogValidationError(f"{where}: missing non-empty field '{field}'")


def validate_durations(durations: Mapping[str, Any], scopes: Iterable[str]) -> Dict[str, int]:
    """Return validated per-scope durations in minutes."""
    result: Dict[str, int] = {}
    for scope in scopes:
        if scope not in durations:
            raise CatalogValidationError(f"Missing duration for scope: {scope}")
        value = durations[scope]
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise CatalogValidationError(
                f"Duration for {scope} must be a positive integer, got {value!r}"
            )
        result[scope] = value
    return result
