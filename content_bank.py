"""Curriculum content catalog: theme cycles and task templates per band."""

from __future__ import annotations

import json
import math
import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Mapping, Tuple

from bands import ProficiencyBand, parse_band
from engines.validation import (
    CatalogValidationError,
    UnknownBandError,
    validate_durations,
    validate_mcq_template,
    validate_required_text,
)
from schemas import Scope

PLAN_SCOPES: Tuple[Scope, ...] = (Scope.VOCAB, Scope.READING, Scope.SPEAKING, Scope.LISTENING)
REQUIRED_SCOPES: Tuple[Scope, ...] = (Scope.VOCAB, Scope.READING, Scope.SPEAKING)


@dataclass(frozen=True)
class VocabTemplate:
    word: str
    definition: str
    correct: str
    distractors: Tuple[str, ...]


@dataclass(frozen=True)
class ReadingTemplate:
    title: str
    content: str
    question: str
    correct: str
    distractors: Tuple[str, ...]


@dataclass(frozen=True)
class ListeningTemplate:
    title: str
    transcript: str
    question: str
    correct: str
    distractors: Tuple[str, ...]


@dataclass(frozen=True)
class SpeakingTemplate:
    text: str
    expected_length: str
    hints: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ThemeContent:
    """All templates available for one theme of one band."""

    theme: str
    templates: Dict[Scope, Tuple[Any, ...]] = field(default_factory=dict)

    def bank(self, scope: Scope) -> Tuple[Any, ...]:
        return self.templates.get(scope, ())


@dataclass(frozen=True)
class Escalation:
    after_week: int
    max_week: int
    suffix: str


def _build_template(scope: Scope, entry: Mapping[str, Any], where: str) -> Any:
    if not isinstance(entry, Mapping):
        raise CatalogValidationError(f"{where}: template must be an object")

    if scope is Scope.SPEAKING:
        validate_required_text(entry, ("text", "expected_length"), where=where)
        hints = entry.get("hints") or []
        if not isinstance(hints, list):
            raise CatalogValidationError(f"{where}: hints must be a list")
        return SpeakingTemplate(
            text=entry["text"].strip(),
            expected_length=entry["expected_length"].strip(),
            hints=tuple(str(hint) for hint in hints),
        )

    validate_mcq_template(entry, where=where)
    distractors = tuple(str(item).strip() for item in entry["distractors"])
    correct = entry["correct"].strip()
    if scope is Scope.VOCAB:
        validate_required_text(entry, ("word", "definition"), where=where)
        return VocabTemplate(entry["word"].strip(), entry["definition"].strip(), correct, distractors)
    if scope is Scope.READING:
        validate_required_text(entry, ("title", "content", "question"), where=where)
        return ReadingTemplate(
            entry["title"].strip(), entry["content"].strip(), entry["question"].strip(), correct, distractors
        )
    validate_required_text(entry, ("title", "transcript", "question"), where=where)
    return ListeningTemplate(
        entry["title"].strip(), entry["transcript"].strip(), entry["question"].strip(), correct, distractors
    )


class CurriculumCatalog:
    """Load and validate ``content/curriculum.json``.

    Every band must define a non-empty theme cycle, and every theme must
    carry at least one vocab, reading and speaking template. Listening
    templates are optional per theme.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        if path is None:
            path = os.getenv("CURRICULUM_PATH") or Path(__file__).resolve().parent / "content" / "curriculum.json"
        self.path = Path(path)
        self.version = ""
        self._themes: Dict[ProficiencyBand, Tuple[ThemeContent, ...]] = {}
        self.durations: Dict[Scope, int] = {}
        self.escalation = Escalation(3, 8, "")
        self.reload()

    # ------------------------------------------------------------------
    # loading & validation
    # ------------------------------------------------------------------
    def reload(self) -> None:
        if not self.path.exists():
            raise FileNotFoundError(f"Curriculum file not found: {self.path}")

        with self.path.open("r", encoding="utf-8") as fh:
            raw = json.load(fh)

        if not isinstance(raw, dict):
            raise CatalogValidationError("Curriculum root must be a JSON object")

        durations = raw.get("durations")
        if not isinstance(durations, dict):
            raise CatalogValidationError("Curriculum must define a 'durations' object")
        parsed_durations = validate_durations(durations, [scope.value for scope in PLAN_SCOPES])

        self.escalation = self._parse_escalation(raw.get("escalation"))

        bands_raw = raw.get("bands")
        if not isinstance(bands_raw, dict) or not bands_raw:
            raise CatalogValidationError("Curriculum must define a non-empty 'bands' object")

        themes: Dict[ProficiencyBand, Tuple[ThemeContent, ...]] = {}
        for band_key, band_entry in bands_raw.items():
            try:
                band = parse_band(band_key)
            except UnknownBandError as exc:
                raise CatalogValidationError(str(exc)) from exc
            if band in themes:
                raise CatalogValidationError(f"Duplicate band in curriculum: {band}")
            themes[band] = self._parse_band(band, band_entry)

        missing = [band.value for band in ProficiencyBand if band not in themes]
        if missing:
            raise CatalogValidationError(f"Curriculum is missing bands: {', '.join(missing)}")

        self.version = str(raw.get("version", ""))
        self.durations = {Scope(name): minutes for name, minutes in parsed_durations.items()}
        self._themes = themes

    @staticmethod
    def _parse_escalation(entry: Any) -> Escalation:
        if not isinstance(entry, dict):
            raise CatalogValidationError("Curriculum must define an 'escalation' object")
        validate_required_text(entry, ("suffix",), where="escalation")
        after_week = entry.get("after_week", 3)
        max_week = entry.get("max_week", 8)
        for name, value in (("after_week", after_week), ("max_week", max_week)):
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise CatalogValidationError(f"escalation.{name} must be a positive integer")
        if max_week <= after_week:
            raise CatalogValidationError("escalation.max_week must exceed escalation.after_week")
        return Escalation(after_week, max_week, entry["suffix"].strip())

    @staticmethod
    def _parse_band(band: ProficiencyBand, entry: Any) -> Tuple[ThemeContent, ...]:
        if not isinstance(entry, dict) or not isinstance(entry.get("themes"), list):
            raise CatalogValidationError(f"Band {band} must define a 'themes' list")
        if not entry["themes"]:
            raise CatalogValidationError(f"Band {band} theme cycle may not be empty")

        parsed: List[ThemeContent] = []
        seen: set[str] = set()
        for idx, theme_entry in enumerate(entry["themes"], start=1):
            if not isinstance(theme_entry, dict):
                raise CatalogValidationError(f"Band {band} theme #{idx} must be an object")
            theme_id = str(theme_entry.get("id", "")).strip()
            if not theme_id:
                raise CatalogValidationError(f"Band {band} theme #{idx} is missing an 'id'")
            if theme_id in seen:
                raise CatalogValidationError(f"Band {band} repeats theme {theme_id!r}")
            seen.add(theme_id)

            templates: Dict[Scope, Tuple[Any, ...]] = {}
            for scope in PLAN_SCOPES:
                raw_bank = theme_entry.get(scope.value) or []
                if not isinstance(raw_bank, list):
                    raise CatalogValidationError(f"{band}/{theme_id}: {scope} must be a list")
                if not raw_bank and scope in REQUIRED_SCOPES:
                    raise CatalogValidationError(f"{band}/{theme_id}: no {scope} templates")
                templates[scope] = tuple(
                    _build_template(scope, item, f"{band}/{theme_id}/{scope}#{pos}")
                    for pos, item in enumerate(raw_bank, start=1)
                )
            parsed.append(ThemeContent(theme_id, templates))
        return tuple(parsed)

    # ------------------------------------------------------------------
    # lookups
    # ------------------------------------------------------------------
    def theme_cycle(self, band: Any) -> Tuple[str, ...]:
        """Return the ordered theme ids for ``band``."""

        return tuple(content.theme for content in self._themes[parse_band(band)])

    def theme_content(self, band: Any, theme: str) -> ThemeContent:
        for content in self._themes[parse_band(band)]:
            if content.theme == theme:
                return content
        raise KeyError(f"Band {band} has no theme {theme!r}")

    def templates(self, band: Any, theme: str, scope: Scope) -> Tuple[Any, ...]:
        return self.theme_content(band, theme).bank(Scope(scope))

    def duration(self, scope: Scope) -> int:
        return self.durations[Scope(scope)]

    def coverage(self) -> Dict[str, Dict[str, Dict[str, int]]]:
        """Return template counts as ``{band: {theme: {scope: count}}}``."""

        report: Dict[str, Dict[str, Dict[str, int]]] = {}
        for band, contents in self._themes.items():
            report[band.value] = {
                content.theme: {scope.value: len(content.bank(scope)) for scope in PLAN_SCOPES}
                for content in contents
            }
        return report

    def rotation_gaps(self) -> List[str]:
        """Describe template banks a plan can never fully reach.

        A theme recurs every ``len(cycle)`` days and picks template
        ``(day - 1) mod len(bank)``, so only ``len(bank) / gcd(len(cycle),
        len(bank))`` templates of a bank are ever used.
        """

        gaps: List[str] = []
        for band, contents in self._themes.items():
            cycle = len(contents)
            for content in contents:
                for scope in PLAN_SCOPES:
                    size = len(content.bank(scope))
                    shared = math.gcd(cycle, size) if size else 1
                    if shared > 1:
                        gaps.append(
                            f"{band.value}/{content.theme}/{scope.value}: {size // shared} of {size} "
                            f"template(s) reachable with a {cycle}-theme cycle"
                        )
        return gaps


@lru_cache(maxsize=1)
def default_catalog() -> CurriculumCatalog:
    """Shared catalog loaded from ``CURRICULUM_PATH`` or the shipped file."""

    return CurriculumCatalog()
