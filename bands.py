"""Proficiency band definitions and score threshold loader."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, List, Optional, Tuple

from engines.validation import UnknownBandError, ValidationError


class BandConfigError(ValidationError):
    """Raised when ``bands.json`` contains invalid data."""


class ProficiencyBand(str, Enum):
    """Closed set of proficiency bands, least to most proficient."""

    A0 = "A0"
    A1 = "A1"
    A2 = "A2"

    @property
    def rank(self) -> int:
        return _BAND_ORDER.index(self)

    def __str__(self) -> str:
        return self.value


_BAND_ORDER: Tuple[ProficiencyBand, ...] = (
    ProficiencyBand.A0,
    ProficiencyBand.A1,
    ProficiencyBand.A2,
)

# Labels seen in stored plans from before the band set was closed.
_BAND_ALIASES = {
    "a2-kids": ProficiencyBand.A2,
}

_NO_DEFAULT = object()


def parse_band(value: Any, *, default: Any = _NO_DEFAULT) -> ProficiencyBand:
    """Convert ``value`` into a :class:`ProficiencyBand`.

    Unknown values raise :class:`UnknownBandError` unless the caller asks
    for an explicit ``default``.
    """

    if isinstance(value, ProficiencyBand):
        return value
    if isinstance(value, str):
        text = value.strip()
        for band in _BAND_ORDER:
            if text.upper() == band.value:
                return band
        alias = _BAND_ALIASES.get(text.lower())
        if alias is not None:
            return alias
    if default is not _NO_DEFAULT:
        return parse_band(default)
    raise UnknownBandError(value)


@dataclass(frozen=True)
class BandThreshold:
    """Inclusive score range mapped to a band."""

    band: ProficiencyBand
    min_score: int
    max_score: int
    label: str = ""

    def contains(self, score: int) -> bool:
        return self.min_score <= score <= self.max_score


class BandRegistry:
    """Load the score-to-band table from ``bands.json``."""

    def __init__(self, path: str | Path | None = None) -> None:
        base_path = Path(__file__).resolve().parent
        if path is None:
            path = os.getenv("BANDS_PATH") or base_path / "bands.json"
        self.path = Path(path)
        self._thresholds: List[BandThreshold] = []
        self.reload()

    # ------------------------------------------------------------------
    def reload(self) -> None:
        """Reload thresholds from disk and validate coverage of 0..100."""

        if not self.path.exists():
            raise FileNotFoundError(f"Band table file not found: {self.path}")

        with self.path.open("r", encoding="utf-8") as fh:
            raw = json.load(fh)

        if not isinstance(raw, list):
            raise BandConfigError("Band table file must contain a JSON list")

        thresholds: List[BandThreshold] = []
        seen: set[ProficiencyBand] = set()
        for idx, entry in enumerate(raw, start=1):
            if not isinstance(entry, dict):
                raise BandConfigError(f"Entry #{idx} must be a JSON object")
            try:
                band = parse_band(entry.get("band"))
            except UnknownBandError as exc:
                raise BandConfigError(f"Entry #{idx}: {exc}") from exc
            if band in seen:
                raise BandConfigError(f"Duplicate band detected: {band}")
            seen.add(band)

            bounds = []
            for key in ("min_score", "max_score"):
                value = entry.get(key)
                if isinstance(value, bool) or not isinstance(value, int):
                    raise BandConfigError(f"Entry {band} has non-integer {key}")
                bounds.append(value)
            min_score, max_score = bounds
            if min_score > max_score:
                raise BandConfigError(f"Entry {band} min_score exceeds max_score")
            label = str(entry.get("label", "")).strip()
            thresholds.append(BandThreshold(band, min_score, max_score, label))

        missing = [band.value for band in _BAND_ORDER if band not in seen]
        if missing:
            raise BandConfigError(f"Band table is missing bands: {', '.join(missing)}")

        thresholds.sort(key=lambda item: item.min_score)
        if thresholds[0].min_score != 0 or thresholds[-1].max_score != 100:
            raise BandConfigError("Band table must cover scores 0 through 100")
        for lower, upper in zip(thresholds, thresholds[1:]):
            if upper.min_score != lower.max_score + 1:
                raise BandConfigError(
                    f"Band ranges for {lower.band} and {upper.band} must be contiguous"
                )
            if upper.band.rank < lower.band.rank:
                raise BandConfigError("Band ranges must ascend with proficiency")

        self._thresholds = thresholds

    # ------------------------------------------------------------------
    @property
    def thresholds(self) -> List[BandThreshold]:
        return list(self._thresholds)

    def band_for_score(self, score: int) -> ProficiencyBand:
        """Return the band whose inclusive range contains ``score``."""

        for threshold in self._thresholds:
            if threshold.contains(score):
                return threshold.band
        raise ValueError(f"Score must be within [0, 100], got {score!r}")

    def lowest_band(self) -> ProficiencyBand:
        return self._thresholds[0].band

    def get(self, band: Any) -> Optional[BandThreshold]:
        resolved = parse_band(band)
        for threshold in self._thresholds:
            if threshold.band is resolved:
                return threshold
        return None

    def __iter__(self) -> Iterable[BandThreshold]:
        return iter(self._thresholds)


BAND_REGISTRY = BandRegistry()
"""Singleton registry used throughout the engine."""


def band_for_score(score: int) -> ProficiencyBand:
    return BAND_REGISTRY.band_for_score(score)
