import json
from pathlib import Path

import pytest

from bands import BAND_REGISTRY, BandConfigError, BandRegistry, ProficiencyBand, band_for_score, parse_band
from engines.validation import UnknownBandError


@pytest.mark.parametrize(
    "score,expected",
    [
        (0, ProficiencyBand.A0),
        (30, ProficiencyBand.A0),
        (31, ProficiencyBand.A1),
        (65, ProficiencyBand.A1),
        (66, ProficiencyBand.A2),
        (100, ProficiencyBand.A2),
    ],
)
def test_threshold_boundaries(score, expected):
    assert band_for_score(score) is expected


def test_out_of_range_score_is_rejected():
    with pytest.raises(ValueError):
        band_for_score(101)
    with pytest.raises(ValueError):
        band_for_score(-1)


def test_parse_band_accepts_legacy_label_and_rejects_unknown():
    assert parse_band("A2-kids") is ProficiencyBand.A2
    assert parse_band(" a1 ") is ProficiencyBand.A1
    assert parse_band(ProficiencyBand.A0) is ProficiencyBand.A0

    with pytest.raises(UnknownBandError) as excinfo:
        parse_band("B1")
    assert excinfo.value.value == "B1"
    assert isinstance(excinfo.value, ValueError)


def test_parse_band_default_must_be_requested():
    assert parse_band("B1", default="A0") is ProficiencyBand.A0
    with pytest.raises(UnknownBandError):
        parse_band(None)


def test_bands_are_ordered():
    ranks = [band.rank for band in ProficiencyBand]
    assert ranks == sorted(ranks)
    assert BAND_REGISTRY.lowest_band() is ProficiencyBand.A0
    assert BAND_REGISTRY.get("A1").label


def _write(tmp_path: Path, rows) -> Path:
    path = tmp_path / "bands.json"
    path.write_text(json.dumps(rows), encoding="utf-8")
    return path


def test_custom_table_is_validated(tmp_path: Path):
    ok = _write(
        tmp_path,
        [
            {"band": "A0", "min_score": 0, "max_score": 40},
            {"band": "A1", "min_score": 41, "max_score": 75},
            {"band": "A2", "min_score": 76, "max_score": 100},
        ],
    )
    registry = BandRegistry(ok)
    assert registry.band_for_score(67) is ProficiencyBand.A1

    gap = _write(
        tmp_path,
        [
            {"band": "A0", "min_score": 0, "max_score": 30},
            {"band": "A1", "min_score": 35, "max_score": 65},
            {"band": "A2", "min_score": 66, "max_score": 100},
        ],
    )
    with pytest.raises(BandConfigError):
        BandRegistry(gap)

    missing = _write(tmp_path, [{"band": "A0", "min_score": 0, "max_score": 100}])
    with pytest.raises(BandConfigError):
        BandRegistry(missing)

    unknown = _write(tmp_path, [{"band": "C2", "min_score": 0, "max_score": 100}])
    with pytest.raises(BandConfigError):
        BandRegistry(unknown)
