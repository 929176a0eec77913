import json
from pathlib import Path

import pytest

from content_bank import CurriculumCatalog, SpeakingTemplate
from engines.validation import CatalogValidationError
from schemas import Scope


def _theme(theme_id, **overrides):
    theme = {
        "id": theme_id,
        "vocab": [{"word": "sun", "definition": "Hot star", "correct": "sun", "distractors": ["moon", "cloud"]}],
        "reading": [
            {
                "title": "Sunny",
                "content": "The sun is hot.",
                "question": "What is hot?",
                "correct": "The sun",
                "distractors": ["The snow"],
            }
        ],
        "speaking": [{"text": "Talk about the sun.", "expected_length": "1 sentence"}],
    }
    theme.update(overrides)
    return theme


def _curriculum(**band_overrides):
    bands = {
        "A0": {"themes": [_theme("sky")]},
        "A1": {"themes": [_theme("sea")]},
        "A2": {"themes": [_theme("space")]},
    }
    bands.update(band_overrides)
    return {
        "version": "test",
        "durations": {"vocab": 8, "reading": 10, "speaking": 5, "listening": 5},
        "escalation": {"after_week": 3, "max_week": 8, "suffix": "Try harder."},
        "bands": bands,
    }


def _write(tmp_path: Path, data) -> Path:
    path = tmp_path / "curriculum.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def test_shipped_catalog_covers_every_band(catalog):
    coverage = catalog.coverage()
    assert set(coverage) == {"A0", "A1", "A2"}
    for themes in coverage.values():
        assert len(themes) == 6
        for counts in themes.values():
            assert counts["vocab"] >= 1
            assert counts["reading"] >= 1
            assert counts["speaking"] >= 1
    assert catalog.duration(Scope.READING) == 10
    assert catalog.escalation.after_week == 3


def test_speaking_templates_keep_hints(catalog):
    template = catalog.templates("A0", "colors", Scope.SPEAKING)[0]
    assert isinstance(template, SpeakingTemplate)
    assert template.hints


def test_minimal_catalog_without_listening_loads(tmp_path: Path):
    catalog = CurriculumCatalog(_write(tmp_path, _curriculum()))
    assert catalog.theme_cycle("A1") == ("sea",)
    assert catalog.templates("A1", "sea", Scope.LISTENING) == ()
    with pytest.raises(KeyError):
        catalog.theme_content("A1", "sky")


@pytest.mark.parametrize(
    "bad",
    [
        {"A0": {"themes": []}},
        {"A0": {"themes": [_theme("sky", vocab=[])]}},
        {"A0": {"themes": [_theme("sky"), _theme("sky")]}},
        {
            "A0": {
                "themes": [
                    _theme(
                        "sky",
                        vocab=[{"word": "sun", "definition": "Hot", "correct": "sun", "distractors": ["Sun"]}],
                    )
                ]
            }
        },
        {"B1": {"themes": [_theme("sky")]}},
    ],
)
def test_invalid_catalogs_are_rejected(tmp_path: Path, bad):
    with pytest.raises(CatalogValidationError):
        CurriculumCatalog(_write(tmp_path, _curriculum(**bad)))


def test_missing_band_and_bad_durations(tmp_path: Path):
    data = _curriculum()
    del data["bands"]["A2"]
    with pytest.raises(CatalogValidationError):
        CurriculumCatalog(_write(tmp_path, data))

    data = _curriculum()
    data["durations"]["vocab"] = 0
    with pytest.raises(CatalogValidationError):
        CurriculumCatalog(_write(tmp_path, data))

    data = _curriculum()
    data["escalation"]["max_week"] = 2
    with pytest.raises(CatalogValidationError):
        CurriculumCatalog(_write(tmp_path, data))


def test_missing_file(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        CurriculumCatalog(tmp_path / "nope.json")


def test_shipped_catalog_reaches_every_template(catalog):
    assert catalog.rotation_gaps() == []


def test_rotation_gaps_flag_banks_sharing_a_factor_with_the_cycle(tmp_path: Path):
    pair = [
        {"word": "sun", "definition": "Hot star", "correct": "sun", "distractors": ["moon"]},
        {"word": "moon", "definition": "Night light", "correct": "moon", "distractors": ["sun"]},
    ]
    data = _curriculum(A0={"themes": [_theme("sky", vocab=pair), _theme("sea")]})
    catalog = CurriculumCatalog(_write(tmp_path, data))
    assert catalog.rotation_gaps() == [
        "A0/sky/vocab: 1 of 2 template(s) reachable with a 2-theme cycle",
    ]
