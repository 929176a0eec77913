"""Offline curriculum coverage validator for plan templates."""

from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Mapping, Sequence

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from content_bank import PLAN_SCOPES, REQUIRED_SCOPES, CurriculumCatalog
from engines.validation import CatalogValidationError

MIN_TEMPLATES_ENV_VAR = "CURRICULUM_MIN_TEMPLATES"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--catalog",
        type=str,
        default=None,
        help="Path to the curriculum JSON file (default: CURRICULUM_PATH or the shipped file)",
    )
    parser.add_argument(
        "--min-templates",
        type=int,
        default=None,
        help="Minimum templates per required scope for every theme (default: 1)",
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Optional path to write the JSON report",
    )
    return parser


def _parse_env_minimum(name: str) -> int | None:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return None
    try:
        minimum = int(value.strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be a positive integer, got {value!r}.") from exc
    if minimum < 1:
        raise ValueError(f"{name} must be at least 1, got {minimum}.")
    return minimum


def find_gaps(coverage: Mapping[str, Mapping[str, Mapping[str, int]]], minimum: int) -> list[str]:
    """Return human readable descriptions of under-filled template banks."""

    gaps: list[str] = []
    required = {scope.value for scope in REQUIRED_SCOPES}
    for band, themes in coverage.items():
        for theme, counts in themes.items():
            for scope, count in counts.items():
                if scope in required and count < minimum:
                    gaps.append(f"{band}/{theme}/{scope}: {count} template(s), need {minimum}")
    return gaps


def _print_summary(coverage: Mapping[str, Mapping[str, Mapping[str, int]]], minimum: int) -> None:
    print(f"Minimum templates per required scope: {minimum}")
    for band, themes in coverage.items():
        totals = {scope.value: 0 for scope in PLAN_SCOPES}
        for counts in themes.values():
            for scope, count in counts.items():
                totals[scope] += count
        parts = ", ".join(f"{scope}={totals[scope]}" for scope in totals)
        print(f"{band}: {len(themes)} themes ({parts})")


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        env_minimum = _parse_env_minimum(MIN_TEMPLATES_ENV_VAR)
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        return 2
    minimum = args.min_templates or env_minimum or 1

    try:
        catalog = CurriculumCatalog(args.catalog)
    except (FileNotFoundError, CatalogValidationError) as exc:
        print(f"Curriculum failed to load: {exc}", file=sys.stderr)
        return 1

    coverage = catalog.coverage()
    _print_summary(coverage, minimum)

    gaps = find_gaps(coverage, minimum)
    unreachable = catalog.rotation_gaps()
    report = {
        "catalog": str(catalog.path),
        "version": catalog.version,
        "minimum": minimum,
        "coverage": coverage,
        "gaps": gaps,
        "unreachable": unreachable,
    }
    payload = json.dumps(report, indent=2, ensure_ascii=False)
    if args.output:
        Path(args.output).write_text(payload + "\n", encoding="utf-8")

    for gap in gaps:
        print(f"Template bank fell below minimum: {gap}", file=sys.stderr)
    for gap in unreachable:
        print(f"Template bank only partly reachable: {gap}", file=sys.stderr)
    if gaps or unreachable:
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
