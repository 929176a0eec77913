"""Random source used for option shuffling."""

from __future__ import annotations

import os
import random
from typing import List, Protocol, TypeVar

from env_validation import get_env_int

T = TypeVar("T")


class RandomSource(Protocol):
    """Anything that can shuffle a list in place, e.g. ``random.Random``."""

    def shuffle(self, x: List[T]) -> None:  # pragma: no cover - protocol
        ...


def default_random_source() -> random.Random:
    """Return a fresh generator, seeded from ``ENGINE_SEED`` when it is set."""
    if not (os.getenv("ENGINE_SEED") or "").strip():
        return random.Random()
    return random.Random(get_env_int("ENGINE_SEED", 0))
