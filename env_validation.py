"""Environment variable validation and management."""

import os
import logging
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)

_ROOT = Path(__file__).resolve().parent


class ConfigurationError(EnvironmentError):
    """Raised when environment variables are missing or invalid."""
    pass


def validate_environment() -> None:
    """Validate engine environment variables.

    Raises ConfigurationError if validation fails.
    """
    defaults = {
        "CURRICULUM_PATH": str(_ROOT / "content" / "curriculum.json"),
        "QUESTION_BANK_PATH": str(_ROOT / "content" / "questions.json"),
        "BANDS_PATH": str(_ROOT / "bands.json"),
    }

    # Apply defaults before validation so dependent modules see consistent values.
    for var, value in defaults.items():
        if not os.getenv(var):
            os.environ[var] = value
            logger.info("Environment variable %s not set; using default '%s'", var, value)

    missing = []
    for var in defaults:
        if not Path(os.environ[var]).is_file():
            missing.append(f"{var} ({os.environ[var]})")
    if missing:
        raise ConfigurationError(f"Configured files do not exist: {', '.join(missing)}")

    positive_ints = {
        "PLAN_DAY_COUNT": "Default number of days in a generated plan",
        "SPEAKING_THROTTLE_WINDOW": "Answers before speaking prompts may repeat",
    }
    for var in positive_ints:
        get_env_int(var, 1, minimum=1)

    optional_vars = {
        "ENGINE_SEED": "Seed for the default option-shuffling random source",
    }
    if os.getenv("ENGINE_SEED") is not None:
        get_env_int("ENGINE_SEED", 0)

    for var, description in {**positive_ints, **optional_vars}.items():
        if not os.getenv(var):
            logger.debug("Optional environment variable not set: %s (%s)", var, description)


def get_env_int(name: str, default: int, *, minimum: Optional[int] = None) -> int:
    """Get integer value from environment variable.

    Raises ConfigurationError for non-integer values or values below ``minimum``.
    """
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc
    if minimum is not None and value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {value}")
    return value


def env_snapshot() -> Dict[str, Optional[str]]:
    """Return the engine-relevant environment for diagnostics."""
    names = (
        "CURRICULUM_PATH",
        "QUESTION_BANK_PATH",
        "BANDS_PATH",
        "PLAN_DAY_COUNT",
        "SPEAKING_THROTTLE_WINDOW",
        "ENGINE_SEED",
    )
    return {name: os.getenv(name) for name in names}
