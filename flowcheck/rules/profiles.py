# flowcheck/rules/profiles.py
"""
Validation profiles. Each level switches on more rules and never switches any
off, so the issues reported under a profile include everything reported under
the profiles below it.
"""
from __future__ import annotations

from flowcheck.utils.logger import get_logger

logger = get_logger("profiles")

PROFILES = {
    "minimal":     {"level": 0, "description": "Required fields, malformed values and hard conflicts"},
    "runtime":     {"level": 1, "description": "Adds everything that would fail or misbehave at execution time"},
    "ai-friendly": {"level": 2, "description": "Adds best-practice warnings, autofix patches and suggestions"},
    "strict":      {"level": 3, "description": "Adds unused/hidden properties, security and style findings"},
}

DEFAULT_PROFILE = "ai-friendly"
WORKFLOW_PROFILE = "runtime"

MINIMAL, RUNTIME, AI_FRIENDLY, STRICT = "minimal", "runtime", "ai-friendly", "strict"


def resolve_profile(name: str | None, default: str = DEFAULT_PROFILE) -> str:
    """Unknown names fall back to `default`."""
    if name in PROFILES:
        return name
    if name is not None:
        logger.warning(f"Unknown profile '{name}', using '{default}'")
    return default


def level(name: str) -> int:
    return PROFILES[resolve_profile(name)]["level"]


def enabled(active: str, minimum: str) -> bool:
    """True when a rule tagged `minimum` runs under the `active` profile."""
    return level(active) >= PROFILES[minimum]["level"]
