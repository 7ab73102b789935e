"""Deterministic synthetic affect vectors for captures without real inference."""

from __future__ import annotations

from dataclasses import dataclass

from affect.domain import CaptureKey, EmotionScore, EmotionVector
from affect.taxonomy import (
    CALMNESS,
    CONFIDENCE,
    EXCITEMENT,
    JOY,
    NERVOUS,
    clamp_score,
)

SEED_BUCKETS = 10_000
_HASH_START = 5381


@dataclass(frozen=True)
class CategoryProfile:
    """Linear response of one category to the capture seed.

    The score is ``base + slope * (frac(seed + phase) - 0.5)``; distinct phases
    and slope signs keep categories from rising and falling together.
    """

    category: str
    base: float
    slope: float
    phase: float


SYNTHETIC_PROFILES: tuple[CategoryProfile, ...] = (
    CategoryProfile(CONFIDENCE, base=0.65, slope=0.30, phase=0.00),
    CategoryProfile(JOY, base=0.40, slope=0.30, phase=0.37),
    CategoryProfile(CALMNESS, base=0.35, slope=-0.20, phase=0.61),
    CategoryProfile(NERVOUS, base=0.25, slope=0.30, phase=0.19),
    CategoryProfile(EXCITEMENT, base=0.25, slope=-0.40, phase=0.83),
)


def string_hash(text: str) -> int:
    """djb2 string hash wrapped to a signed 32-bit integer."""
    value = _HASH_START
    for char in text:
        value = (value * 33 + ord(char)) & 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def seed_for(key: CaptureKey) -> float:
    """Maps a capture key onto a seed in [0, 1)."""
    return (abs(string_hash(key.seed_text)) % SEED_BUCKETS) / SEED_BUCKETS


def synthesize(
    key: CaptureKey,
    profiles: tuple[CategoryProfile, ...] = SYNTHETIC_PROFILES,
) -> EmotionVector:
    """Builds the canonical synthetic vector for a capture key.

    The output depends only on ``key``; no randomness source is consulted,
    so repeated calls return identical vectors.
    """
    seed = seed_for(key)
    return tuple(
        EmotionScore(
            profile.category,
            clamp_score(profile.base + profile.slope * (((seed + profile.phase) % 1.0) - 0.5)),
        )
        for profile in profiles
    )


class FallbackSynthesizer:
    """Callable wrapper so the pipeline can be handed a custom profile set."""

    def __init__(self, profiles: tuple[CategoryProfile, ...] = SYNTHETIC_PROFILES) -> None:
        if not profiles:
            raise ValueError("At least one category profile is required.")
        self.profiles = profiles

    def __call__(self, key: CaptureKey) -> EmotionVector:
        return synthesize(key, self.profiles)
