"""
Profile Matcher Module

Compares a reference EQ profile with an input EQ profile and derives the
per-band correction that would move the input's tonal balance toward the
reference, for use by an external parametric equalizer.

Pipeline (order matters):
 1. Mean-normalize both profiles (remove level, keep tonal shape)
 2. Raw per-band difference, confidence averaged
 3. Optional equal-loudness weighting
 4. Confidence weighting (sqrt)
 5. Neighbor smoothing
 6. Intensity scaling
 7. Limiting to +/- max_correction
 8. Slope / total correction checks (advisory warnings)
 9. Optional dynamic range preservation
10. Quality score

References:
- ISO 226:2003: Equal-loudness contours
- Fletcher & Munson (1933): Loudness, its definition, measurement and calculation
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from .errors import ConfigError, InputError
from .profile_extractor import EQProfile, FrequencyBand
from .utils import format_hz, octaves_between

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

# Equal-loudness sensitivity at the default octave centers
PSYCHOACOUSTIC_WEIGHTS = (
    (31.5, 0.6),     # less sensitive
    (63.0, 0.7),
    (125.0, 0.85),
    (250.0, 0.95),
    (500.0, 1.1),
    (1000.0, 1.3),   # most sensitive
    (2000.0, 1.35),  # presence
    (4000.0, 1.25),  # sibilance
    (8000.0, 1.0),
    (16000.0, 0.7),  # less sensitive
)

SMOOTHING_KERNEL = (0.25, 0.5, 0.25)
SMOOTHING_PASSES = 3
SMOOTHING_DECAY = 0.7

LIMIT_WARNING_THRESHOLD_DB = 0.1
STEEP_SLOPE_DB_PER_OCTAVE = 6.0
MAX_TOTAL_CORRECTION_DB = 30.0

MAX_DYNAMICS_ATTENUATION = 0.3

# Quality score shaping
MAX_CORRECTION_PENALTY = 0.4
SLOPE_PENALTY = 0.05
CONFIDENCE_FLOOR = 0.7


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass(frozen=True)
class MatchConfig:
    """
    Parameters controlling profile matching.

    Attributes:
        intensity: How much of the correction to apply (0-1)
        max_correction: Maximum boost/cut per band in dB
        smoothing_factor: Neighbor smoothing amount (0-1)
        use_psychoacoustic: Weight corrections by ear sensitivity
        preserve_dynamics: Soften corrections toward a more compressed reference
    """
    intensity: float = 0.7
    max_correction: float = 6.0
    smoothing_factor: float = 0.5
    use_psychoacoustic: bool = True
    preserve_dynamics: bool = True

    def __post_init__(self):
        for name in ("intensity", "max_correction", "smoothing_factor"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float, np.integer, np.floating)):
                raise ConfigError(f"{name} must be a number, got {value!r}")
        for name in ("use_psychoacoustic", "preserve_dynamics"):
            value = getattr(self, name)
            if not isinstance(value, (bool, np.bool_)):
                raise ConfigError(f"{name} must be true or false, got {value!r}")
        if not 0.0 <= self.intensity <= 1.0:
            raise ConfigError(f"intensity must be in [0, 1], got {self.intensity}")
        if not self.max_correction >= 0.0:
            raise ConfigError(f"max_correction must be >= 0, got {self.max_correction}")
        if not 0.0 <= self.smoothing_factor <= 1.0:
            raise ConfigError(f"smoothing_factor must be in [0, 1], got {self.smoothing_factor}")

    @classmethod
    def from_preset(cls, name: str, **overrides) -> "MatchConfig":
        """Build a config from a named preset, optionally overriding fields."""
        key = name.strip().lower()
        if key not in MATCH_PRESETS:
            raise ConfigError(
                f"Unknown match preset '{name}'. Available: {', '.join(sorted(MATCH_PRESETS))}"
            )
        return replace(MATCH_PRESETS[key], **overrides)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "intensity": float(self.intensity),
            "max_correction": float(self.max_correction),
            "smoothing_factor": float(self.smoothing_factor),
            "use_psychoacoustic": bool(self.use_psychoacoustic),
            "preserve_dynamics": bool(self.preserve_dynamics),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MatchConfig":
        known = {"intensity", "max_correction", "smoothing_factor",
                 "use_psychoacoustic", "preserve_dynamics"}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"Unknown match settings: {sorted(unknown)}")
        return cls(**data)


MATCH_PRESETS: Dict[str, MatchConfig] = {
    "subtle": MatchConfig(intensity=0.3, max_correction=3.0, smoothing_factor=0.7,
                          use_psychoacoustic=True, preserve_dynamics=True),
    "balanced": MatchConfig(intensity=0.7, max_correction=6.0, smoothing_factor=0.5,
                            use_psychoacoustic=True, preserve_dynamics=True),
    "aggressive": MatchConfig(intensity=0.9, max_correction=9.0, smoothing_factor=0.3,
                              use_psychoacoustic=True, preserve_dynamics=False),
    "guitar": MatchConfig(intensity=0.6, max_correction=6.0, smoothing_factor=0.8,
                          use_psychoacoustic=True, preserve_dynamics=True),
    "vocals": MatchConfig(intensity=0.5, max_correction=4.0, smoothing_factor=0.6,
                          use_psychoacoustic=True, preserve_dynamics=True),
    "mastering": MatchConfig(intensity=0.8, max_correction=8.0, smoothing_factor=0.4,
                             use_psychoacoustic=False, preserve_dynamics=False),
}


@dataclass(frozen=True)
class MatchResult:
    """
    Outcome of matching an input profile to a reference.

    Attributes:
        correction_profile: Per-band corrections (gain_db) with the
                            reference's scalar descriptors
        reference_normalized: Reference band gains minus their mean
        input_normalized: Input band gains minus their mean
        quality_score: Expected match quality (0-1)
        warnings: Advisory messages (limiting, steep slopes, large totals)
    """
    correction_profile: EQProfile
    reference_normalized: Tuple[float, ...] = field(default_factory=tuple)
    input_normalized: Tuple[float, ...] = field(default_factory=tuple)
    quality_score: float = 0.0
    warnings: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "correction_profile": self.correction_profile.to_dict(),
            "reference_normalized": [float(v) for v in self.reference_normalized],
            "input_normalized": [float(v) for v in self.input_normalized],
            "quality_score": float(self.quality_score),
            "warnings": list(self.warnings),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MatchResult":
        return cls(
            correction_profile=EQProfile.from_dict(data["correction_profile"]),
            reference_normalized=tuple(float(v) for v in data.get("reference_normalized", [])),
            input_normalized=tuple(float(v) for v in data.get("input_normalized", [])),
            quality_score=float(data.get("quality_score", 0.0)),
            warnings=tuple(data.get("warnings", [])),
        )


# =============================================================================
# WEIGHTING HELPERS
# =============================================================================

def psychoacoustic_weight(frequency: float) -> float:
    """
    Ear-sensitivity weight for a frequency.

    Interpolates the equal-loudness table on a log-frequency axis and holds
    the end values outside it, so any band layout gets weights that follow
    its own frequencies.
    """
    anchors = np.log2([f for f, _ in PSYCHOACOUSTIC_WEIGHTS])
    weights = [w for _, w in PSYCHOACOUSTIC_WEIGHTS]
    return float(np.interp(np.log2(frequency), anchors, weights))


def normalize_gains(profile: EQProfile) -> np.ndarray:
    """Band gains with the profile's mean gain removed."""
    gains = profile.gains
    return gains - np.mean(gains)


def smooth_gains(gains: np.ndarray, factor: float) -> np.ndarray:
    """
    Blend interior bands with a 3-point [0.25, 0.5, 0.25] average.

    Every pass reads the unsmoothed gains and blends at factor * 0.7**pass,
    so the last pass sets the result. Edge bands are left unchanged.
    """
    original = np.asarray(gains, dtype=np.float64)
    result = original.copy()
    if len(original) < 3 or factor <= 0:
        return result

    k_prev, k_curr, k_next = SMOOTHING_KERNEL
    smoothed = k_prev * original[:-2] + k_curr * original[1:-1] + k_next * original[2:]

    for pass_idx in range(SMOOTHING_PASSES):
        weight = factor * SMOOTHING_DECAY ** pass_idx
        result[1:-1] = original[1:-1] * (1.0 - weight) + smoothed * weight

    return result


def slopes_per_octave(frequencies: Sequence[float], gains: Sequence[float]) -> List[Tuple[float, float, float]]:
    """
    Gain slope between each adjacent band pair.

    Returns:
        List of (lower frequency, upper frequency, dB per octave).
        Pairs with identical frequencies are skipped.
    """
    slopes = []
    for i in range(len(gains) - 1):
        f0, f1 = frequencies[i], frequencies[i + 1]
        octaves = octaves_between(f0, f1)
        if octaves == 0.0:
            continue
        slopes.append((f0, f1, abs(gains[i + 1] - gains[i]) / octaves))
    return slopes


# =============================================================================
# PROFILE MATCHER
# =============================================================================

class ProfileMatcher:
    """
    Derive a correction EQ curve from reference and input profiles.

    Usage:
        >>> matcher = ProfileMatcher(MatchConfig.from_preset("balanced"))
        >>> result = matcher.match(reference_profile, input_profile)
        >>> print(f"Quality: {result.quality_score:.0%}")
        >>> for warning in result.warnings:
        ...     print(warning)
    """

    def __init__(self, config: Optional[MatchConfig] = None):
        self.config = config or MatchConfig()

    def match(self, reference: EQProfile, input_profile: EQProfile) -> MatchResult:
        """
        Compute the correction that moves input toward reference.

        Args:
            reference: Profile of the target recording
            input_profile: Profile of the recording to correct

        Returns:
            MatchResult with the correction profile, normalized curves,
            quality score and warnings

        Raises:
            InputError: If band counts differ or the profiles have no bands
        """
        config = self.config
        self._check_alignment(reference, input_profile)
        warnings: List[str] = []

        # 1. Normalize
        ref_normalized = normalize_gains(reference)
        inp_normalized = normalize_gains(input_profile)

        # 2. Raw differences
        frequencies = reference.frequencies
        corrections = ref_normalized - inp_normalized
        confidences = (reference.confidences + input_profile.confidences) / 2.0

        # 3. Psychoacoustic weighting
        if config.use_psychoacoustic:
            corrections = corrections * np.array([psychoacoustic_weight(f) for f in frequencies])

        # 4. Confidence weighting
        corrections = corrections * np.sqrt(confidences)

        # 5. Smoothing
        if config.smoothing_factor > 0:
            corrections = smooth_gains(corrections, config.smoothing_factor)

        # 6. Intensity
        corrections = corrections * config.intensity

        # 7. Limiting
        limited = np.clip(corrections, -config.max_correction, config.max_correction)
        for freq, before, after in zip(frequencies, corrections, limited):
            if abs(before - after) > LIMIT_WARNING_THRESHOLD_DB:
                warnings.append(
                    f"{format_hz(freq)} Hz: Correction limited from "
                    f"{before:.1f} dB to {after:.1f} dB"
                )
        corrections = limited

        # 8. Extreme correction checks
        warnings.extend(self._check_extreme_corrections(frequencies, corrections))

        # 9. Dynamic range preservation
        if config.preserve_dynamics:
            corrections = corrections * self._preservation_factor(reference, input_profile)

        bands = tuple(
            FrequencyBand(
                frequency=ref_band.frequency,
                gain_db=float(gain),
                bandwidth=ref_band.bandwidth,
                confidence=float(confidence),
            )
            for ref_band, gain, confidence in zip(reference.bands, corrections, confidences)
        )
        correction_profile = EQProfile(
            bands=bands,
            overall_loudness=reference.overall_loudness,
            dynamic_range=reference.dynamic_range,
            spectral_centroid=reference.spectral_centroid,
            spectral_rolloff=reference.spectral_rolloff,
        )

        # 10. Quality
        quality_score = self.calculate_quality(correction_profile)

        logger.debug(
            "Matched %d bands: mean |correction|=%.2f dB, quality=%.2f, %d warning(s)",
            len(bands), float(np.mean(np.abs(corrections))), quality_score, len(warnings),
        )

        return MatchResult(
            correction_profile=correction_profile,
            reference_normalized=tuple(float(v) for v in ref_normalized),
            input_normalized=tuple(float(v) for v in inp_normalized),
            quality_score=quality_score,
            warnings=tuple(warnings),
        )

    @staticmethod
    def calculate_quality(profile: EQProfile) -> float:
        """
        Score how gentle and trustworthy a correction curve is.

        Starts at 1.0, loses up to 0.4 for large mean corrections and 0.05
        per steep adjacent slope, then scales by mean confidence.
        """
        gains = profile.gains
        if len(gains) == 0:
            return 0.0

        score = 1.0
        avg_correction = float(np.mean(np.abs(gains)))
        score -= min(avg_correction / 10.0, MAX_CORRECTION_PENALTY)

        for _, _, slope in slopes_per_octave(profile.frequencies, gains):
            if slope > STEEP_SLOPE_DB_PER_OCTAVE:
                score -= SLOPE_PENALTY

        avg_confidence = float(np.mean(profile.confidences))
        score *= CONFIDENCE_FLOOR + (1.0 - CONFIDENCE_FLOOR) * avg_confidence

        return float(np.clip(score, 0.0, 1.0))

    @staticmethod
    def _check_alignment(reference: EQProfile, input_profile: EQProfile):
        if len(reference.bands) != len(input_profile.bands):
            raise InputError(
                f"Band count mismatch: reference has {len(reference.bands)} bands, "
                f"input has {len(input_profile.bands)}"
            )
        if not reference.bands:
            raise InputError("Cannot match profiles without bands")

    @staticmethod
    def _check_extreme_corrections(frequencies: Sequence[float], gains: np.ndarray) -> List[str]:
        warnings = []
        for f0, f1, slope in slopes_per_octave(frequencies, gains):
            if slope > STEEP_SLOPE_DB_PER_OCTAVE:
                warnings.append(
                    f"Steep slope between {format_hz(f0)} Hz and {format_hz(f1)} Hz "
                    f"({slope:.1f} dB/octave)"
                )

        total = float(np.sum(np.abs(gains)))
        if total > MAX_TOTAL_CORRECTION_DB:
            warnings.append(
                f"High total correction: {total:.1f} dB. Consider lower intensity."
            )
        return warnings

    @staticmethod
    def _preservation_factor(reference: EQProfile, input_profile: EQProfile) -> float:
        """Scale applied when the reference is more compressed than the input."""
        ref_dr = reference.dynamic_range
        inp_dr = input_profile.dynamic_range
        if not ref_dr < inp_dr:
            return 1.0
        dr_ratio = ref_dr / inp_dr
        return 1.0 - min(1.0 - dr_ratio, MAX_DYNAMICS_ATTENUATION)


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def match_profiles(
    reference: EQProfile,
    input_profile: EQProfile,
    config: Optional[MatchConfig] = None,
) -> MatchResult:
    """Quick profile matching with the given (or default) settings."""
    return ProfileMatcher(config).match(reference, input_profile)

