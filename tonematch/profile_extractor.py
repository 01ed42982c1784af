"""
Profile Extractor Module

Reduces a long-term spectrum to an EQ profile: one level per configured
band center plus scalar descriptors of the whole spectrum.

Key Features:
- 1/3 octave band levels with a per-band confidence estimate
- RMS-power loudness proxy
- Outlier-tolerant dynamic range (95th - 5th percentile)
- Spectral centroid (brightness) and 85% rolloff

Bands are independent of each other, so extraction can be fanned out over
a thread pool and gathered back by band index.

References:
- IEC 61260: Octave-band and fractional-octave-band filters
- Peeters (2004): A large set of audio features for sound description
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from .spectral_analyzer import AnalysisConfig, FrequencySpectrum
from .utils import NO_DATA_GAIN_DB, db_to_amplitude, db_to_power

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

# Half of a 1/3 octave on each side of the center
THIRD_OCTAVE_HALF_RATIO = 2 ** (1 / 6)

# Fixed bandwidth approximation for 1/3 octave bands (fraction of center)
THIRD_OCTAVE_BANDWIDTH = 0.23

# Spread (dB) at which band confidence drops to 0.5
CONFIDENCE_SPREAD_DB = 10.0

DEFAULT_ROLLOFF_THRESHOLD = 0.85

DYNAMIC_RANGE_PERCENTILES = (0.05, 0.95)


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class FrequencyBand:
    """
    A single band of an EQ profile.

    Attributes:
        frequency: Center frequency in Hz
        gain_db: Measured level, or a correction value after matching
        bandwidth: Bandwidth in Hz
        confidence: Reliability of gain_db (0-1)
    """
    frequency: float
    gain_db: float
    bandwidth: float
    confidence: float

    @property
    def q(self) -> float:
        """Q implied by center frequency and bandwidth."""
        if self.bandwidth <= 0:
            return 0.0
        return self.frequency / self.bandwidth

    def to_dict(self) -> Dict[str, float]:
        return {
            "frequency": float(self.frequency),
            "gain_db": float(self.gain_db),
            "bandwidth": float(self.bandwidth),
            "confidence": float(self.confidence),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FrequencyBand":
        return cls(
            frequency=float(data["frequency"]),
            gain_db=float(data["gain_db"]),
            bandwidth=float(data["bandwidth"]),
            confidence=float(data["confidence"]),
        )


@dataclass(frozen=True)
class EQProfile:
    """
    Tonal fingerprint of a recording (or a correction curve).

    Bands follow the configured center frequencies, in the same order.

    Attributes:
        bands: One FrequencyBand per configured center frequency
        overall_loudness: RMS-power loudness proxy in dB
        dynamic_range: Spread between 95th and 5th percentile magnitudes (dB)
        spectral_centroid: Amplitude-weighted mean frequency in Hz
        spectral_rolloff: Frequency below which 85% of the power lies (Hz)
    """
    bands: Tuple[FrequencyBand, ...] = field(default_factory=tuple)
    overall_loudness: float = 0.0
    dynamic_range: float = 0.0
    spectral_centroid: float = 0.0
    spectral_rolloff: float = 0.0

    def __post_init__(self):
        object.__setattr__(self, "bands", tuple(self.bands))

    @property
    def frequencies(self) -> List[float]:
        return [band.frequency for band in self.bands]

    @property
    def gains(self) -> np.ndarray:
        return np.array([band.gain_db for band in self.bands], dtype=np.float64)

    @property
    def confidences(self) -> np.ndarray:
        return np.array([band.confidence for band in self.bands], dtype=np.float64)

    def to_dict(self) -> Dict[str, Any]:
        """Convert profile to serializable dictionary."""
        return {
            "bands": [band.to_dict() for band in self.bands],
            "overall_loudness": float(self.overall_loudness),
            "dynamic_range": float(self.dynamic_range),
            "spectral_centroid": float(self.spectral_centroid),
            "spectral_rolloff": float(self.spectral_rolloff),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EQProfile":
        """Create profile from dictionary."""
        return cls(
            bands=tuple(FrequencyBand.from_dict(b) for b in data.get("bands", [])),
            overall_loudness=float(data.get("overall_loudness", 0.0)),
            dynamic_range=float(data.get("dynamic_range", 0.0)),
            spectral_centroid=float(data.get("spectral_centroid", 0.0)),
            spectral_rolloff=float(data.get("spectral_rolloff", 0.0)),
        )


# =============================================================================
# SCALAR DESCRIPTORS
# =============================================================================

def calculate_overall_loudness(magnitudes_db: np.ndarray) -> float:
    """Loudness proxy: dB of the RMS of per-bin linear amplitudes."""
    mean_power = float(np.mean(db_to_power(magnitudes_db)))
    return 20.0 * math.log10(math.sqrt(mean_power))


def calculate_dynamic_range(magnitudes_db: np.ndarray) -> float:
    """
    Spread of bin magnitudes between the 5th and 95th percentile.

    Percentiles are taken by index into the sorted magnitudes, without
    interpolation.
    """
    ordered = np.sort(np.asarray(magnitudes_db, dtype=np.float64))
    n = len(ordered)
    low_pct, high_pct = DYNAMIC_RANGE_PERCENTILES
    low = ordered[min(int(n * low_pct), n - 1)]
    high = ordered[min(int(n * high_pct), n - 1)]
    return float(high - low)


def calculate_spectral_centroid(spectrum: FrequencySpectrum) -> float:
    """Center of mass of the linear amplitude spectrum (0 for no energy)."""
    weights = db_to_amplitude(spectrum.magnitudes)
    total = float(np.sum(weights))
    if total == 0.0:
        return 0.0
    return float(np.sum(spectrum.frequencies * weights) / total)


def calculate_spectral_rolloff(spectrum: FrequencySpectrum, threshold: float = DEFAULT_ROLLOFF_THRESHOLD) -> float:
    """
    Lowest frequency at which cumulative power reaches threshold * total.

    Falls back to the top bin frequency when rounding keeps the cumulative
    sum below the target.
    """
    power = db_to_power(spectrum.magnitudes)
    cumulative = np.cumsum(power)
    target = cumulative[-1] * threshold
    reached = np.nonzero(cumulative >= target)[0]
    if len(reached) == 0:
        return float(spectrum.frequencies[-1])
    return float(spectrum.frequencies[reached[0]])


# =============================================================================
# PROFILE EXTRACTOR
# =============================================================================

class ProfileExtractor:
    """
    Turn a FrequencySpectrum into an EQProfile.

    Usage:
        >>> extractor = ProfileExtractor(AnalysisConfig())
        >>> profile = extractor.extract(spectrum)
        >>> for band in profile.bands:
        ...     print(f"{band.frequency:g} Hz: {band.gain_db:+.1f} dB")
    """

    def __init__(self, config: Optional[AnalysisConfig] = None, max_workers: Optional[int] = None):
        """
        Initialize extractor.

        Args:
            config: Analysis settings providing the band centers
            max_workers: Threads used for per-band extraction (None or 1 = serial)
        """
        self.config = config or AnalysisConfig()
        self.max_workers = max_workers

    def extract(self, spectrum: FrequencySpectrum) -> EQProfile:
        """
        Extract band levels and scalar descriptors.

        Args:
            spectrum: Averaged spectrum from SpectralAnalyzer

        Returns:
            EQProfile with one band per configured center, in order
        """
        centers = self.config.frequency_bands
        workers = self.max_workers or 1

        if workers > 1 and len(centers) > 1:
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="Bands-") as executor:
                # map() yields in submission order, so slot i holds band i
                bands = list(executor.map(
                    lambda center: self.extract_band(spectrum, center), centers
                ))
        else:
            bands = [self.extract_band(spectrum, center) for center in centers]

        profile = EQProfile(
            bands=tuple(bands),
            overall_loudness=calculate_overall_loudness(spectrum.magnitudes),
            dynamic_range=calculate_dynamic_range(spectrum.magnitudes),
            spectral_centroid=calculate_spectral_centroid(spectrum),
            spectral_rolloff=calculate_spectral_rolloff(spectrum),
        )
        logger.debug(
            "Extracted %d bands: loudness=%.1f dB, DR=%.1f dB, centroid=%.0f Hz, rolloff=%.0f Hz",
            len(bands), profile.overall_loudness, profile.dynamic_range,
            profile.spectral_centroid, profile.spectral_rolloff,
        )
        return profile

    @staticmethod
    def extract_band(spectrum: FrequencySpectrum, center_freq: float) -> FrequencyBand:
        """
        Measure one 1/3 octave band around center_freq.

        The level is the mean of the dB values of all bins inside the band.
        Confidence falls as the bins spread apart. A band with no bins gets
        the -80 dB / zero-confidence sentinel.
        """
        bandwidth = center_freq * THIRD_OCTAVE_BANDWIDTH
        lower = center_freq / THIRD_OCTAVE_HALF_RATIO
        upper = center_freq * THIRD_OCTAVE_HALF_RATIO

        mask = (spectrum.frequencies >= lower) & (spectrum.frequencies <= upper)
        band_magnitudes = spectrum.magnitudes[mask]

        if len(band_magnitudes) == 0:
            logger.debug("No bins between %.1f and %.1f Hz", lower, upper)
            return FrequencyBand(
                frequency=center_freq,
                gain_db=NO_DATA_GAIN_DB,
                bandwidth=bandwidth,
                confidence=0.0,
            )

        gain_db = float(np.mean(band_magnitudes))
        # Sample standard deviation; a single bin has no spread
        std_dev = float(np.std(band_magnitudes, ddof=1)) if len(band_magnitudes) > 1 else 0.0
        confidence = float(np.clip(1.0 / (1.0 + std_dev / CONFIDENCE_SPREAD_DB), 0.0, 1.0))

        return FrequencyBand(
            frequency=center_freq,
            gain_db=gain_db,
            bandwidth=bandwidth,
            confidence=confidence,
        )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def extract_eq_profile(
    spectrum: FrequencySpectrum,
    config: Optional[AnalysisConfig] = None,
    max_workers: Optional[int] = None,
) -> EQProfile:
    """Quick profile extraction from a spectrum."""
    return ProfileExtractor(config, max_workers=max_workers).extract(spectrum)
