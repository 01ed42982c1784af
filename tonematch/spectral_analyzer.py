"""
Spectral Analyzer Module

Averaged short-time FFT analysis (Welch-style magnitude averaging) that
turns a fully buffered mono recording into a single long-term spectrum.

Key Features:
- Configurable FFT size, analysis window and overlap
- Overlapped windows averaged in the magnitude domain to suppress noise
- Optional scatter/gather of segment chunks across worker threads

References:
- P. Welch (1967): The use of FFT for the estimation of power spectra
- Harris (1978): On the use of windows for harmonic analysis with the DFT
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

import numpy as np
from scipy.fft import rfft

from .errors import ConfigError, InputError
from .utils import DEFAULT_FREQUENCY_BANDS, amplitude_to_db, is_power_of_two
from .windows import WindowType, generate_window

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

DEFAULT_FFT_SIZE = 8192
DEFAULT_OVERLAP = 0.75
MIN_FFT_SIZE = 32
MAX_FFT_SIZE = 65536
MAX_OVERLAP = 0.9


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class AnalysisConfig:
    """
    Immutable analysis settings shared by the analyzer and the extractor.

    Attributes:
        fft_size: Transform length (power of two)
        window_type: Analysis window
        overlap: Fraction of each window shared with the next, in [0, 0.9)
        frequency_bands: Ordered band center frequencies in Hz
    """
    fft_size: int = DEFAULT_FFT_SIZE
    window_type: WindowType = WindowType.BLACKMAN_HARRIS
    overlap: float = DEFAULT_OVERLAP
    frequency_bands: Tuple[float, ...] = field(default=DEFAULT_FREQUENCY_BANDS)

    def __post_init__(self):
        # Normalize user-friendly inputs; frozen, so go through object.__setattr__
        object.__setattr__(self, "window_type", WindowType.from_name(self.window_type))
        try:
            object.__setattr__(self, "overlap", float(self.overlap))
            object.__setattr__(
                self, "frequency_bands", tuple(float(f) for f in self.frequency_bands)
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid analysis settings: {e}")

        if isinstance(self.fft_size, bool) or not isinstance(self.fft_size, (int, np.integer)):
            raise ConfigError(f"fft_size must be an integer, got {self.fft_size!r}")
        if not is_power_of_two(int(self.fft_size)):
            raise ConfigError(f"fft_size must be a power of two, got {self.fft_size}")
        if not MIN_FFT_SIZE <= self.fft_size <= MAX_FFT_SIZE:
            raise ConfigError(
                f"fft_size {self.fft_size} outside supported range "
                f"{MIN_FFT_SIZE}..{MAX_FFT_SIZE}"
            )
        if not 0.0 <= self.overlap < MAX_OVERLAP:
            raise ConfigError(f"overlap must be in [0, {MAX_OVERLAP}), got {self.overlap}")
        if self.hop_size < 1:
            raise ConfigError(
                f"overlap {self.overlap} leaves no hop for fft_size {self.fft_size}"
            )
        if not self.frequency_bands:
            raise ConfigError("frequency_bands must not be empty")
        if any(not np.isfinite(f) or f <= 0 for f in self.frequency_bands):
            raise ConfigError(
                f"frequency_bands must be positive and finite: {list(self.frequency_bands)}"
            )

    @property
    def hop_size(self) -> int:
        """Samples between consecutive window starts."""
        return int(self.fft_size * (1.0 - self.overlap))

    @property
    def num_bins(self) -> int:
        return self.fft_size // 2 + 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fft_size": int(self.fft_size),
            "window_type": self.window_type.value,
            "overlap": float(self.overlap),
            "frequency_bands": list(self.frequency_bands),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisConfig":
        known = {"fft_size", "window_type", "overlap", "frequency_bands"}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"Unknown analysis settings: {sorted(unknown)}")
        return cls(**data)


@dataclass(frozen=True, eq=False)
class FrequencySpectrum:
    """
    Long-term averaged spectrum.

    Attributes:
        frequencies: Bin frequencies in Hz (length fft_size/2 + 1)
        magnitudes: Averaged magnitudes in dB, aligned with frequencies
        sample_rate: Sample rate of the analyzed signal
    """
    frequencies: np.ndarray = field(repr=False)
    magnitudes: np.ndarray = field(repr=False)
    sample_rate: int = 0

    def __len__(self) -> int:
        return len(self.frequencies)

    def __iter__(self) -> Iterator[Tuple[float, float]]:
        """Iterate (frequency Hz, magnitude dB) pairs in ascending frequency."""
        for freq, mag in zip(self.frequencies, self.magnitudes):
            yield float(freq), float(mag)

    @property
    def bin_width(self) -> float:
        """Frequency spacing between adjacent bins in Hz."""
        if len(self.frequencies) < 2:
            return 0.0
        return float(self.frequencies[1] - self.frequencies[0])

    def peak_frequency(self) -> float:
        """Frequency of the loudest bin."""
        return float(self.frequencies[int(np.argmax(self.magnitudes))])


# =============================================================================
# SPECTRAL ANALYZER
# =============================================================================

class SpectralAnalyzer:
    """
    Averaged STFT magnitude analyzer.

    Windows the signal with a fixed hop, takes the magnitude of each
    segment's spectrum and averages over all segments before converting
    to dB.

    Usage:
        >>> analyzer = SpectralAnalyzer(AnalysisConfig(fft_size=4096))
        >>> spectrum = analyzer.analyze(samples, sample_rate=48000)
        >>> print(f"Peak: {spectrum.peak_frequency():.0f} Hz")
    """

    def __init__(self, config: Optional[AnalysisConfig] = None, max_workers: Optional[int] = None):
        """
        Initialize analyzer.

        Args:
            config: Analysis settings (defaults to AnalysisConfig())
            max_workers: Threads used to accumulate segment chunks
                         (None or 1 = serial)
        """
        self.config = config or AnalysisConfig()
        self.max_workers = max_workers
        self._window = generate_window(self.config.fft_size, self.config.window_type)

    def count_windows(self, num_samples: int) -> int:
        """Number of complete analysis windows that fit in num_samples."""
        fft_size = self.config.fft_size
        if num_samples < fft_size:
            return 0
        return (num_samples - fft_size) // self.config.hop_size + 1

    def analyze(self, samples, sample_rate: int) -> FrequencySpectrum:
        """
        Compute the averaged magnitude spectrum of a mono signal.

        Args:
            samples: Mono samples normalized to [-1.0, 1.0]
            sample_rate: Sample rate in Hz

        Returns:
            FrequencySpectrum with fft_size/2 + 1 bins

        Raises:
            InputError: If the buffer is empty, shorter than one window,
                        contains non-finite values, or the rate is invalid
        """
        samples = np.asarray(samples, dtype=np.float64)
        if samples.ndim != 1:
            raise InputError(f"Expected mono samples, got array of shape {samples.shape}")
        if sample_rate is None or sample_rate <= 0:
            raise InputError(f"Sample rate must be positive, got {sample_rate}")
        if len(samples) == 0:
            raise InputError("Cannot analyze an empty sample buffer")
        if not np.all(np.isfinite(samples)):
            raise InputError("Sample buffer contains NaN or infinite values")

        num_windows = self.count_windows(len(samples))
        if num_windows <= 0:
            raise InputError(
                f"Input of {len(samples)} samples is shorter than one "
                f"analysis window ({self.config.fft_size} samples)"
            )

        accumulated = self._accumulate(samples, num_windows)
        magnitudes = amplitude_to_db(accumulated / num_windows)
        frequencies = np.arange(self.config.num_bins) * sample_rate / self.config.fft_size

        logger.debug(
            "Analyzed %d samples @ %d Hz: %d windows (fft=%d, hop=%d, window=%s)",
            len(samples), sample_rate, num_windows, self.config.fft_size,
            self.config.hop_size, self.config.window_type.value,
        )

        return FrequencySpectrum(
            frequencies=frequencies,
            magnitudes=magnitudes,
            sample_rate=int(sample_rate),
        )

    def _accumulate(self, samples: np.ndarray, num_windows: int) -> np.ndarray:
        """Sum segment magnitude spectra, optionally in parallel chunks."""
        workers = self.max_workers or 1
        if workers <= 1 or num_windows < 2:
            return self._accumulate_range(samples, 0, num_windows)

        # Contiguous chunks of window indices, one partial sum per chunk
        bounds = np.linspace(0, num_windows, min(workers, num_windows) + 1).astype(int)
        chunks = [(int(lo), int(hi)) for lo, hi in zip(bounds[:-1], bounds[1:]) if hi > lo]

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="Spectrum-") as executor:
            partials: List[np.ndarray] = list(executor.map(
                lambda chunk: self._accumulate_range(samples, chunk[0], chunk[1]),
                chunks,
            ))

        total = np.zeros(self.config.num_bins)
        for partial in partials:
            total += partial
        return total

    def _accumulate_range(self, samples: np.ndarray, first: int, last: int) -> np.ndarray:
        """Magnitude sum over windows [first, last)."""
        fft_size = self.config.fft_size
        hop = self.config.hop_size
        total = np.zeros(self.config.num_bins)

        for window_idx in range(first, last):
            start = window_idx * hop
            segment = samples[start:start + fft_size] * self._window
            total += np.abs(rfft(segment))

        return total


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def analyze_spectrum(
    samples,
    sample_rate: int,
    config: Optional[AnalysisConfig] = None,
    max_workers: Optional[int] = None,
) -> FrequencySpectrum:
    """Quick averaged-spectrum analysis of a mono buffer."""
    return SpectralAnalyzer(config, max_workers=max_workers).analyze(samples, sample_rate)
