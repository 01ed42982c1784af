"""
Parametric EQ Preview Module

Cascaded peaking biquads used to audition a correction profile. Each band
becomes one peaking filter at the band's center frequency and gain with a
fixed Butterworth Q.

Coefficients follow the Robert Bristow-Johnson Audio EQ Cookbook; filters
run in Transposed Direct Form II and keep their state between calls.

References:
- W3C Audio EQ Cookbook: https://www.w3.org/TR/audio-eq-cookbook/
- EarLevel Engineering: https://www.earlevel.com/main/
"""

import logging
import math
from typing import List, Sequence, Tuple

import numpy as np
from scipy.signal import lfilter

from .errors import InputError
from .profile_extractor import FrequencyBand
from .utils import BUTTERWORTH_Q

logger = logging.getLogger(__name__)


# =============================================================================
# BIQUAD COEFFICIENT CALCULATION
# =============================================================================

def calculate_peaking_coefficients(
    frequency: float,
    sample_rate: float,
    gain_db: float,
    q: float = BUTTERWORTH_Q,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Calculate peaking EQ biquad coefficients (RBJ Audio EQ Cookbook).

    Args:
        frequency: Center frequency in Hz, strictly between 0 and Nyquist
        sample_rate: Sample rate in Hz
        gain_db: Boost (positive) or cut (negative) at the center
        q: Q factor (bandwidth)

    Returns:
        b, a: Normalized coefficients [b0, b1, b2], [1, a1, a2]

    Raises:
        InputError: If the parameters cannot produce a stable filter
    """
    if not math.isfinite(sample_rate) or sample_rate <= 0:
        raise InputError(f"Sample rate must be positive, got {sample_rate}")
    nyquist = sample_rate / 2
    if not math.isfinite(frequency) or frequency <= 0 or frequency >= nyquist:
        raise InputError(
            f"Filter frequency {frequency} Hz must be between 0 and Nyquist ({nyquist} Hz)"
        )
    if not math.isfinite(gain_db):
        raise InputError(f"Filter gain must be finite, got {gain_db}")
    if not math.isfinite(q) or q <= 0:
        raise InputError(f"Filter Q must be positive, got {q}")

    A = 10 ** (gain_db / 40)
    w0 = 2 * math.pi * frequency / sample_rate
    cos_w0 = math.cos(w0)
    alpha = math.sin(w0) / (2 * q)

    b0 = 1 + alpha * A
    b1 = -2 * cos_w0
    b2 = 1 - alpha * A
    a0 = 1 + alpha / A
    a1 = -2 * cos_w0
    a2 = 1 - alpha / A

    b = np.array([b0 / a0, b1 / a0, b2 / a0])
    a = np.array([1.0, a1 / a0, a2 / a0])

    if not (np.all(np.isfinite(b)) and np.all(np.isfinite(a))):
        raise InputError(
            f"Non-finite coefficients for {frequency} Hz / {gain_db} dB / Q {q}"
        )
    return b, a


# =============================================================================
# BIQUAD FILTER CLASS
# =============================================================================

class BiquadFilter:
    """
    Single biquad filter with state.

    Uses Transposed Direct Form II for better numerical stability. The two
    state values are the same ones scipy.signal.lfilter carries as zi, so
    per-sample and block processing can be mixed freely.
    """

    def __init__(self, b: np.ndarray, a: np.ndarray):
        self.b = np.asarray(b, dtype=np.float64)
        self.a = np.asarray(a, dtype=np.float64)
        self.z1 = 0.0
        self.z2 = 0.0

    def reset(self):
        """Reset filter state."""
        self.z1 = 0.0
        self.z2 = 0.0

    def process_sample(self, x: float) -> float:
        """Process single sample using Transposed Direct Form II."""
        y = self.b[0] * x + self.z1
        self.z1 = self.b[1] * x - self.a[1] * y + self.z2
        self.z2 = self.b[2] * x - self.a[2] * y
        return float(y)

    def process_block(self, audio: np.ndarray) -> np.ndarray:
        """Process a block, continuing from and updating the filter state."""
        output, zf = lfilter(self.b, self.a, audio, zi=np.array([self.z1, self.z2]))
        self.z1, self.z2 = float(zf[0]), float(zf[1])
        return output


# =============================================================================
# PARAMETRIC EQ FILTER
# =============================================================================

class ParametricEQFilter:
    """
    Series chain of peaking filters, one per profile band.

    Filters run in band order. An instance keeps filter history across
    calls and must not be shared between concurrent callers.

    Usage:
        >>> eq = ParametricEQFilter(48000, result.correction_profile.bands)
        >>> eq.process_buffer(samples)  # in place
    """

    def __init__(self, sample_rate: float, bands: Sequence[FrequencyBand], q: float = BUTTERWORTH_Q):
        """
        Build the filter chain.

        Args:
            sample_rate: Sample rate in Hz
            bands: Bands providing center frequency and gain_db
            q: Q shared by all filters

        Raises:
            InputError: If any band gives invalid filter parameters
        """
        self.sample_rate = sample_rate
        self.q = q
        self.filters: List[BiquadFilter] = []
        for band in bands:
            b, a = calculate_peaking_coefficients(band.frequency, sample_rate, band.gain_db, q)
            self.filters.append(BiquadFilter(b, a))

        logger.debug("Built %d-band peaking chain @ %s Hz (Q=%.3f)", len(self.filters), sample_rate, q)

    def __len__(self) -> int:
        return len(self.filters)

    def reset(self):
        """Clear the history of every filter."""
        for biquad in self.filters:
            biquad.reset()

    def process(self, sample: float) -> float:
        """Run one sample through every filter in order."""
        output = sample
        for biquad in self.filters:
            output = biquad.process_sample(output)
        return output

    def process_buffer(self, buffer) -> None:
        """
        Filter an ordered buffer in place.

        Accepts a float numpy array or a mutable sequence of floats.

        Raises:
            InputError: If buffer is a numpy array of non-float dtype
        """
        if isinstance(buffer, np.ndarray) and not np.issubdtype(buffer.dtype, np.floating):
            raise InputError(f"Buffer must hold floating point samples, got dtype {buffer.dtype}")
        if len(buffer) == 0 or not self.filters:
            return

        if isinstance(buffer, np.ndarray):
            output = buffer.astype(np.float64)
            for biquad in self.filters:
                output = biquad.process_block(output)
            buffer[:] = output
        else:
            for i in range(len(buffer)):
                buffer[i] = self.process(buffer[i])

    def frequency_response(self, frequencies) -> np.ndarray:
        """Combined magnitude response in dB at the given frequencies."""
        frequencies = np.asarray(frequencies, dtype=np.float64)
        z = np.exp(-1j * 2 * np.pi * frequencies / self.sample_rate)
        response = np.ones_like(z)
        for biquad in self.filters:
            b, a = biquad.b, biquad.a
            response *= (b[0] + b[1] * z + b[2] * z ** 2) / (a[0] + a[1] * z + a[2] * z ** 2)
        return 20 * np.log10(np.abs(response))


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def apply_eq_preview(samples, sample_rate: float, bands: Sequence[FrequencyBand]) -> np.ndarray:
    """Return a filtered copy of samples with the bands applied."""
    output = np.array(samples, dtype=np.float64)
    ParametricEQFilter(sample_rate, bands).process_buffer(output)
    return output
