"""
Shared constants and small numeric helpers.

Provides:
- Standard analysis sample rate
- Canonical octave band centers used by the default configuration
- dB <-> linear conversions
"""

import math

import numpy as np


# =============================================================================
# CONSTANTS
# =============================================================================

SAMPLE_RATE = 48000  # Common rate both recordings are resampled to

# Octave band centers (Hz) of the default analysis configuration
DEFAULT_FREQUENCY_BANDS = (
    31.5, 63.0, 125.0, 250.0, 500.0,
    1000.0, 2000.0, 4000.0, 8000.0, 16000.0,
)

# Additive floor keeping log10 finite on digital silence
MAGNITUDE_FLOOR = 1e-10

# Gain reported for a band that has no spectrum bins
NO_DATA_GAIN_DB = -80.0

# Peaking filter Q (Butterworth)
BUTTERWORTH_Q = 1.0 / math.sqrt(2.0)


# =============================================================================
# HELPERS
# =============================================================================

def amplitude_to_db(amplitude):
    """Convert linear magnitude to dB with the analysis floor applied."""
    return 20.0 * np.log10(np.asarray(amplitude, dtype=np.float64) + MAGNITUDE_FLOOR)


def db_to_amplitude(db):
    """Convert dB to linear magnitude."""
    return np.power(10.0, np.asarray(db, dtype=np.float64) / 20.0)


def db_to_power(db):
    """Convert dB to linear power."""
    return np.power(10.0, np.asarray(db, dtype=np.float64) / 10.0)


def is_power_of_two(n: int) -> bool:
    return n > 0 and (n & (n - 1)) == 0


def format_hz(frequency: float) -> str:
    """Render a frequency without trailing zeros (31.5, 1000)."""
    return f"{frequency:g}"


def octaves_between(f_low: float, f_high: float) -> float:
    """Distance between two frequencies in octaves (always non-negative)."""
    return abs(math.log2(f_high / f_low))

