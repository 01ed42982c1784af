"""
Analysis window functions.

Cosine-series analysis windows from scipy.signal in their periodic form
(x = i / N), as used for overlapped spectral averaging.
"""

from enum import Enum

import numpy as np
from scipy import signal

from .errors import ConfigError


class WindowType(Enum):
    """Available analysis windows."""
    HANN = "hann"
    HAMMING = "hamming"
    BLACKMAN_HARRIS = "blackman_harris"  # Best frequency resolution (default)
    FLAT_TOP = "flat_top"                # Best amplitude accuracy

    @classmethod
    def from_name(cls, name) -> "WindowType":
        """Resolve a WindowType from its value or member name (case-insensitive)."""
        if isinstance(name, cls):
            return name
        key = str(name).strip().lower().replace("-", "_").replace(" ", "_")
        for member in cls:
            if key in (member.value, member.name.lower()):
                return member
        raise ConfigError(f"Unknown window type: {name}")


# scipy.signal window names for each variant
_SCIPY_WINDOW_NAMES = {
    WindowType.HANN: "hann",
    WindowType.HAMMING: "hamming",
    WindowType.BLACKMAN_HARRIS: "blackmanharris",
    WindowType.FLAT_TOP: "flattop",
}


def generate_window(size: int, window_type: WindowType = WindowType.BLACKMAN_HARRIS) -> np.ndarray:
    """
    Generate window coefficients.

    Uses scipy's periodic (fftbins) form, i.e. the cosine series evaluated
    at x = i / N.

    Args:
        size: Number of coefficients (N)
        window_type: Window variant

    Returns:
        Array of N coefficients
    """
    if size <= 0:
        return np.zeros(0)
    return signal.get_window(_SCIPY_WINDOW_NAMES[window_type], size)
