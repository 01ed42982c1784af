"""
Pytest fixtures for tonematch tests.
"""
import pytest
import sys
from pathlib import Path
import tempfile
import shutil

import numpy as np

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


@pytest.fixture
def sample_rate():
    """Standard sample rate for tests."""
    return 48000


@pytest.fixture
def temp_dir():
    """Create temporary directory for test outputs."""
    tmp = tempfile.mkdtemp()
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def make_sine():
    """Factory for mono sine buffers."""
    def _make(frequency, sample_rate=48000, seconds=1.0, amplitude=0.5):
        t = np.arange(int(sample_rate * seconds)) / sample_rate
        return amplitude * np.sin(2 * np.pi * frequency * t)
    return _make


@pytest.fixture
def white_noise():
    """One second of reproducible white noise at 48 kHz."""
    rng = np.random.default_rng(1234)
    return 0.25 * rng.standard_normal(48000)


@pytest.fixture
def make_profile():
    """Factory for EQProfiles on the default octave layout."""
    from tonematch.profile_extractor import EQProfile, FrequencyBand
    from tonematch.utils import DEFAULT_FREQUENCY_BANDS

    def _make(gains, confidence=1.0, dynamic_range=40.0, frequencies=DEFAULT_FREQUENCY_BANDS):
        bands = tuple(
            FrequencyBand(frequency=f, gain_db=float(g), bandwidth=f * 0.23, confidence=confidence)
            for f, g in zip(frequencies, gains)
        )
        return EQProfile(
            bands=bands,
            overall_loudness=-20.0,
            dynamic_range=dynamic_range,
            spectral_centroid=1500.0,
            spectral_rolloff=6000.0,
        )
    return _make
