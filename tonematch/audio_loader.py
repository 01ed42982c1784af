"""
Audio Loader - decode files into mono analysis buffers

Thin adapter over soundfile (decoding) and scipy (polyphase resampling).
Produces what the analysis core expects: a 1-D float buffer in [-1, 1]
at a known, common sample rate.
"""

import logging
from dataclasses import dataclass, field
from fractions import Fraction
from pathlib import Path
from typing import Union

import numpy as np
import soundfile as sf
from scipy import signal

from .errors import InputError
from .utils import SAMPLE_RATE

logger = logging.getLogger(__name__)


@dataclass
class LoadedAudio:
    """Decoded mono audio."""
    path: str
    samples: np.ndarray = field(repr=False)
    sample_rate: int
    source_sample_rate: int
    channels: int

    @property
    def duration_secs(self) -> float:
        return len(self.samples) / self.sample_rate if self.sample_rate else 0.0


def mix_to_mono(audio: np.ndarray) -> np.ndarray:
    """Average all channels of a (frames, channels) array."""
    if audio.ndim > 1:
        return np.mean(audio, axis=1)
    return audio


def resample(samples: np.ndarray, from_rate: int, to_rate: int) -> np.ndarray:
    """Resample with a polyphase filter (no-op when rates match)."""
    if from_rate == to_rate:
        return samples
    ratio = Fraction(int(to_rate), int(from_rate))
    return signal.resample_poly(samples, ratio.numerator, ratio.denominator)


def load_audio(path: Union[str, Path], target_sample_rate: int = SAMPLE_RATE) -> LoadedAudio:
    """
    Load an audio file as a mono buffer at target_sample_rate.

    Args:
        path: Audio file readable by libsndfile (wav, flac, ogg, ...)
        target_sample_rate: Output sample rate in Hz

    Returns:
        LoadedAudio with float64 samples

    Raises:
        InputError: If the file cannot be decoded or holds no audio
    """
    try:
        audio, sr = sf.read(str(path), dtype='float64', always_2d=True)
    except RuntimeError as e:  # soundfile.LibsndfileError
        raise InputError(f"Could not decode {path}: {e}")

    channels = audio.shape[1]
    mono = mix_to_mono(audio)
    if len(mono) == 0:
        raise InputError(f"No audio data in {path}")

    samples = resample(mono, sr, target_sample_rate)
    logger.debug(
        "Loaded %s: %d ch @ %d Hz -> %d mono samples @ %d Hz",
        path, channels, sr, len(samples), target_sample_rate,
    )

    return LoadedAudio(
        path=str(path),
        samples=np.asarray(samples, dtype=np.float64),
        sample_rate=int(target_sample_rate),
        source_sample_rate=int(sr),
        channels=int(channels),
    )
