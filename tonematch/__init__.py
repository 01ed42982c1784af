"""
tonematch

Tonal-balance matching between two recordings: averaged spectral analysis,
EQ profile extraction, profile matching and a biquad preview chain.
"""

__version__ = "0.1.0"

from .errors import TonematchError, InputError, ConfigError
from .windows import WindowType, generate_window
from .spectral_analyzer import (
    AnalysisConfig,
    FrequencySpectrum,
    SpectralAnalyzer,
    analyze_spectrum,
)
from .profile_extractor import (
    FrequencyBand,
    EQProfile,
    ProfileExtractor,
    extract_eq_profile,
)
from .profile_matcher import (
    MatchConfig,
    MatchResult,
    MATCH_PRESETS,
    ProfileMatcher,
    match_profiles,
    psychoacoustic_weight,
)
from .parametric_eq import (
    BiquadFilter,
    ParametricEQFilter,
    apply_eq_preview,
    calculate_peaking_coefficients,
)
from .config_loader import ConfigLoader, load_config
from .audio_loader import LoadedAudio, load_audio
from .pipeline import build_profile, match_recordings

__all__ = [
    # Errors
    "TonematchError",
    "InputError",
    "ConfigError",
    # Analysis
    "WindowType",
    "generate_window",
    "AnalysisConfig",
    "FrequencySpectrum",
    "SpectralAnalyzer",
    "analyze_spectrum",
    # Profiles
    "FrequencyBand",
    "EQProfile",
    "ProfileExtractor",
    "extract_eq_profile",
    # Matching
    "MatchConfig",
    "MatchResult",
    "MATCH_PRESETS",
    "ProfileMatcher",
    "match_profiles",
    "psychoacoustic_weight",
    # Preview EQ
    "BiquadFilter",
    "ParametricEQFilter",
    "apply_eq_preview",
    "calculate_peaking_coefficients",
    # Config / IO
    "ConfigLoader",
    "load_config",
    "LoadedAudio",
    "load_audio",
    "build_profile",
    "match_recordings",
]
