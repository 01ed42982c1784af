"""
End-to-end matching flow.

samples -> SpectralAnalyzer -> FrequencySpectrum -> ProfileExtractor -> EQProfile
(reference and input independently) -> ProfileMatcher -> MatchResult

Every call takes and returns complete values; nothing is cached here.
"""

import logging
from typing import Optional

from .profile_extractor import EQProfile, ProfileExtractor
from .profile_matcher import MatchConfig, MatchResult, ProfileMatcher
from .spectral_analyzer import AnalysisConfig, SpectralAnalyzer

logger = logging.getLogger(__name__)


def build_profile(
    samples,
    sample_rate: int,
    config: Optional[AnalysisConfig] = None,
    max_workers: Optional[int] = None,
) -> EQProfile:
    """Analyze a mono buffer and extract its EQ profile."""
    config = config or AnalysisConfig()
    spectrum = SpectralAnalyzer(config, max_workers=max_workers).analyze(samples, sample_rate)
    return ProfileExtractor(config, max_workers=max_workers).extract(spectrum)


def match_recordings(
    reference_samples,
    input_samples,
    sample_rate: int,
    analysis_config: Optional[AnalysisConfig] = None,
    match_config: Optional[MatchConfig] = None,
    max_workers: Optional[int] = None,
) -> MatchResult:
    """
    Profile both recordings and match input to reference.

    Both buffers must already be mono and at sample_rate.
    """
    analysis_config = analysis_config or AnalysisConfig()
    reference = build_profile(reference_samples, sample_rate, analysis_config, max_workers)
    input_profile = build_profile(input_samples, sample_rate, analysis_config, max_workers)
    logger.debug(
        "Reference centroid %.0f Hz vs input centroid %.0f Hz",
        reference.spectral_centroid, input_profile.spectral_centroid,
    )
    return ProfileMatcher(match_config).match(reference, input_profile)
