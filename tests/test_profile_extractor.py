"""
Unit tests for EQ profile extraction.

Tests band measurement, the no-data sentinel, confidence, and the scalar
descriptors (loudness, dynamic range, centroid, rolloff).
"""

import math

import pytest
import numpy as np

from tonematch.profile_extractor import (
    EQProfile,
    FrequencyBand,
    ProfileExtractor,
    calculate_dynamic_range,
    calculate_overall_loudness,
    calculate_spectral_centroid,
    calculate_spectral_rolloff,
    extract_eq_profile,
)
from tonematch.spectral_analyzer import AnalysisConfig, FrequencySpectrum, analyze_spectrum


def flat_spectrum(level_db=-20.0, fft_size=4096, sample_rate=48000):
    frequencies = np.arange(fft_size // 2 + 1) * sample_rate / fft_size
    return FrequencySpectrum(
        frequencies=frequencies,
        magnitudes=np.full(len(frequencies), level_db),
        sample_rate=sample_rate,
    )


class TestBandExtraction:
    """Tests for per-band measurement."""

    def test_band_count_and_order(self):
        """Profile bands follow the configured centers exactly."""
        config = AnalysisConfig(frequency_bands=[4000, 250, 1000])
        profile = ProfileExtractor(config).extract(flat_spectrum())

        assert [b.frequency for b in profile.bands] == [4000.0, 250.0, 1000.0]

    def test_default_layout(self, white_noise, sample_rate):
        config = AnalysisConfig(fft_size=4096)
        spectrum = analyze_spectrum(white_noise, sample_rate, config)
        profile = extract_eq_profile(spectrum, config)

        assert len(profile.bands) == len(config.frequency_bands)
        assert profile.frequencies == list(config.frequency_bands)

    def test_flat_spectrum_gain_and_confidence(self):
        profile = ProfileExtractor(AnalysisConfig()).extract(flat_spectrum(-20.0))

        for band in profile.bands:
            assert band.gain_db == pytest.approx(-20.0)
            assert band.confidence == pytest.approx(1.0)

    def test_bandwidth_is_fixed_fraction(self):
        band = ProfileExtractor.extract_band(flat_spectrum(), 1000.0)
        assert band.bandwidth == pytest.approx(230.0)
        assert band.q == pytest.approx(1 / 0.23)

    def test_empty_band_sentinel(self):
        """A band with no bins reports -80 dB and zero confidence."""
        spectrum = flat_spectrum(fft_size=1024)  # ~47 Hz bins
        band = ProfileExtractor.extract_band(spectrum, 5.0)

        assert band.gain_db == -80.0
        assert band.confidence == 0.0
        assert band.frequency == 5.0

    def test_band_above_nyquist_is_sentinel(self):
        config = AnalysisConfig(frequency_bands=[1000, 30000])
        profile = ProfileExtractor(config).extract(flat_spectrum())

        assert profile.bands[1].gain_db == -80.0
        assert profile.bands[1].confidence == 0.0

    def test_gain_is_db_mean_of_band_bins(self):
        spectrum = flat_spectrum(-30.0)
        magnitudes = spectrum.magnitudes.copy()
        lower, upper = 1000 / 2 ** (1 / 6), 1000 * 2 ** (1 / 6)
        in_band = (spectrum.frequencies >= lower) & (spectrum.frequencies <= upper)
        magnitudes[in_band] = np.linspace(-40, -20, in_band.sum())
        spectrum = FrequencySpectrum(spectrum.frequencies, magnitudes, spectrum.sample_rate)

        band = ProfileExtractor.extract_band(spectrum, 1000.0)
        expected_std = np.std(magnitudes[in_band], ddof=1)

        assert band.gain_db == pytest.approx(-30.0)
        assert band.confidence == pytest.approx(1 / (1 + expected_std / 10))

    def test_confidence_drops_with_spread(self):
        spectrum = flat_spectrum(-30.0)
        magnitudes = spectrum.magnitudes.copy()
        magnitudes[::2] = -10.0
        noisy = FrequencySpectrum(spectrum.frequencies, magnitudes, spectrum.sample_rate)

        clean_band = ProfileExtractor.extract_band(spectrum, 2000.0)
        noisy_band = ProfileExtractor.extract_band(noisy, 2000.0)

        assert noisy_band.confidence < clean_band.confidence
        assert 0.0 <= noisy_band.confidence <= 1.0

    def test_parallel_matches_serial(self, white_noise, sample_rate):
        config = AnalysisConfig(fft_size=2048)
        spectrum = analyze_spectrum(white_noise, sample_rate, config)

        serial = ProfileExtractor(config).extract(spectrum)
        parallel = ProfileExtractor(config, max_workers=4).extract(spectrum)

        assert parallel == serial


class TestScalarDescriptors:
    """Tests for loudness, dynamic range, centroid and rolloff."""

    def test_loudness_of_flat_spectrum(self):
        assert calculate_overall_loudness(np.full(100, -20.0)) == pytest.approx(-20.0)

    def test_loudness_is_power_based(self):
        # Power mean of 0 dB and -inf dB is half power: -3.01 dB
        loudness = calculate_overall_loudness(np.array([0.0, -np.inf]))
        assert loudness == pytest.approx(10 * math.log10(0.5))

    def test_dynamic_range_percentiles(self):
        magnitudes = np.arange(100, dtype=float)
        np.random.default_rng(0).shuffle(magnitudes)
        assert calculate_dynamic_range(magnitudes) == pytest.approx(90.0)

    def test_dynamic_range_of_flat_spectrum(self):
        assert calculate_dynamic_range(np.full(513, -50.0)) == 0.0

    def test_centroid_single_peak(self):
        spectrum = flat_spectrum(-np.inf)
        magnitudes = spectrum.magnitudes.copy()
        magnitudes[100] = 0.0
        spectrum = FrequencySpectrum(spectrum.frequencies, magnitudes, spectrum.sample_rate)

        assert calculate_spectral_centroid(spectrum) == pytest.approx(spectrum.frequencies[100])

    def test_centroid_zero_energy(self):
        """A spectrum with no energy has a 0 Hz centroid."""
        assert calculate_spectral_centroid(flat_spectrum(-np.inf)) == 0.0

    def test_rolloff_single_peak(self):
        spectrum = flat_spectrum(-np.inf)
        magnitudes = spectrum.magnitudes.copy()
        magnitudes[200] = 0.0
        spectrum = FrequencySpectrum(spectrum.frequencies, magnitudes, spectrum.sample_rate)

        assert calculate_spectral_rolloff(spectrum) == pytest.approx(spectrum.frequencies[200])

    def test_rolloff_equal_bins(self):
        frequencies = np.arange(10) * 100.0
        spectrum = FrequencySpectrum(frequencies, np.zeros(10), 2000)
        # 9/10 of the power is the first bin to reach 85%
        assert calculate_spectral_rolloff(spectrum) == pytest.approx(800.0)

    def test_rolloff_custom_threshold(self):
        frequencies = np.arange(10) * 100.0
        spectrum = FrequencySpectrum(frequencies, np.zeros(10), 2000)
        assert calculate_spectral_rolloff(spectrum, threshold=0.5) == pytest.approx(400.0)

    def test_bright_noise_has_higher_centroid(self, white_noise, make_sine, sample_rate):
        config = AnalysisConfig(fft_size=2048)
        dark = extract_eq_profile(
            analyze_spectrum(make_sine(200, sample_rate) + 0.001 * white_noise, sample_rate, config),
            config,
        )
        bright = extract_eq_profile(
            analyze_spectrum(make_sine(8000, sample_rate) + 0.001 * white_noise, sample_rate, config),
            config,
        )
        assert bright.spectral_centroid > dark.spectral_centroid
        assert bright.spectral_rolloff > dark.spectral_rolloff


class TestProfileSerialization:
    """Tests for dict conversion."""

    def test_round_trip(self):
        profile = ProfileExtractor(AnalysisConfig()).extract(flat_spectrum(-12.0))
        data = profile.to_dict()

        assert isinstance(data["bands"][0]["gain_db"], float)
        assert EQProfile.from_dict(data) == profile

    def test_bands_are_immutable(self):
        band = FrequencyBand(frequency=100.0, gain_db=0.0, bandwidth=23.0, confidence=1.0)
        with pytest.raises(Exception):
            band.gain_db = 3.0
