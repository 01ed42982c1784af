"""
Tests for the tonematch command line interface.
"""

import json
from pathlib import Path

import pytest
import numpy as np
import soundfile as sf

from tonematch.cli import build_parser, main


@pytest.fixture
def recordings(temp_dir):
    """Reference and input WAV files with different tonal balance."""
    rng = np.random.default_rng(5)
    reference = 0.2 * rng.standard_normal(48000)
    darker = np.convolve(0.2 * rng.standard_normal(48000), np.ones(4) / 4, mode="same")

    ref_path = Path(temp_dir) / "reference.wav"
    inp_path = Path(temp_dir) / "input.wav"
    sf.write(str(ref_path), reference, 48000, subtype="FLOAT")
    sf.write(str(inp_path), darker, 48000, subtype="FLOAT")
    return ref_path, inp_path


class TestCLI:
    """End-to-end CLI runs."""

    def test_parser_defaults(self):
        args = build_parser().parse_args(["a.wav", "b.wav"])
        assert args.sample_rate == 48000
        assert args.preset is None
        assert args.workers is None

    def test_summary(self, recordings, capsys):
        ref_path, inp_path = recordings
        assert main([str(ref_path), str(inp_path)]) == 0

        out = capsys.readouterr().out
        assert "Correction curve:" in out
        assert "Match quality:" in out

    def test_writes_json_and_preview(self, recordings, temp_dir):
        ref_path, inp_path = recordings
        output = Path(temp_dir) / "match.json"
        preview = Path(temp_dir) / "preview.wav"

        code = main([str(ref_path), str(inp_path), "--preset", "aggressive",
                     "-o", str(output), "--preview", str(preview), "--workers", "2"])
        assert code == 0

        data = json.loads(output.read_text(encoding="utf-8"))
        assert len(data["correction_profile"]["bands"]) == 10
        assert 0.0 <= data["quality_score"] <= 1.0

        audio, sr = sf.read(str(preview))
        assert sr == 48000
        assert len(audio) == 48000

    def test_config_file(self, recordings, temp_dir):
        ref_path, inp_path = recordings
        config = Path(temp_dir) / "settings.yaml"
        config.write_text("analysis:\n  fft_size: 2048\nmatch:\n  intensity: 0.0\n", encoding="utf-8")
        output = Path(temp_dir) / "match.json"

        assert main([str(ref_path), str(inp_path), "--config", str(config), "-o", str(output)]) == 0
        data = json.loads(output.read_text(encoding="utf-8"))
        assert all(b["gain_db"] == 0.0 for b in data["correction_profile"]["bands"])

    def test_too_short_input(self, recordings, temp_dir):
        ref_path, _ = recordings
        short = Path(temp_dir) / "short.wav"
        sf.write(str(short), np.zeros(100), 48000, subtype="FLOAT")

        assert main([str(ref_path), str(short)]) == 1

    def test_unknown_preset(self, recordings):
        ref_path, inp_path = recordings
        assert main([str(ref_path), str(inp_path), "--preset", "nope"]) == 1

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["--version"])
        assert exc.value.code == 0
        assert "tonematch" in capsys.readouterr().out

    def test_missing_arguments(self):
        with pytest.raises(SystemExit) as exc:
            main([])
        assert exc.value.code == 2

    def test_malformed_band_list(self, recordings, temp_dir):
        ref_path, inp_path = recordings
        config = Path(temp_dir) / "bands.yaml"
        config.write_text("analysis:\n  frequency_bands: [abc, 1000]\n", encoding="utf-8")

        assert main([str(ref_path), str(inp_path), "--config", str(config)]) == 1

    def test_preview_above_nyquist_writes_nothing(self, recordings, temp_dir):
        """A 16 kHz band cannot be rendered at 32 kHz; no JSON is left behind."""
        ref_path, inp_path = recordings
        output = Path(temp_dir) / "match.json"
        preview = Path(temp_dir) / "preview.wav"

        code = main([str(ref_path), str(inp_path), "--sample-rate", "32000",
                     "-o", str(output), "--preview", str(preview)])
        assert code == 1
        assert not output.exists()
        assert not preview.exists()
