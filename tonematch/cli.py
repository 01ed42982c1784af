"""
tonematch command line interface.

Usage:
    tonematch reference.wav mix.wav
    tonematch reference.wav mix.wav --preset vocals --output match.json
    tonematch reference.wav mix.wav --config settings.yaml --preview mix_eq.wav
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

import soundfile as sf

from . import __version__
from .audio_loader import load_audio
from .config_loader import ConfigLoader
from .errors import TonematchError
from .parametric_eq import apply_eq_preview
from .pipeline import build_profile
from .profile_matcher import MATCH_PRESETS, MatchConfig, ProfileMatcher
from .spectral_analyzer import AnalysisConfig
from .utils import SAMPLE_RATE

logger = logging.getLogger("tonematch")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tonematch",
        description="Derive a per-band EQ correction that matches a recording to a reference.",
    )
    parser.add_argument("reference", help="Reference audio file")
    parser.add_argument("input", help="Audio file to correct")
    parser.add_argument("--config", help="YAML file with analysis/match settings")
    parser.add_argument("--presets-dir", help="Directory of extra match preset YAML files")
    parser.add_argument(
        "--preset",
        help=f"Match preset ({', '.join(MATCH_PRESETS)}); overrides the config file",
    )
    parser.add_argument("--output", "-o", help="Write the match result as JSON")
    parser.add_argument("--preview", help="Write the input with the correction applied (WAV)")
    parser.add_argument("--sample-rate", type=int, default=SAMPLE_RATE,
                        help="Common analysis rate both files are resampled to")
    parser.add_argument("--workers", type=int, default=None,
                        help="Worker threads for analysis")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def print_summary(result) -> None:
    print("Correction curve:")
    for band in result.correction_profile.bands:
        print(f"  {band.frequency:>8g} Hz: {band.gain_db:+6.2f} dB  "
              f"(Q {band.q:.2f}, confidence {band.confidence:.2f})")
    print(f"Match quality: {result.quality_score:.0%}")


def run(args: argparse.Namespace) -> int:
    loader = ConfigLoader(args.presets_dir)
    if args.config:
        analysis_config, match_config = loader.load(args.config)
    else:
        analysis_config, match_config = AnalysisConfig(), MatchConfig()
    if args.preset:
        match_config = loader.load_preset(args.preset)

    logger.info("Loading reference %s", args.reference)
    reference_audio = load_audio(args.reference, args.sample_rate)
    logger.info("Loading input %s", args.input)
    input_audio = load_audio(args.input, args.sample_rate)

    reference = build_profile(reference_audio.samples, args.sample_rate, analysis_config, args.workers)
    input_profile = build_profile(input_audio.samples, args.sample_rate, analysis_config, args.workers)
    result = ProfileMatcher(match_config).match(reference, input_profile)

    for warning in result.warnings:
        logger.warning(warning)
    print_summary(result)

    # Nothing is written until the preview chain has been built
    preview = None
    if args.preview:
        preview = apply_eq_preview(input_audio.samples, args.sample_rate, result.correction_profile.bands)

    if args.output:
        Path(args.output).write_text(json.dumps(result.to_dict(), indent=2), encoding="utf-8")
        logger.info("Wrote match result to %s", args.output)

    if preview is not None:
        sf.write(args.preview, preview, args.sample_rate, subtype="FLOAT")
        logger.info("Wrote preview to %s", args.preview)

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        return run(args)
    except TonematchError as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
