"""
Command line interface.

Usage:
    swarapitch recording.wav
    swarapitch recording.wav --tonic 146.83 --method cc
    swarapitch recording.wav --frames -v

Prints the estimate as JSON.
"""

import argparse
import json
import logging
import sys

from .config import AGGREGATIONS, METHODS, ConfigurationError, load_config
from .notes import map_frequency_to_label
from .service import PitchService
from .sound import AudioDecodeError, SampleBuffer

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="swarapitch",
        description="Estimate the fundamental frequency of a recorded monophonic clip"
    )
    parser.add_argument("file", help="Audio file (WAV, FLAC, OGG, ...)")
    parser.add_argument("--channel", type=int, default=0, help="Channel of a multi-channel file")
    parser.add_argument("--config", help="TOML config file")
    parser.add_argument("--frame-size", type=int, help="Samples per analysis frame")
    parser.add_argument("--hop-size", type=int, help="Samples between frame starts")
    parser.add_argument("--min-freq", type=float, help="Lowest accepted pitch (Hz)")
    parser.add_argument("--max-freq", type=float, help="Highest accepted pitch (Hz)")
    parser.add_argument("--rms-gate", type=float, help="Silence threshold (RMS)")
    parser.add_argument("--method", choices=METHODS, help="Per-frame detector")
    parser.add_argument("--aggregation", choices=AGGREGATIONS, help="Vote reduction")
    parser.add_argument("--workers", type=int, help="Threads for frame analysis")
    parser.add_argument("--tonic", type=float, help="Reference Sa (Hz) for swara naming")
    parser.add_argument("--frames", action="store_true", help="Include per-frame verdicts")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(
            args.config,
            frame_size=args.frame_size,
            hop_size=args.hop_size,
            min_frequency=args.min_freq,
            max_frequency=args.max_freq,
            rms_gate=args.rms_gate,
            method=args.method,
            aggregation=args.aggregation,
            max_workers=args.workers,
        )
    except ConfigurationError as exc:
        parser.error(str(exc))

    if args.tonic is not None and not args.tonic > 0:
        parser.error(f"--tonic must be positive, got {args.tonic}")

    try:
        buffer = SampleBuffer.from_file(args.file, channel=args.channel)
    except (AudioDecodeError, ValueError) as exc:
        logger.error("%s", exc)
        return 1

    service = PitchService(config)
    verdicts = service.analyze_frames(buffer)
    estimate = service.summarize(verdicts)

    result = estimate.to_dict()
    if args.tonic is not None:
        result["note"] = (map_frequency_to_label(estimate.frequency, args.tonic).to_dict()
                          if estimate.frequency is not None else None)
    if args.frames:
        result["frames"] = [v.to_dict() for v in verdicts]

    json.dump(result, sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
