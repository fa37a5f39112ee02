#!/usr/bin/env python
"""grepfuzz: pass blurry (or sharp) images through a NUL-delimited pipeline.

Examples:
  find photos/ -iname '*.jpg' -print0 | grepfuzz -s | xargs -0 ls -l
  grepfuzz -v -f photo.jpg
  grepfuzz --synthetic-checkerboard
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from config import FilterMode, OutputStyle, RunConfig, resolve_config
from dispatcher import Dispatcher, StreamReadError, run_passthrough
from image_loader import DecodeError, SyntheticSpec
from logging_utils import get_logger, setup_logging
from metric_suite import build_metric_suite

LOGGER = get_logger(__name__)


# ----------------- ARGPARSE -----------------

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="grepfuzz",
        description="Classify images as blurry or sharp. Reads NUL-delimited paths on stdin "
        "and writes the ones that pass the filter.",
    )

    # input source
    source = p.add_mutually_exclusive_group()
    source.add_argument("-f", "--file", type=str, help="Analyze a single image file.")
    source.add_argument("--synthetic-checkerboard", action="store_true",
                        help="Analyze a generated single-pixel checkerboard.")
    source.add_argument("--synthetic-white", action="store_true",
                        help="Analyze a generated solid white image.")
    source.add_argument("-B", "--stdin-bytes", "--std_in_bytes", dest="stdin_bytes", action="store_true",
                        help="Read one encoded image from stdin.")
    source.add_argument("-p", "--passthrough", action="store_true",
                        help="Copy NUL-delimited stdin records to stdout unchanged.")

    # filter mode
    mode = p.add_mutually_exclusive_group()
    mode.add_argument("-b", "--blur", dest="filter_mode", action="store_const", const=FilterMode.PASS_BLURRY.value,
                      help="Pass blurry images (default).")
    mode.add_argument("-s", "--sharp", dest="filter_mode", action="store_const", const=FilterMode.PASS_SHARP.value,
                      help="Pass sharp images.")

    # output style
    style = p.add_mutually_exclusive_group()
    style.add_argument("-v", "--verbose", dest="output_style", action="store_const", const=OutputStyle.VERBOSE.value,
                       help="Human-readable multi-line report per image.")
    style.add_argument("-a", "--ascii", dest="output_style", action="store_const", const=OutputStyle.ASCII.value,
                       help="Tab-separated details per image (per metric when streaming).")

    # thresholds
    p.add_argument("-t", "--threshold", dest="laplacian", type=float,
                   help="Laplacian variance threshold; below => blurry.")
    p.add_argument("--tenengrad-threshold", dest="tenengrad", type=float,
                   help="Tenengrad (Sobel energy) threshold; below => blurry.")
    p.add_argument("--opencv-laplacian-threshold", "--secondary-laplacian-threshold",
                   dest="secondary_laplacian", type=float,
                   help="OpenCV Laplacian variance threshold; below => blurry.")
    p.add_argument("--no-secondary", dest="include_secondary", action="store_const", const=False,
                   help="Do not run the OpenCV Laplacian cross-check.")

    p.add_argument("--config", type=Path, help="TOML, YAML or JSON config file.")
    p.add_argument("--synthetic-size", type=int, help="Edge length of synthetic images (default 256).")
    p.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                   help="Diagnostic verbosity on stderr.")
    p.add_argument("--log-file", type=Path, help="Also write diagnostics to this file.")
    return p


def _overrides(args: argparse.Namespace) -> Dict[str, Any]:
    keys = (
        "laplacian",
        "tenengrad",
        "secondary_laplacian",
        "filter_mode",
        "output_style",
        "include_secondary",
        "synthetic_size",
        "log_level",
    )
    return {key: getattr(args, key) for key in keys}


def _single_source(args: argparse.Namespace, config: RunConfig):
    size = config.synthetic_size
    if args.synthetic_checkerboard:
        return SyntheticSpec("checkerboard", size, size)
    if args.synthetic_white:
        return SyntheticSpec("white", size, size)
    if args.stdin_bytes:
        return sys.stdin.buffer.read()
    return args.file


# ----------------- MAIN -----------------

def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.log_level or "WARNING", args.log_file)
    try:
        config = resolve_config(args.config, _overrides(args))
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        parser.error(f"invalid option value ({problems})")

    setup_logging(config.log_level, args.log_file)

    stdin = sys.stdin.buffer
    stdout = sys.stdout.buffer

    if args.passthrough:
        try:
            run_passthrough(stdin, stdout)
        except StreamReadError as exc:
            LOGGER.error("%s", exc)
            return 1
        return 0

    single = args.file or args.synthetic_checkerboard or args.synthetic_white or args.stdin_bytes
    if not single and sys.stdin.isatty():
        parser.print_help()
        return 0

    suite = build_metric_suite(config.thresholds, include_secondary=config.include_secondary)
    dispatcher = Dispatcher(suite, config.filter_mode, config.output_style, stdout)

    if single:
        try:
            dispatcher.run_single(_single_source(args, config))
        except (DecodeError, OSError) as exc:
            LOGGER.error("%s", exc)
            return 1
        return 0

    try:
        dispatcher.run_stream(stdin)
    except StreamReadError as exc:
        LOGGER.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
