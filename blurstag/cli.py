"""
Command line front end: blur an image to check whether a watermark survives.

Usage:
    blurstag watermarked.png -o filtered.png --radius 4 --blend 0.8
    blurstag watermarked.png --compare side_by_side.png --device host
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .config import Settings, settings as default_settings
from .devices import DEVICE_KINDS, create_device
from .errors import BlurstagError, PreconditionError
from .orchestrator import DenoiseOrchestrator, RunState
from .parity import side_by_side

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_PRECONDITION = 2


def _print_status(state: RunState, message: str, is_error: bool) -> None:
    prefix = "!" if is_error else "-"
    print(f"{prefix} [{state.value}] {message}", file=sys.stderr)


def _bounded_blend(value: str) -> float:
    blend = float(value)
    if not 0.0 <= blend <= 1.0:
        raise argparse.ArgumentTypeError(f"blend must be between 0 and 1, got {value}")
    return blend


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="blurstag",
        description="Apply a box-blur denoiser to test watermark robustness",
    )
    parser.add_argument("input", type=Path, help="Image to filter (PNG, JPEG, BMP, GIF, WebP)")
    parser.add_argument(
        "--output",
        "-o",
        type=Path,
        default=None,
        help="Filtered image path (default: <input>_denoised.png)",
    )
    parser.add_argument(
        "--radius",
        "-r",
        type=int,
        default=settings.DEFAULT_RADIUS,
        choices=range(0, settings.MAX_RADIUS + 1),
        metavar=f"0..{settings.MAX_RADIUS}",
        help=f"Window half-width in pixels (default: {settings.DEFAULT_RADIUS})",
    )
    parser.add_argument(
        "--blend",
        "-b",
        type=_bounded_blend,
        default=settings.DEFAULT_BLEND,
        help=f"0 = original, 1 = fully blurred (default: {settings.DEFAULT_BLEND})",
    )
    parser.add_argument(
        "--device",
        choices=DEVICE_KINDS,
        default=settings.DEVICE,
        help=f"Compute device (default: {settings.DEVICE})",
    )
    parser.add_argument(
        "--compare",
        type=Path,
        default=None,
        help="Also write the original and filtered image side by side",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )
    return parser


def main(argv: list[str] | None = None, settings: Settings | None = None) -> int:
    """Main entry point."""
    settings = settings or default_settings
    args = build_parser(settings).parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    output = args.output or args.input.with_name(f"{args.input.stem}_denoised.png")
    try:
        device = create_device(args.device, settings=settings)
    except PreconditionError as e:
        _print_status(RunState.IDLE, f"Compute device not available: {e}", True)
        return EXIT_PRECONDITION

    with DenoiseOrchestrator(device=device, settings=settings, on_status=_print_status) as engine:
        try:
            engine.load_image(args.input)
        except ValueError as e:
            _print_status(RunState.IDLE, f"Could not read image: {e}", True)
            return EXIT_PRECONDITION
        try:
            report = engine.run(radius=args.radius, blend=args.blend)
        except PreconditionError:
            return EXIT_PRECONDITION
        except BlurstagError as e:
            _print_status(engine.state, f"Processing failed: {e}", True)
            return EXIT_FAILED

    for warning in report.warnings:
        print(f"Warning: {warning}", file=sys.stderr)
    try:
        report.image.save(output)
        print(f"Filtered image ({report.path.value} path, {report.elapsed_ms:.0f}ms): {output}")
        if args.compare is not None:
            side_by_side(engine.image, report.image).save(args.compare)
            print(f"Comparison: {args.compare}")
    except (ValueError, OSError) as e:
        _print_status(RunState.DONE, f"Could not write result: {e}", True)
        return EXIT_FAILED
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
