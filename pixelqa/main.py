"""Command-line entry point.

    pixelqa compare DESIGN DEV [--scale S --dx X --dy Y] [--ignore-content]
                               [--backend NAME --model NAME] [--out FILE]
                               [--overlay FILE [--side-by-side] [--opacity A]]
    pixelqa health

``compare`` prints the ranked analysis as JSON; ``health`` prints the oracle
configuration without secrets.
"""
import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config import Config, load_config
from .config.env_config import VALID_BACKENDS
from .core.exceptions import ApplicationError, ConfigError, DecodeError, TransformError, ValidationError
from .core.logging_config import configure_logging
from .services.analysis_gateway import AnalysisGateway
from .services.comparison_service import ComparisonService
from .services.overlay_renderer import render_preview, save_preview

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ANALYSIS_FAILED = 1
EXIT_BAD_INPUT = 2


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a whole number, got {value!r}") from None
    if number < 1:
        raise argparse.ArgumentTypeError(f"issue numbers start at 1, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pixelqa",
        description="Compare a design mockup with an implementation screenshot using a vision model.",
    )
    parser.add_argument("--config", default="config.json", help="Path to config.json (default: %(default)s)")
    parser.add_argument("--env-file", default=None, help="Path to a .env file (default: ./.env)")
    parser.add_argument("--log-level", default=None, help="Override the configured log level")

    subparsers = parser.add_subparsers(dest="command", required=True)

    compare = subparsers.add_parser("compare", help="Analyze one design/implementation pair")
    compare.add_argument("design", type=Path, help="Design mockup image")
    compare.add_argument("dev", type=Path, help="Implementation screenshot")
    compare.add_argument("--scale", type=float, default=1.0, help="Design scale, 0.5-2.0 (default: 1.0)")
    compare.add_argument("--dx", type=float, default=0.0, help="Design x offset in pixels, -200..200")
    compare.add_argument("--dy", type=float, default=0.0, help="Design y offset in pixels, -200..200")
    compare.add_argument("--ignore-content", action="store_true", help="Hide Content issues")
    compare.add_argument("--backend", choices=VALID_BACKENDS, default=None, help="Oracle backend")
    compare.add_argument("--model", default=None, help="Preferred model")
    compare.add_argument("--out", type=Path, default=None, help="Write the JSON report here instead of stdout")
    compare.add_argument("--overlay", type=Path, default=None, help="Save a preview image (PNG/JPEG)")
    compare.add_argument("--side-by-side", action="store_true", help="Preview side by side instead of overlaid")
    compare.add_argument("--opacity", type=float, default=None, help="Overlay opacity, 0-1")
    compare.add_argument("--active", type=_positive_int, default=None,
                         help="1-based issue number to highlight in the preview")

    subparsers.add_parser("health", help="Show oracle configuration (no secrets)")
    return parser


def _setup_logging(config: Config, log_level: Optional[str]) -> None:
    configure_logging(
        log_level=log_level or config.log_level,
        log_dir=config.log_dir,
        enable_file_logging=config.file_logging,
        structured_logging=config.structured_logging,
    )


def _write_json(data: dict, out: Optional[Path]) -> None:
    text = json.dumps(data, indent=2, ensure_ascii=False)
    if out is None:
        sys.stdout.write(text + "\n")
    else:
        out.write_text(text + "\n", encoding="utf-8")
        logger.info(f"Report written to {out}")


def cmd_health(config: Config) -> int:
    gateway = AnalysisGateway(config)
    try:
        _write_json(gateway.health(), None)
    finally:
        gateway.close()
    return EXIT_OK


def cmd_compare(args: argparse.Namespace, config: Config) -> int:
    if args.backend:
        config.oracle_backend = args.backend
    if args.model:
        config.oracle_model = args.model
    if args.opacity is not None:
        config.overlay_opacity = args.opacity

    service = ComparisonService(config)
    try:
        try:
            service.upload_design(args.design)
            service.upload_dev(args.dev)
        except DecodeError as e:
            logger.error(str(e))
            _write_json({"error": {"message": str(e)}}, None)
            return EXIT_BAD_INPUT

        try:
            service.set_alignment(args.scale, args.dx, args.dy)
        except ValidationError as e:
            logger.error(str(e))
            _write_json({"error": {"message": str(e)}}, None)
            return EXIT_BAD_INPUT
        service.set_ignore_content(args.ignore_content)
        session = service.analyze()

        if session.error:
            _write_json({"error": {"message": session.error}}, None)
            return EXIT_ANALYSIS_FAILED

        result = service.visible_result()
        report = result.to_dict()
        report["alignment"] = session.alignment.to_dict()
        _write_json(report, args.out)

        if args.overlay:
            active = args.active - 1 if args.active is not None else None
            image = render_preview(
                session.design, session.dev, session.alignment, result.issues,
                active_index=active,
                mode="side_by_side" if args.side_by_side else "overlay",
                opacity=config.overlay_opacity,
            )
            save_preview(image, args.overlay)
        return EXIT_OK
    except TransformError as e:
        logger.error(str(e))
        return EXIT_BAD_INPUT
    finally:
        service.close()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = load_config(args.config, args.env_file)
    _setup_logging(config, args.log_level)

    try:
        if args.command == "health":
            return cmd_health(config)
        return cmd_compare(args, config)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_BAD_INPUT
    except ApplicationError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return EXIT_ANALYSIS_FAILED


if __name__ == "__main__":
    sys.exit(main())
