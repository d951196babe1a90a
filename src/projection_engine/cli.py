"""plan-projection: project a training plan from a JSON request document.

Usage:
    plan-projection request.json                       # JSON payload to stdout
    plan-projection request.json --format csv -o out.csv
    plan-projection request.json --profile sustainable --no-optimizer
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
from pathlib import Path

from projection_engine import settings
from projection_engine.engine import ProjectionEngine
from projection_engine.exceptions import ProjectionInputError
from projection_engine.models.request import ProjectionRequest
from projection_engine.models.safety import SafetyConfigInput
from projection_engine.serialization import points_to_frame, request_from_dict, to_json_string

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_INPUT_ERROR = 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="plan-projection",
        description="Project daily CTL/ATL/TSB and weekly loads for a training plan.",
    )
    parser.add_argument("request", type=Path, help="Path to the JSON request document")
    parser.add_argument(
        "--profile",
        default=None,
        help="Optimization profile (outcome-first, balanced, sustainable); overrides the request",
    )
    parser.add_argument(
        "--no-optimizer",
        action="store_true",
        help="Disable the weekly load optimizer",
    )
    parser.add_argument(
        "--format",
        choices=("json", "csv"),
        default="json",
        help="json: full payload; csv: daily points",
    )
    parser.add_argument("-o", "--output", type=Path, default=None, help="Write to PATH instead of stdout")
    parser.add_argument("--log-level", default=None, help="Logging level (default from PROJECTION_LOG_LEVEL)")
    return parser


def _load_request(path: Path) -> ProjectionRequest:
    """Read and parse the request document at *path*."""
    try:
        with open(path) as f:
            doc = json.load(f)
    except FileNotFoundError as exc:
        raise ProjectionInputError(f"Request file not found: {path}", field="request") from exc
    except json.JSONDecodeError as exc:
        raise ProjectionInputError(f"Request file is not valid JSON: {exc}", field="request") from exc
    return request_from_dict(doc)


def _apply_overrides(request: ProjectionRequest, args: argparse.Namespace) -> ProjectionRequest:
    safety = request.safety or SafetyConfigInput()
    profile = args.profile or safety.optimization_profile or settings.DEFAULT_PROFILE
    return dataclasses.replace(
        request,
        safety=dataclasses.replace(safety, optimization_profile=profile),
        optimizer_enabled=request.optimizer_enabled and settings.OPTIMIZER_ENABLED and not args.no_optimizer,
    )


def main(argv: list[str] | None = None) -> int:
    """Entry point; returns the process exit code."""
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=(args.log_level or settings.LOG_LEVEL).upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        request = _apply_overrides(_load_request(args.request), args)
        payload = ProjectionEngine().project(request)
    except ProjectionInputError as exc:
        logger.error("Invalid projection input%s: %s", f" ({exc.field})" if exc.field else "", exc)
        return EXIT_INPUT_ERROR

    if args.format == "csv":
        text = points_to_frame(payload).to_csv()
    else:
        text = to_json_string(payload) + "\n"

    if args.output is None:
        sys.stdout.write(text)
    else:
        args.output.write_text(text)
        logger.info("Wrote %s projection to %s", args.format, args.output)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
