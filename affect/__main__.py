"""
Interview affect pipeline command-line entry point.

Runs captured interview stills through the affect pipeline and prints the
per-round and overall statistics.

Usage:
    1. Single capture: ``affect --file shot.jpg --round technical --question q1``
    2. Whole session: ``affect --manifest session.json --output report.json``
       where the manifest is a JSON list of objects with ``round``,
       ``question``, ``ordinal`` and ``file`` keys. Relative file paths are
       resolved against the manifest's folder.

Without ``AFFECT_API_KEY`` every capture is synthesized locally.
"""

import argparse
import asyncio
import json
import logging
import sys
import time
from pathlib import Path

from dotenv import load_dotenv
from halo import Halo

from affect.config import AppConfig, ConfigurationError, reload_settings
from affect.domain import CaptureKey, ImageArtifact
from affect.report.aggregator import SessionAggregate
from affect.report.output import print_report, save_report_to_json
from affect.runtime.client import InferenceJobClient
from affect.runtime.phase_timing import format_duration
from affect.runtime.pipeline import AffectPipeline
from affect.utils import configure_logging, get_logger

logger: logging.Logger = get_logger("affect")

type CapturePlan = list[tuple[CaptureKey, Path]]


def load_manifest(manifest_path: str | Path) -> CapturePlan:
    """Reads a session manifest into capture keys and image paths.

    Raises:
        ValueError: When the manifest is not a list of complete capture entries.
    """
    path = Path(manifest_path)
    with open(path, encoding="utf-8") as file:
        entries = json.load(file)
    if not isinstance(entries, list):
        raise ValueError(f"Manifest {path} must contain a JSON list.")

    plan: CapturePlan = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ValueError(f"Manifest entry {index} is not an object.")
        missing = [name for name in ("round", "question", "file") if not entry.get(name)]
        if missing:
            raise ValueError(f"Manifest entry {index} is missing {', '.join(missing)}.")
        image_path = Path(entry["file"])
        if not image_path.is_absolute():
            image_path = path.parent / image_path
        key = CaptureKey(
            round_id=str(entry["round"]),
            question_id=str(entry["question"]),
            ordinal=int(entry.get("ordinal", index)),
        )
        plan.append((key, image_path))
    return plan


async def run_session(
    plan: CapturePlan,
    settings: AppConfig,
    *,
    deadline_seconds: float | None = None,
) -> SessionAggregate:
    """Runs every planned capture through one pipeline and returns the aggregate."""
    client = InferenceJobClient(settings.inference) if settings.inference.enabled else None
    if client is None:
        logger.warning("AFFECT_API_KEY is not set; all captures will be synthesized.")
    try:
        async with AffectPipeline(client=client, deadline_seconds=deadline_seconds) as pipeline:
            for key, image_path in plan:
                pipeline.trigger(key, ImageArtifact.from_path(image_path))
            await pipeline.drain()
            return pipeline.report()
    finally:
        if client is not None:
            await client.aclose()


def main() -> None:
    """
    Main function to handle the command line interface logic.
    """
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="Interview affect acquisition and reporting"
    )
    parser.add_argument("--file", type=str, help="Path to a single captured image")
    parser.add_argument("--round", type=str, default="interview", help="Round id of the capture")
    parser.add_argument("--question", type=str, help="Question id of the capture")
    parser.add_argument("--ordinal", type=int, default=0, help="Position of the question in its round")
    parser.add_argument("--manifest", type=str, help="JSON list of captures for a whole session")
    parser.add_argument(
        "--output",
        type=str,
        help="Write the session report to this JSON file (bare names go to AFFECT_REPORTS_DIR)",
    )
    parser.add_argument(
        "--deadline",
        type=float,
        help="Polling deadline in seconds per capture (defaults to AFFECT_DEADLINE_SECONDS)",
    )
    parser.add_argument("--log-level", type=str, help="Logging level (defaults to LOG_LEVEL)")
    args: argparse.Namespace = parser.parse_args()

    load_dotenv()
    configure_logging(args.log_level)

    try:
        settings = reload_settings()
    except ConfigurationError as err:
        logger.error(msg=f"Invalid configuration: {err}")
        sys.exit(1)

    if args.manifest:
        try:
            plan = load_manifest(args.manifest)
        except (OSError, ValueError) as err:
            logger.error(msg=f"Unable to read manifest {args.manifest}: {err}")
            sys.exit(1)
    elif args.file:
        if not args.question:
            logger.error(msg="--question is required together with --file.")
            sys.exit(1)
        plan = [(CaptureKey(args.round, args.question, args.ordinal), Path(args.file))]
    else:
        logger.error(msg="No capture provided. Use --file or --manifest.")
        sys.exit(1)

    missing = [str(path) for _, path in plan if not path.is_file()]
    if missing:
        logger.error(msg=f"Image files not found: {', '.join(missing)}")
        sys.exit(1)

    logger.info(msg=f"Analyzing {len(plan)} captures...")
    start_time: float = time.perf_counter()
    with Halo(text="Waiting for affect inference", spinner="dots", text_color="green"):
        aggregate = asyncio.run(
            run_session(plan, settings, deadline_seconds=args.deadline)
        )
    print_report(aggregate)

    if args.output:
        output = Path(args.output)
        if output.parent == Path("."):
            output = settings.reports_folder / output
        saved = save_report_to_json(aggregate, output)
        logger.info(msg=f"Report saved to {saved}")

    logger.info(
        msg=f"Session analysis completed in {format_duration(time.perf_counter() - start_time)}"
    )


if __name__ == "__main__":
    main()
