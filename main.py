# main.py
"""
Command-line entry point for the visual overlay pipeline.

Workflow:
1.  Parses command-line arguments for the input (file, URL or preset) and run options.
2.  Sets up a dedicated output directory and logging for the run.
3.  Loads the input into a session and runs one processing round:
    transcription -> sentence segmentation -> keyword suggestion -> image lookup.
4.  Applies any manual image overrides.
5.  Prints the segment table and, for each --preview-at time, the image that
    would be on screen at that moment.
6.  Saves a JSON run summary.
"""

import os
import sys
import time
import asyncio
import argparse
import logging
from typing import List, Optional

import broll
from broll import setup_logging, log_run_summary, timestamp_to_seconds, format_time


def parse_override(value: str):
    """Parses 'INDEX=URL' (1-based index, empty URL clears the override)."""
    index, sep, url = value.partition('=')
    if not sep:
        raise argparse.ArgumentTypeError(f"Override '{value}' must look like INDEX=URL.")
    try:
        return int(index) - 1, url
    except ValueError:
        raise argparse.ArgumentTypeError(f"Override index '{index}' is not a number.")


def print_segments(session: broll.VisualSession) -> None:
    images = session.images
    for i, segment in enumerate(session.segments):
        record = images.get(i)
        image = record.display_url if record else '-'
        query = segment.visual_query or '-'
        print(f"[{i + 1:>3}] {format_time(segment.start_time)}-{format_time(segment.end_time)} "
              f"{segment.fetch_status.value:<15} {query:<25} {image}")
        print(f"      {segment.text}")


async def run_session(args: argparse.Namespace, run_dir: str) -> int:
    logger = logging.getLogger('broll.main')
    session = broll.build_session()

    # --- STAGE 1: SELECT INPUT ---
    try:
        if args.file:
            source = broll.read_local_media(args.file, args.audio)
        elif args.url:
            source = broll.UrlInput(args.url)
        else:
            source = broll.PresetInput(args.preset)
        await session.select_input(source)
    except FileNotFoundError as e:
        logger.critical(f"Input file not found: {e}")
        return 1
    except ValueError as e:
        logger.critical(str(e))
        return 1

    # --- STAGE 2: PROCESS ---
    try:
        finished = await session.process()
    except broll.ConfigurationError as e:
        logger.critical(f"Cannot start: {e}")
        return 2

    # --- STAGE 3: OVERRIDES AND PREVIEW ---
    for index, url in args.override or []:
        try:
            session.override_image(index, url)
        except IndexError as e:
            logger.warning(f"Skipping override: {e}")

    print_segments(session)
    for t in args.preview_at or []:
        print(f"@ {format_time(t)} -> {session.image_at(t) or '(no image)'}")

    log_run_summary(run_dir, {
        "status": session.status.render(),
        "job": {"id": session.job.id, "status": session.job_status.value, "error": session.job.error},
        "segments": [s.to_dict() for s in session.segments],
        "images": {str(i): (r.to_dict() if r else None) for i, r in session.images.items()},
    }, filename=broll.CONFIG["RUN_SUMMARY_FILENAME"])

    print(session.status.render())
    session.teardown()
    return 0 if finished else 1


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Transcribe a video and overlay AI-picked stock images on each sentence.",
        formatter_class=argparse.RawTextHelpFormatter
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--file", type=str, help="Path to a local video file.")
    source.add_argument("--url", type=str, help="URL of a remote video or audio file.")
    source.add_argument("--preset", type=int, choices=[p["id"] for p in broll.PRESET_VIDEOS],
                        help="Id of a preset video.")
    parser.add_argument("--audio", type=str,
                        help="Optional separate audio file to transcribe instead of the video's track (with --file).")
    parser.add_argument(
        "--run-name",
        type=str,
        default=f"run_{int(time.time())}",
        help="A unique name for this run. Defaults to a timestamp."
    )
    parser.add_argument(
        "--preview-at",
        type=timestamp_to_seconds,
        nargs="*",
        help="Times (HH:MM:SS.ss, MM:SS or seconds) at which to report the overlaid image."
    )
    parser.add_argument(
        "--override",
        type=parse_override,
        nargs="*",
        help="Manual image overrides as INDEX=URL (1-based). An empty URL restores the fetched image."
    )
    args = parser.parse_args(argv)
    if args.audio and not args.file:
        parser.error("--audio can only be used with --file")

    run_dir = os.path.join(broll.CONFIG["BASE_OUTPUT_DIR"], args.run_name)
    setup_logging(run_dir)

    start_time = time.time()
    exit_code = asyncio.run(run_session(args, run_dir))
    logging.getLogger('broll').info(f"Total execution time: {time.time() - start_time:.2f} seconds.")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
