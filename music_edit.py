#!/usr/bin/env python3
"""
Music Edit: turn a folder of pictures and one song into a slideshow video.

Every picture is shown for the same amount of time, chosen so the pictures
exactly fill the song.  The first picture fades in from black and the last
one fades out.  The audio is copied into the output untouched.

Usage:
    python music_edit.py -a song.mp3 -i pictures/                 # standard run
    python music_edit.py -a song.mp3 -i pictures/ -f 3 -o edit.mp4
    python music_edit.py -a song.mp3 -i pictures/ --dry-run       # preview only
"""

import argparse
import logging
import sys
import tempfile
import time
from pathlib import Path
from typing import List, Optional

from edit_errors import InvalidInput, MusicEditError
from ffmpeg_tools import probe_duration, render, FILTER_SCRIPT_THRESHOLD
from filtergraph_builder import FilterGraph, StageRole, build, render_filtergraph
from image_collector import discover_images, prepare_images
from timeline_planner import Timeline, plan_timeline

__version__ = "0.1.0"

logger = logging.getLogger("music_edit")

DEFAULT_FADE = 2.0
DEFAULT_OUTPUT = "output.mp4"


# ---------------------------------------------------------------------------
# Dry Run
# ---------------------------------------------------------------------------
def dry_run(images: List[Path], audio: Path, output: Path,
            timeline: Timeline, graph: FilterGraph):
    """Print a full summary without rendering."""
    fade_stages = graph.stages_for(StageRole.FADE)
    filtergraph = render_filtergraph(graph)

    print("\n" + "=" * 60)
    print("  DRY RUN: Music Edit Preview")
    print("=" * 60)

    print(f"\n  Audio            : {audio}")
    print(f"  Audio duration   : {timeline.audio_duration:.2f}s "
          f"({timeline.audio_duration / 60:.1f} minutes)")
    print(f"  Fade in/out      : {timeline.fade_duration}s")
    print(f"  Per image        : {timeline.per_image_duration:.4f}s")
    print(f"  Resolution       : {graph.frame.width}x{graph.frame.height}")
    print(f"  Output file      : {output}")

    print(f"\n  IMAGES ({len(images)} total):")
    for i, (image, stage) in enumerate(zip(images, fade_stages), 1):
        fades = " ".join(f"fade-{op.direction.value}@{op.start:.2f}s" for op in stage.fades)
        print(f"    {i:4d}. {image.name:<40s}  {timeline.per_image_duration:6.2f}s  {fades}")

    print(f"\n  Video duration   : {timeline.video_duration:.2f}s")
    print(f"  Filter graph     : {len(graph.stages)} stages, {len(filtergraph)} chars"
          + (" (script file)" if len(filtergraph) > FILTER_SCRIPT_THRESHOLD else ""))

    print("\n" + "=" * 60)
    print("  Dry run complete, no video rendered.")
    print("=" * 60 + "\n")


# ---------------------------------------------------------------------------
# Full pipeline
# ---------------------------------------------------------------------------
def run_edit(images_dir: Path, audio: Path, output: Path,
             fade: float = DEFAULT_FADE, preview: bool = False) -> Optional[Path]:
    """Collect → probe → plan → build → render.  Returns the output path, or
    None for a dry run."""
    t0 = time.time()

    images = discover_images(images_dir)
    if not images:
        raise InvalidInput(f"No images found in {images_dir}")
    if fade < 0:
        raise InvalidInput(f"Fade duration must not be negative (got {fade})")

    logger.info("=" * 60)
    logger.info("PROBING AUDIO")
    logger.info("=" * 60)
    audio_duration = probe_duration(audio)
    logger.info("Audio: %s (%.1fs)", audio.name, audio_duration)

    logger.info("=" * 60)
    logger.info("PLANNING TIMELINE")
    logger.info("=" * 60)
    timeline = plan_timeline(len(images), audio_duration, fade)
    graph = build(timeline.image_count, timeline.per_image_duration, timeline.fade_duration)
    logger.info("%d images x %.2fs, fade %.1fs",
                timeline.image_count, timeline.per_image_duration, timeline.fade_duration)

    if preview:
        dry_run(images, audio, output, timeline, graph)
        return None

    logger.info("=" * 60)
    logger.info("RENDERING")
    logger.info("=" * 60)
    output.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.TemporaryDirectory(prefix="music_edit_images_") as tmp:
        inputs = prepare_images(images, Path(tmp))
        render(inputs, audio, graph, output)

    elapsed = time.time() - t0
    logger.info("=" * 60)
    logger.info("COMPLETE")
    logger.info("=" * 60)
    logger.info("Output file : %s", output)
    logger.info("Duration    : %.1fs (%.1f minutes)",
                timeline.video_duration, timeline.video_duration / 60)
    logger.info("Images used : %d", timeline.image_count)
    logger.info("Render time : %.1fs", elapsed)
    return output


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------
def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Make a music edit from a directory of pictures and an audio track."
    )
    parser.add_argument(
        "-a", "--audio", type=Path, required=True,
        help="Path to the audio file"
    )
    parser.add_argument(
        "-i", "--images", type=Path, required=True,
        help="Directory containing images"
    )
    parser.add_argument(
        "-f", "--fade", type=float, default=DEFAULT_FADE,
        help=f"Fade duration in seconds (default: {DEFAULT_FADE})"
    )
    parser.add_argument(
        "-o", "--output", type=Path, default=Path(DEFAULT_OUTPUT),
        help=f"Output filename (default: {DEFAULT_OUTPUT})"
    )
    parser.add_argument(
        "--dry-run", action="store_true",
        help="Preview the timing and filter graph without rendering video"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Log ffmpeg command lines and other debug detail"
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s  %(levelname)-5s  %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stdout,
    )

    try:
        run_edit(args.images, args.audio, args.output, fade=args.fade, preview=args.dry_run)
    except MusicEditError as exc:
        logger.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
