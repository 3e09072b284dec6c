"""
Thin wrappers around the ffmpeg / ffprobe binaries.

  - find_ffmpeg / find_ffprobe: binary discovery
  - probe_duration: length of the audio track in seconds
  - build_render_command: full ffmpeg argv for the music edit
  - render: run it

Nothing here retries: a failed probe raises ProbeFailure, a failed render
raises RenderFailure carrying the tail of ffmpeg's stderr.
"""

import logging
import math
import re
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import List, Optional, Sequence

import imageio_ffmpeg

from edit_errors import InvalidInput, ProbeFailure, RenderFailure
from filtergraph_builder import FilterGraph, render_filtergraph

logger = logging.getLogger(__name__)

# Graphs longer than this go through -filter_complex_script instead of argv,
# which keeps large picture sets under the Windows 32 kB command-line limit.
FILTER_SCRIPT_THRESHOLD = 24_000

# How much of ffmpeg's stderr to keep when something fails.
STDERR_TAIL = 2000

_DURATION_RE = re.compile(r"Duration:\s*(\d+):(\d+):(\d+(?:\.\d+)?)")


# ---------------------------------------------------------------------------
# Binary detection
# ---------------------------------------------------------------------------
def find_ffmpeg() -> str:
    """
    Locate the ffmpeg binary.  Checks, in order:
      1. System PATH
      2. imageio-ffmpeg bundled binary
    """
    if shutil.which("ffmpeg"):
        return "ffmpeg"
    try:
        return imageio_ffmpeg.get_ffmpeg_exe()
    except RuntimeError as exc:
        raise RenderFailure(
            "ffmpeg not found.  Either install FFmpeg and add it to PATH, "
            "or reinstall the imageio-ffmpeg package."
        ) from exc


def find_ffprobe() -> Optional[str]:
    """Return ffprobe from PATH, or None (imageio-ffmpeg does not bundle it)."""
    return shutil.which("ffprobe")


# ---------------------------------------------------------------------------
# Duration probe
# ---------------------------------------------------------------------------
def _ffprobe_duration(ffprobe_bin: str, path: Path) -> float:
    cmd = [
        ffprobe_bin,
        "-v", "error",
        "-show_entries", "format=duration",
        "-of", "default=noprint_wrappers=1:nokey=1",
        str(path),
    ]
    logger.debug("  ffprobe: %s", " ".join(cmd))
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, errors="replace")
    except OSError as exc:
        raise ProbeFailure(f"Could not run ffprobe: {exc}") from exc
    if result.returncode != 0:
        raise ProbeFailure(f"ffprobe failed on {path}: {result.stderr.strip()[-STDERR_TAIL:]}")
    try:
        return float(result.stdout.strip())
    except ValueError as exc:
        raise ProbeFailure(f"Unexpected ffprobe output for {path}: {result.stdout.strip()!r}") from exc


def _ffmpeg_duration(ffmpeg_bin: str, path: Path) -> float:
    """
    Parse the 'Duration: HH:MM:SS.ss' line ffmpeg prints for an input.
    ffmpeg exits non-zero here because no output is given; only stderr matters.
    """
    cmd = [ffmpeg_bin, "-hide_banner", "-i", str(path)]
    logger.debug("  ffmpeg probe: %s", " ".join(cmd))
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, errors="replace")
    except OSError as exc:
        raise ProbeFailure(f"Could not run ffmpeg: {exc}") from exc
    m = _DURATION_RE.search(result.stderr)
    if not m:
        raise ProbeFailure(f"Could not determine duration of {path}")
    h, mins, s = float(m.group(1)), float(m.group(2)), float(m.group(3))
    return h * 3600 + mins * 60 + s


def probe_duration(path: Path, ffprobe_bin: Optional[str] = None,
                   ffmpeg_bin: Optional[str] = None) -> float:
    """Return the duration of a media file in seconds (always > 0)."""
    ffprobe_bin = ffprobe_bin or find_ffprobe()
    if ffprobe_bin:
        duration = _ffprobe_duration(ffprobe_bin, path)
    else:
        logger.debug("ffprobe not on PATH, reading duration from ffmpeg")
        if not ffmpeg_bin:
            try:
                ffmpeg_bin = find_ffmpeg()
            except RenderFailure as exc:
                raise ProbeFailure(f"Cannot probe {path}: {exc}") from exc
        duration = _ffmpeg_duration(ffmpeg_bin, path)

    if not math.isfinite(duration) or duration <= 0:
        raise ProbeFailure(f"Non-positive duration {duration} reported for {path}")
    return duration


# ---------------------------------------------------------------------------
# Render
# ---------------------------------------------------------------------------
def build_render_command(ffmpeg_bin: str, images: Sequence[Path], audio: Path,
                         graph: FilterGraph, output: Path,
                         script_path: Optional[Path] = None) -> List[str]:
    """
    Pictures become inputs 0..N-1 in order, the audio is input N.  The video
    comes from the graph's final stream; the audio is copied as-is and the
    output stops at whichever of the two ends first.
    """
    if len(images) != graph.image_count:
        raise InvalidInput(
            f"Filter graph expects {graph.image_count} images, got {len(images)}"
        )

    cmd = [ffmpeg_bin, "-hide_banner", "-y"]
    for image in images:
        cmd += ["-i", str(image)]
    cmd += ["-i", str(audio)]

    if script_path is not None:
        cmd += ["-filter_complex_script", str(script_path)]
    else:
        cmd += ["-filter_complex", render_filtergraph(graph)]

    cmd += [
        "-map", f"[{graph.output.render()}]",
        "-map", f"{len(images)}:a",
        "-c:a", "copy",
        "-shortest",
        str(output),
    ]
    return cmd


def _run_ffmpeg(cmd: List[str], desc: str = "ffmpeg"):
    """Run an ffmpeg command, raising RenderFailure on failure."""
    logger.debug("  %s: %s", desc, " ".join(cmd))
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, errors="replace")
    except OSError as exc:
        raise RenderFailure(f"{desc} could not be started: {exc}") from exc
    if result.returncode != 0:
        tail = result.stderr[-STDERR_TAIL:]
        logger.error("  %s FAILED (rc=%d):\n%s", desc, result.returncode, tail)
        raise RenderFailure(f"{desc} failed with exit code {result.returncode}",
                            returncode=result.returncode, stderr=tail)
    return result


def render(images: Sequence[Path], audio: Path, graph: FilterGraph, output: Path,
           ffmpeg_bin: Optional[str] = None) -> Path:
    """Render the music edit to ``output`` and return its path."""
    ffmpeg_bin = ffmpeg_bin or find_ffmpeg()
    filtergraph = render_filtergraph(graph)

    with tempfile.TemporaryDirectory(prefix="music_edit_") as tmp:
        script_path = None
        if len(filtergraph) > FILTER_SCRIPT_THRESHOLD:
            script_path = Path(tmp) / "filtergraph.txt"
            script_path.write_text(filtergraph, encoding="utf-8")
            logger.debug("Filter graph is %d chars, using %s", len(filtergraph), script_path)

        cmd = build_render_command(ffmpeg_bin, images, audio, graph, output,
                                   script_path=script_path)
        _run_ffmpeg(cmd, desc=f"render ({len(images)} images)")

    return output
