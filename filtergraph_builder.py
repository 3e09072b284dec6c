"""
Filter graph construction for the music edit.

The graph is built in three passes over the pictures, in index order:

  1. normalize: loop the still forever, fit it inside the target frame,
     pad to centre, force square pixels and yuv420p, trim to the display time
  2. fade: fade-in on the first picture, fade-out on the last one
  3. concat: join every faded stream into the single ``[outv]`` stream

Stages are plain records that point at streams through ``StreamLabel``
(kind + index).  Label text such as ``v3out`` only appears in
``render_filtergraph``, which turns the stages into the ``-filter_complex``
program ffmpeg expects.  Audio is not touched here; it is mapped straight
from its input and copied when muxing.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Tuple

from edit_errors import InvalidInput

logger = logging.getLogger(__name__)

# Times are written with 4 decimals; anything shorter would print as 0, which
# trim reads as "no limit" on an endlessly looped still.
MIN_DISPLAY_TIME = 0.0001


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------
class StageRole(Enum):
    NORMALIZE = "normalize"
    FADE = "fade"
    CONCAT = "concat"


class StreamKind(Enum):
    SOURCE = "source"          # [i:v]     i-th ffmpeg input
    NORMALIZED = "normalized"  # [v{i}]
    FADED = "faded"            # [v{i}out]
    FINAL = "final"            # [outv]


class FadeDirection(Enum):
    IN = "in"
    OUT = "out"


@dataclass(frozen=True)
class StreamLabel:
    kind: StreamKind
    index: int = 0

    def render(self) -> str:
        if self.kind is StreamKind.SOURCE:
            return f"{self.index}:v"
        if self.kind is StreamKind.NORMALIZED:
            return f"v{self.index}"
        if self.kind is StreamKind.FADED:
            return f"v{self.index}out"
        return "outv"


@dataclass(frozen=True)
class FadeOp:
    direction: FadeDirection
    start: float
    duration: float


@dataclass(frozen=True)
class FrameSettings:
    width: int = 1920
    height: int = 1080
    pix_fmt: str = "yuv420p"


@dataclass(frozen=True)
class Stage:
    role: StageRole
    inputs: Tuple[StreamLabel, ...]
    output: StreamLabel
    trim_duration: float = 0.0            # NORMALIZE only
    fades: Tuple[FadeOp, ...] = ()        # FADE only; empty → identity


@dataclass(frozen=True)
class FilterGraph:
    stages: Tuple[Stage, ...]
    output: StreamLabel
    image_count: int
    frame: FrameSettings

    def stages_for(self, role: StageRole) -> List[Stage]:
        return [s for s in self.stages if s.role is role]


# ---------------------------------------------------------------------------
# Boundary fade policy
# ---------------------------------------------------------------------------
def _no_fade(per_image: float, fade: float) -> Tuple[FadeOp, ...]:
    return ()


def _fade_in(per_image: float, fade: float) -> Tuple[FadeOp, ...]:
    return (FadeOp(FadeDirection.IN, 0.0, fade),)


def _fade_out(per_image: float, fade: float) -> Tuple[FadeOp, ...]:
    return (FadeOp(FadeDirection.OUT, per_image - fade, fade),)


def _fade_in_and_out(per_image: float, fade: float) -> Tuple[FadeOp, ...]:
    return _fade_in(per_image, fade) + _fade_out(per_image, fade)


# Keyed by (is_first, is_last).  A lone picture is both, so it gets both fades.
BOUNDARY_POLICY: Dict[Tuple[bool, bool], Callable[[float, float], Tuple[FadeOp, ...]]] = {
    (False, False): _no_fade,
    (True, False):  _fade_in,
    (False, True):  _fade_out,
    (True, True):   _fade_in_and_out,
}


def clamp_fade(image_count: int, per_image_duration: float, fade_duration: float) -> float:
    """
    Limit the fade to the display time of the picture it lands on.  With a
    single picture the fade-in and fade-out share that display time, so each
    gets at most half of it.
    """
    limit = per_image_duration / 2.0 if image_count == 1 else per_image_duration
    return min(fade_duration, limit)


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------
def build(image_count: int, per_image_duration: float, fade_duration: float,
          frame: FrameSettings = FrameSettings()) -> FilterGraph:
    """Build the normalize / fade / concat stages for ``image_count`` pictures."""
    if image_count <= 0:
        raise InvalidInput("Cannot build a filter graph without images")
    if per_image_duration < MIN_DISPLAY_TIME:
        raise InvalidInput(
            f"Per-image duration must be at least {MIN_DISPLAY_TIME}s (got {per_image_duration})"
        )
    if fade_duration < 0:
        raise InvalidInput(f"Fade duration must not be negative (got {fade_duration})")

    fade = clamp_fade(image_count, per_image_duration, fade_duration)
    if fade < fade_duration:
        logger.warning("Fade of %.4fs does not fit %.4fs per image, clamped to %.4fs",
                       fade_duration, per_image_duration, fade)

    stages: List[Stage] = []

    # Pass 1: normalize every still into a fixed-size, fixed-length stream
    for i in range(image_count):
        stages.append(Stage(
            role=StageRole.NORMALIZE,
            inputs=(StreamLabel(StreamKind.SOURCE, i),),
            output=StreamLabel(StreamKind.NORMALIZED, i),
            trim_duration=per_image_duration,
        ))

    # Pass 2: boundary fades
    last = image_count - 1
    for i in range(image_count):
        key = (i == 0, i == last)
        fades = BOUNDARY_POLICY[key](per_image_duration, fade) if fade > 0 else ()
        stages.append(Stage(
            role=StageRole.FADE,
            inputs=(StreamLabel(StreamKind.NORMALIZED, i),),
            output=StreamLabel(StreamKind.FADED, i),
            fades=fades,
        ))

    # Pass 3: concatenate the faded streams in order
    final = StreamLabel(StreamKind.FINAL)
    stages.append(Stage(
        role=StageRole.CONCAT,
        inputs=tuple(StreamLabel(StreamKind.FADED, i) for i in range(image_count)),
        output=final,
    ))

    logger.debug("Built filter graph: %d images, %d stages", image_count, len(stages))
    return FilterGraph(stages=tuple(stages), output=final,
                       image_count=image_count, frame=frame)


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------
def _num(value: float) -> str:
    return f"{value:.4f}"


def _normalize_filter(stage: Stage, frame: FrameSettings) -> str:
    w, h = frame.width, frame.height
    return (
        f"loop=loop=-1:size=1,"
        f"scale=w={w}:h={h}:force_original_aspect_ratio=decrease,"
        f"pad={w}:{h}:(ow-iw)/2:(oh-ih)/2,"
        f"setsar=1,"
        f"format={frame.pix_fmt},"
        f"trim=duration={_num(stage.trim_duration)}"
    )


def _fade_filter(stage: Stage) -> str:
    if not stage.fades:
        return "null"
    return ",".join(
        f"fade=t={op.direction.value}:st={_num(op.start)}:d={_num(op.duration)}"
        for op in stage.fades
    )


def _concat_filter(stage: Stage) -> str:
    return f"concat=n={len(stage.inputs)}:v=1:a=0"


def render_stage(stage: Stage, frame: FrameSettings) -> str:
    if stage.role is StageRole.NORMALIZE:
        body = _normalize_filter(stage, frame)
    elif stage.role is StageRole.FADE:
        body = _fade_filter(stage)
    else:
        body = _concat_filter(stage)
    inputs = "".join(f"[{label.render()}]" for label in stage.inputs)
    return f"{inputs}{body}[{stage.output.render()}]"


def render_filtergraph(graph: FilterGraph) -> str:
    """Serialize the graph into a ``-filter_complex`` program."""
    return ";".join(render_stage(stage, graph.frame) for stage in graph.stages)
