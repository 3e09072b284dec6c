"""
Timeline planning: how long each picture stays on screen.

Every picture gets the same display time.  The fade-in on the first picture
and the fade-out on the last one are carved out of the audio length first,
and whatever is left is split evenly across the pictures:

    per_image = (audio_duration - 2 * fade_duration) / image_count
"""

import logging
from dataclasses import dataclass

from edit_errors import InvalidInput

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Timeline:
    image_count: int
    audio_duration: float
    fade_duration: float
    per_image_duration: float

    @property
    def video_duration(self) -> float:
        return self.per_image_duration * self.image_count


def plan(image_count: int, audio_duration: float, fade_duration: float) -> float:
    """Return the shared per-image display duration in seconds.

    Raises InvalidInput when there are no images, the fade is negative, or
    the two fades alone use up the whole audio track.
    """
    if image_count <= 0:
        raise InvalidInput("A music edit needs at least one image")
    if fade_duration < 0:
        raise InvalidInput(f"Fade duration must not be negative (got {fade_duration})")

    display_time = audio_duration - 2.0 * fade_duration
    if display_time <= 0:
        raise InvalidInput(
            f"Fades of {fade_duration}s leave no display time in {audio_duration}s of audio"
        )

    per_image = display_time / image_count
    logger.debug("Planned %d images x %.4fs (audio %.4fs, fade %.4fs)",
                 image_count, per_image, audio_duration, fade_duration)
    return per_image


def plan_timeline(image_count: int, audio_duration: float, fade_duration: float) -> Timeline:
    """Like plan(), but keeps the inputs alongside the result."""
    per_image = plan(image_count, audio_duration, fade_duration)
    return Timeline(
        image_count=image_count,
        audio_duration=audio_duration,
        fade_duration=fade_duration,
        per_image_duration=per_image,
    )
