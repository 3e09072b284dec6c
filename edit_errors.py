"""
Error types raised by the music edit pipeline.

Every failure aborts the whole edit; nothing is retried.  ``music_edit.main``
catches ``MusicEditError``, logs it and exits with status 1.
"""

from typing import Optional


class MusicEditError(Exception):
    """Base class for all music edit failures."""


class InvalidInput(MusicEditError, ValueError):
    """The images, audio length or fade leave nothing sensible to render."""


class ProbeFailure(MusicEditError, RuntimeError):
    """The audio duration could not be determined."""


class RenderFailure(MusicEditError, RuntimeError):
    """ffmpeg could not be launched or exited with an error."""

    def __init__(self, message: str, returncode: Optional[int] = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr
