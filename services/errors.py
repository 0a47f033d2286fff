"""Exception types raised by the diagnosis, chat, and persistence services."""

from __future__ import annotations

from typing import Optional


class PlantDoctorError(Exception):
    """Base class for all service-level failures."""


class ImageReadError(PlantDoctorError, OSError):
    """The selected image could not be read."""


class AnalysisError(PlantDoctorError):
    """Image analysis did not produce a diagnosis."""


class EmptyResponseError(AnalysisError):
    """The AI service answered without any text."""

    def __init__(self, message: str = "No text content found in the AI response.") -> None:
        super().__init__(message)


class AnalysisServiceError(AnalysisError):
    """Transport or service failure while analyzing an image."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class SessionError(PlantDoctorError):
    """A conversation session was used outside its valid states."""


class PrimingFailedError(SessionError):
    """The AI service rejected construction of a primed session."""


class StreamError(PlantDoctorError):
    """A streamed chat response failed before completing."""


class PersistError(PlantDoctorError):
    """A diagnosis record could not be saved to the detections backend."""


class PersistRejectedError(PersistError):
    """The detections backend answered with a non-success status."""

    def __init__(self, status: int, message: Optional[str]) -> None:
        super().__init__(f"Backend rejected detection ({status}): {message}")
        self.status = status
        self.message = message


class PersistUnreachableError(PersistError):
    """The detections backend could not be reached."""
