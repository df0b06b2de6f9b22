"""
Failure taxonomy for the classroom session.

Only PlanGenerationFailure and SourceFileReadFailure end a start_lesson
attempt; every other failure leaves the lesson running.
"""

QUOTA_EXCEEDED_MESSAGE = (
    "The daily audio limit has been reached. "
    "The lesson continues in text-only mode."
)
PLAYBACK_FAILED_MESSAGE = "Could not play audio."


class ClassroomError(Exception):
    """Base class for classroom failures."""


class PlanGenerationFailure(ClassroomError):
    """The lesson plan could not be generated or was malformed."""


class SourceFileReadFailure(ClassroomError):
    """Uploaded lesson material could not be read as text."""


class NarrationFailure(ClassroomError):
    """Speech for an utterance could not be produced."""
    user_message = PLAYBACK_FAILED_MESSAGE


class AudioQuotaExceeded(NarrationFailure):
    """The speech provider refused the request because of a rate or quota limit."""
    user_message = QUOTA_EXCEEDED_MESSAGE


class AudioPlaybackFailure(NarrationFailure):
    """Any other speech failure."""


class ImageGenerationFailure(ClassroomError):
    """No image was produced for a prompt."""


class VideoGenerationFailure(ClassroomError):
    """The summary video job failed or returned no video."""


class TeacherGenerationFailure(ClassroomError):
    """A custom teacher persona could not be generated."""
