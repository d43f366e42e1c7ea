"""
Exceptions raised by the speechfixer backend.
"""


class SpeechFixerError(Exception):
    """Base exception for speechfixer."""
    pass


class SpliceFailed(SpeechFixerError):
    """A splice could not be completed. No partial output was produced."""
    pass


class ProbeFailed(SpliceFailed):
    """Audio duration could not be determined."""
    pass


class ExtractFailed(SpliceFailed):
    """A sub-range could not be extracted or re-encoded."""
    pass


class ConcatFailed(SpliceFailed):
    """Joining the normalized segments failed."""
    pass


class InvalidRange(SpeechFixerError, ValueError):
    """Time window or token index range is out of bounds."""
    pass


class DegenerateSelection(SpeechFixerError, ValueError):
    """Selected span has no text to base a duration estimate on."""
    pass


class ServiceError(SpeechFixerError):
    """Error talking to the voice AI service."""
    pass


class TranscriptionFailed(ServiceError):
    """Speech-to-text request failed."""
    pass


class SynthesisFailed(ServiceError):
    """Text-to-speech request failed."""
    pass


class VoiceCloneFailed(ServiceError):
    """Voice clone creation or deletion failed."""
    pass
