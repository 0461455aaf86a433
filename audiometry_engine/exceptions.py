"""Exception types raised by the audiometry engine."""


class AudiometryError(Exception):
    """Base class for engine errors."""


class EmitterFailure(AudiometryError):
    """The tone emitter could not play or stop a presentation.

    This is a hardware/playback problem, never a "not heard" response, so the
    orchestrator pauses instead of advancing the search.
    """

    def __init__(self, message, ear=None, frequency=None, level=None):
        super().__init__(message)
        self.ear = ear
        self.frequency = frequency
        self.level = level


class SessionClosedError(AudiometryError):
    """A finalized session was mutated."""


class IncompleteSessionError(AudiometryError):
    """An operation needs a completed session."""


class ConfigurationError(AudiometryError):
    """Invalid engine configuration."""
