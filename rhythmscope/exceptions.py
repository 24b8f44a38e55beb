"""Custom exceptions for rhythmscope."""


class ConfigurationError(ValueError):
    """Raised when an analyzer or detector is constructed with unusable settings."""

    pass


class AudioLoadError(Exception):
    """Raised when an audio file cannot be loaded or decoded."""

    pass


class AudioTooShortError(Exception):
    """Raised when an audio file is shorter than a single analysis window."""

    pass
