"""Exceptions raised by bundle adjustment."""


class MissingInputError(ValueError):
    """A required camera, landmark or track collection was not provided."""


class ConfigurationError(ValueError):
    """Bundle adjustment settings are invalid."""


class LossOwnershipError(RuntimeError):
    """A robust loss was released twice, or released by the wrong owner."""
