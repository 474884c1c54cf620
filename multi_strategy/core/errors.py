"""Exceptions raised at start-up; runtime failures are logged, not raised."""


class ConfigurationError(ValueError):
    """Invalid or missing configuration; the strategy must not start."""
