"""Exceptions raised by the simulation engine."""


class ConfigurationError(ValueError):
    """Invalid simulation setup, detected before any random sampling."""
