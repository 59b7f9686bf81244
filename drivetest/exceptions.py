"""Errors raised by the coverage engine."""


class CoverageEngineError(Exception):
    """Base class for coverage engine failures."""


class InvalidConfigurationError(CoverageEngineError, ValueError):
    """Raised when caller-supplied parameters cannot produce a valid computation."""


__all__ = ["CoverageEngineError", "InvalidConfigurationError"]
