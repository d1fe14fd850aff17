"""Exception types raised by the extraction pipeline and run setup."""

__all__ = [
    'AutomationError',
    'ConfigError',
    'ExtractionError',
    'NavigationError',
]


class ExtractionError(Exception):
    """Base class for faults raised while resolving a work unit."""
    pass


class AutomationError(ExtractionError):
    """Raised when the browser automation layer fails (click, read, context)."""
    pass


class NavigationError(AutomationError):
    """Raised when a page fails to load or render within its timeout."""
    pass


class ConfigError(ValueError):
    """Raised for invalid run configuration (bad env values, shard bounds)."""
    pass
