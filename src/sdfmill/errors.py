"""
Exception types raised by sdfmill.

Both subclass ValueError so callers can catch either the specific type or
the builtin one.

Classes:
    ValidationError: Malformed node parameters, raised at construction time
    ConfigurationError: Settings that admit no valid mesh/toolpath/program,
        raised before any sampling begins
"""


class ValidationError(ValueError):
    """Raised when a node or profile is built with invalid parameters."""


class ConfigurationError(ValueError):
    """Raised when mesh, toolpath or G-code settings cannot be satisfied."""
