"""Exception hierarchy for opdoc.

All opdoc exceptions inherit from OpDocError so callers (and the CLI) can
catch every transformation failure in one place.
"""

from __future__ import annotations

# ============================================================================
# Base Exception
# ============================================================================


class OpDocError(Exception):
    """Base exception for all opdoc errors.

    Catch this to handle any failure raised while parsing or rewriting a
    documented declaration.
    """

    pass


# ============================================================================
# Configuration Errors
# ============================================================================


class ConfigurationError(OpDocError):
    """Raised when configuration is invalid.

    Examples
    --------
    Example usage::

        raise ConfigurationError("suffix", "must be a valid identifier fragment")
    """

    def __init__(self, component: str, reason: str) -> None:
        """Initialize configuration error.

        Args
        ----
            component: Name of the setting or section that is invalid
            reason: Explanation of what's wrong
        """
        super().__init__(f"Configuration error in '{component}': {reason}")
        self.component = component
        self.reason = reason


# ============================================================================
# Transformation Errors
# ============================================================================


class ParseError(OpDocError):
    """Raised when a declaration cannot be interpreted as a function.

    Covers non-function targets, unreadable signatures, invalid Python
    source and marker decorators used with arguments.

    Examples
    --------
    Example usage::

        raise ParseError("MyClass", "@opdoc can only decorate functions")
    """

    def __init__(self, subject: str, reason: str) -> None:
        """Initialize parse error.

        Args
        ----
            subject: Name of the declaration or file that failed to parse
            reason: Explanation of what could not be interpreted
        """
        super().__init__(f"Cannot parse '{subject}': {reason}")
        self.subject = subject
        self.reason = reason


class TransformError(OpDocError):
    """Raised when the companion parameter cannot be inserted.

    Examples
    --------
    Example usage::

        raise TransformError("get_item", "parameter '_' already exists")
    """

    def __init__(self, target: str, reason: str) -> None:
        """Initialize transform error.

        Args
        ----
            target: Name of the function being rewritten
            reason: Why the rewrite is impossible
        """
        super().__init__(f"Cannot rewrite '{target}': {reason}")
        self.target = target
        self.reason = reason


__all__ = [
    "ConfigurationError",
    "OpDocError",
    "ParseError",
    "TransformError",
]
