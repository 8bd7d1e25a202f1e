"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Exceptions raised outside the repository layer: configuration
and page type definition problems.

Repository errors live in storage.repositories.exceptions.

============================================================
EXCEPTION HIERARCHY
============================================================
PageTreeException (base)
└── ConfigurationError
    ├── InvalidConfigError
    └── PageTypeDefinitionError

============================================================
"""

from typing import Any, Dict, Optional


# ============================================================
# BASE EXCEPTION
# ============================================================

class PageTreeException(Exception):
    """
    Base exception for non-repository errors.

    context carries the offending key, value or source file
    for log output.
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)

        self.message = message
        self.context = context or {}
        self.cause = cause

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigurationError(PageTreeException):
    """Error in configuration."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        actual_value: Optional[Any] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if config_key:
            context["config_key"] = config_key
        if actual_value is not None:
            context["actual_value"] = str(actual_value)[:100]

        super().__init__(message, context=context, **kwargs)


class InvalidConfigError(ConfigurationError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, reason: str):
        super().__init__(
            message=f"Invalid configuration for {key}: {reason}",
            config_key=key,
            actual_value=value,
            context={"reason": reason},
        )


class PageTypeDefinitionError(ConfigurationError):
    """A page type definition could not be loaded or is malformed."""

    def __init__(self, message: str, source: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if source:
            context["source"] = source
        super().__init__(message, context=context, **kwargs)


__all__ = [
    "PageTreeException",
    "ConfigurationError",
    "InvalidConfigError",
    "PageTypeDefinitionError",
]
