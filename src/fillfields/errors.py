"""Error types raised by the completion engine and its collaborators.

Fatal errors derive from FillFieldsError. Site-level problems are not
exceptions; they are collected as FormatError entries on the FormatResult.
"""

from __future__ import annotations

__all__ = [
    "DefaultSpecError",
    "FillFieldsError",
    "SerializationError",
    "TreeAdaptationError",
    "TypeResolutionError",
]


class FillFieldsError(RuntimeError):
    """Base class for all fatal fillfields errors."""


class TypeResolutionError(FillFieldsError):
    """Raised when a --type specifier does not name exactly one record class.

    Reported before any file is transformed.
    """


class DefaultSpecError(FillFieldsError):
    """Raised for a malformed ``TypeSpec=Replacement`` specifier."""


class TreeAdaptationError(FillFieldsError):
    """Raised when a file cannot be parsed or name-resolved.

    Fatal for that file only.
    """

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class SerializationError(FillFieldsError):
    """Raised when a rewritten module cannot be printed or formatted.

    The file is reported as failed and left unmodified on disk.
    """

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason
