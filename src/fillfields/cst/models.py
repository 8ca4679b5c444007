"""Pydantic result models returned by the completion engine.

- FormatError: a site that was found but could not be completed
- FormatResult: outcome for one file
"""

from pydantic import BaseModel, Field


class FormatError(BaseModel):
    """A single non-fatal finding at one call site.

    Attributes:
        message: Human-readable description of the problem
        position_text: ``path:line:column`` of the call
    """

    message: str
    position_text: str

    def __str__(self) -> str:
        return f"{self.position_text}:\n{self.message}"


class FormatResult(BaseModel):
    """Outcome of completing one file.

    Attributes:
        path: Absolute path of the file
        output: New file contents; only set when changed is True
        changed: True if at least one call was completed
        errors: Site-level findings, in traversal order
    """

    path: str
    output: bytes | None = None
    changed: bool = False
    errors: list[FormatError] = Field(default_factory=list)
