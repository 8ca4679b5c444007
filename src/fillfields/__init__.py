"""fillfields: complete partially-specified dataclass and NamedTuple constructions.

This package provides:
- A LibCST completion engine (fillfields.cst)
- A concurrent runner that rewrites files in place
- A Typer CLI
"""

__version__ = "0.1.0"
