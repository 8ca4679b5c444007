"""Type identities and field descriptors for record classes.

These are plain frozen dataclasses with no behavior beyond parsing and
naming. The index builds them, everything downstream only reads them.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

BASIC_KINDS = ("bool", "str", "bytes", "int", "float", "complex")


@dataclass(frozen=True)
class TypeIdentity:
    """Canonical identity of a class: defining module plus class name.

    Compared by value, never by object identity. ``name`` is dotted for
    nested classes (``Outer.Inner``).
    """

    module: str
    name: str

    @classmethod
    def parse(cls, spec: str) -> TypeIdentity:
        """Split ``pkg.models.Person`` into module and name at the last dot.

        Raises:
            ValueError: If the specifier has no module part
        """
        module, dot, name = spec.strip().rpartition(".")
        if not dot or not module or not name:
            raise ValueError(f"Expected 'module.TypeName', got {spec!r}")
        return cls(module=module, name=name)

    @property
    def qualified_name(self) -> str:
        return f"{self.module}.{self.name}"

    @property
    def short_module(self) -> str:
        """Last component of the defining module (``geo`` for ``pkg.geo``)."""
        return self.module.rpartition(".")[2]

    def __str__(self) -> str:
        return self.qualified_name


class TypeKind(Enum):
    """Shape of a declared field type."""

    BASIC = "basic"
    OPTIONAL = "optional"
    SEQUENCE = "sequence"
    MAPPING = "mapping"
    CHANNEL = "channel"
    CALLABLE = "callable"
    ANY = "any"
    FIXED_TUPLE = "fixed_tuple"
    NAMED = "named"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class TypeRef:
    """Resolved shape of an annotation.

    Attributes:
        kind: Shape of the type
        basic: Basic kind name when kind is BASIC
        identity: Referenced class when kind is NAMED
        elements: Element types when kind is FIXED_TUPLE
    """

    kind: TypeKind
    basic: str | None = None
    identity: TypeIdentity | None = None
    elements: tuple[TypeRef, ...] = ()

    @classmethod
    def of_basic(cls, basic: str) -> TypeRef:
        return cls(kind=TypeKind.BASIC, basic=basic)

    @classmethod
    def of_named(cls, identity: TypeIdentity) -> TypeRef:
        return cls(kind=TypeKind.NAMED, identity=identity)


UNKNOWN = TypeRef(kind=TypeKind.UNKNOWN)


@dataclass(frozen=True)
class FieldDescriptor:
    """One constructor field of a record, in canonical order."""

    index: int
    name: str
    declared_type: TypeRef
    exported: bool
    has_default: bool = False


class DeclarationKind(Enum):
    RECORD = "record"
    ALIAS = "alias"  # NewType or int/str enum: named type over a basic kind
    OTHER = "other"


@dataclass(frozen=True)
class Declaration:
    """A class (or NewType) declared somewhere in the project.

    Attributes:
        identity: Where the type is declared
        kind: Record, basic alias, or anything else
        fields: Fields declared directly in the class body (records only)
        bases: Resolved base classes, in declaration order
        underlying: Basic kind for aliases
        path: File the declaration was found in
        inherits_init: Plain class whose constructor comes from its bases
    """

    identity: TypeIdentity
    kind: DeclarationKind
    fields: tuple[FieldDescriptor, ...] = ()
    bases: tuple[TypeIdentity, ...] = ()
    underlying: str | None = None
    path: Path | None = None
    inherits_init: bool = False

    @property
    def is_record(self) -> bool:
        return self.kind is DeclarationKind.RECORD


def is_public_name(name: str) -> bool:
    """Default visibility predicate: names starting with ``_`` are private."""
    return not name.startswith("_")
