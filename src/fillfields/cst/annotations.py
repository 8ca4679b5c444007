"""Resolve annotation expressions into TypeRef shapes.

Names are looked up through fully-qualified names computed by LibCST
(``builtins.int``, ``typing.Optional``, ``pkg.models.Address``). String
annotations are parsed and resolved against the module's import bindings,
since nodes parsed from a string carry no metadata.
"""

from __future__ import annotations

import builtins
from collections.abc import Callable, Collection, Mapping

import libcst as cst
from libcst.helpers import get_full_name_for_node

from fillfields.cst.model import UNKNOWN, TypeIdentity, TypeKind, TypeRef

BASIC_NAMES = {
    "builtins.bool": "bool",
    "builtins.str": "str",
    "builtins.bytes": "bytes",
    "builtins.int": "int",
    "builtins.float": "float",
    "builtins.complex": "complex",
}

_SEQUENCE_NAMES = {
    "builtins.list",
    "builtins.set",
    "builtins.frozenset",
    "builtins.bytearray",
    "collections.deque",
    "typing.List",
    "typing.Set",
    "typing.FrozenSet",
    "typing.Deque",
    "typing.Sequence",
    "typing.MutableSequence",
    "typing.AbstractSet",
    "typing.MutableSet",
    "typing.Collection",
    "typing.Iterable",
    "typing.Iterator",
    "typing.Generator",
    "collections.abc.Sequence",
    "collections.abc.MutableSequence",
    "collections.abc.Set",
    "collections.abc.MutableSet",
    "collections.abc.Collection",
    "collections.abc.Iterable",
    "collections.abc.Iterator",
    "collections.abc.Generator",
}

_MAPPING_NAMES = {
    "builtins.dict",
    "typing.Dict",
    "typing.Mapping",
    "typing.MutableMapping",
    "typing.DefaultDict",
    "typing.OrderedDict",
    "typing.Counter",
    "typing.ChainMap",
    "collections.defaultdict",
    "collections.OrderedDict",
    "collections.Counter",
    "collections.ChainMap",
    "collections.abc.Mapping",
    "collections.abc.MutableMapping",
    "types.MappingProxyType",
}

_CHANNEL_NAMES = {
    "queue.Queue",
    "queue.SimpleQueue",
    "queue.LifoQueue",
    "queue.PriorityQueue",
    "asyncio.Queue",
    "asyncio.queues.Queue",
    "multiprocessing.Queue",
}

_CALLABLE_NAMES = {
    "typing.Callable",
    "collections.abc.Callable",
    "types.FunctionType",
}

_ANY_NAMES = {
    "typing.Any",
    "typing.Literal",
    "typing.Type",
    "builtins.object",
    "builtins.type",
}

_TUPLE_NAMES = {"builtins.tuple", "typing.Tuple"}

# Wrappers whose first argument is the real field type.
_UNWRAP_NAMES = {
    "typing.Annotated",
    "typing.Final",
    "dataclasses.InitVar",
}

CLASS_VAR = "typing.ClassVar"

_KIND_BY_NAME: dict[str, TypeKind] = {
    **{name: TypeKind.SEQUENCE for name in _SEQUENCE_NAMES},
    **{name: TypeKind.MAPPING for name in _MAPPING_NAMES},
    **{name: TypeKind.CHANNEL for name in _CHANNEL_NAMES},
    **{name: TypeKind.CALLABLE for name in _CALLABLE_NAMES},
    **{name: TypeKind.ANY for name in _ANY_NAMES},
}


def _normalize(name: str) -> str:
    if name.startswith("typing_extensions."):
        return "typing." + name.removeprefix("typing_extensions.")
    return name


class AnnotationResolver:
    """Turn annotation expressions of one module into TypeRef values.

    Args:
        names_for: Returns the fully-qualified names LibCST computed for a node
        module_name: Dotted name of the module the annotations live in
        bindings: Module-level names mapped to what they refer to
            (``{"geo": "pkg.geo", "Address": "pkg.geo.Address"}``)
    """

    def __init__(
        self,
        names_for: Callable[[cst.CSTNode], Collection[str]],
        module_name: str,
        bindings: Mapping[str, str],
    ) -> None:
        self._names_for = names_for
        self._module_name = module_name
        self._bindings = bindings

    def qualify(self, node: cst.BaseExpression) -> str | None:
        """Fully-qualified name for a Name or Attribute node, if any."""
        names = self._names_for(node)
        if names:
            return _normalize(sorted(names)[0])
        dotted = get_full_name_for_node(node)
        if dotted is None:
            return None
        head, _, rest = dotted.partition(".")
        if head in self._bindings:
            base = self._bindings[head]
            return _normalize(f"{base}.{rest}" if rest else base)
        if not rest and hasattr(builtins, head):
            return f"builtins.{head}"
        return f"{self._module_name}.{dotted}"

    def is_class_var(self, annotation: cst.BaseExpression) -> bool:
        head = annotation.value if isinstance(annotation, cst.Subscript) else annotation
        if not isinstance(head, (cst.Name, cst.Attribute)):
            return False
        return self.qualify(head) == CLASS_VAR

    def resolve(self, annotation: cst.BaseExpression) -> TypeRef:
        if isinstance(annotation, cst.Name) and annotation.value == "None":
            return TypeRef(kind=TypeKind.ANY)
        if isinstance(annotation, (cst.Name, cst.Attribute)):
            return self._resolve_name(annotation)
        if isinstance(annotation, cst.Subscript):
            return self._resolve_subscript(annotation)
        if isinstance(annotation, cst.BinaryOperation) and isinstance(
            annotation.operator, cst.BitOr
        ):
            return self._resolve_union(list(_union_members(annotation)))
        if isinstance(annotation, (cst.SimpleString, cst.ConcatenatedString)):
            return self._resolve_string(annotation)
        return UNKNOWN

    def _resolve_name(self, node: cst.Name | cst.Attribute) -> TypeRef:
        qualified = self.qualify(node)
        if qualified is None:
            return UNKNOWN
        if qualified in BASIC_NAMES:
            return TypeRef.of_basic(BASIC_NAMES[qualified])
        if qualified in _TUPLE_NAMES:
            return TypeRef(kind=TypeKind.SEQUENCE)
        if qualified in _KIND_BY_NAME:
            return TypeRef(kind=_KIND_BY_NAME[qualified])
        if qualified.startswith(("builtins.", "typing.")):
            return UNKNOWN
        try:
            return TypeRef.of_named(TypeIdentity.parse(qualified))
        except ValueError:
            return UNKNOWN

    def _resolve_subscript(self, node: cst.Subscript) -> TypeRef:
        if not isinstance(node.value, (cst.Name, cst.Attribute)):
            return UNKNOWN
        head = self.qualify(node.value)
        args = [
            element.slice.value
            for element in node.slice
            if isinstance(element.slice, cst.Index)
        ]
        if head == "typing.Optional":
            return TypeRef(kind=TypeKind.OPTIONAL)
        if head == "typing.Union":
            return self._resolve_union(args)
        if head in _UNWRAP_NAMES and args:
            return self.resolve(args[0])
        if head in _TUPLE_NAMES:
            return self._resolve_tuple(args)
        if head in _KIND_BY_NAME:
            return TypeRef(kind=_KIND_BY_NAME[head])
        # Parameterized user generic, e.g. Box[int]
        return self._resolve_name(node.value)

    def _resolve_union(self, members: list[cst.BaseExpression]) -> TypeRef:
        if any(isinstance(m, cst.Name) and m.value == "None" for m in members):
            return TypeRef(kind=TypeKind.OPTIONAL)
        return TypeRef(kind=TypeKind.ANY)

    def _resolve_tuple(self, args: list[cst.BaseExpression]) -> TypeRef:
        if any(isinstance(arg, cst.Ellipsis) for arg in args):
            return TypeRef(kind=TypeKind.SEQUENCE)
        # tuple[()] is the empty tuple type
        if len(args) == 1 and isinstance(args[0], cst.Tuple) and not args[0].elements:
            return TypeRef(kind=TypeKind.FIXED_TUPLE)
        return TypeRef(
            kind=TypeKind.FIXED_TUPLE,
            elements=tuple(self.resolve(arg) for arg in args),
        )

    def _resolve_string(
        self, node: cst.SimpleString | cst.ConcatenatedString
    ) -> TypeRef:
        text = node.evaluated_value
        if not isinstance(text, str):
            return UNKNOWN
        try:
            parsed = cst.parse_expression(text.strip())
        except cst.ParserSyntaxError:
            return UNKNOWN
        return self.resolve(parsed)


def _union_members(node: cst.BaseExpression):
    if isinstance(node, cst.BinaryOperation) and isinstance(node.operator, cst.BitOr):
        yield from _union_members(node.left)
        yield from _union_members(node.right)
    else:
        yield node
