"""Default value policy for missing record fields.

Resolution order, first match wins:
1. a custom override for the field's named type or basic kind
2. the structural zero value for the type's shape
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

import libcst as cst
from libcst.codemod import CodemodContext
from libcst.codemod.visitors import AddImportsVisitor

from fillfields.cst.index import ProjectIndex, SourceFile
from fillfields.cst.model import BASIC_KINDS, DeclarationKind, TypeKind, TypeRef
from fillfields.errors import DefaultSpecError

logger = logging.getLogger(__name__)

_NONE_KINDS = {
    TypeKind.OPTIONAL,
    TypeKind.SEQUENCE,
    TypeKind.MAPPING,
    TypeKind.CHANNEL,
    TypeKind.CALLABLE,
    TypeKind.ANY,
}


def parse_default_specs(specs: Iterable[str]) -> dict[str, str]:
    """Parse ``TypeSpec=Replacement`` specifiers into an override table.

    TypeSpec can be:
    - a basic kind name (``int``, ``str``, ``bool``, ...; ``builtins.`` is optional)
    - a fully qualified type name (``pkg.domain.Status``)

    Replacement must be a Python expression, usually a constant name
    (``StatusUnknown``) or an enum member (``Status.UNKNOWN``). Whether the
    name exists where it is inserted is not checked.

    Raises:
        DefaultSpecError: If a specifier is malformed
    """
    defaults: dict[str, str] = {}
    for spec in specs:
        type_spec, sep, replacement = spec.partition("=")
        if not sep:
            raise DefaultSpecError(
                f"Invalid format: {spec!r} (expected TypeSpec=ConstantName)"
            )
        type_spec = type_spec.strip().removeprefix("builtins.")
        replacement = replacement.strip()
        if not type_spec or not replacement:
            raise DefaultSpecError(f"Type and constant cannot be empty in {spec!r}")
        try:
            cst.parse_expression(replacement)
        except cst.ParserSyntaxError:
            raise DefaultSpecError(
                f"Replacement {replacement!r} in {spec!r} is not a Python expression"
            ) from None
        defaults[type_spec] = replacement
    return defaults


def _basic_zero(basic: str) -> cst.BaseExpression:
    if basic == "bool":
        return cst.Name("False")
    if basic == "str":
        return cst.SimpleString('""')
    if basic == "bytes":
        return cst.SimpleString('b""')
    return cst.Integer("0")


class DefaultPolicy:
    """Produce default expressions for the fields of one file.

    Args:
        index: Project declarations, for named types
        source: The file being rewritten; decides how classes are spelled
        overrides: Parsed override table (see parse_default_specs)
        context: Codemod context collecting imports that must be added
    """

    def __init__(
        self,
        index: ProjectIndex,
        source: SourceFile,
        overrides: Mapping[str, str] | None = None,
        context: CodemodContext | None = None,
    ) -> None:
        self.index = index
        self.source = source
        self.overrides = dict(overrides or {})
        self.context = context if context is not None else CodemodContext()

    def default_for(self, declared: TypeRef) -> cst.BaseExpression:
        """Default expression for a field of type ``declared``."""
        replacement = self._override_for(declared)
        if replacement is not None:
            return cst.parse_expression(replacement)
        return self.zero_expr(declared)

    def zero_expr(self, declared: TypeRef) -> cst.BaseExpression:
        """Structural zero value, never consulting overrides."""
        if declared.kind is TypeKind.BASIC and declared.basic in BASIC_KINDS:
            return _basic_zero(declared.basic)
        if declared.kind in _NONE_KINDS:
            return cst.Name("None")
        if declared.kind is TypeKind.FIXED_TUPLE:
            return self._tuple_zero(declared.elements)
        if declared.kind is TypeKind.NAMED and declared.identity is not None:
            declaration = self.index.lookup(declared.identity)
            if declaration is None:
                return cst.Name("None")
            if declaration.kind is DeclarationKind.ALIAS and declaration.underlying:
                return _basic_zero(declaration.underlying)
            if declaration.is_record:
                return cst.Call(func=self._reference(declaration.identity))
        return cst.Name("None")

    def _override_for(self, declared: TypeRef) -> str | None:
        if not self.overrides:
            return None
        if declared.kind is TypeKind.BASIC and declared.basic is not None:
            return self.overrides.get(declared.basic)
        if declared.kind is TypeKind.NAMED and declared.identity is not None:
            declaration = self.index.lookup(declared.identity)
            key = (
                declaration.identity.qualified_name
                if declaration is not None
                else declared.identity.qualified_name
            )
            if key in self.overrides:
                return self.overrides[key]
            if declaration is not None and declaration.kind is DeclarationKind.ALIAS:
                return self.overrides.get(declaration.underlying or "")
        return None

    def _tuple_zero(self, elements: tuple[TypeRef, ...]) -> cst.Tuple:
        values = [self.zero_expr(element) for element in elements]
        items = []
        for position, value in enumerate(values):
            last = position == len(values) - 1
            if last and len(values) > 1:
                items.append(cst.Element(value=value))
            else:
                # a single element tuple needs its trailing comma
                items.append(
                    cst.Element(
                        value=value,
                        comma=cst.Comma(
                            whitespace_after=cst.SimpleWhitespace("" if last else " ")
                        ),
                    )
                )
        return cst.Tuple(elements=items)

    def _reference(self, identity) -> cst.BaseExpression:
        spelled = self.source.reference_for(identity)
        if spelled is None:
            # qualify with the defining module's short name and import it
            module, _, short = identity.module.rpartition(".")
            hidden = self.source.checking_imports
            if module and (module, short) not in hidden:
                AddImportsVisitor.add_needed_import(self.context, module, short)
                spelled = f"{identity.short_module}.{identity.name}"
            else:
                # AddImportsVisitor skips imports it already finds under TYPE_CHECKING
                AddImportsVisitor.add_needed_import(self.context, identity.module)
                spelled = f"{identity.module}.{identity.name}"
            logger.debug(f"{self.source.path}: importing {identity.module} for {identity.name}")
        return cst.parse_expression(spelled)
