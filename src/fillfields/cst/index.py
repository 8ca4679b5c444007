"""Project loading: parsed, name-resolved source files and record declarations.

This is the tree provider the completion engine runs on. It discovers the
Python files of a project, parses each one with LibCST, resolves
fully-qualified names through a FullRepoManager, and indexes the classes
that can be completed:

- records: ``@dataclass`` classes and ``NamedTuple`` subclasses
- aliases: ``NewType`` over a basic kind and int/str enums
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable, Collection, Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

import libcst as cst
from libcst.helpers import get_absolute_module_from_package_for_import, get_full_name_for_node
from libcst.metadata import (
    CodeRange,
    FullRepoManager,
    FullyQualifiedNameProvider,
    MetadataWrapper,
    PositionProvider,
    QualifiedName,
)

from fillfields.cst.annotations import AnnotationResolver
from fillfields.cst.core import parse_file
from fillfields.cst.model import (
    Declaration,
    DeclarationKind,
    FieldDescriptor,
    TypeIdentity,
    TypeKind,
    is_public_name,
)
from fillfields.errors import TreeAdaptationError, TypeResolutionError

logger = logging.getLogger(__name__)

ExportPredicate = Callable[[str], bool]

_SKIP_DIRS = {"__pycache__", "site-packages", "node_modules", "venv", "env"}

_DATACLASS_DECORATORS = {"dataclasses.dataclass", "pydantic.dataclasses.dataclass"}
_NAMEDTUPLE_BASES = {"typing.NamedTuple"}
_FIELD_FUNCTIONS = {"dataclasses.field", "pydantic.dataclasses.Field"}
_KW_ONLY = "dataclasses.KW_ONLY"

_ENUM_UNDERLYING = {
    "enum.IntEnum": "int",
    "enum.IntFlag": "int",
    "enum.StrEnum": "str",
}
_ENUM_BASES = {"enum.Enum", "enum.Flag"}

_TYPE_CHECKING_NAMES = {
    "TYPE_CHECKING",
    "typing.TYPE_CHECKING",
    "typing_extensions.TYPE_CHECKING",
}


def discover_files(paths: Iterable[str | Path]) -> list[Path]:
    """Collect the ``.py`` files under the given files and directories.

    Hidden directories, ``__pycache__`` and virtualenv/site-packages trees
    are skipped.

    Raises:
        FileNotFoundError: If a path does not exist
    """
    found: set[Path] = set()
    for raw in paths:
        path = Path(raw).resolve()
        if path.is_file():
            if path.suffix == ".py":
                found.add(path)
            continue
        if not path.is_dir():
            raise FileNotFoundError(f"No such file or directory: {raw}")
        for candidate in path.rglob("*.py"):
            parts = candidate.relative_to(path).parts[:-1]
            if any(part.startswith(".") or part in _SKIP_DIRS for part in parts):
                continue
            found.add(candidate)
    return sorted(found)


@dataclass
class SourceFile:
    """One parsed file with the metadata the engine needs.

    The module and metadata maps are owned by whoever transforms the file;
    nothing else mutates them.
    """

    path: Path
    module_name: str
    package: str
    module: cst.Module
    qualified_names: Mapping[cst.CSTNode, Collection[QualifiedName]]
    positions: Mapping[cst.CSTNode, CodeRange]
    bindings: dict[str, str] = field(default_factory=dict)
    runtime_bindings: dict[str, str] = field(default_factory=dict)
    checking_imports: frozenset[tuple[str, str | None]] = frozenset()

    def names_for(self, node: cst.CSTNode) -> set[str]:
        return {qname.name for qname in self.qualified_names.get(node, ())}

    def position_text(self, node: cst.CSTNode) -> str:
        position = self.positions.get(node)
        if position is None:
            return str(self.path)
        return f"{self.path}:{position.start.line}:{position.start.column + 1}"

    def reference_for(self, identity: TypeIdentity) -> str | None:
        """How this file can spell ``identity`` with its existing bindings.

        Returns None when nothing in the file refers to the class or its module.
        Names imported only under ``if TYPE_CHECKING:`` do not count.
        """
        if identity.module == self.module_name:
            return identity.name
        for local, target in self.runtime_bindings.items():
            if target == identity.qualified_name:
                return local
        for local, target in self.runtime_bindings.items():
            if target == identity.module:
                return f"{local}.{identity.name}"
        return None


class _BindingCollector(cst.CSTVisitor):
    """Collect module-level names introduced by imports and class statements.

    Imports under ``if TYPE_CHECKING:`` are visible to annotations only, so
    they are kept out of ``runtime_bindings`` and remembered in
    ``checking_imports`` as ``(module, name)`` pairs (``name`` is None for
    ``import module``).
    """

    def __init__(self, module_name: str, package: str) -> None:
        self.module_name = module_name
        self.package = package
        self.bindings: dict[str, str] = {}
        self.runtime_bindings: dict[str, str] = {}
        self.checking_imports: set[tuple[str, str | None]] = set()
        self._checking = 0

    def _bind(self, local: str, target: str, *, keep_existing: bool = False) -> None:
        tables = [self.bindings]
        if not self._checking:
            tables.append(self.runtime_bindings)
        for table in tables:
            if keep_existing:
                table.setdefault(local, target)
            else:
                table[local] = target

    def visit_If(self, node: cst.If) -> bool | None:
        if get_full_name_for_node(node.test) not in _TYPE_CHECKING_NAMES:
            return None
        self._checking += 1
        node.body.visit(self)
        self._checking -= 1
        if node.orelse is not None:
            node.orelse.visit(self)
        return False

    def visit_ClassDef(self, node: cst.ClassDef) -> bool | None:
        self._bind(node.name.value, f"{self.module_name}.{node.name.value}")
        return False

    def visit_FunctionDef(self, node: cst.FunctionDef) -> bool | None:
        return False

    def visit_Import(self, node: cst.Import) -> bool | None:
        for alias in node.names:
            dotted = get_full_name_for_node(alias.name)
            if dotted is None:
                continue
            if alias.asname is not None and isinstance(alias.asname.name, cst.Name):
                self._bind(alias.asname.name.value, dotted)
            else:
                if self._checking:
                    self.checking_imports.add((dotted, None))
                head = dotted.partition(".")[0]
                self._bind(head, head, keep_existing=True)
                self._bind(dotted, dotted)
        return False

    def visit_ImportFrom(self, node: cst.ImportFrom) -> bool | None:
        if isinstance(node.names, cst.ImportStar):
            return False
        base = get_absolute_module_from_package_for_import(self.package or None, node)
        if base is None:
            return False
        for alias in node.names:
            name = get_full_name_for_node(alias.name)
            if name is None:
                continue
            local = name
            if alias.asname is not None and isinstance(alias.asname.name, cst.Name):
                local = alias.asname.name.value
            elif self._checking:
                self.checking_imports.add((base, name))
            self._bind(local, f"{base}.{name}")
        return False


class _DeclarationCollector(cst.CSTVisitor):
    """Visitor that records record classes and basic-kind aliases."""

    def __init__(
        self, source: SourceFile, resolver: AnnotationResolver, exported: ExportPredicate
    ) -> None:
        self.source = source
        self.resolver = resolver
        self.exported = exported
        self.declarations: list[Declaration] = []
        self._class_stack: list[str] = []

    def visit_ClassDef(self, node: cst.ClassDef) -> bool | None:
        self._class_stack.append(node.name.value)
        identity = TypeIdentity(self.source.module_name, ".".join(self._class_stack))
        bases = []
        for arg in node.bases:
            if arg.keyword is None and isinstance(arg.value, (cst.Name, cst.Attribute)):
                name = self.resolver.qualify(arg.value)
                if name is not None:
                    bases.append(name)
        self.declarations.append(self._declaration(identity, node, bases))
        return None

    def leave_ClassDef(self, original_node: cst.ClassDef) -> None:
        self._class_stack.pop()

    def visit_FunctionDef(self, node: cst.FunctionDef) -> bool | None:
        return False

    def visit_Assign(self, node: cst.Assign) -> bool | None:
        # UserId = NewType("UserId", int)
        if self._class_stack or len(node.targets) != 1:
            return False
        target = node.targets[0].target
        value = node.value
        if not (isinstance(target, cst.Name) and isinstance(value, cst.Call)):
            return False
        if not isinstance(value.func, (cst.Name, cst.Attribute)):
            return False
        if self.resolver.qualify(value.func) != "typing.NewType" or len(value.args) != 2:
            return False
        underlying = self.resolver.resolve(value.args[1].value)
        identity = TypeIdentity(self.source.module_name, target.value)
        if underlying.kind is TypeKind.BASIC:
            declaration = Declaration(
                identity=identity,
                kind=DeclarationKind.ALIAS,
                underlying=underlying.basic,
                path=self.source.path,
            )
        else:
            declaration = Declaration(
                identity=identity, kind=DeclarationKind.OTHER, path=self.source.path
            )
        self.declarations.append(declaration)
        return False

    def _declaration(
        self, identity: TypeIdentity, node: cst.ClassDef, bases: list[str]
    ) -> Declaration:
        base_identities = tuple(
            TypeIdentity.parse(base) for base in bases if "." in base
        )
        if self._is_record(node, bases):
            return Declaration(
                identity=identity,
                kind=DeclarationKind.RECORD,
                fields=tuple(self._fields(node)),
                bases=base_identities,
                path=self.source.path,
            )
        underlying = _enum_underlying(bases)
        if underlying is not None:
            return Declaration(
                identity=identity,
                kind=DeclarationKind.ALIAS,
                bases=base_identities,
                underlying=underlying,
                path=self.source.path,
            )
        return Declaration(
            identity=identity,
            kind=DeclarationKind.OTHER,
            bases=base_identities,
            path=self.source.path,
            inherits_init=(
                self._dataclass_decorator(node) is None and not _defines_constructor(node)
            ),
        )

    def _is_record(self, node: cst.ClassDef, bases: list[str]) -> bool:
        if any(base in _NAMEDTUPLE_BASES for base in bases):
            return True
        decorator = self._dataclass_decorator(node)
        if decorator is None:
            return False
        return not (isinstance(decorator, cst.Call) and _init_disabled(decorator))

    def _dataclass_decorator(self, node: cst.ClassDef) -> cst.BaseExpression | None:
        for decorator in node.decorators:
            expr = decorator.decorator
            func = expr.func if isinstance(expr, cst.Call) else expr
            if isinstance(func, (cst.Name, cst.Attribute)):
                if self.resolver.qualify(func) in _DATACLASS_DECORATORS:
                    return expr
        return None

    def _fields(self, node: cst.ClassDef) -> Iterable[FieldDescriptor]:
        index = 0
        for statement in node.body.body:
            if not isinstance(statement, cst.SimpleStatementLine):
                continue
            for small in statement.body:
                if not isinstance(small, cst.AnnAssign):
                    continue
                if not isinstance(small.target, cst.Name):
                    continue
                annotation = small.annotation.annotation
                if self.resolver.is_class_var(annotation):
                    continue
                if isinstance(annotation, (cst.Name, cst.Attribute)):
                    if self.resolver.qualify(annotation) == _KW_ONLY:
                        continue
                in_init, has_default = self._field_options(small.value)
                if not in_init:
                    continue
                name = small.target.value
                yield FieldDescriptor(
                    index=index,
                    name=name,
                    declared_type=self.resolver.resolve(annotation),
                    exported=self.exported(name),
                    has_default=has_default,
                )
                index += 1

    def _field_options(self, value: cst.BaseExpression | None) -> tuple[bool, bool]:
        """Return (is a constructor parameter, has a default) for a field value."""
        if value is None:
            return True, False
        if isinstance(value, cst.Call) and isinstance(
            value.func, (cst.Name, cst.Attribute)
        ):
            if self.resolver.qualify(value.func) in _FIELD_FUNCTIONS:
                keywords = {
                    arg.keyword.value: arg.value for arg in value.args if arg.keyword
                }
                init = keywords.get("init")
                if isinstance(init, cst.Name) and init.value == "False":
                    return False, True
                return True, "default" in keywords or "default_factory" in keywords
        return True, True


def _init_disabled(decorator: cst.Call) -> bool:
    for arg in decorator.args:
        if arg.keyword is not None and arg.keyword.value == "init":
            return isinstance(arg.value, cst.Name) and arg.value.value == "False"
    return False


def _defines_constructor(node: cst.ClassDef) -> bool:
    return any(
        isinstance(statement, cst.FunctionDef)
        and statement.name.value in {"__init__", "__new__"}
        for statement in node.body.body
    )


def _enum_underlying(bases: list[str]) -> str | None:
    for base in bases:
        if base in _ENUM_UNDERLYING:
            return _ENUM_UNDERLYING[base]
    if any(base in _ENUM_BASES for base in bases):
        if "builtins.int" in bases:
            return "int"
        if "builtins.str" in bases:
            return "str"
    return None


class ProjectIndex:
    """Parsed files plus every record and alias declared in them.

    Read-only once built, so per-file workers can share it.
    """

    def __init__(
        self,
        root: Path,
        sources: dict[Path, SourceFile],
        failures: dict[Path, str],
        declarations: Iterable[Declaration],
    ) -> None:
        self.root = root
        self.sources = sources
        self.failures = failures
        self._declarations: dict[str, Declaration] = {}
        for declaration in declarations:
            key = declaration.identity.qualified_name
            if key in self._declarations:
                logger.warning(f"Duplicate declaration of {key}, keeping the first")
                continue
            self._declarations[key] = declaration
        self._promote_record_subclasses()
        self._layouts: dict[str, tuple[FieldDescriptor, ...]] = {
            key: self._layout(declaration, frozenset())
            for key, declaration in self._declarations.items()
            if declaration.is_record
        }

    @property
    def paths(self) -> list[Path]:
        return sorted(set(self.sources) | set(self.failures))

    @property
    def declarations(self) -> list[Declaration]:
        return list(self._declarations.values())

    def source_for(self, path: Path) -> SourceFile:
        """Return the parsed file for ``path``.

        Raises:
            TreeAdaptationError: If the file could not be parsed or resolved
        """
        if path in self.failures:
            raise TreeAdaptationError(str(path), self.failures[path])
        try:
            return self.sources[path]
        except KeyError:
            raise TreeAdaptationError(str(path), "file is not part of the project") from None

    def lookup(self, identity: TypeIdentity | str) -> Declaration | None:
        """Declaration for an identity or a dotted qualified name."""
        key = identity if isinstance(identity, str) else identity.qualified_name
        return self._declarations.get(key)

    def find(self, name: str) -> list[Declaration]:
        """All declarations whose (possibly dotted) class name is ``name``."""
        return [d for d in self._declarations.values() if d.identity.name == name]

    def fields_of(self, identity: TypeIdentity) -> tuple[FieldDescriptor, ...]:
        """Constructor fields of a record in canonical order."""
        return self._layouts.get(identity.qualified_name, ())

    def resolve_call(self, source: SourceFile, call: cst.Call) -> TypeIdentity | None:
        """Record class constructed by ``call``, if the callee is one."""
        if not isinstance(call.func, (cst.Name, cst.Attribute)):
            return None
        for name in sorted(source.names_for(call.func)):
            declaration = self._declarations.get(name)
            if declaration is not None and declaration.is_record:
                return declaration.identity
        return None

    def _promote_record_subclasses(self) -> None:
        """Turn plain subclasses of records into records without own fields.

        ``class Manager(Employee): ...`` keeps the generated constructor of
        its dataclass or NamedTuple base. A project base with a constructor of
        its own (or a dataclass decorator with ``init=False``) blocks this.
        """
        promoted = True
        while promoted:
            promoted = False
            for key, declaration in self._declarations.items():
                if declaration.kind is not DeclarationKind.OTHER or not declaration.inherits_init:
                    continue
                project_bases = [
                    self._declarations[base.qualified_name]
                    for base in declaration.bases
                    if base.qualified_name in self._declarations
                ]
                if not any(base.is_record for base in project_bases):
                    continue
                if not all(base.is_record or base.inherits_init for base in project_bases):
                    continue
                self._declarations[key] = dataclasses.replace(
                    declaration, kind=DeclarationKind.RECORD, fields=()
                )
                promoted = True

    def _layout(
        self, declaration: Declaration, seen: frozenset[str]
    ) -> tuple[FieldDescriptor, ...]:
        key = declaration.identity.qualified_name
        merged: dict[str, FieldDescriptor] = {}
        # dataclasses collect base fields in reverse MRO order
        for base in reversed(declaration.bases):
            base_declaration = self._declarations.get(base.qualified_name)
            if base_declaration is None or not base_declaration.is_record:
                continue
            if base.qualified_name in seen:
                continue
            for descriptor in self._layout(base_declaration, seen | {key}):
                merged[descriptor.name] = descriptor
        for descriptor in declaration.fields:
            merged[descriptor.name] = descriptor
        return tuple(
            dataclasses.replace(descriptor, index=index)
            for index, descriptor in enumerate(merged.values())
        )


def load_project(
    root: str | Path,
    paths: Iterable[str | Path] | None = None,
    *,
    exported: ExportPredicate = is_public_name,
) -> ProjectIndex:
    """Parse and index every Python file under ``paths``.

    Args:
        root: Import root; module names are computed relative to it
        paths: Files or directories to load (defaults to ``root``)
        exported: Visibility predicate applied to field names

    Returns:
        ProjectIndex with per-file sources and failures

    Raises:
        FileNotFoundError: If one of ``paths`` does not exist
    """
    root = Path(root).resolve()
    files = discover_files(paths if paths is not None else [root])
    failures: dict[Path, str] = {}
    inside: list[Path] = []
    for path in files:
        if path.is_relative_to(root):
            inside.append(path)
        else:
            failures[path] = f"outside of import root {root}"

    manager = FullRepoManager(str(root), [str(path) for path in inside], {FullyQualifiedNameProvider})
    sources: dict[Path, SourceFile] = {}
    declarations: list[Declaration] = []
    for path in inside:
        try:
            source = _load_source(manager, path)
        except Exception as e:
            logger.warning(f"Skipping {path}: {e}")
            failures[path] = str(e)
            continue
        resolver = AnnotationResolver(source.names_for, source.module_name, source.bindings)
        collector = _DeclarationCollector(source, resolver, exported)
        source.module.visit(collector)
        declarations.extend(collector.declarations)
        sources[path] = source

    index = ProjectIndex(root, sources, failures, declarations)
    records = sum(1 for d in index.declarations if d.is_record)
    logger.info(f"Loaded {len(sources)} files ({len(failures)} failed), {records} record types")
    return index


def _load_source(manager: FullRepoManager, path: Path) -> SourceFile:
    cache = manager.get_cache_for_path(str(path))
    module_and_package = cache[FullyQualifiedNameProvider]
    wrapper = MetadataWrapper(parse_file(path), unsafe_skip_copy=True, cache=cache)
    qualified_names = wrapper.resolve(FullyQualifiedNameProvider)
    positions = wrapper.resolve(PositionProvider)
    collector = _BindingCollector(module_and_package.name, module_and_package.package)
    wrapper.module.visit(collector)
    return SourceFile(
        path=path,
        module_name=module_and_package.name,
        package=module_and_package.package,
        module=wrapper.module,
        qualified_names=qualified_names,
        positions=positions,
        bindings=collector.bindings,
        runtime_bindings=collector.runtime_bindings,
        checking_imports=frozenset(collector.checking_imports),
    )


def resolve_target_types(specs: Iterable[str], index: ProjectIndex) -> frozenset[TypeIdentity]:
    """Map human ``module.TypeName`` (or unique ``TypeName``) specifiers to identities.

    Raises:
        TypeResolutionError: If a specifier is empty, unknown, ambiguous,
            or names something that is not a record
    """
    targets: set[TypeIdentity] = set()
    for raw in specs:
        spec = raw.strip()
        if not spec:
            raise TypeResolutionError("Empty type specifier")
        candidates: list[Declaration] = []
        if "." in spec:
            declaration = index.lookup(spec)
            if declaration is not None:
                candidates = [declaration]
        if not candidates:
            candidates = index.find(spec)
        if not candidates:
            raise TypeResolutionError(f"Type not found: {spec}")
        if len(candidates) > 1:
            matches = ", ".join(sorted(str(c.identity) for c in candidates))
            raise TypeResolutionError(f"Ambiguous type {spec!r}: matches {matches}")
        declaration = candidates[0]
        if not declaration.is_record:
            raise TypeResolutionError(
                f"{spec} is not a record type (expected a dataclass or NamedTuple)"
            )
        targets.add(declaration.identity)
    return frozenset(targets)
