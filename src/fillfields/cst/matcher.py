"""Decide whether a call is a record construction eligible for completion."""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass

import libcst as cst

from fillfields.cst.index import ProjectIndex, SourceFile
from fillfields.cst.model import TypeIdentity


@dataclass(frozen=True)
class CompositeLiteralSite:
    """A record construction found during one traversal.

    Attributes:
        node: The call as found in the original tree
        position: ``path:line:column`` of the call
        resolved_type: Record class being constructed
        present_fields: Keywords already passed
        all_keyed: True if every argument is a plain keyword argument
    """

    node: cst.Call
    position: str
    resolved_type: TypeIdentity | None
    present_fields: frozenset[str]
    all_keyed: bool


def is_keyed(arg: cst.Arg) -> bool:
    return arg.keyword is not None and arg.star == ""


def inspect_site(
    node: cst.Call, source: SourceFile, index: ProjectIndex
) -> CompositeLiteralSite | None:
    """Describe ``node`` if it constructs a record class, else None."""
    resolved = index.resolve_call(source, node)
    if resolved is None:
        return None
    return CompositeLiteralSite(
        node=node,
        position=source.position_text(node),
        resolved_type=resolved,
        present_fields=frozenset(
            arg.keyword.value for arg in node.args if arg.keyword is not None
        ),
        all_keyed=all(is_keyed(arg) for arg in node.args),
    )


def classify(
    node: cst.Call,
    source: SourceFile,
    index: ProjectIndex,
    targets: Collection[TypeIdentity],
) -> CompositeLiteralSite | None:
    """Return the site if ``node`` should be completed.

    A call is a candidate iff it constructs a record class, that class is in
    ``targets`` (an empty collection matches every record), and every
    argument is passed by keyword. A single positional, ``*args`` or
    ``**kwargs`` argument rejects the call.
    """
    site = inspect_site(node, source, index)
    if site is None or site.resolved_type is None:
        return None
    if targets and site.resolved_type not in targets:
        return None
    if not site.all_keyed:
        return None
    return site
