"""Complete the keyword arguments of a record construction.

Existing arguments are kept verbatim (keyword, value, ``=`` spacing and
their end-of-line comments). Missing fields are inserted at their canonical
position, borrowing the separator layout of the surrounding arguments so
that single-line and one-argument-per-line calls both keep their shape.

Each argument owns a layout slot: its comma plus the whitespace after it.
LibCST stores the newline, indentation and end-of-line comment of an
argument line in that slot, so moving an argument between the middle and
the end of the list means swapping slots.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass

import libcst as cst

from fillfields.cst.defaults import DefaultPolicy
from fillfields.cst.matcher import CompositeLiteralSite
from fillfields.cst.model import FieldDescriptor

logger = logging.getLogger(__name__)

_TIGHT_EQUAL = cst.AssignEqual(
    whitespace_before=cst.SimpleWhitespace(""),
    whitespace_after=cst.SimpleWhitespace(""),
)


@dataclass(frozen=True)
class _Slot:
    comma: cst.Comma | cst.MaybeSentinel
    whitespace_after_arg: cst.BaseParenthesizableWhitespace


def _slot_of(arg: cst.Arg) -> _Slot:
    return _Slot(comma=arg.comma, whitespace_after_arg=arg.whitespace_after_arg)


def _line_break(slot: _Slot) -> cst.ParenthesizedWhitespace | None:
    """The whitespace in ``slot`` that ends the argument's line, if any."""
    if isinstance(slot.comma, cst.Comma) and isinstance(
        slot.comma.whitespace_after, cst.ParenthesizedWhitespace
    ):
        return slot.comma.whitespace_after
    if isinstance(slot.whitespace_after_arg, cst.ParenthesizedWhitespace):
        return slot.whitespace_after_arg
    return None


def _replace_line_break(slot: _Slot, line_break: cst.ParenthesizedWhitespace) -> _Slot:
    if isinstance(slot.comma, cst.Comma) and isinstance(
        slot.comma.whitespace_after, cst.ParenthesizedWhitespace
    ):
        return _Slot(
            comma=slot.comma.with_changes(whitespace_after=line_break),
            whitespace_after_arg=slot.whitespace_after_arg,
        )
    if isinstance(slot.whitespace_after_arg, cst.ParenthesizedWhitespace):
        return _Slot(comma=slot.comma, whitespace_after_arg=line_break)
    return slot


def _clean(slot: _Slot, *, keep_empty_lines: bool) -> _Slot:
    """Drop the end-of-line comment (and optionally comment lines) of a slot."""
    line_break = _line_break(slot)
    if line_break is None:
        return slot
    first_line = cst.TrailingWhitespace(newline=line_break.first_line.newline)
    empty_lines = line_break.empty_lines if keep_empty_lines else ()
    return _replace_line_break(
        slot, line_break.with_changes(first_line=first_line, empty_lines=empty_lines)
    )


def _carry_comment(layout: _Slot, own: _Slot) -> _Slot:
    """Give ``layout`` the end-of-line comment of ``own``."""
    own_break = _line_break(own)
    layout_break = _line_break(layout)
    if own_break is None or layout_break is None:
        return layout
    return _replace_line_break(
        layout, layout_break.with_changes(first_line=own_break.first_line)
    )


def _separator(
    args: Sequence[cst.Arg], whitespace_before_args: cst.BaseParenthesizableWhitespace
) -> _Slot:
    if len(args) > 1:
        return _clean(_slot_of(args[0]), keep_empty_lines=False)
    # At most one argument: reuse the whitespace after "(" for the new lines.
    if isinstance(whitespace_before_args, cst.ParenthesizedWhitespace):
        first_line = cst.TrailingWhitespace(
            newline=whitespace_before_args.first_line.newline
        )
        return _Slot(
            comma=cst.Comma(
                whitespace_after=whitespace_before_args.with_changes(
                    first_line=first_line, empty_lines=()
                )
            ),
            whitespace_after_arg=cst.SimpleWhitespace(""),
        )
    return _Slot(
        comma=cst.Comma(whitespace_after=cst.SimpleWhitespace(" ")),
        whitespace_after_arg=cst.SimpleWhitespace(""),
    )


def _with_slot(arg: cst.Arg, slot: _Slot) -> cst.Arg:
    comma = slot.comma.deep_clone() if isinstance(slot.comma, cst.Comma) else slot.comma
    return arg.with_changes(
        comma=comma, whitespace_after_arg=slot.whitespace_after_arg.deep_clone()
    )


def site_problems(
    site: CompositeLiteralSite, fields: Sequence[FieldDescriptor]
) -> list[str]:
    """Reasons the call cannot be completed safely; empty if there are none."""
    problems = []
    keywords = [arg.keyword.value for arg in site.node.args if arg.keyword is not None]
    declared = {f.name for f in fields}
    for name, count in Counter(keywords).items():
        if count > 1:
            problems.append(f"keyword argument {name!r} repeated")
    for name in keywords:
        if name not in declared:
            problems.append(f"{site.resolved_type} has no field {name!r}")
    return problems


def missing_fields(
    site: CompositeLiteralSite,
    fields: Sequence[FieldDescriptor],
    *,
    fill_defaulted: bool = False,
) -> list[FieldDescriptor]:
    """Exported fields absent from the call, in canonical order."""
    return [
        f
        for f in fields
        if f.exported
        and f.name not in site.present_fields
        and (fill_defaulted or not f.has_default)
    ]


def complete(
    site: CompositeLiteralSite,
    fields: Sequence[FieldDescriptor],
    policy: DefaultPolicy,
    *,
    args: Sequence[cst.Arg] | None = None,
    whitespace_before_args: cst.BaseParenthesizableWhitespace | None = None,
    fill_defaulted: bool = False,
) -> tuple[Sequence[cst.Arg], bool]:
    """Build the completed argument list for ``site``.

    Args:
        site: A candidate returned by classify
        fields: Canonical fields of the record
        policy: Default value policy for the file
        args: Current arguments (may already hold completed nested calls);
            defaults to the site's original arguments
        whitespace_before_args: Whitespace after ``(``; defaults to the site's
        fill_defaulted: Also insert fields that declare a default

    Returns:
        (arguments, changed). When nothing is missing the arguments are
        returned untouched and changed is False.
    """
    current = tuple(site.node.args if args is None else args)
    if whitespace_before_args is None:
        whitespace_before_args = site.node.whitespace_before_args
    missing = missing_fields(site, fields, fill_defaulted=fill_defaulted)
    if not missing:
        return current, False

    existing = {arg.keyword.value: arg for arg in current if arg.keyword is not None}
    missing_names = {f.name for f in missing}
    ordered: list[tuple[FieldDescriptor, cst.Arg | None]] = [
        (f, existing.get(f.name))
        for f in fields
        if f.name in existing or f.name in missing_names
    ]

    separator = _separator(current, whitespace_before_args)
    if current:
        original_last = current[-1]
        closing = _clean(_slot_of(original_last), keep_empty_lines=True)
        equal = current[0].equal
        if not isinstance(equal, cst.AssignEqual):
            equal = _TIGHT_EQUAL
    else:
        original_last = None
        closing = _Slot(
            comma=cst.MaybeSentinel.DEFAULT, whitespace_after_arg=cst.SimpleWhitespace("")
        )
        equal = _TIGHT_EQUAL

    completed: list[cst.Arg] = []
    for position, (descriptor, arg) in enumerate(ordered):
        is_last = position == len(ordered) - 1
        layout = closing if is_last else separator
        if arg is None:
            value = policy.default_for(descriptor.declared_type)
            logger.debug(
                f"{site.position}: {descriptor.name}={cst.Module([]).code_for_node(value)}"
            )
            completed.append(
                _with_slot(
                    cst.Arg(value=value, keyword=cst.Name(descriptor.name), equal=equal),
                    layout,
                )
            )
            continue
        was_last = arg is original_last
        if was_last == is_last:
            completed.append(arg)
        else:
            completed.append(_with_slot(arg, _carry_comment(layout, _slot_of(arg))))
    return completed, True


def complete_call(
    site: CompositeLiteralSite,
    fields: Sequence[FieldDescriptor],
    policy: DefaultPolicy,
    node: cst.Call,
    *,
    fill_defaulted: bool = False,
) -> cst.Call | None:
    """Completed copy of ``node`` (the current version of ``site.node``).

    Comment lines right after ``(`` stay above the argument that followed
    them, even when new fields are inserted in front of it.

    Returns:
        The rewritten call, or None when nothing is missing.
    """
    args, changed = complete(
        site,
        fields,
        policy,
        args=node.args,
        whitespace_before_args=node.whitespace_before_args,
        fill_defaulted=fill_defaulted,
    )
    if not changed:
        return None
    return _keep_leading_comments(node.with_changes(args=args), node.args)


def _keep_leading_comments(call: cst.Call, original: Sequence[cst.Arg]) -> cst.Call:
    opening = call.whitespace_before_args
    if not original or not isinstance(opening, cst.ParenthesizedWhitespace):
        return call
    if not any(line.comment is not None for line in opening.empty_lines):
        return call
    names = [arg.keyword.value for arg in call.args if arg.keyword is not None]
    position = names.index(original[0].keyword.value)
    if position == 0:
        return call
    previous = call.args[position - 1]
    slot = _slot_of(previous)
    line_break = _line_break(slot)
    if line_break is None:
        return call
    moved = _replace_line_break(
        slot,
        line_break.with_changes(empty_lines=[*line_break.empty_lines, *opening.empty_lines]),
    )
    args = list(call.args)
    args[position - 1] = previous.with_changes(
        comma=moved.comma, whitespace_after_arg=moved.whitespace_after_arg
    )
    return call.with_changes(
        args=args, whitespace_before_args=opening.with_changes(empty_lines=())
    )
