"""Walk one file, complete every matching record construction, print the result."""

from __future__ import annotations

import logging
from pathlib import Path

import libcst as cst
from libcst.codemod import CodemodContext
from libcst.codemod.visitors import AddImportsVisitor
from libcst.metadata import MetadataWrapper

from fillfields.config import FillConfig
from fillfields.cst.defaults import DefaultPolicy
from fillfields.cst.index import ProjectIndex, SourceFile
from fillfields.cst.matcher import classify
from fillfields.cst.models import FormatError, FormatResult
from fillfields.cst.printer import render
from fillfields.cst.rewriter import complete_call, site_problems

logger = logging.getLogger(__name__)


class _CompletionTransformer(cst.CSTTransformer):
    """CSTTransformer that completes record calls bottom-up.

    Metadata is looked up on ``original_node``; the rewrite is applied to
    ``updated_node`` so completions of nested calls are kept.
    """

    def __init__(
        self,
        source: SourceFile,
        index: ProjectIndex,
        config: FillConfig,
        policy: DefaultPolicy,
    ) -> None:
        super().__init__()
        self.source = source
        self.index = index
        self.config = config
        self.policy = policy
        self.changed = False
        self.completed_count = 0
        self.errors: list[FormatError] = []

    def leave_Call(self, original_node: cst.Call, updated_node: cst.Call) -> cst.BaseExpression:
        site = classify(original_node, self.source, self.index, self.config.target_types)
        if site is None or site.resolved_type is None:
            return updated_node
        fields = self.index.fields_of(site.resolved_type)
        problems = site_problems(site, fields)
        if problems:
            for problem in problems:
                self.errors.append(FormatError(message=problem, position_text=site.position))
            logger.info(f"{site.position}: skipped ({'; '.join(problems)})")
            return updated_node
        completed = complete_call(
            site, fields, self.policy, updated_node, fill_defaulted=self.config.fill_defaulted
        )
        if completed is None:
            return updated_node
        self.changed = True
        self.completed_count += 1
        return completed


def format_file(source: SourceFile, index: ProjectIndex, config: FillConfig) -> FormatResult:
    """Complete every matching record call in ``source``.

    Returns:
        FormatResult; ``output`` is only set when something changed

    Raises:
        SerializationError: If the rewritten module cannot be printed or formatted
    """
    path = str(source.path)
    context = CodemodContext()
    policy = DefaultPolicy(index, source, config.custom_defaults, context)
    transformer = _CompletionTransformer(source, index, config, policy)
    module = source.module.visit(transformer)

    if not transformer.changed:
        return FormatResult(path=path, output=None, changed=False, errors=transformer.errors)

    if AddImportsVisitor.CONTEXT_KEY in context.scratch:
        module = MetadataWrapper(module).visit(AddImportsVisitor(context))

    output = render(module, path, config.formatter)
    logger.info(f"{path}: completed {transformer.completed_count} call(s)")
    return FormatResult(path=path, output=output, changed=True, errors=transformer.errors)


def format_path(path: Path, index: ProjectIndex, config: FillConfig) -> FormatResult:
    """Load ``path`` from the index and complete it.

    Raises:
        TreeAdaptationError: If the file could not be parsed or name-resolved
        SerializationError: If the rewritten module cannot be printed or formatted
    """
    return format_file(index.source_for(path), index, config)
