"""Name-keyed lookups over an existing page object or test suite."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Set, Tuple

from artifact_merge.base.members import (
    ROOT_BLOCK,
    DescribeBlock,
    ElementField,
    PageObjectClass,
    TestSuite,
)
from artifact_merge.base.source_tree import SourceTree, SourceTreeFacility

LOG = logging.getLogger("member_index")


class StructureNotFound(Exception):
    """The existing tree has no class / no suite, so it cannot be merged."""

    def __init__(self, message: str, artifact: Optional[str] = None):
        self.artifact = artifact
        where = f"{artifact}: " if artifact else ""
        super().__init__(f"{where}{message}")


@dataclass
class PageObjectIndex:
    page_object: PageObjectClass
    element_field: Optional[ElementField]
    element_names: Set[str] = field(default_factory=set)
    method_names: Set[str] = field(default_factory=set)


@dataclass
class SuiteIndex:
    suite: TestSuite
    blocks: Dict[str, DescribeBlock] = field(default_factory=dict)
    seen_cases: Set[Tuple[str, str]] = field(default_factory=set)
    imports: Set[str] = field(default_factory=set)


def index_page_object(facility: SourceTreeFacility,
                      tree: SourceTree) -> PageObjectIndex:
    page_object = facility.read_page_object(tree)
    if page_object is None:
        raise StructureNotFound("no class declaration found",
                                artifact=tree.artifact)

    element_field = page_object.element_field
    index = PageObjectIndex(
        page_object=page_object,
        element_field=element_field,
        element_names=set(element_field.entry_names) if element_field
        else set(),
        method_names={m.name for m in page_object.methods})
    LOG.debug(
        f"Indexed {page_object.name}: {len(index.element_names)} elements, "
        f"{len(index.method_names)} methods")
    return index


def index_suite(facility: SourceTreeFacility, tree: SourceTree) -> SuiteIndex:
    """
    Index the describe blocks, cases and imports of an existing suite.

    Only cases sitting directly in a block are keyed; nested classes are
    opaque. When two blocks share a name the first one receives merged
    cases, but the cases of both count as seen.
    """
    suite = facility.read_suite(tree)
    if not suite.has_structure:
        raise StructureNotFound("no test classes or test functions found",
                                artifact=tree.artifact)

    index = SuiteIndex(suite=suite)
    for block in suite.blocks:
        index.blocks.setdefault(block.name, block)
        index.seen_cases.update((block.name, c.name) for c in block.cases)
    index.seen_cases.update((ROOT_BLOCK, c.name) for c in suite.root_cases)
    index.imports = {b.text for b in suite.imports}
    LOG.debug(
        f"Indexed suite: {len(index.blocks)} blocks, "
        f"{len(index.seen_cases)} cases, {len(index.imports)} imports")
    return index
