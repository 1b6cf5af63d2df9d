"""
Additive merge of a regenerated pytest suite into the saved one.

Test cases are keyed by ``(class name, function name)``; module-level
functions use the root block name ``""``. A case whose key already exists is
dropped in favour of the saved one, a new case of a known class is appended
to that class, and an unknown class is appended whole after everything that
was saved. New imports are compared by their exact text.
"""
from __future__ import annotations

import logging
from typing import List, Optional

from artifact_merge.base.member_index import (
    SuiteIndex,
    StructureNotFound,
    index_suite,
)
from artifact_merge.base.members import (
    ROOT_BLOCK,
    DescribeBlock,
    ImportBinding,
    ItBlock,
    SuiteStatement,
    TestSuite,
)
from artifact_merge.base.python_dialect import PythonSourceFacility
from artifact_merge.base.source_tree import SourceTree, SourceTreeFacility
from artifact_merge.merging.merge_result import (
    DEFAULT_MARKER,
    MergeResult,
    MergeStatus,
)

LOG = logging.getLogger("suite_merger")


class TestSuiteMerger:
    __test__ = False

    def __init__(self,
                 facility: Optional[SourceTreeFacility] = None,
                 marker: str = DEFAULT_MARKER):
        self.facility = facility or PythonSourceFacility()
        self.marker = marker

    def merge(self, existing: Optional[SourceTree], new_content: str,
              artifact: Optional[str] = None) -> MergeResult:
        if existing is None:
            LOG.info(f"{artifact}: no saved test suite, writing new content")
            return MergeResult(artifact=artifact, status=MergeStatus.CREATED,
                               content=new_content)
        # new content must parse even when it ends up replacing the saved one
        incoming_tree = self.facility.parse(new_content, artifact=artifact)
        try:
            index = index_suite(self.facility, existing)
        except StructureNotFound as e:
            LOG.warning(f"{e}; replacing the whole test suite")
            return MergeResult(artifact=artifact, status=MergeStatus.REPLACED,
                               content=new_content)

        incoming = self.facility.read_suite(incoming_tree)
        added: List[str] = []
        new_imports = self._new_imports(index, incoming)
        queued: List[SuiteStatement] = []

        for statement in incoming.statements:
            if isinstance(statement, DescribeBlock):
                target = index.blocks.get(statement.name)
                if target is None:
                    queued.append(statement)
                    added.append(statement.name)
                else:
                    added += self._merge_cases(index, target, statement)
            elif isinstance(statement, ItBlock):
                if (ROOT_BLOCK, statement.name) in index.seen_cases:
                    LOG.debug(
                        f"Function '{statement.name}' already present, "
                        "keeping the saved one")
                    continue
                queued.append(self.facility.tag_case(statement, self.marker))
                added.append(statement.name)

        suite = index.suite
        position = self.facility.import_insertion_point(suite)
        suite.statements[position:position] = new_imports
        suite.statements.extend(queued)
        self.facility.write_suite(existing, suite)

        if new_imports:
            LOG.info(f"{artifact}: added {len(new_imports)} import(s)")
        if added:
            LOG.info(f"{artifact}: added {', '.join(added)}")
        return MergeResult(
            artifact=artifact, status=MergeStatus.MERGED,
            content=self.facility.render(existing), tree=existing,
            added=added)

    @staticmethod
    def _new_imports(index: SuiteIndex,
                     incoming: TestSuite) -> List[ImportBinding]:
        known = set(index.imports)
        new_imports = []
        for binding in incoming.imports:
            if binding.text not in known:
                new_imports.append(binding)
                known.add(binding.text)
        return new_imports

    def _merge_cases(self, index: SuiteIndex, target: DescribeBlock,
                     incoming: DescribeBlock) -> List[str]:
        added = []
        for case in incoming.cases:
            key = (incoming.name, case.name)
            if key in index.seen_cases:
                LOG.debug(
                    f"{incoming.name}.{case.name} already exists, "
                    "keeping the saved case")
                continue
            target.body.append(self.facility.tag_case(case, self.marker))
            added.append(f"{incoming.name}.{case.name}")
        return added
