"""
Additive merge of a regenerated page object into the saved one.

Members are matched by declared name only. Locator entries and methods that
the saved class lacks are appended; everything it already has is left
byte-identical, including members whose regenerated body differs. Nothing is
ever removed, renamed or reordered.
"""
from __future__ import annotations

import logging
from typing import List, Optional

from artifact_merge.base.member_index import (
    PageObjectIndex,
    StructureNotFound,
    index_page_object,
)
from artifact_merge.base.members import ElementField, PageObjectClass
from artifact_merge.base.python_dialect import PythonSourceFacility
from artifact_merge.base.source_tree import SourceTree, SourceTreeFacility
from artifact_merge.merging.merge_result import (
    DEFAULT_MARKER,
    MergeResult,
    MergeStatus,
)

LOG = logging.getLogger("page_object_merger")


class PageObjectMerger:
    def __init__(self,
                 facility: Optional[SourceTreeFacility] = None,
                 marker: str = DEFAULT_MARKER):
        self.facility = facility or PythonSourceFacility()
        self.marker = marker

    def merge(self, existing: Optional[SourceTree], new_content: str,
              artifact: Optional[str] = None) -> MergeResult:
        if existing is None:
            LOG.info(f"{artifact}: no saved page object, writing new content")
            return MergeResult(artifact=artifact, status=MergeStatus.CREATED,
                               content=new_content)
        # new content must parse even when it ends up replacing the saved one
        incoming_tree = self.facility.parse(new_content, artifact=artifact)
        try:
            index = index_page_object(self.facility, existing)
        except StructureNotFound as e:
            LOG.warning(f"{e}; replacing the whole page object")
            return MergeResult(artifact=artifact, status=MergeStatus.REPLACED,
                               content=new_content)

        incoming = self.facility.read_page_object(incoming_tree)
        added: List[str] = []
        if incoming is None:
            LOG.warning(
                f"{artifact}: new content declares no class, nothing to add")
        else:
            added += self._merge_elements(index, incoming)
            added += self._merge_methods(index, incoming)
            self.facility.write_page_object(existing, index.page_object)

        if added:
            LOG.info(f"{artifact}: added {', '.join(added)}")
        return MergeResult(
            artifact=artifact, status=MergeStatus.MERGED,
            content=self.facility.render(existing), tree=existing,
            added=added)

    def _merge_elements(self, index: PageObjectIndex,
                        incoming: PageObjectClass) -> List[str]:
        incoming_field = incoming.element_field
        if incoming_field is None:
            return []

        if index.element_field is None:
            named = [e for e in incoming_field.entries if e.name is not None]
            if not named:
                return []
            created = ElementField(name=incoming_field.name, entries=named,
                                   node=incoming_field.node)
            position = self.facility.field_insertion_point(index.page_object)
            index.page_object.members.insert(position, created)
            index.element_field = created
            return [f"{created.name}.{name}" for name in created.entry_names]

        added = []
        for entry in incoming_field.entries:
            if entry.name is None:
                continue
            if entry.name in index.element_names:
                LOG.debug(f"Element '{entry.name}' already present, keeping it")
                continue
            index.element_field.entries.append(entry)
            added.append(f"{index.element_field.name}.{entry.name}")
        return added

    def _merge_methods(self, index: PageObjectIndex,
                       incoming: PageObjectClass) -> List[str]:
        added = []
        for method in incoming.methods:
            if method.name in index.method_names:
                LOG.debug(f"Method '{method.name}' already present, keeping it")
                continue
            index.page_object.members.append(
                self.facility.tag_method(method, self.marker))
            added.append(method.name)
        return added
