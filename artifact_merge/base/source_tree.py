"""
Source-tree facility interface.

The merge engine never tokenizes text itself: it asks a facility to parse
source into a ``SourceTree``, to expose that tree as the neutral member model
of ``artifact_merge.base.members`` and to render it back to text. Concrete
facilities subclass ``SourceTreeFacility``; see
``artifact_merge.base.python_dialect`` for the libcst one.
"""
from __future__ import annotations

from typing import Any, Optional

from artifact_merge.base.members import (
    ItBlock,
    Method,
    PageObjectClass,
    TestSuite,
)


class ParseError(ValueError):
    """Source text is not valid in the expected dialect."""

    def __init__(self, message: str, artifact: Optional[str] = None):
        self.artifact = artifact
        self.message = message
        where = f"{artifact}: " if artifact else ""
        super().__init__(f"{where}{message}")


class SourceTree:
    """Parsed artifact, owned by the single merge call that parsed it."""

    def __init__(self, root: Any, artifact: Optional[str] = None):
        self.root = root
        self.artifact = artifact

    def __repr__(self):
        return f"<SourceTree {self.artifact or '<memory>'}>"


class SourceTreeFacility:
    """Parse/render capability plus the member-model adapters."""

    def parse(self, text: str, artifact: Optional[str] = None) -> SourceTree:
        raise NotImplementedError

    def render(self, tree: SourceTree) -> str:
        raise NotImplementedError

    def read_page_object(
            self, tree: SourceTree) -> Optional[PageObjectClass]:
        """Return the page-object class of *tree*, None if there is none."""
        raise NotImplementedError

    def write_page_object(
            self, tree: SourceTree, page_object: PageObjectClass) -> None:
        raise NotImplementedError

    def read_suite(self, tree: SourceTree) -> TestSuite:
        raise NotImplementedError

    def write_suite(self, tree: SourceTree, suite: TestSuite) -> None:
        raise NotImplementedError

    def tag_method(self, method: Method, marker: str) -> Method:
        """Return a copy of *method* whose body opens with *marker*."""
        raise NotImplementedError

    def tag_case(self, case: ItBlock, marker: str) -> ItBlock:
        """Return a copy of *case* preceded by *marker*."""
        raise NotImplementedError

    def field_insertion_point(self, page_object: PageObjectClass) -> int:
        return 0

    def import_insertion_point(self, suite: TestSuite) -> int:
        return 0
