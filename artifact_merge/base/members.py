"""
Grammar-neutral view of page objects and test suites.

A class body is an ordered list of ``ElementField | Method | OpaqueMember``
and a suite is an ordered list of ``ImportBinding | DescribeBlock | ItBlock |
OpaqueMember``. Every variant keeps a handle (``node``) on the tree node it
was read from; only the source-tree facility looks inside it.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional, Union

# Name of the implicit block holding module-level test cases.
ROOT_BLOCK = ""


@dataclass
class OpaqueMember:
    node: Any


@dataclass
class ElementEntry:
    name: Optional[str]
    node: Any


@dataclass
class ElementField:
    name: str
    entries: List[ElementEntry]
    node: Any

    @property
    def entry_names(self) -> List[str]:
        return [e.name for e in self.entries if e.name is not None]


@dataclass
class Method:
    name: str
    node: Any


ClassMember = Union[ElementField, Method, OpaqueMember]


@dataclass
class PageObjectClass:
    name: str
    members: List[ClassMember]
    node: Any

    @property
    def element_field(self) -> Optional[ElementField]:
        return next((m for m in self.members
                     if isinstance(m, ElementField)), None)

    @property
    def methods(self) -> List[Method]:
        return [m for m in self.members if isinstance(m, Method)]


@dataclass
class ImportBinding:
    text: str
    node: Any


@dataclass
class ItBlock:
    name: str
    node: Any


@dataclass
class DescribeBlock:
    name: str
    body: List[Union[ItBlock, OpaqueMember]]
    node: Any

    @property
    def cases(self) -> List[ItBlock]:
        return [m for m in self.body if isinstance(m, ItBlock)]


SuiteStatement = Union[ImportBinding, DescribeBlock, ItBlock, OpaqueMember]


@dataclass
class TestSuite:
    statements: List[SuiteStatement] = field(default_factory=list)

    # keep pytest from collecting this as a test class
    __test__ = False

    @property
    def imports(self) -> List[ImportBinding]:
        return [s for s in self.statements if isinstance(s, ImportBinding)]

    @property
    def blocks(self) -> List[DescribeBlock]:
        return [s for s in self.statements if isinstance(s, DescribeBlock)]

    @property
    def root_cases(self) -> List[ItBlock]:
        return [s for s in self.statements if isinstance(s, ItBlock)]

    @property
    def has_structure(self) -> bool:
        return bool(self.blocks or self.root_cases)
