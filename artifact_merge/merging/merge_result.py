from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from artifact_merge.base.source_tree import SourceTree

DEFAULT_MARKER = "Added by automatic update"


class MergeStatus(str, Enum):
    CREATED = "created"    # nothing saved before, new content written as is
    REPLACED = "replaced"  # saved content had no mergeable structure
    MERGED = "merged"


@dataclass
class MergeResult:
    artifact: Optional[str]
    status: MergeStatus
    content: str
    tree: Optional[SourceTree] = None
    added: List[str] = field(default_factory=list)

    def __repr__(self):
        return (f"<MergeResult {self.artifact} {self.status.value} "
                f"added={self.added}>")
