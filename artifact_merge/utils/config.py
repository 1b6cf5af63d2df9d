from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from artifact_merge.merging.merge_result import DEFAULT_MARKER


@dataclass
class MergeConfig:
    marker: str = DEFAULT_MARKER
    elements_field: str = "elements"
    page_object_dir: str = "page_objects"
    test_file: str = "tests/test_generated.py"
    test_file_pattern: str = "test_*.py"
    workers: int = 4

    def __post_init__(self):
        for name, expected in _FIELD_TYPES.items():
            value = getattr(self, name)
            if not isinstance(value, expected) or isinstance(value, bool):
                raise ValueError(
                    f"Config key '{name}' must be of type "
                    f"{expected.__name__}, got {value!r}")
        if "\n" in self.marker or not self.marker.strip():
            raise ValueError("Config key 'marker' must be a single line")
        if not self.elements_field.isidentifier():
            raise ValueError(
                f"Config key 'elements_field' is not an identifier: "
                f"{self.elements_field!r}")
        if self.workers < 1:
            raise ValueError(f"Config key 'workers' must be >= 1, "
                             f"got {self.workers}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MergeConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(unknown)}")
        return cls(**data)


_FIELD_TYPES = {
    "marker": str,
    "elements_field": str,
    "page_object_dir": str,
    "test_file": str,
    "test_file_pattern": str,
    "workers": int,
}


def load_config(config_path: Optional[Union[str, Path]] = None) -> MergeConfig:
    """Load a YAML merge config; defaults when no path is given."""
    if config_path is None:
        return MergeConfig()
    with open(config_path, 'r') as file:
        data = yaml.safe_load(file) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {config_path} is not a YAML mapping")
    return MergeConfig.from_dict(data)
