"""
Core data types for linked-model parameter synchronization.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Literal, Sequence

# Encoded value for a parameter that is absent on an element or has no value.
NOT_FOUND = "[NOT FOUND OR NO VALUE]"


LinkMatch = Literal["exact", "contains"]

LINK_MATCH_MODES: Sequence[str] = ("exact", "contains")


@dataclass(frozen=True, order=True)
class StableId:
    """Host-assigned identity that survives save/reload. Immutable and hashable."""

    value: str

    def __str__(self) -> str:
        return self.value

    def __bool__(self) -> bool:
        return bool(self.value)

    @classmethod
    def from_string(cls, value: str) -> "StableId":
        return cls(value=value or "")


class StorageKind(Enum):
    """Semantic type of a parameter's stored value."""

    TEXT = "text"
    INTEGER = "integer"
    REAL = "real"
    ELEMENT_ID = "element_id"
    UNSUPPORTED = "unsupported"

    @property
    def is_writable(self) -> bool:
        # Element ids are read for comparison but never written back.
        return self in (StorageKind.TEXT, StorageKind.INTEGER, StorageKind.REAL)


@dataclass
class ElementSnapshot:
    """Identity plus the requested parameter values of one element.

    `parameters` always holds exactly one entry per requested name. Values
    that are missing or unset are stored as NOT_FOUND.
    """

    stable_id: StableId
    local_id: int = 0
    parameters: Dict[str, str] = field(default_factory=dict)
    was_updated: bool = False

    def mark_updated(self) -> None:
        self.was_updated = True

    def value(self, name: str) -> str:
        return self.parameters.get(name, NOT_FOUND)

    def has_value(self, name: str) -> bool:
        return self.value(name) != NOT_FOUND


@dataclass
class SyncConfig:
    """User-facing configuration of a parameter copy run."""

    linked_model: str = ""
    parameter_names: List[str] = field(default_factory=list)
    link_match: LinkMatch = "exact"
    dry_run: bool = False

    def __post_init__(self):
        if self.link_match not in LINK_MATCH_MODES:
            raise ValueError(
                f"Unknown link match mode {self.link_match!r}, "
                f"expected one of {', '.join(LINK_MATCH_MODES)}"
            )
        self.parameter_names = [name for name in self.parameter_names if name]

    @classmethod
    def from_dict(cls, data: Dict) -> "SyncConfig":
        return cls(
            linked_model=data.get("linked_model", ""),
            parameter_names=list(data.get("parameters", [])),
            link_match=data.get("link_match", "exact"),
            dry_run=bool(data.get("dry_run", False)),
        )

    def to_dict(self) -> Dict:
        return {
            "linked_model": self.linked_model,
            "parameters": list(self.parameter_names),
            "link_match": self.link_match,
            "dry_run": self.dry_run,
        }
