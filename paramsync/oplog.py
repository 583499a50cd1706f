"""
Write-back operation log for debugging and testing.

Records every action taken during apply_changeset, including the outcome of
each individual parameter write. Skipped writes never raise; they show up
here and in the aggregate counters only.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Literal

from .changeset import format_line, parse_line


OpKind = Literal[
    "TXN_START",
    "TXN_COMMIT",
    "TXN_ROLLBACK",
    "ELEM_MISSING",
    "PARAM_SET",
    "PARAM_SKIP",
]


class WriteOutcome(Enum):
    """Result of attempting to write one parameter."""

    WRITTEN = "written"
    SKIPPED_MISSING = "missing"
    SKIPPED_READ_ONLY = "read_only"
    SKIPPED_PARSE_ERROR = "parse_error"
    SKIPPED_UNSUPPORTED = "unsupported"
    SKIPPED_ERROR = "error"


@dataclass(frozen=True)
class OpEvent:
    """A single structured operation event."""

    kind: OpKind
    fields: Dict[str, Any] = field(default_factory=dict)

    def to_line(self) -> str:
        """Serialize to a single human-readable line."""
        return format_line(self.kind, self.fields)

    @classmethod
    def from_line(cls, line: str) -> "OpEvent":
        """Parse a single line back to OpEvent."""
        kind, fields = parse_line(line)
        return cls(kind=kind, fields=fields)


@dataclass
class OpLog:
    """Accumulates write-back operations and per-parameter outcomes."""

    events: List[OpEvent] = field(default_factory=list)

    def emit(self, event: OpEvent) -> None:
        """Append an event to the log."""
        self.events.append(event)

    # =========================================================================
    # Transaction
    # =========================================================================

    def txn_start(self, name: str) -> None:
        self.emit(OpEvent(kind="TXN_START", fields={"name": name}))

    def txn_commit(self, status: str = "Committed") -> None:
        self.emit(OpEvent(kind="TXN_COMMIT", fields={"status": status}))

    def txn_rollback(self, reason: str) -> None:
        self.emit(OpEvent(kind="TXN_ROLLBACK", fields={"reason": reason}))

    # =========================================================================
    # Elements and parameters
    # =========================================================================

    def elem_missing(self, stable_id: str) -> None:
        self.emit(OpEvent(kind="ELEM_MISSING", fields={"id": stable_id}))

    def param_set(self, stable_id: str, name: str, value: str) -> None:
        self.emit(OpEvent(
            kind="PARAM_SET",
            fields={"id": stable_id, "name": name, "value": value},
        ))

    def param_skip(
        self,
        stable_id: str,
        name: str,
        outcome: WriteOutcome,
        detail: str = "",
    ) -> None:
        fields: Dict[str, Any] = {
            "id": stable_id,
            "name": name,
            "reason": outcome.value,
        }
        if detail:
            fields["detail"] = detail
        self.emit(OpEvent(kind="PARAM_SKIP", fields=fields))

    # =========================================================================
    # Outcomes
    # =========================================================================

    def outcomes(self) -> List[Dict[str, Any]]:
        """Per-parameter write report, in the order writes were attempted."""
        report: List[Dict[str, Any]] = []
        for event in self.events:
            if event.kind == "PARAM_SET":
                outcome = WriteOutcome.WRITTEN
            elif event.kind == "PARAM_SKIP":
                outcome = WriteOutcome(event.fields["reason"])
            else:
                continue
            report.append(
                {
                    "id": str(event.fields["id"]),
                    "name": str(event.fields["name"]),
                    "outcome": outcome,
                }
            )
        return report

    @property
    def parameters_written(self) -> int:
        return sum(1 for event in self.events if event.kind == "PARAM_SET")

    @property
    def elements_written(self) -> int:
        return len(
            {str(event.fields["id"]) for event in self.events if event.kind == "PARAM_SET"}
        )

    @property
    def committed(self) -> bool:
        return any(event.kind == "TXN_COMMIT" for event in self.events)

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_plaintext(self) -> str:
        """Serialize to plaintext - one line per event."""
        if not self.events:
            return ""
        lines = [event.to_line() for event in self.events]
        return "\n".join(lines) + "\n"

    def log_to(self, logger) -> None:
        """Log all events as INFO-level messages."""
        for event in self.events:
            logger.info(f"OPLOG {event.to_line()}")

    @classmethod
    def from_plaintext(cls, text: str) -> "OpLog":
        """Parse plaintext back to OpLog."""
        events: List[OpEvent] = []
        for line in text.strip().split("\n"):
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            events.append(OpEvent.from_line(line))
        return cls(events=events)
