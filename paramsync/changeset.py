"""
Changeset, serialization, and snapshot utilities for parameter sync.

This module contains:
1. Serialization utilities (format_line, parse_line)
2. Snapshot serialization for before/after logging
3. SyncChangeset - the interface between the merge decision and write-back
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Set, Tuple

from .types import NOT_FOUND, ElementSnapshot, StableId


# =============================================================================
# Serialization Utilities
# =============================================================================


def _reads_as_typed(value: str) -> bool:
    if value in ("true", "false"):
        return True
    try:
        int(value)
    except ValueError:
        return False
    return True


def format_value(value: Any) -> str:
    """Format a value for serialization.

    Strings that would parse back as another type, or that hold any
    whitespace, are quoted, so text such as "0101" or "A-101\\xa0"
    survives a round trip.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    value = str(value)
    if (
        not value
        or any(c in '="\\' or c.isspace() for c in value)
        or _reads_as_typed(value)
    ):
        escaped = (
            value.replace("\\", "\\\\")
            .replace('"', '\\"')
            .replace("\n", "\\n")
            .replace("\r", "\\r")
            .replace("\t", "\\t")
        )
        return f'"{escaped}"'
    return value


def _unescape(s: str) -> str:
    out = []
    chars = iter(s)
    for c in chars:
        if c != "\\":
            out.append(c)
            continue
        nxt = next(chars, "")
        out.append({"n": "\n", "r": "\r", "t": "\t"}.get(nxt, nxt))
    return "".join(out)


def parse_value(s: str) -> Any:
    """Parse a serialized value.

    Quoted values are always strings; bare values become bools or ints
    where they look like one.
    """
    s = s.strip()
    if len(s) >= 2 and s.startswith('"') and s.endswith('"'):
        return _unescape(s[1:-1])
    if s == "true":
        return True
    if s == "false":
        return False
    try:
        return int(s)
    except ValueError:
        return s


def _tokenize(line: str) -> List[str]:
    """Split a line on spaces that are outside quotes."""
    tokens = []
    current = ""
    in_quotes = False
    escape = False

    for c in line:
        if escape:
            current += c
            escape = False
        elif c == "\\":
            current += c
            escape = True
        elif c == '"':
            current += c
            in_quotes = not in_quotes
        elif c == " " and not in_quotes:
            if current:
                tokens.append(current)
                current = ""
        else:
            current += c

    if in_quotes:
        raise ValueError(f"Unterminated quote in line: {line!r}")
    if current:
        tokens.append(current)
    return tokens


def format_line(kind: str, fields: Dict[str, Any]) -> str:
    """Format a single line: KIND key=value key=value ..."""
    parts = [kind]
    for key, value in fields.items():
        parts.append(f"{key}={format_value(value)}")
    return " ".join(parts)


def parse_line(line: str) -> Tuple[str, Dict[str, Any]]:
    """Parse a single line into (kind, fields) tuple."""
    line = line.strip()
    if not line or line.startswith("#"):
        raise ValueError(f"Cannot parse empty or comment line: {line!r}")

    tokens = _tokenize(line)
    kind = tokens[0]
    fields: Dict[str, Any] = {}

    for token in tokens[1:]:
        if "=" not in token:
            raise ValueError(f"Invalid field (no '='): {token!r}")
        key, value_str = token.split("=", 1)
        fields[key] = parse_value(value_str)

    return kind, fields


def _text_field(fields: Dict[str, Any], key: str) -> str:
    value = fields.get(key, "")
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


# =============================================================================
# Snapshot Serialization
# =============================================================================


def serialize_snapshot(snapshot: ElementSnapshot) -> List[str]:
    """Serialize one snapshot: an ELEM line followed by one PARAM line per value."""
    lines = [
        format_line(
            "ELEM",
            {
                "id": str(snapshot.stable_id),
                "local": snapshot.local_id,
                "params": len(snapshot.parameters),
            },
        )
    ]
    for name, value in snapshot.parameters.items():
        if value == NOT_FOUND:
            lines.append(
                format_line(
                    "PARAM",
                    {"id": str(snapshot.stable_id), "name": name, "missing": True},
                )
            )
        else:
            lines.append(
                format_line(
                    "PARAM",
                    {"id": str(snapshot.stable_id), "name": name, "value": value},
                )
            )
    return lines


def serialize_snapshots(snapshots: Iterable[ElementSnapshot]) -> List[str]:
    """Serialize snapshots in stable-id order."""
    lines: List[str] = []
    for snapshot in sorted(snapshots, key=lambda s: s.stable_id):
        lines.extend(serialize_snapshot(snapshot))
    return lines


# =============================================================================
# SyncChangeset
# =============================================================================


@dataclass(frozen=True)
class ParameterChange:
    """A single decided copy of one parameter value onto a host element."""

    stable_id: StableId
    name: str
    old_value: str
    new_value: str


@dataclass
class SyncChangeset:
    """The complete write-back plan - pure, serializable.

    `changes` maps each host identity to the parameters the merge decided to
    copy, in requested-parameter order. Only these identities are visited
    during write-back.
    """

    matched_count: int = 0
    changes: Dict[StableId, List[ParameterChange]] = field(default_factory=dict)

    @property
    def updated_ids(self) -> Set[StableId]:
        return {sid for sid, changes in self.changes.items() if changes}

    @property
    def is_empty(self) -> bool:
        return not self.updated_ids

    @property
    def parameter_count(self) -> int:
        return sum(len(changes) for changes in self.changes.values())

    @property
    def parameter_changes(self) -> List[ParameterChange]:
        result: List[ParameterChange] = []
        for sid in sorted(self.changes):
            result.extend(self.changes[sid])
        return result

    def add(self, change: ParameterChange) -> None:
        self.changes.setdefault(change.stable_id, []).append(change)

    def to_plaintext(self) -> str:
        """Serialize to plaintext - one line per change, parseable."""
        lines = [format_line("MATCHED", {"count": self.matched_count})]
        for change in self.parameter_changes:
            lines.append(
                format_line(
                    "PARAM_COPY",
                    {
                        "id": str(change.stable_id),
                        "name": change.name,
                        "old": change.old_value,
                        "new": change.new_value,
                    },
                )
            )
        return "\n".join(lines) + "\n"

    @classmethod
    def from_plaintext(cls, text: str) -> "SyncChangeset":
        """Parse plaintext back to SyncChangeset."""
        changeset = cls()

        for line in text.strip().split("\n"):
            line = line.strip()
            if not line or line.startswith("#"):
                continue

            cmd, fields = parse_line(line)

            if cmd == "MATCHED":
                changeset.matched_count = int(fields.get("count", 0))
            elif cmd == "PARAM_COPY":
                changeset.add(
                    ParameterChange(
                        stable_id=StableId.from_string(_text_field(fields, "id")),
                        name=_text_field(fields, "name"),
                        old_value=_text_field(fields, "old"),
                        new_value=_text_field(fields, "new"),
                    )
                )
            else:
                raise ValueError(f"Unknown changeset line kind: {cmd!r}")

        return changeset

    def to_diagnostics(self) -> List[Dict[str, Any]]:
        """Convert to user-facing diagnostics."""
        diagnostics: List[Dict[str, Any]] = []

        for change in self.parameter_changes:
            if change.old_value == NOT_FOUND:
                body = f"{change.name} will be set to {change.new_value!r}"
            else:
                body = (
                    f"{change.name} will change from "
                    f"{change.old_value!r} to {change.new_value!r}"
                )
            diagnostics.append(
                {
                    "kind": "param.sync.copy",
                    "severity": "info",
                    "body": body,
                    "path": str(change.stable_id),
                    "parameter": change.name,
                }
            )

        return diagnostics


def build_sync_changeset(
    pairs: Iterable[Tuple[ElementSnapshot, ElementSnapshot]],
) -> SyncChangeset:
    """Decide, per matched pair and parameter, which linked values to copy.

    A linked value is copied when it is not NOT_FOUND (an empty string is a
    real value) and it differs from the host's current value. Copied values
    are written into the host snapshot and both snapshots are marked updated.
    """
    changeset = SyncChangeset()

    for host, linked in pairs:
        changeset.matched_count += 1
        copied = False

        for name, linked_value in linked.parameters.items():
            if name not in host.parameters:
                continue
            if linked_value == NOT_FOUND:
                continue
            host_value = host.parameters[name]
            if host_value == linked_value:
                continue

            changeset.add(
                ParameterChange(
                    stable_id=host.stable_id,
                    name=name,
                    old_value=host_value,
                    new_value=linked_value,
                )
            )
            host.parameters[name] = linked_value
            copied = True

        if copied:
            host.mark_updated()
            linked.mark_updated()

    return changeset


def log_snapshots(
    prefix: str,
    snapshots: Iterable[ElementSnapshot],
    logger: Any,
) -> None:
    """Log snapshot state at DEBUG level, each line prefixed for diffing."""
    for line in serialize_snapshots(snapshots):
        logger.debug(f"{prefix} {line}")


def log_changeset(changeset: SyncChangeset, logger: Any) -> None:
    """Log changeset as INFO-level messages."""
    text = changeset.to_plaintext()
    for line in text.strip().split("\n"):
        logger.info(f"CHANGESET {line}")
