"""
Core operations for linked-model parameter synchronization.

1. build_snapshots(document, names) -> List[ElementSnapshot]
   Read-only pass over a document, one snapshot per non-type element.

2. match_snapshots(linked, host) -> Iterator[(host, linked)]
   Join the two snapshot sets by stable identity.

3. build_sync_changeset(pairs) -> SyncChangeset  (see changeset.py)
   Decide per parameter which linked values are copied.

4. apply_changeset(changeset, document) -> OpLog  (see revit_adapter.py)
   Write the decided values back inside one transaction.

run_param_sync() chains these for one host/linked document pair.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, TYPE_CHECKING
import logging
import time

if TYPE_CHECKING:
    from .diagnostics import DiagnosticSink

from .changeset import (
    SyncChangeset,
    build_sync_changeset,
    log_changeset,
    log_snapshots,
    serialize_snapshots,
)
from .codec import encode_parameter
from .errors import InvalidInput
from .oplog import OpLog
from .revit_adapter import (
    apply_changeset,
    collect_instance_elements,
    get_local_id,
    get_stable_id,
)
from .types import NOT_FOUND, ElementSnapshot, StableId

logger = logging.getLogger("paramsync.sync")


def build_snapshots(
    document: Any,
    parameter_names: Sequence[str],
    db: Any,
) -> List[ElementSnapshot]:
    """
    Snapshot the requested parameters of every non-type element.

    Each snapshot carries exactly one entry per requested name. Elements
    without a UniqueId cannot be matched and are not snapshotted.
    """
    if not parameter_names:
        raise InvalidInput("No parameters specified to copy.")

    snapshots: List[ElementSnapshot] = []
    for element in collect_instance_elements(document, db):
        stable_id = get_stable_id(element)
        if stable_id is None:
            continue

        parameters: Dict[str, str] = {}
        for name in parameter_names:
            parameters[name] = encode_parameter(element.LookupParameter(name), db)

        snapshots.append(
            ElementSnapshot(
                stable_id=stable_id,
                local_id=get_local_id(element),
                parameters=parameters,
            )
        )

    return snapshots


def match_snapshots(
    linked: Sequence[ElementSnapshot],
    host: Sequence[ElementSnapshot],
    diagnostics: Optional[List[Dict[str, Any]]] = None,
) -> Iterator[Tuple[ElementSnapshot, ElementSnapshot]]:
    """Yield (host, linked) pairs that share a stable identity.

    Unmatched snapshots on either side are dropped. A stable id repeated in
    the linked set keeps its last snapshot and is reported as a warning.
    """
    by_id: Dict[StableId, ElementSnapshot] = {}
    for snapshot in linked:
        if snapshot.stable_id in by_id:
            body = (
                f"Duplicate stable id {snapshot.stable_id} in linked model; "
                f"using local id {snapshot.local_id}"
            )
            logger.warning(body)
            if diagnostics is not None:
                diagnostics.append(
                    {
                        "kind": "param.sync.duplicate_stable_id",
                        "severity": "warning",
                        "body": body,
                        "path": str(snapshot.stable_id),
                    }
                )
        by_id[snapshot.stable_id] = snapshot

    for host_snapshot in host:
        linked_snapshot = by_id.get(host_snapshot.stable_id)
        if linked_snapshot is not None:
            yield host_snapshot, linked_snapshot


def check_sync_invariants(
    snapshots: Sequence[ElementSnapshot],
    parameter_names: Sequence[str],
    diagnostics: Optional[List[Dict[str, Any]]] = None,
) -> None:
    """
    Verify snapshot invariants for one document.

    Violations are appended to diagnostics if provided.
    """

    def _add_diagnostic(kind: str, severity: str, body: str, path: str) -> None:
        if diagnostics is not None:
            diagnostics.append(
                {"kind": kind, "severity": severity, "body": body, "path": path}
            )

    expected = set(parameter_names)
    for snapshot in snapshots:
        keys = set(snapshot.parameters.keys())
        if keys != expected:
            missing = sorted(expected - keys)
            extra = sorted(keys - expected)
            _add_diagnostic(
                "param.sync.parameter_mismatch",
                "error",
                f"Snapshot parameters differ from request (missing {missing}, extra {extra})",
                str(snapshot.stable_id),
            )


def _count_found(snapshots: Sequence[ElementSnapshot]) -> int:
    return sum(
        1 for s in snapshots for value in s.parameters.values() if value != NOT_FOUND
    )


# =============================================================================
# Sync Pipeline (main entry point)
# =============================================================================


@dataclass
class SyncResult:
    """Result of a sync operation."""

    changeset: SyncChangeset
    diagnostics: List[Dict[str, Any]] = field(default_factory=list)
    applied: bool = False
    oplog: Optional[OpLog] = None

    @property
    def matched_count(self) -> int:
        return self.changeset.matched_count

    @property
    def elements_written(self) -> int:
        return self.oplog.elements_written if self.oplog else 0

    @property
    def parameters_written(self) -> int:
        return self.oplog.parameters_written if self.oplog else 0

    def to_report(self) -> Dict[str, Any]:
        """JSON-serializable summary for diagnostic sinks."""
        return {
            "matched": self.matched_count,
            "elements_written": self.elements_written,
            "parameters_written": self.parameters_written,
            "applied": self.applied,
            "changeset": self.changeset.to_plaintext().strip().split("\n"),
            "oplog": self.oplog.to_plaintext().strip().split("\n") if self.oplog else [],
            "diagnostics": list(self.diagnostics),
        }


def run_param_sync(
    host_document: Any,
    linked_document: Any,
    parameter_names: Sequence[str],
    db: Any,
    dry_run: bool = False,
    sink: Optional["DiagnosticSink"] = None,
) -> SyncResult:
    """Run the snapshot, match, merge and write-back pipeline.

    This is the pipeline behind command.run(); preconditions on the
    documents are checked there.
    """
    start_time = time.time()
    logger.info("Starting linked-model parameter sync")

    diagnostics: List[Dict[str, Any]] = []

    linked_snapshots = build_snapshots(linked_document, parameter_names, db)
    host_snapshots = build_snapshots(host_document, parameter_names, db)

    check_sync_invariants(linked_snapshots, parameter_names, diagnostics)
    check_sync_invariants(host_snapshots, parameter_names, diagnostics)

    logger.info(
        f"Linked: {len(linked_snapshots)} elements, "
        f"{_count_found(linked_snapshots)} values; "
        f"Host: {len(host_snapshots)} elements, "
        f"{_count_found(host_snapshots)} values"
    )

    log_snapshots("LINKED", linked_snapshots, logger)
    log_snapshots("HOST", host_snapshots, logger)

    pairs = match_snapshots(linked_snapshots, host_snapshots, diagnostics)
    changeset = build_sync_changeset(pairs)

    logger.info(
        f"Matched {changeset.matched_count} elements; "
        f"{changeset.parameter_count} parameter(s) to copy on "
        f"{len(changeset.updated_ids)} element(s)"
    )

    log_changeset(changeset, logger)

    if diagnostics:
        logger.info(f"Diagnostics ({len(diagnostics)}):")
        for d in diagnostics:
            level = d.get("severity", "info").upper()
            kind = d.get("kind", "unknown")
            path = d.get("path", "")
            body = d.get("body", "")
            logger.info(f"  [{level}] {kind} @ {path}: {body}")

    if dry_run:
        diagnostics.extend(changeset.to_diagnostics())
        result = SyncResult(changeset=changeset, diagnostics=diagnostics, applied=False)
        _emit(sink, result, host_snapshots)
        return result

    # Apply exactly what was logged.
    changeset = SyncChangeset.from_plaintext(changeset.to_plaintext())

    oplog = apply_changeset(changeset, host_document, db)

    oplog.log_to(logger)

    logger.info(f"Sync completed in {time.time() - start_time:.3f}s")

    result = SyncResult(
        changeset=changeset,
        diagnostics=diagnostics,
        applied=True,
        oplog=oplog,
    )
    _emit(sink, result, host_snapshots)
    return result


def _emit(
    sink: Optional["DiagnosticSink"],
    result: SyncResult,
    host_snapshots: Sequence[ElementSnapshot],
) -> None:
    if sink is None:
        return
    report = result.to_report()
    report["host_snapshots"] = serialize_snapshots(
        s for s in host_snapshots if s.was_updated
    )
    # The write-back has already committed; a lost report must not fail the run.
    try:
        sink.write(report)
    except OSError as e:
        logger.error(f"Failed to write sync report: {e}")
