"""
Revit adapter for linked-model parameter synchronization.

Bridges the abstract sync types and the concrete host API. Every function
takes the API namespace (`db`, shaped like Autodesk.Revit.DB) explicitly so
the same code runs against the live application and the JSON-backed model.

This module implements:
1. Element enumeration and identity extraction
2. Link lookup (exact or substring name match) and the link autofill list
3. apply_changeset - the transactional write-back of a SyncChangeset
"""

from typing import Any, Dict, List, Optional, Tuple
import logging

from .changeset import ParameterChange, SyncChangeset
from .codec import decode_value, element_id_value, storage_kind_of
from .errors import LinkDocumentUnavailable, LinkNotFound, TransactionFailure
from .oplog import OpLog, WriteOutcome
from .types import NOT_FOUND, LinkMatch, StableId

logger = logging.getLogger("paramsync.revit")

TRANSACTION_NAME = "Update Parameters from Linked Model"


# =============================================================================
# Elements
# =============================================================================


def collect_instance_elements(document: Any, db: Any) -> List[Any]:
    """All non-type elements of a document."""
    return list(
        db.FilteredElementCollector(document).WhereElementIsNotElementType().ToElements()
    )


def get_stable_id(element: Any) -> Optional[StableId]:
    unique_id = element.UniqueId
    if not unique_id:
        return None
    return StableId.from_string(str(unique_id))


def get_local_id(element: Any) -> int:
    return element_id_value(element.Id)


# =============================================================================
# Links
# =============================================================================


def collect_link_instances(document: Any, db: Any) -> List[Any]:
    return list(
        db.FilteredElementCollector(document).OfClass(db.RevitLinkInstance).ToElements()
    )


def _link_name_matches(link_name: str, target: str, link_match: LinkMatch) -> bool:
    link_name = (link_name or "").lower()
    target = target.lower()
    if link_match == "contains":
        return target in link_name
    return link_name == target


def find_link_instance(
    document: Any,
    target: str,
    db: Any,
    link_match: LinkMatch = "exact",
) -> Optional[Any]:
    """First link instance whose name matches `target`, case-insensitively."""
    if not target:
        return None
    for link in collect_link_instances(document, db):
        if _link_name_matches(link.Name, target, link_match):
            return link
    return None


def resolve_linked_document(
    document: Any,
    target: str,
    db: Any,
    link_match: LinkMatch = "exact",
) -> Tuple[Any, Any]:
    """Resolve the configured link to (link_instance, linked_document).

    Raises LinkNotFound when no link matches and LinkDocumentUnavailable
    when the matching link is not loaded.
    """
    link = find_link_instance(document, target, db, link_match)
    if link is None:
        raise LinkNotFound(f"Linked model '{target}' not found.")

    linked_document = link.GetLinkDocument()
    if linked_document is None:
        raise LinkDocumentUnavailable("Failed to access the linked document.")

    logger.info(f"Resolved linked model '{target}' to link '{link.Name}'")
    return link, linked_document


def list_linked_models(document: Any, db: Any) -> Dict[str, str]:
    """Names of the loaded links, keyed by themselves for selection lists."""
    result: Dict[str, str] = {}
    for link in collect_link_instances(document, db):
        if link.GetLinkDocument() is not None:
            result[link.Name] = link.Name
    if not result:
        raise LinkNotFound("No linked models found.")
    return result


# =============================================================================
# Write-back
# =============================================================================


def _write_parameter(
    element: Any,
    change: ParameterChange,
    db: Any,
    oplog: OpLog,
) -> WriteOutcome:
    """Write one changed value onto a live element. Never raises."""
    sid = str(change.stable_id)

    param = element.LookupParameter(change.name)
    if param is None:
        oplog.param_skip(sid, change.name, WriteOutcome.SKIPPED_MISSING)
        return WriteOutcome.SKIPPED_MISSING

    if param.IsReadOnly:
        oplog.param_skip(sid, change.name, WriteOutcome.SKIPPED_READ_ONLY)
        return WriteOutcome.SKIPPED_READ_ONLY

    kind = storage_kind_of(param, db)
    if not kind.is_writable:
        oplog.param_skip(
            sid, change.name, WriteOutcome.SKIPPED_UNSUPPORTED, detail=kind.value
        )
        return WriteOutcome.SKIPPED_UNSUPPORTED

    try:
        native = decode_value(kind, change.new_value)
    except ValueError as e:
        oplog.param_skip(sid, change.name, WriteOutcome.SKIPPED_PARSE_ERROR, detail=str(e))
        return WriteOutcome.SKIPPED_PARSE_ERROR

    try:
        accepted = param.Set(native)
    except Exception as e:
        logger.warning(f"Failed to set {change.name} on {sid}: {e}")
        oplog.param_skip(sid, change.name, WriteOutcome.SKIPPED_ERROR, detail=str(e))
        return WriteOutcome.SKIPPED_ERROR

    # Parameter.Set reports rejection through its return value.
    if accepted is False:
        oplog.param_skip(
            sid, change.name, WriteOutcome.SKIPPED_ERROR, detail="value rejected"
        )
        return WriteOutcome.SKIPPED_ERROR

    oplog.param_set(sid, change.name, change.new_value)
    return WriteOutcome.WRITTEN


def _is_committed(status: Any, db: Any) -> bool:
    if status is None:
        return True
    return status == db.TransactionStatus.Committed


def _roll_back(transaction: Any, oplog: OpLog, reason: str) -> None:
    try:
        if transaction.HasStarted() and not transaction.HasEnded():
            transaction.RollBack()
    except Exception as e:
        logger.error(f"Rollback after {reason} failed: {e}")
    oplog.txn_rollback(reason)


def apply_changeset(
    changeset: SyncChangeset,
    document: Any,
    db: Any,
) -> OpLog:
    """Apply a SyncChangeset to the host document in one transaction.

    Only identities in `changeset.updated_ids` are visited. Per-parameter
    failures are recorded in the returned OpLog and never abort the batch.
    A failed commit rolls the transaction back and raises TransactionFailure.

    Args:
        changeset: The merge decision to write back
        document: Host document
        db: Host API namespace

    Returns:
        OpLog with every operation and per-parameter outcome
    """
    oplog = OpLog()

    transaction = db.Transaction(document, TRANSACTION_NAME)
    transaction.Start()
    oplog.txn_start(TRANSACTION_NAME)

    try:
        for sid in sorted(changeset.updated_ids):
            element = document.GetElement(str(sid))
            if element is None:
                oplog.elem_missing(str(sid))
                logger.info(f"Element no longer in host document: {sid}")
                continue

            for change in changeset.changes[sid]:
                if change.new_value == NOT_FOUND:
                    continue
                _write_parameter(element, change, db, oplog)
    except Exception:
        _roll_back(transaction, oplog, "error")
        raise

    try:
        status = transaction.Commit()
    except Exception as e:
        _roll_back(transaction, oplog, "commit failed")
        logger.error(f"Commit of '{TRANSACTION_NAME}' failed: {e}")
        raise TransactionFailure(f"Failed to commit parameter updates: {e}") from e

    if not _is_committed(status, db):
        _roll_back(transaction, oplog, "commit rejected")
        logger.error(f"Commit of '{TRANSACTION_NAME}' returned {status}")
        raise TransactionFailure(
            f"Failed to commit parameter updates: transaction status {status}"
        )

    oplog.txn_commit(str(status) if status is not None else "Committed")
    return oplog
