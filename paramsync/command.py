"""
command.py - copy parameter values from a linked model into the host model
==========================================================================

Pipeline Overview
-----------------
0. Preconditions
   • Active host document, a link matching the configured name, a loaded
     linked document, and at least one parameter name. Each failure returns
     a distinct Failed message before anything is modified.

1. Sync (see sync.run_param_sync)
   • Snapshot both documents, match by UniqueId, decide copies, write back
     inside one transaction.

2. Report
   • Summary message with matched/written counts; optional JSON report via
     a diagnostic sink.

Inside the host application, call run() with the active document. Outside
it, `python -m paramsync` runs the same pipeline on a JSON model file.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional, Union
import argparse
import json
import logging
import sys

from .diagnostics import DiagnosticSink, JsonDiagnosticSink
from .errors import (
    InvalidInput,
    NoActiveDocument,
    OperationCancelled,
    PreconditionError,
)
from .revit_adapter import list_linked_models, resolve_linked_document
from .sync import SyncResult, run_param_sync
from .types import LINK_MATCH_MODES, SyncConfig

# Global logger.
logger = logging.getLogger("paramsync")


@dataclass(frozen=True)
class CommandResult:
    """Outcome reported back to the caller: Succeeded or Failed with a message."""

    succeeded: bool
    message: str
    sync: Optional[SyncResult] = None

    @classmethod
    def success(cls, message: str, sync: Optional[SyncResult] = None) -> "CommandResult":
        return cls(succeeded=True, message=message, sync=sync)

    @classmethod
    def failure(cls, message: str) -> "CommandResult":
        return cls(succeeded=False, message=message)

    def __str__(self) -> str:
        return f"{'Succeeded' if self.succeeded else 'Failed'}: {self.message}"


def _host_db() -> Any:
    # Available in the host application's Python environment.
    from Autodesk.Revit import DB

    return DB


def _is_cancelled(token: Any) -> bool:
    """Accepts a .NET CancellationToken or anything with is_set()."""
    if token is None:
        return False
    if hasattr(token, "IsCancellationRequested"):
        return bool(token.IsCancellationRequested)
    if hasattr(token, "is_set"):
        return bool(token.is_set())
    return False


def _summary(result: SyncResult) -> str:
    if not result.applied:
        return (
            f"Parameter copy dry run. Matched: {result.matched_count}, "
            f"Elements to write: {len(result.changeset.updated_ids)}, "
            f"Parameters to write: {result.changeset.parameter_count}"
        )
    return (
        f"Parameter copy completed. Matched: {result.matched_count}, "
        f"Elements written: {result.elements_written}, "
        f"Parameters written: {result.parameters_written}"
    )


def run(
    document: Any,
    config: SyncConfig,
    cancellation_token: Any = None,
    db: Any = None,
    sink: Optional[DiagnosticSink] = None,
) -> CommandResult:
    """Copy the configured parameters from the linked model into `document`.

    Precondition failures come back as a failed CommandResult. A rejected
    commit raises TransactionFailure.
    """
    try:
        if _is_cancelled(cancellation_token):
            raise OperationCancelled("Operation cancelled.")
        if document is None:
            raise NoActiveDocument("No active document found.")

        db = db if db is not None else _host_db()

        _, linked_document = resolve_linked_document(
            document, config.linked_model, db, config.link_match
        )

        if not config.parameter_names:
            raise InvalidInput("No parameters specified to copy.")
    except PreconditionError as e:
        logger.info(f"Parameter copy not started: {e}")
        return CommandResult.failure(str(e))

    result = run_param_sync(
        document,
        linked_document,
        config.parameter_names,
        db,
        dry_run=config.dry_run,
        sink=sink,
    )

    message = _summary(result)
    logger.info(message)
    return CommandResult.success(message, sync=result)


def load_config(path: Union[str, Path]) -> SyncConfig:
    """Read a SyncConfig from a JSON file."""
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    return SyncConfig.from_dict(data)


####################################################################################################
# Command-line interface
####################################################################################################


def _build_config(args: argparse.Namespace) -> SyncConfig:
    base = load_config(args.config) if args.config else SyncConfig()
    return SyncConfig(
        linked_model=args.linked_model if args.linked_model is not None else base.linked_model,
        parameter_names=args.parameter if args.parameter else base.parameter_names,
        link_match=args.link_match or base.link_match,
        dry_run=args.dry_run or base.dry_run,
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="""Copy parameter values from a linked model into the host model."""
    )
    parser.add_argument(
        "--model",
        "-m",
        type=str,
        metavar="file",
        required=True,
        help="""JSON file containing the host model and its links.""",
    )
    parser.add_argument(
        "--linked-model",
        "-l",
        type=str,
        metavar="name",
        help="""Name of the link to copy from.""",
    )
    parser.add_argument(
        "--parameter",
        "-p",
        action="append",
        metavar="name",
        help="""Parameter to copy; repeat for more than one.""",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        metavar="file",
        help="""JSON file with linked_model, parameters, link_match and dry_run.""",
    )
    parser.add_argument(
        "--link-match",
        choices=LINK_MATCH_MODES,
        help="""Match the link name exactly (default) or by substring.""",
    )
    parser.add_argument(
        "--output",
        "-o",
        type=str,
        metavar="file",
        help="""Output file for the updated model (default: overwrite --model).""",
    )
    parser.add_argument(
        "--diagnostics",
        "-d",
        type=str,
        metavar="file",
        help="""Output file for the sync report JSON.""",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="""Report what would be copied without modifying the model.""",
    )
    parser.add_argument(
        "--list-links",
        action="store_true",
        help="""List loaded links and exit.""",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="""Also log snapshot contents.""",
    )
    args = parser.parse_args(argv)

    logger.setLevel(logging.DEBUG if args.verbose else logging.INFO)

    handler = logging.StreamHandler()
    formatter = logging.Formatter("%(levelname)s: %(message)s")
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    from .json_model import JsonDB, load_model, save_model

    document = load_model(args.model)

    if args.list_links:
        try:
            names = list_linked_models(document, JsonDB)
        except PreconditionError as e:
            logger.error(str(e))
            return 1
        for name in sorted(names):
            print(name)
        return 0

    try:
        config = _build_config(args)
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    sink = JsonDiagnosticSink(args.diagnostics) if args.diagnostics else None

    result = run(document, config, db=JsonDB, sink=sink)
    if not result.succeeded:
        logger.error(result.message)
        return 1

    if not config.dry_run:
        save_model(document, args.output or args.model)

    return 0


###############################################################################
# Main entrypoint.
###############################################################################
if __name__ == "__main__":
    sys.exit(main())
