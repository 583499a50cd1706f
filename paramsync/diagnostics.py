"""
Diagnostic sinks for parameter sync runs.

A sink receives one JSON-serializable report per run. The sync never
depends on a sink being present; callers inject one when they want a dump.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Union
import json
import logging

logger = logging.getLogger("paramsync")


class DiagnosticSink(ABC):
    """Receives the report of a finished sync run."""

    @abstractmethod
    def write(self, report: Dict[str, Any]) -> None:
        pass


class MemoryDiagnosticSink(DiagnosticSink):
    """Keeps reports in memory, newest last."""

    def __init__(self):
        self.reports: List[Dict[str, Any]] = []

    def write(self, report: Dict[str, Any]) -> None:
        self.reports.append(report)

    @property
    def last(self) -> Dict[str, Any]:
        return self.reports[-1]


class JsonDiagnosticSink(DiagnosticSink):
    """Writes the report to a JSON file with deterministic ordering."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def write(self, report: Dict[str, Any]) -> None:
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(canonicalize_json(report), f, indent=2)
        count = len(report.get("diagnostics", []))
        logger.info(f"Saved sync report with {count} diagnostic(s) to {self.path}")


def canonicalize_json(obj: Any) -> Any:
    """
    Recursively canonicalize a JSON-serializable object for deterministic output.

    - Dicts are converted to sorted dicts (by key)
    - Lists keep their order; producers already emit them sorted
    - Primitives are returned as-is
    """
    if isinstance(obj, dict):
        return {k: canonicalize_json(v) for k, v in sorted(obj.items())}
    if isinstance(obj, (list, tuple)):
        return [canonicalize_json(item) for item in obj]
    return obj
