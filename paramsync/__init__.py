"""Linked-model parameter synchronization."""

from .command import run, CommandResult
from .sync import run_param_sync, SyncResult

__all__ = ["run", "CommandResult", "run_param_sync", "SyncResult"]
