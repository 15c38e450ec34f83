"""SLURM command-line client package.

Provides a thin wrapper around the ``sinfo`` and ``squeue`` commands that
returns their raw standard output. Parsing and aggregation are handled by
collector modules.

Exports:
    SlurmCliClient: Runs SLURM commands with a timeout and error mapping.
    SlurmCommandError: Base class for command failures.
    SlurmCommandUnavailableError: Command could not be started.
    SlurmCommandExitError: Command exited with a non-zero status.
    SlurmCommandTimeoutError: Command did not finish in time.
    types: Module containing command-level enums and constants.
    DEFAULT_TIMEOUT: Default per-command timeout.
"""

from . import types
from .client import (
    DEFAULT_TIMEOUT,
    SlurmCliClient,
    SlurmCommandError,
    SlurmCommandExitError,
    SlurmCommandTimeoutError,
    SlurmCommandUnavailableError,
)

__all__ = [
    "DEFAULT_TIMEOUT",
    "SlurmCliClient",
    "SlurmCommandError",
    "SlurmCommandExitError",
    "SlurmCommandTimeoutError",
    "SlurmCommandUnavailableError",
    "types",
]
