"""Command-level types for the SLURM CLI client.

Output format strings and job states understood by ``sinfo`` and
``squeue``. The formats are fixed because the collectors parse the
resulting columns positionally.
"""

from enum import Enum

# partition, node count, cpus per node, extended node state
SINFO_PARTITION_FORMAT = "%R,%D,%c,%T"

# partition list of each job (comma-joined when a job names several)
SQUEUE_PARTITION_FORMAT = "%P"


class JobState(str, Enum):
    """Job states that can be queried through ``squeue --states``."""

    PENDING = "pending"
    RUNNING = "running"

    @property
    def squeue_state(self) -> str:
        """State name as expected by ``squeue --states``."""
        return self.value.upper()
