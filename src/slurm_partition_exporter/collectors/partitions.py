"""Partition metrics collector for SLURM.

Builds per-partition node and CPU counts, broken down by node state, from
``sinfo`` output and merges pending/running job counts from ``squeue``.
Every call builds a fresh mapping so concurrent scrapes never share state.
"""

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum

import structlog
from prometheus_client.core import GaugeMetricFamily
from prometheus_client.metrics_core import Metric

from .. import slurmcli

logger = structlog.get_logger(__name__)


class StateCategory(str, Enum):
    """Node state buckets exported per partition."""

    ALLOCATED = "allocated"
    COMPLETING = "completing"
    DOWN = "down"
    DRAINING = "draining"
    IDLE = "idle"
    MAINTENANCE = "maintenance"
    MIXED = "mixed"
    RESERVED = "reserved"
    ERROR = "error"
    FAILED = "failed"


# Ordered (prefix, category) table; first match wins. Prefixes match both
# the short and long sinfo state names and ignore flag suffixes like "*".
STATE_PREFIXES: tuple[tuple[str, StateCategory], ...] = (
    ("alloc", StateCategory.ALLOCATED),
    ("comp", StateCategory.COMPLETING),
    ("down", StateCategory.DOWN),
    ("drain", StateCategory.DRAINING),
    ("idle", StateCategory.IDLE),
    ("maint", StateCategory.MAINTENANCE),
    ("mix", StateCategory.MIXED),
    ("resv", StateCategory.RESERVED),
    ("reserved", StateCategory.RESERVED),
    ("err", StateCategory.ERROR),
    ("fail", StateCategory.FAILED),
)

PARTITION_LABEL = "partition"


def _zero_counts() -> dict[StateCategory, int]:
    return dict.fromkeys(StateCategory, 0)


@dataclass
class PartitionMetric:
    """Counters for a single SLURM partition.

    ``cpus_by_state`` is always derived from node counts multiplied by the
    per-node CPU count of the sinfo line they came from. Resources whose
    state matches no category are counted in ``nodes_other``/``cpus_other``.
    """

    name: str
    nodes_by_state: dict[StateCategory, int] = field(default_factory=_zero_counts)
    cpus_by_state: dict[StateCategory, int] = field(default_factory=_zero_counts)
    nodes_other: int = 0
    cpus_other: int = 0
    nodes_total: int = 0
    cpus_total: int = 0
    jobs_pending: int = 0
    jobs_running: int = 0


def classify_state(state: str) -> StateCategory | None:
    """Map a scheduler node state onto a StateCategory.

    Args:
        state: State string as printed by sinfo (e.g. "drained*").

    Returns:
        Matching category, or None when no prefix applies.
    """
    normalized = state.strip().lower()
    for prefix, category in STATE_PREFIXES:
        if normalized.startswith(prefix):
            return category
    return None


def _parse_count(value: str, line: str, field_name: str) -> int:
    """Parse a non-negative count, returning 0 when it cannot be parsed.

    sinfo prints "N+" when a line groups nodes of different sizes; the
    lower bound N is used.
    """
    try:
        count = int(value.strip().rstrip("+"))
    except ValueError:
        logger.warning("Failed to parse count from sinfo line", field=field_name, line=line)
        return 0
    if count < 0:
        logger.warning("Negative count in sinfo line", field=field_name, line=line)
        return 0
    return count


def _parse_partition_state(text: str) -> dict[str, PartitionMetric]:
    """Accumulate sinfo lines into per-partition metrics.

    Args:
        text: Raw sinfo output, one ``partition,nodes,cpus,state`` per line.

    Returns:
        Dictionary mapping partition name to its metrics.
    """
    partitions: dict[str, PartitionMetric] = {}

    for line in text.split("\n"):
        if "," not in line:
            continue

        fields = line.split(",", 3)
        fields += [""] * (4 - len(fields))
        name, nodes_field, cpus_field, state = fields

        partition = partitions.get(name)
        if partition is None:
            partition = partitions[name] = PartitionMetric(name=name)

        nodes = _parse_count(nodes_field, line, "nodes")
        cpus = nodes * _parse_count(cpus_field, line, "cpus") if nodes else 0

        partition.nodes_total += nodes
        partition.cpus_total += cpus

        category = classify_state(state)
        if category is None:
            logger.debug("Unclassified node state", partition=name, state=state)
            partition.nodes_other += nodes
            partition.cpus_other += cpus
            continue
        partition.nodes_by_state[category] += nodes
        partition.cpus_by_state[category] += cpus

    return partitions


def _count_jobs(text: str, partitions: dict[str, PartitionMetric], attr: str) -> None:
    """Credit each job line to every known partition it names.

    Args:
        text: Raw squeue output, one partition list per job.
        partitions: Partition metrics to update in place.
        attr: Name of the counter attribute to increment.
    """
    for line in text.split("\n"):
        if not line:
            continue
        for name in line.split(","):
            partition = partitions.get(name)
            if partition is not None:
                setattr(partition, attr, getattr(partition, attr) + 1)


def fetch(client: slurmcli.SlurmCliClient) -> dict[str, PartitionMetric]:
    """Build partition metrics from the SLURM command-line tools.

    Command failures propagate unchanged so that no partial result is
    ever returned.

    Args:
        client: CLI client to use for fetching.

    Returns:
        Dictionary mapping partition name to its metrics.
    """
    partitions = _parse_partition_state(client.read_partition_state())

    pending = client.read_jobs_by_state(slurmcli.types.JobState.PENDING)
    _count_jobs(pending, partitions, "jobs_pending")

    running = client.read_jobs_by_state(slurmcli.types.JobState.RUNNING)
    _count_jobs(running, partitions, "jobs_running")

    return partitions


def _state_metric_name(resource: str, category: StateCategory) -> str:
    return f"slurm_partition_{resource}_{category.value}"


def _new_families() -> dict[str, GaugeMetricFamily]:
    """Create the partition metric families in export order."""
    families: dict[str, GaugeMetricFamily] = {}
    for resource, noun in (("nodes", "Nodes"), ("cpus", "CPUs")):
        for category in StateCategory:
            name = _state_metric_name(resource, category)
            families[name] = GaugeMetricFamily(
                name,
                f"{noun} in state {category.value} for partition",
                labels=[PARTITION_LABEL],
            )
        name = f"slurm_partition_{resource}_other"
        families[name] = GaugeMetricFamily(
            name,
            f"{noun} in no known state for partition",
            labels=[PARTITION_LABEL],
        )
        name = f"slurm_partition_{resource}_total"
        families[name] = GaugeMetricFamily(
            name,
            f"Total {resource} for partition",
            labels=[PARTITION_LABEL],
        )
    for state in slurmcli.types.JobState:
        name = f"slurm_partition_jobs_{state.value}"
        families[name] = GaugeMetricFamily(
            name,
            f"{state.value.capitalize()} jobs for partition",
            labels=[PARTITION_LABEL],
        )
    return families


def describe_metrics() -> Iterator[Metric]:
    """Yield sample-less families describing every partition metric."""
    yield from _new_families().values()


def generate_metrics(partitions: dict[str, PartitionMetric]) -> Iterator[Metric]:
    """Generate Prometheus metrics from partition data.

    Every counter is exported for every partition, including zeros, so
    that a missing series always means a missing partition.

    Args:
        partitions: Dictionary mapping partition name to its metrics.

    Yields:
        Prometheus Metric objects.
    """
    families = _new_families()

    for name, partition in partitions.items():
        labels = [name]
        for category in StateCategory:
            families[_state_metric_name("nodes", category)].add_metric(
                labels,
                partition.nodes_by_state[category],
            )
            families[_state_metric_name("cpus", category)].add_metric(
                labels,
                partition.cpus_by_state[category],
            )
        families["slurm_partition_nodes_other"].add_metric(labels, partition.nodes_other)
        families["slurm_partition_cpus_other"].add_metric(labels, partition.cpus_other)
        families["slurm_partition_nodes_total"].add_metric(labels, partition.nodes_total)
        families["slurm_partition_cpus_total"].add_metric(labels, partition.cpus_total)
        families["slurm_partition_jobs_pending"].add_metric(labels, partition.jobs_pending)
        families["slurm_partition_jobs_running"].add_metric(labels, partition.jobs_running)

    yield from families.values()
