"""Slurm Partition Exporter.

Prometheus exporter for the SLURM workload manager that reports node and
CPU counts by node state, plus pending and running job counts, for every
partition, using the sinfo and squeue command-line tools.
"""

__version__ = "0.1.0"
