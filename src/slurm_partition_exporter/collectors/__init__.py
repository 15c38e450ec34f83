"""Collectors package for SLURM metrics.

Contains collector implementations for different SLURM resource types.
Each collector module provides fetch, generate_metrics and describe_metrics
functions that can be composed with the SlurmCollector class.
"""
