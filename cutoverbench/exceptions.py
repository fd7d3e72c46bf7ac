"""
Exception hierarchy for CutoverBench.

Per-operation database failures never surface as these; the operation
executor absorbs them into failed results. These cover setup and
configuration problems that abort a run.
"""


class CutoverBenchError(Exception):
    """Base class for errors that abort a run."""


class ConnectivityError(CutoverBenchError):
    """No usable connection could be established at startup."""


class ConfigurationError(CutoverBenchError):
    """The workload configuration is invalid."""
