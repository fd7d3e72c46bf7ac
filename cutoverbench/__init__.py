"""
CutoverBench - workload driver for observing live database cutovers.
"""

__version__ = "0.1.0"
