"""
Core workload engine: executor, worker pool, phase and host tracking,
statistics and reporting.
"""
