"""
Utility modules for the clinic scheduling backend.

This package contains shared helpers used across the application: half-open
interval arithmetic, datetime handling and transient-failure retries.
"""

from utils.intervals import overlaps, contains, subtract

__all__ = ['overlaps', 'contains', 'subtract']
