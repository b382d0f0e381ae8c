"""
Utility modules for the clinic booking application.

This package contains shared helper functions used across the application,
including datetime utilities, interval arithmetic and patient identifier
normalization.
"""

from utils.interval_utils import merge_intervals, subtract_intervals
from utils.patient_validators import canonicalize_ci

__all__ = ['merge_intervals', 'subtract_intervals', 'canonicalize_ci']
