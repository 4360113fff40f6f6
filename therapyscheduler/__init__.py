"""
Therapy session scheduling: conflict detection, slot optimization, duration
adjustments and therapist assignment.
"""

__version__ = "0.1.0"
