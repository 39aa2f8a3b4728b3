"""Merged task and checklist assignments per person."""

from .aggregator import (  # noqa: F401
    AssignmentView,
    aggregate_assignments,
    compute_stats,
    merge_assignments,
    search_assignments,
)
