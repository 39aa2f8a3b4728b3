"""Workspace hierarchy and assignment aggregation engine.

Read-side aggregation over flat workspace, membership, profile and work
item records: tree reconstruction, member directories, delegation
tracking and per-person assignment views.
"""

__version__ = "0.1.0"
