"""Integration test package.

These tests run engine queries, the web API and the CLI end to end
against the JSON snapshot in ``tests/fixtures``. No network access is
needed.
"""
