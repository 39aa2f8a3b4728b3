"""Test suite for the workspace hierarchy engine.

Unit tests cover the tree traversal, member directory, delegation and
assignment logic plus the record sources. To run the tests, execute
`pytest` from the project root.
"""
