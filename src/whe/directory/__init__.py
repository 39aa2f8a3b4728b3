"""Member directory built across a workspace subtree."""

from .members import FilterOptions, MemberDirectory, build_directory  # noqa: F401
