"""Delegated item tracking across a workspace subtree."""

from .tracker import (  # noqa: F401
    DelegationGroup,
    DelegationSummary,
    classify_delegations,
    filter_delegations,
    group_delegations,
    summarize_delegations,
)
