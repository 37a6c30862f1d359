"""
Multigov Models

Pydantic models for governance entities.
"""

from multigov.models.base import (
    FrozenGovModel,
    GovModel,
    TimestampMixin,
)
from multigov.models.governance import (
    CountingPolicy,
    ExecutionBundle,
    ProposalConfig,
    ProposalRecord,
    ProposalState,
    ProposalTally,
    VoteType,
)

__all__ = [
    "GovModel",
    "FrozenGovModel",
    "TimestampMixin",
    "CountingPolicy",
    "ExecutionBundle",
    "ProposalConfig",
    "ProposalRecord",
    "ProposalState",
    "ProposalTally",
    "VoteType",
]
