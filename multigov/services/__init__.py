"""
Governor service and its lifecycle collaborators.
"""

from .governor import (
    COUNTING_MODE,
    GovernorError,
    GovernorService,
    ProposalAlreadyExistsError,
    ProposalNotActiveError,
    ProposalNotFoundError,
    ProposalNotReadyError,
    compute_proposal_id,
    create_governor,
    hash_description,
)
from .lifecycle import (
    ActionExecutor,
    InMemoryLifecycle,
    ProposalLifecycle,
    RecordingExecutor,
    StaticVotingPower,
    VotingPowerSource,
)

__all__ = [
    # Governor
    "GovernorService",
    "create_governor",
    "compute_proposal_id",
    "hash_description",
    "COUNTING_MODE",
    # Errors
    "GovernorError",
    "ProposalNotFoundError",
    "ProposalAlreadyExistsError",
    "ProposalNotActiveError",
    "ProposalNotReadyError",
    # Collaborators
    "ProposalLifecycle",
    "VotingPowerSource",
    "ActionExecutor",
    "InMemoryLifecycle",
    "StaticVotingPower",
    "RecordingExecutor",
]
