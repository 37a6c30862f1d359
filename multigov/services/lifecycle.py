"""
Lifecycle collaborators.

The governor does not own proposal state, voting power or action
execution. These protocols describe what it needs from the surrounding
system; the in-memory implementations back the HTTP app and the tests.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import structlog

from multigov.models.governance import ExecutionBundle, ProposalRecord, ProposalState

logger = structlog.get_logger(__name__)


@runtime_checkable
class ProposalLifecycle(Protocol):
    """Owner of proposal records and their state machine."""

    async def register(self, record: ProposalRecord) -> None: ...

    async def state(self, proposal_id: str) -> ProposalState: ...

    async def snapshot(self, proposal_id: str) -> int: ...


@runtime_checkable
class VotingPowerSource(Protocol):
    """Voting-power ledger queried at a proposal snapshot."""

    async def get_votes(self, voter: str, snapshot: int) -> int: ...


@runtime_checkable
class ActionExecutor(Protocol):
    """Performs or schedules the winning actions."""

    async def queue(self, bundle: ExecutionBundle) -> None: ...

    async def execute(self, bundle: ExecutionBundle) -> None: ...


class InMemoryLifecycle:
    """
    Lifecycle manager kept in process memory.

    New proposals start in ``initial_state``; tests and operators move
    them along with ``set_state``. Snapshots are a monotonically
    increasing counter.
    """

    def __init__(self, initial_state: ProposalState = ProposalState.ACTIVE):
        self._initial_state = initial_state
        self._records: dict[str, ProposalRecord] = {}
        self._states: dict[str, ProposalState] = {}
        self._snapshots: dict[str, int] = {}
        self._clock = 0

    async def register(self, record: ProposalRecord) -> None:
        if record.id in self._records:
            raise ValueError(f"Proposal {record.id} already registered")
        self._clock += 1
        self._records[record.id] = record
        self._states[record.id] = self._initial_state
        self._snapshots[record.id] = self._clock

    async def state(self, proposal_id: str) -> ProposalState:
        try:
            return self._states[proposal_id]
        except KeyError:
            raise KeyError(f"Unknown proposal: {proposal_id}") from None

    async def snapshot(self, proposal_id: str) -> int:
        try:
            return self._snapshots[proposal_id]
        except KeyError:
            raise KeyError(f"Unknown proposal: {proposal_id}") from None

    def set_state(self, proposal_id: str, state: ProposalState) -> None:
        if proposal_id not in self._states:
            raise KeyError(f"Unknown proposal: {proposal_id}")
        logger.info(
            "proposal_state_changed",
            proposal_id=proposal_id,
            old_state=self._states[proposal_id].value,
            new_state=state.value,
        )
        self._states[proposal_id] = state


class StaticVotingPower:
    """Fixed voter weights, identical at every snapshot."""

    def __init__(self, balances: dict[str, int] | None = None):
        self._balances: dict[str, int] = dict(balances or {})

    def set_votes(self, voter: str, weight: int) -> None:
        self._balances[voter] = weight

    async def get_votes(self, voter: str, snapshot: int) -> int:
        return self._balances.get(voter, 0)


class RecordingExecutor:
    """Executor that only records the bundles it receives."""

    def __init__(self) -> None:
        self.queued: list[ExecutionBundle] = []
        self.executed: list[ExecutionBundle] = []

    async def queue(self, bundle: ExecutionBundle) -> None:
        self.queued.append(bundle)

    async def execute(self, bundle: ExecutionBundle) -> None:
        self.executed.append(bundle)
