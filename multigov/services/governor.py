"""
Governor Service for Multigov

Lifecycle-facing facade over the counting core. Decodes proposal
metadata once at creation, applies votes under per-proposal locks and
hands the winning actions to the executor.

Responsibilities:
- Proposal registration and metadata decoding
- Vote counting (direct weight or looked up at the snapshot)
- Tally and voter queries
- Winner selection for preview, queue and execute
"""

import asyncio
import time
from collections.abc import Sequence
from typing import Any

import structlog

from multigov.config import Settings, get_settings
from multigov.counting.engine import count_vote as apply_vote
from multigov.counting.engine import resolve_policy
from multigov.counting.errors import CountingError, MalformedMetadataError
from multigov.counting.metadata import check_boundaries, decode_metadata, encode_metadata
from multigov.counting.selection import build_bundle
from multigov.counting.tally import TallyStore
from multigov.models.base import canonical_dumps, sha256_hex
from multigov.models.governance import (
    ExecutionBundle,
    ProposalRecord,
    ProposalState,
    ProposalTally,
)
from multigov.monitoring.logging import log_duration
from multigov.monitoring.metrics import (
    proposals_created_total,
    votes_counted_total,
    votes_rejected_total,
    winner_selection_duration_seconds,
)
from multigov.services.lifecycle import (
    ActionExecutor,
    InMemoryLifecycle,
    ProposalLifecycle,
    VotingPowerSource,
)

logger = structlog.get_logger()

COUNTING_MODE = "support=bravo,approval,weighted&quorum=for,abstain&params=coefficients"


class GovernorError(Exception):
    """Governor processing error."""
    pass


class ProposalNotFoundError(GovernorError):
    """No proposal with this id."""
    pass


class ProposalAlreadyExistsError(GovernorError):
    """A proposal with identical actions, metadata and description exists."""
    pass


class ProposalNotActiveError(GovernorError):
    """Proposal is not accepting votes."""
    pass


class ProposalNotReadyError(GovernorError):
    """Proposal is not in a state that allows queueing or execution."""
    pass


def hash_description(description: str) -> str:
    return sha256_hex(description.encode("utf-8"))


def compute_proposal_id(
    targets: Sequence[str],
    values: Sequence[int],
    payloads: Sequence[bytes],
    metadata: bytes,
    description_hash: str,
) -> str:
    """Deterministic proposal id over actions, metadata and description."""
    body = {
        "targets": list(targets),
        "values": [str(v) for v in values],
        "payloads": [bytes(p).hex() for p in payloads],
        "metadata": bytes(metadata).hex(),
        "description_hash": description_hash,
    }
    return sha256_hex(canonical_dumps(body).encode("utf-8"))


class GovernorService:
    """
    Multi-option counting governor.

    Votes on one proposal are serialized by that proposal's lock; votes
    on different proposals never contend.
    """

    def __init__(
        self,
        lifecycle: ProposalLifecycle,
        voting_power: VotingPowerSource | None = None,
        executor: ActionExecutor | None = None,
        settings: Settings | None = None,
    ):
        """
        Initialize the governor.

        Args:
            lifecycle: Proposal state owner
            voting_power: Weight lookup used by cast_vote
            executor: Receives queued and executed bundles
            settings: Counting settings (defaults to environment)
        """
        self._lifecycle = lifecycle
        self._voting_power = voting_power
        self._executor = executor
        self._settings = settings or get_settings()

        self._records: dict[str, ProposalRecord] = {}
        # ids whose lifecycle registration is in flight
        self._pending: set[str] = set()
        self._tallies = TallyStore()

        self._registry_lock = asyncio.Lock()
        self._proposal_locks: dict[str, asyncio.Lock] = {}

        self._stats = {
            "proposals_created": 0,
            "votes_counted": 0,
            "votes_rejected": 0,
            "proposals_queued": 0,
            "proposals_executed": 0,
        }
        self._stats_lock = asyncio.Lock()

        self._logger = logger.bind(component="governor")

    async def _get_proposal_lock(self, proposal_id: str) -> asyncio.Lock:
        """Get or create a lock for a specific proposal."""
        async with self._registry_lock:
            if proposal_id not in self._proposal_locks:
                self._proposal_locks[proposal_id] = asyncio.Lock()
            return self._proposal_locks[proposal_id]

    async def _update_stats(self, key: str, delta: int = 1) -> None:
        async with self._stats_lock:
            self._stats[key] = self._stats.get(key, 0) + delta

    def _require(self, proposal_id: str) -> ProposalRecord:
        record = self._records.get(proposal_id)
        if record is None:
            raise ProposalNotFoundError(f"Proposal not found: {proposal_id}")
        return record

    # ═══════════════════════════════════════════════════════════════
    # PROPOSALS
    # ═══════════════════════════════════════════════════════════════

    async def propose(
        self,
        targets: Sequence[str],
        values: Sequence[int],
        payloads: Sequence[bytes],
        description: str,
        *,
        proposer: str | None = None,
        metadata: bytes | None = None,
    ) -> str:
        """
        Create a proposal.

        When ``metadata`` is not given, the first action's payload is the
        metadata and that action is dropped from the stored action list.
        Option boundaries index the stored list.

        Returns:
            The proposal id

        Raises:
            MetadataError: Metadata or action arrays are invalid
            ProposalAlreadyExistsError: Identical proposal exists
        """
        targets = list(targets)
        values = list(values)
        payloads = [bytes(p) for p in payloads]

        if not targets:
            raise MalformedMetadataError("Proposal has no actions")
        if not len(targets) == len(values) == len(payloads):
            raise MalformedMetadataError(
                f"Action arrays differ in length: {len(targets)} targets, "
                f"{len(values)} values, {len(payloads)} payloads"
            )

        if metadata is None:
            metadata = payloads[0]
            targets, values, payloads = targets[1:], values[1:], payloads[1:]

        config = decode_metadata(metadata, max_options=self._settings.max_options)
        if not config.is_simple and self._settings.enforce_boundaries_at_propose:
            check_boundaries(config, len(targets))

        description_hash = hash_description(description)
        proposal_id = compute_proposal_id(
            targets, values, payloads, encode_metadata(config), description_hash
        )

        record = ProposalRecord(
            id=proposal_id,
            proposer=proposer,
            description=description,
            description_hash=description_hash,
            targets=targets,
            values=values,
            payloads=payloads,
            config=config,
        )

        async with self._registry_lock:
            if proposal_id in self._records or proposal_id in self._pending:
                raise ProposalAlreadyExistsError(f"Proposal already exists: {proposal_id}")
            self._pending.add(proposal_id)

        try:
            await self._lifecycle.register(record)
        except BaseException:
            async with self._registry_lock:
                self._pending.discard(proposal_id)
            raise

        async with self._registry_lock:
            self._pending.discard(proposal_id)
            self._records[proposal_id] = record
            self._tallies.get_or_create(proposal_id, config)

        proposals_created_total.inc(mode=config.mode)
        await self._update_stats("proposals_created")

        self._logger.info(
            "proposal_created",
            proposal_id=proposal_id,
            proposer=proposer,
            option_count=config.option_count,
            winner_count=config.winner_count,
            actions=len(targets),
        )
        return proposal_id

    def get_proposal(self, proposal_id: str) -> ProposalRecord:
        return self._require(proposal_id)

    # ═══════════════════════════════════════════════════════════════
    # VOTING
    # ═══════════════════════════════════════════════════════════════

    async def count_vote(
        self,
        proposal_id: str,
        voter: str,
        support: int,
        weight: int,
        params: bytes = b"",
    ) -> int:
        """
        Apply a vote with an externally supplied weight.

        Returns:
            Total weight applied

        Raises:
            ProposalNotFoundError: Unknown proposal
            CountingError: Vote rejected; the tally is unchanged
        """
        record = self._require(proposal_id)
        params = bytes(params or b"")
        policy = resolve_policy(record.config, params)

        proposal_lock = await self._get_proposal_lock(proposal_id)
        async with proposal_lock:
            tally = self._tallies.get_or_create(proposal_id, record.config)
            try:
                applied = apply_vote(
                    tally,
                    voter,
                    support,
                    weight,
                    params,
                    allow_packed=self._settings.allow_packed_coefficients,
                )
            except CountingError as e:
                votes_rejected_total.inc(reason=type(e).__name__)
                self._logger.warning(
                    "vote_rejected",
                    proposal_id=proposal_id,
                    voter=voter,
                    policy=policy.value,
                    reason=type(e).__name__,
                    error=str(e),
                )
                raise

        votes_counted_total.inc(policy=policy.value)
        await self._update_stats("votes_counted")
        self._logger.info(
            "vote_counted",
            proposal_id=proposal_id,
            voter=voter,
            policy=policy.value,
            weight=weight,
            applied=applied,
        )
        return applied

    async def cast_vote(
        self,
        proposal_id: str,
        voter: str,
        support: int,
        params: bytes = b"",
    ) -> int:
        """
        Apply a vote using the voter's weight at the proposal snapshot.

        Raises:
            ProposalNotActiveError: Proposal is not in the ACTIVE state
            GovernorError: No voting power source configured
        """
        self._require(proposal_id)
        if self._voting_power is None:
            raise GovernorError("No voting power source configured")

        state = ProposalState(await self._lifecycle.state(proposal_id))
        if state != ProposalState.ACTIVE:
            raise ProposalNotActiveError(
                f"Proposal {proposal_id} is {state.value}, votes are not accepted"
            )

        snapshot = await self._lifecycle.snapshot(proposal_id)
        weight = await self._voting_power.get_votes(voter, snapshot)
        return await self.count_vote(proposal_id, voter, support, weight, params)

    async def has_voted(self, proposal_id: str, voter: str) -> bool:
        self._require(proposal_id)
        tally = self._tallies.get(proposal_id)
        return tally is not None and tally.has_voted(voter)

    async def proposal_tally(self, proposal_id: str) -> ProposalTally:
        """Read-only tally view (option count, winner count, weights)."""
        record = self._require(proposal_id)
        proposal_lock = await self._get_proposal_lock(proposal_id)
        async with proposal_lock:
            tally = self._tallies.get_or_create(proposal_id, record.config)
            return tally.to_view()

    # ═══════════════════════════════════════════════════════════════
    # FINALIZATION
    # ═══════════════════════════════════════════════════════════════

    async def _select(self, record: ProposalRecord) -> ExecutionBundle:
        if record.config.is_simple:
            return ExecutionBundle(
                proposal_id=record.id,
                description_hash=record.description_hash,
                targets=list(record.targets),
                values=list(record.values),
                payloads=list(record.payloads),
            )

        proposal_lock = await self._get_proposal_lock(record.id)
        async with proposal_lock:
            tally = self._tallies.get_or_create(record.id, record.config)
            start = time.perf_counter()
            with log_duration(
                self._logger, "winner_selection", level="debug", proposal_id=record.id
            ):
                bundle = build_bundle(
                    record.id,
                    record.description_hash,
                    record.config,
                    tally,
                    record.targets,
                    record.values,
                    record.payloads,
                )
            winner_selection_duration_seconds.observe(time.perf_counter() - start)

        self._logger.info(
            "winners_selected",
            proposal_id=record.id,
            winning_options=bundle.winning_options,
            actions=len(bundle),
        )
        return bundle

    async def preview(self, proposal_id: str) -> ExecutionBundle:
        """Compute the bundle without any state gating or side effects."""
        return await self._select(self._require(proposal_id))

    async def queue(self, proposal_id: str) -> ExecutionBundle:
        """
        Select winners and hand the bundle to the executor's queue.

        Raises:
            ProposalNotReadyError: Proposal has not succeeded
        """
        record = self._require(proposal_id)
        state = ProposalState(await self._lifecycle.state(proposal_id))
        if state != ProposalState.SUCCEEDED:
            raise ProposalNotReadyError(
                f"Proposal {proposal_id} is {state.value}, only succeeded proposals can be queued"
            )

        bundle = await self._select(record)
        if self._executor is not None:
            await self._executor.queue(bundle)

        await self._update_stats("proposals_queued")
        self._logger.info("proposal_queued", proposal_id=proposal_id, actions=len(bundle))
        return bundle

    async def execute(self, proposal_id: str) -> ExecutionBundle:
        """
        Select winners and hand the bundle to the executor.

        Raises:
            ProposalNotReadyError: Proposal is neither succeeded nor queued
        """
        record = self._require(proposal_id)
        state = ProposalState(await self._lifecycle.state(proposal_id))
        if state not in {ProposalState.SUCCEEDED, ProposalState.QUEUED}:
            raise ProposalNotReadyError(
                f"Proposal {proposal_id} is {state.value}, only succeeded or queued proposals can be executed"
            )

        bundle = await self._select(record)
        if self._executor is not None:
            await self._executor.execute(bundle)

        await self._update_stats("proposals_executed")
        self._logger.info("proposal_executed", proposal_id=proposal_id, actions=len(bundle))
        return bundle

    # ═══════════════════════════════════════════════════════════════
    # INTROSPECTION
    # ═══════════════════════════════════════════════════════════════

    @staticmethod
    def counting_mode() -> str:
        """Machine-readable description of the supported counting."""
        return COUNTING_MODE

    def get_stats(self) -> dict[str, Any]:
        """Get governor statistics."""
        return {
            **self._stats,
            "proposals": len(self._records),
            "tallies": len(self._tallies),
            "voters": sum(tally.voter_count for tally in self._tallies),
        }


def create_governor(
    lifecycle: ProposalLifecycle | None = None,
    **kwargs: Any,
) -> GovernorService:
    """
    Create a governor.

    Args:
        lifecycle: Lifecycle manager (defaults to an in-memory one)
        **kwargs: Passed through to GovernorService

    Returns:
        Configured GovernorService
    """
    return GovernorService(lifecycle=lifecycle or InMemoryLifecycle(), **kwargs)
