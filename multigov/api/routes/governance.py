"""
Multigov - Governance Routes
Endpoints for multi-option proposals, voting and winner selection.

Provides:
- Proposal creation
- Vote counting (direct weight or snapshot lookup)
- Tally and voter queries
- Preview, queue and execute of the winning actions

Byte fields travel as 0x-prefixed hex strings. Integers beyond 2**53 are
returned as decimal strings and accepted in either form.
"""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, status
from pydantic import BaseModel, BeforeValidator, Field, PlainSerializer

from multigov.api.dependencies import GovernorDep
from multigov.counting.errors import InvalidChoiceError
from multigov.models.governance import (
    ExecutionBundle,
    ProposalRecord,
    ProposalTally,
    VoteType,
)
from multigov.monitoring.logging import bind_context, json_safe_int, unbind_context
from multigov.services.governor import GovernorService

router = APIRouter()


def parse_hex(value: Any) -> bytes:
    """Decode a 0x-prefixed hex string."""
    if isinstance(value, bytes):
        return value
    if not isinstance(value, str) or value[:2].lower() != "0x":
        raise ValueError("Expected a 0x-prefixed hex string")
    try:
        return bytes.fromhex(value[2:])
    except ValueError:
        raise ValueError("Invalid hex string") from None


def to_hex(value: bytes) -> str:
    return "0x" + value.hex()


HexBytes = Annotated[bytes, BeforeValidator(parse_hex), PlainSerializer(to_hex, return_type=str)]

# Weights and values above 2**53 are sent as decimal strings
JsonSafeInt = Annotated[int, PlainSerializer(json_safe_int, return_type=int | str, when_used="json")]


def resolve_support(governor: GovernorService, proposal_id: str, support: int | str) -> int:
    """
    Map a named support value onto its simple-mode integer.

    Raises:
        InvalidChoiceError: Unknown name, or a name used on a multi-option proposal
    """
    if isinstance(support, int):
        return support
    if not governor.get_proposal(proposal_id).config.is_simple:
        raise InvalidChoiceError(
            f"Named support '{support}' only applies to simple proposals"
        )
    try:
        return int(VoteType.from_string(support))
    except ValueError as e:
        raise InvalidChoiceError(str(e)) from None


# =============================================================================
# Request/Response Models
# =============================================================================

class CreateProposalRequest(BaseModel):
    """Request to create a new proposal."""
    targets: list[str]
    values: list[int]
    payloads: list[HexBytes]
    description: str
    proposer: str | None = None
    # None means payloads[0] carries the metadata
    metadata: HexBytes | None = None


class VoteRequest(BaseModel):
    """Request to count a vote."""
    voter: str = Field(..., min_length=1)
    # Simple proposals also accept for/against/abstain and their aliases
    support: int | str
    # None looks the weight up at the proposal snapshot
    weight: int | None = None
    params: HexBytes = b""


class ProposalResponse(BaseModel):
    """Proposal response model."""
    id: str
    proposer: str | None
    description_hash: str
    mode: str
    option_count: int
    winner_count: int
    option_boundaries: list[int]
    action_count: int
    created_at: str

    @classmethod
    def from_record(cls, record: ProposalRecord) -> ProposalResponse:
        return cls(
            id=record.id,
            proposer=record.proposer,
            description_hash=record.description_hash,
            mode=record.config.mode,
            option_count=record.config.option_count,
            winner_count=record.config.winner_count,
            option_boundaries=list(record.config.option_boundaries),
            action_count=record.action_count,
            created_at=record.created_at.isoformat(),
        )


class VoteResponse(BaseModel):
    """Vote response model."""
    proposal_id: str
    voter: str
    applied_weight: JsonSafeInt


class TallyResponse(BaseModel):
    """Tally response model."""
    proposal_id: str
    option_count: int
    winner_count: int
    option_weights: list[JsonSafeInt]
    total_weight: JsonSafeInt

    @classmethod
    def from_tally(cls, proposal_id: str, tally: ProposalTally) -> TallyResponse:
        return cls(
            proposal_id=proposal_id,
            option_count=tally.option_count,
            winner_count=tally.winner_count,
            option_weights=list(tally.option_weights),
            total_weight=tally.total_weight,
        )


class VoterStatusResponse(BaseModel):
    """Whether a voter has voted on a proposal."""
    proposal_id: str
    voter: str
    has_voted: bool


class BundleResponse(BaseModel):
    """Winning actions in ascending boundary order."""
    proposal_id: str
    description_hash: str
    winning_options: list[int]
    targets: list[str]
    values: list[JsonSafeInt]
    payloads: list[HexBytes]

    @classmethod
    def from_bundle(cls, bundle: ExecutionBundle) -> BundleResponse:
        return cls(
            proposal_id=bundle.proposal_id,
            description_hash=bundle.description_hash,
            winning_options=list(bundle.winning_options),
            targets=list(bundle.targets),
            values=list(bundle.values),
            payloads=list(bundle.payloads),
        )


class CountingModeResponse(BaseModel):
    counting_mode: str


# =============================================================================
# Proposal Endpoints
# =============================================================================

@router.post("/proposals", response_model=ProposalResponse, status_code=status.HTTP_201_CREATED)
async def create_proposal(
    request: CreateProposalRequest,
    governor: GovernorDep,
) -> ProposalResponse:
    """
    Create a new proposal.

    Without an explicit ``metadata`` field the first action's payload is
    decoded as the proposal metadata and that action is not stored.
    """
    proposal_id = await governor.propose(
        request.targets,
        request.values,
        request.payloads,
        request.description,
        proposer=request.proposer,
        metadata=request.metadata,
    )
    return ProposalResponse.from_record(governor.get_proposal(proposal_id))


@router.get("/proposals/{proposal_id}", response_model=ProposalResponse)
async def get_proposal(proposal_id: str, governor: GovernorDep) -> ProposalResponse:
    return ProposalResponse.from_record(governor.get_proposal(proposal_id))


# =============================================================================
# Voting Endpoints
# =============================================================================

@router.post(
    "/proposals/{proposal_id}/votes",
    response_model=VoteResponse,
    status_code=status.HTTP_201_CREATED,
)
async def vote(
    proposal_id: str,
    request: VoteRequest,
    governor: GovernorDep,
) -> VoteResponse:
    """
    Count a vote.

    With ``weight`` the vote is applied as given. Without it the proposal
    must be active and the weight comes from the voting-power source.
    Simple proposals take ``support`` as a name as well (for, against,
    abstain, yes, no, approve, reject).
    """
    support = resolve_support(governor, proposal_id, request.support)

    bind_context(proposal_id=proposal_id, voter=request.voter)
    try:
        if request.weight is None:
            applied = await governor.cast_vote(
                proposal_id, request.voter, support, request.params
            )
        else:
            applied = await governor.count_vote(
                proposal_id, request.voter, support, request.weight, request.params
            )
    finally:
        unbind_context("proposal_id", "voter")
    return VoteResponse(proposal_id=proposal_id, voter=request.voter, applied_weight=applied)


@router.get("/proposals/{proposal_id}/tally", response_model=TallyResponse)
async def get_tally(proposal_id: str, governor: GovernorDep) -> TallyResponse:
    tally = await governor.proposal_tally(proposal_id)
    return TallyResponse.from_tally(proposal_id, tally)


@router.get("/proposals/{proposal_id}/voters/{voter}", response_model=VoterStatusResponse)
async def get_voter_status(
    proposal_id: str,
    voter: str,
    governor: GovernorDep,
) -> VoterStatusResponse:
    return VoterStatusResponse(
        proposal_id=proposal_id,
        voter=voter,
        has_voted=await governor.has_voted(proposal_id, voter),
    )


# =============================================================================
# Finalization Endpoints
# =============================================================================

@router.post("/proposals/{proposal_id}/preview", response_model=BundleResponse)
async def preview(proposal_id: str, governor: GovernorDep) -> BundleResponse:
    """Winning actions as of now, without state checks."""
    return BundleResponse.from_bundle(await governor.preview(proposal_id))


@router.post("/proposals/{proposal_id}/queue", response_model=BundleResponse)
async def queue(proposal_id: str, governor: GovernorDep) -> BundleResponse:
    return BundleResponse.from_bundle(await governor.queue(proposal_id))


@router.post("/proposals/{proposal_id}/execute", response_model=BundleResponse)
async def execute(proposal_id: str, governor: GovernorDep) -> BundleResponse:
    return BundleResponse.from_bundle(await governor.execute(proposal_id))


# =============================================================================
# Introspection
# =============================================================================

@router.get("/counting-mode", response_model=CountingModeResponse)
async def counting_mode(governor: GovernorDep) -> CountingModeResponse:
    return CountingModeResponse(counting_mode=governor.counting_mode())


@router.get("/stats")
async def get_stats(governor: GovernorDep) -> dict[str, Any]:
    return governor.get_stats()
