"""
Governance Models

Proposal configuration, proposal records, tally views and the
execution bundle handed to the action executor.
"""

from enum import Enum, IntEnum

from pydantic import ConfigDict, Field

from multigov.models.base import FrozenGovModel, GovModel, TimestampMixin


class VoteType(IntEnum):
    """
    Simple-mode (bravo) support values.

    The integer value is both the wire value of ``support`` and the
    index of the bucket in the tally.
    """

    AGAINST = 0
    FOR = 1
    ABSTAIN = 2

    @classmethod
    def from_string(cls, value: str) -> "VoteType":
        """
        Safe conversion from a user-supplied string.

        Accepts canonical names (FOR, AGAINST, ABSTAIN) and the common
        aliases APPROVE/REJECT/YES/NO, case-insensitively.

        Raises:
            ValueError: If value is not a valid vote type
        """
        if not isinstance(value, str):
            raise ValueError(f"VoteType must be string, got {type(value)}")

        normalized = value.strip().upper()
        alias_map = {
            "APPROVE": "FOR",
            "YES": "FOR",
            "REJECT": "AGAINST",
            "NO": "AGAINST",
        }
        canonical = alias_map.get(normalized, normalized)

        try:
            return cls[canonical]
        except KeyError as exc:
            raise ValueError(
                f"Invalid vote type '{value}'. Valid choices: "
                "FOR, AGAINST, ABSTAIN, APPROVE, REJECT, YES, NO"
            ) from exc


class CountingPolicy(str, Enum):
    """Counting policy resolved once per vote."""

    SIMPLE = "simple"        # for / against / abstain
    APPROVAL = "approval"    # bitmap, full weight to every selected option
    WEIGHTED = "weighted"    # proportional split by coefficients


class ProposalState(str, Enum):
    """Lifecycle states reported by the external lifecycle manager."""

    PENDING = "pending"
    ACTIVE = "active"
    CANCELED = "canceled"
    DEFEATED = "defeated"
    SUCCEEDED = "succeeded"
    QUEUED = "queued"
    EXPIRED = "expired"
    EXECUTED = "executed"


class ProposalConfig(FrozenGovModel):
    """
    Counting configuration of a proposal.

    ``option_count == 0`` selects simple mode; in that case
    ``winner_count`` is 0 and there are no boundaries.
    """

    option_count: int = Field(default=0, ge=0)
    winner_count: int = Field(default=0, ge=0)
    option_boundaries: tuple[int, ...] = Field(default=())

    @property
    def is_simple(self) -> bool:
        return self.option_count == 0

    @property
    def bucket_count(self) -> int:
        """Number of tally buckets (3 in simple mode)."""
        return len(VoteType) if self.is_simple else self.option_count

    @property
    def mode(self) -> str:
        return "simple" if self.is_simple else "multi"


class ProposalRecord(GovModel, TimestampMixin):
    """A proposal as stored by the governor."""

    # description and targets are hashed into the id and kept verbatim
    model_config = ConfigDict(str_strip_whitespace=False)

    id: str
    proposer: str | None = None
    description: str
    description_hash: str
    targets: list[str] = Field(default_factory=list)
    values: list[int] = Field(default_factory=list)
    payloads: list[bytes] = Field(default_factory=list)
    config: ProposalConfig

    @property
    def action_count(self) -> int:
        return len(self.targets)


class ProposalTally(GovModel):
    """Read-only view of a proposal's tally."""

    option_count: int
    winner_count: int
    option_weights: list[int] = Field(default_factory=list)

    @property
    def total_weight(self) -> int:
        return sum(self.option_weights)


class ExecutionBundle(GovModel):
    """The actions released for execution, in ascending boundary order."""

    model_config = ConfigDict(str_strip_whitespace=False)

    proposal_id: str
    description_hash: str
    targets: list[str] = Field(default_factory=list)
    values: list[int] = Field(default_factory=list)
    payloads: list[bytes] = Field(default_factory=list)
    winning_options: list[int] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.targets)
