"""
Tally store.

One ``Tally`` per proposal, held in an arena keyed by proposal id.
Tallies are created lazily on first use and are never removed so the
final counts stay queryable after execution.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field

from multigov.models.governance import ProposalConfig, ProposalTally


@dataclass
class Tally:
    """Mutable per-proposal counting state."""
    config: ProposalConfig
    option_weight: list[int] = field(default_factory=list)
    voters: set[str] = field(default_factory=set)

    def __post_init__(self) -> None:
        if not self.option_weight:
            self.option_weight = [0] * self.config.bucket_count
        elif len(self.option_weight) != self.config.bucket_count:
            raise ValueError(
                f"Tally needs {self.config.bucket_count} buckets, got {len(self.option_weight)}"
            )

    def has_voted(self, voter: str) -> bool:
        return voter in self.voters

    def snapshot(self) -> list[int]:
        """Copy of the per-option weights."""
        return list(self.option_weight)

    def to_view(self) -> ProposalTally:
        return ProposalTally(
            option_count=self.config.option_count,
            winner_count=self.config.winner_count,
            option_weights=self.snapshot(),
        )

    @property
    def voter_count(self) -> int:
        return len(self.voters)


class TallyStore:
    """Arena of tallies indexed by proposal id."""

    def __init__(self) -> None:
        self._tallies: dict[str, Tally] = {}

    def get_or_create(self, proposal_id: str, config: ProposalConfig) -> Tally:
        """
        Return the tally for ``proposal_id``, creating it on first use.

        Raises:
            ValueError: A tally exists with a different configuration
        """
        tally = self._tallies.get(proposal_id)
        if tally is None:
            tally = Tally(config=config)
            self._tallies[proposal_id] = tally
        elif tally.config != config:
            raise ValueError(f"Tally for {proposal_id} already configured differently")
        return tally

    def get(self, proposal_id: str) -> Tally | None:
        return self._tallies.get(proposal_id)

    def __contains__(self, proposal_id: object) -> bool:
        return proposal_id in self._tallies

    def __len__(self) -> int:
        return len(self._tallies)

    def __iter__(self) -> Iterator[Tally]:
        return iter(self._tallies.values())
