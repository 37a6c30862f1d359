"""
Winner selection.

Picks the top ``winner_count`` options by accumulated weight and slices
their actions out of the flattened action arrays. Ties go to the lowest
option index. The bundle lists actions in ascending boundary order
regardless of win rank, so two proposals with the same winners always
produce the same bundle.
"""

from __future__ import annotations

from collections.abc import Sequence

from multigov.models.governance import ExecutionBundle, ProposalConfig

from .errors import MalformedMetadataError
from .metadata import option_slices
from .tally import Tally


def select_winners(config: ProposalConfig, option_weights: Sequence[int]) -> list[int]:
    """
    Return the winning option indices in win-rank order.

    ``option_weights`` is read, never modified.
    """
    if config.is_simple:
        raise ValueError("Winner selection requires a multi-option proposal")
    if len(option_weights) != config.option_count:
        raise ValueError(
            f"Expected {config.option_count} option weights, got {len(option_weights)}"
        )

    remaining = list(option_weights)
    taken = [False] * config.option_count
    winners: list[int] = []

    for _ in range(config.winner_count):
        best = -1
        for i, votes in enumerate(remaining):
            if taken[i]:
                continue
            # strict ">" keeps the lowest index on ties
            if best < 0 or votes > remaining[best]:
                best = i
        taken[best] = True
        winners.append(best)

    return winners


def build_bundle(
    proposal_id: str,
    description_hash: str,
    config: ProposalConfig,
    tally: Tally,
    targets: Sequence[str],
    values: Sequence[int],
    payloads: Sequence[bytes],
) -> ExecutionBundle:
    """
    Reduce the full action list to the winning options' actions.

    Raises:
        MalformedMetadataError: Action arrays differ in length
        BoundaryOutOfRangeError: A boundary lies past the action list
    """
    action_count = len(targets)
    if len(values) != action_count or len(payloads) != action_count:
        raise MalformedMetadataError(
            f"Action arrays differ in length: {action_count} targets, "
            f"{len(values)} values, {len(payloads)} payloads"
        )

    slices = option_slices(config, action_count)
    winners = set(select_winners(config, tally.snapshot()))

    bundle = ExecutionBundle(proposal_id=proposal_id, description_hash=description_hash)
    for option, (start, end) in enumerate(slices):
        if option not in winners:
            continue
        bundle.targets.extend(targets[start:end])
        bundle.values.extend(values[start:end])
        bundle.payloads.extend(payloads[start:end])
        bundle.winning_options.append(option)

    return bundle
