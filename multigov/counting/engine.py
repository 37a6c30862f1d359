"""
Vote counting engine.

Applies a single vote to a tally. The policy is picked once per vote
from the proposal configuration and the shape of ``params``:

- ``option_count == 0``: SIMPLE. ``support`` is 0 (against), 1 (for) or
  2 (abstain); params are ignored.
- ``option_count >= 2`` and empty params: APPROVAL. ``support`` is a
  bitmap and every selected option receives the voter's full weight.
  This is approval counting, not a split: three selected options each
  get ``weight``.
- ``option_count >= 2`` and non-empty params: WEIGHTED. ``params`` holds
  one unsigned coefficient per option and the weight is distributed as
  ``weight * coeff[i] // sum(coeff)``.

Coefficient layouts:

- packed: exactly 32 bytes, only for ``option_count <= 8``. Eight 4-byte
  big-endian slots, slot ``i`` is option ``i``.
- wide: exactly ``32 * option_count`` bytes, one 32-byte big-endian word
  per option.

All validation and arithmetic run before the tally is touched, so a
rejected vote leaves both weights and voter set unchanged.
"""

from __future__ import annotations

from typing import Any

import structlog

from multigov.models.governance import CountingPolicy, ProposalConfig, VoteType

from .errors import (
    AlreadyVotedError,
    InvalidChoiceError,
    InvalidCoefficientLengthError,
    InvalidWeightError,
    WeightConservationError,
    ZeroWeightVoteError,
)
from .metadata import WORD_SIZE
from .tally import Tally

logger = structlog.get_logger(__name__)

PACKED_SLOT_SIZE = 4
PACKED_MAX_OPTIONS = WORD_SIZE // PACKED_SLOT_SIZE


def resolve_policy(config: ProposalConfig, params: bytes | None) -> CountingPolicy:
    """Pick the counting policy for a vote."""
    if config.is_simple:
        return CountingPolicy.SIMPLE
    if not params:
        return CountingPolicy.APPROVAL
    return CountingPolicy.WEIGHTED


def full_mask(option_count: int) -> int:
    return (1 << option_count) - 1


def _check_support(support: Any) -> int:
    if isinstance(support, bool) or not isinstance(support, int):
        raise InvalidChoiceError(f"Support must be an integer, got {type(support).__name__}")
    if support < 0:
        raise InvalidChoiceError(f"Support must be non-negative, got {support}")
    return int(support)


def _check_weight(weight: Any) -> int:
    if isinstance(weight, bool) or not isinstance(weight, int):
        raise InvalidWeightError(f"Weight must be an integer, got {type(weight).__name__}")
    if weight < 0:
        raise InvalidWeightError(f"Weight must be non-negative, got {weight}")
    return int(weight)


def _check_bitmap(config: ProposalConfig, support: int) -> None:
    if support > full_mask(config.option_count):
        raise InvalidChoiceError(
            f"Support bitmap {support:#x} selects options beyond the {config.option_count} available"
        )


def decode_coefficients(
    config: ProposalConfig,
    params: bytes,
    *,
    allow_packed: bool = True,
) -> tuple[int, ...]:
    """
    Parse a coefficient buffer into one integer per option.

    Raises:
        InvalidCoefficientLengthError: Buffer size matches no layout
        InvalidChoiceError: A packed slot beyond option_count is non-zero
    """
    n = config.option_count
    params = bytes(params)

    if len(params) == n * WORD_SIZE:
        return tuple(
            int.from_bytes(params[i * WORD_SIZE:(i + 1) * WORD_SIZE], "big")
            for i in range(n)
        )

    if allow_packed and len(params) == WORD_SIZE and n <= PACKED_MAX_OPTIONS:
        slots = [
            int.from_bytes(params[i * PACKED_SLOT_SIZE:(i + 1) * PACKED_SLOT_SIZE], "big")
            for i in range(PACKED_MAX_OPTIONS)
        ]
        if any(slots[n:]):
            raise InvalidChoiceError(
                f"Packed coefficients set for options beyond the {n} available"
            )
        return tuple(slots[:n])

    accepted = [f"{n * WORD_SIZE}"]
    if allow_packed and n <= PACKED_MAX_OPTIONS:
        accepted.insert(0, f"{WORD_SIZE}")
    raise InvalidCoefficientLengthError(
        f"Coefficient buffer of {len(params)} bytes does not match "
        f"{' or '.join(accepted)} bytes for {n} options"
    )


def allocate(
    config: ProposalConfig,
    support: int,
    weight: int,
    params: bytes | None = None,
    *,
    allow_packed: bool = True,
) -> tuple[CountingPolicy, dict[int, int]]:
    """
    Compute the weight each option receives, without touching any tally.

    Returns:
        (policy, {option_index: applied_weight})
    """
    support = _check_support(support)
    weight = _check_weight(weight)
    policy = resolve_policy(config, params)

    if policy == CountingPolicy.SIMPLE:
        try:
            choice = VoteType(support)
        except ValueError as exc:
            raise InvalidChoiceError(
                f"Simple proposals accept support 0 (against), 1 (for) or 2 (abstain), got {support}"
            ) from exc
        return policy, {int(choice): weight}

    _check_bitmap(config, support)

    if policy == CountingPolicy.APPROVAL:
        return policy, {
            i: weight for i in range(config.option_count) if support >> i & 1
        }

    coefficients = decode_coefficients(config, params or b"", allow_packed=allow_packed)
    mask = support or full_mask(config.option_count)
    eligible = [i for i in range(config.option_count) if mask >> i & 1]

    denominator = sum(coefficients[i] for i in eligible)
    if denominator == 0:
        raise ZeroWeightVoteError("Coefficients of the selected options sum to zero")

    allocation = {
        i: weight * coefficients[i] // denominator
        for i in eligible
        if coefficients[i]
    }

    applied = sum(allocation.values())
    if applied > weight:
        logger.critical(
            "weight_conservation_violated",
            weight=weight,
            applied=applied,
            coefficients=list(coefficients),
        )
        raise WeightConservationError(
            f"Applied weight {applied} exceeds voter weight {weight}"
        )

    return policy, allocation


def count_vote(
    tally: Tally,
    voter: str,
    support: int,
    weight: int,
    params: bytes | None = None,
    *,
    allow_packed: bool = True,
) -> int:
    """
    Apply one vote to ``tally``.

    Args:
        tally: The proposal's tally
        voter: Voter identity
        support: Simple-mode choice or option bitmap
        weight: Voter weight at the proposal snapshot
        params: Optional coefficient buffer
        allow_packed: Accept the single-word packed coefficient layout

    Returns:
        Total weight applied across all options

    Raises:
        AlreadyVotedError: Voter already voted on this proposal
        VotePolicyError: Vote does not conform to the counting policy
        WeightConservationError: Internal arithmetic fault
    """
    if tally.has_voted(voter):
        raise AlreadyVotedError(voter)

    _, allocation = allocate(
        tally.config, support, weight, params, allow_packed=allow_packed
    )

    for option, amount in allocation.items():
        tally.option_weight[option] += amount
    tally.voters.add(voter)

    return sum(allocation.values())
