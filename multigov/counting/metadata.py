"""
Proposal metadata codec.

Wire layout, every field a 32-byte big-endian unsigned word::

    word 0          option_count
    word 1          winner_count
    word 2 .. 2+n   option_boundaries[0 .. n-1]

The payload is exactly ``64 + 32 * option_count`` bytes long. Simple
(for/against/abstain) proposals encode ``option_count = winner_count = 0``
and no boundaries.
"""

from __future__ import annotations

from collections.abc import Sequence

from multigov.models.governance import ProposalConfig

from .errors import (
    BoundaryOutOfRangeError,
    MalformedMetadataError,
    NonMonotonicBoundariesError,
)

WORD_SIZE = 32
HEADER_SIZE = 2 * WORD_SIZE
MAX_WORD = 2 ** (8 * WORD_SIZE) - 1


def read_word(payload: bytes, index: int) -> int:
    """Read the ``index``-th 32-byte word, bounds-checked."""
    start = index * WORD_SIZE
    end = start + WORD_SIZE
    if index < 0 or end > len(payload):
        raise MalformedMetadataError(
            f"Word {index} lies outside the {len(payload)}-byte payload"
        )
    return int.from_bytes(payload[start:end], "big")


def write_word(value: int) -> bytes:
    if value < 0 or value > MAX_WORD:
        raise MalformedMetadataError(f"Value {value} does not fit in a 32-byte word")
    return value.to_bytes(WORD_SIZE, "big")


def expected_length(option_count: int) -> int:
    return HEADER_SIZE + option_count * WORD_SIZE


def validate_config(config: ProposalConfig, max_options: int | None = None) -> ProposalConfig:
    """
    Check option count, winner count and boundary ordering.

    Raises:
        MalformedMetadataError: option or winner count out of range, or the
            first boundary is not 0
        NonMonotonicBoundariesError: boundaries not strictly increasing
    """
    n = config.option_count

    if n == 0:
        if config.winner_count != 0:
            raise MalformedMetadataError("Simple proposals must declare winner_count = 0")
        if config.option_boundaries:
            raise MalformedMetadataError("Simple proposals carry no option boundaries")
        return config

    if n == 1:
        raise MalformedMetadataError("option_count must be 0 or at least 2")
    if max_options is not None and n > max_options:
        raise MalformedMetadataError(
            f"option_count {n} exceeds the configured maximum of {max_options}"
        )
    if not 0 < config.winner_count < n:
        raise MalformedMetadataError(
            f"winner_count must satisfy 0 < winner_count < {n}, got {config.winner_count}"
        )
    if len(config.option_boundaries) != n:
        raise MalformedMetadataError(
            f"Expected {n} option boundaries, got {len(config.option_boundaries)}"
        )

    boundaries = config.option_boundaries
    if boundaries[0] != 0:
        raise MalformedMetadataError(
            f"The first option must start at action 0, got {boundaries[0]}"
        )
    for i in range(1, n):
        if boundaries[i] <= boundaries[i - 1]:
            raise NonMonotonicBoundariesError(boundaries, i)

    return config


def decode_metadata(payload: bytes, max_options: int | None = None) -> ProposalConfig:
    """
    Decode a metadata payload into a ProposalConfig.

    Args:
        payload: Raw metadata bytes
        max_options: Optional upper bound on option_count

    Returns:
        The validated configuration

    Raises:
        MalformedMetadataError: Payload is too short, has trailing bytes,
            or declares invalid counts
        NonMonotonicBoundariesError: Boundaries are not strictly increasing
    """
    payload = bytes(payload)
    if len(payload) < HEADER_SIZE:
        raise MalformedMetadataError(
            f"Metadata payload must be at least {HEADER_SIZE} bytes, got {len(payload)}"
        )

    option_count = read_word(payload, 0)
    winner_count = read_word(payload, 1)

    if max_options is not None and option_count > max_options:
        raise MalformedMetadataError(
            f"option_count {option_count} exceeds the configured maximum of {max_options}"
        )

    if len(payload) != expected_length(option_count):
        raise MalformedMetadataError(
            f"Metadata for {option_count} options must be {expected_length(option_count)} bytes, "
            f"got {len(payload)}"
        )

    boundaries = tuple(read_word(payload, 2 + i) for i in range(option_count))
    config = ProposalConfig(
        option_count=option_count,
        winner_count=winner_count,
        option_boundaries=boundaries,
    )
    return validate_config(config, max_options=max_options)


def encode_metadata(config: ProposalConfig, max_options: int | None = None) -> bytes:
    """Encode a configuration. Inverse of ``decode_metadata``."""
    validate_config(config, max_options=max_options)
    parts = [write_word(config.option_count), write_word(config.winner_count)]
    parts.extend(write_word(b) for b in config.option_boundaries)
    return b"".join(parts)


def check_boundaries(config: ProposalConfig, action_count: int) -> None:
    """
    Ensure every boundary indexes an existing action.

    Raises:
        BoundaryOutOfRangeError: A boundary is >= action_count
    """
    for boundary in config.option_boundaries:
        if boundary >= action_count:
            raise BoundaryOutOfRangeError(boundary, action_count)


def option_slices(config: ProposalConfig, action_count: int) -> list[tuple[int, int]]:
    """``[start, end)`` of every option, the last one ending at ``action_count``."""
    check_boundaries(config, action_count)
    bounds: Sequence[int] = config.option_boundaries
    ends = list(bounds[1:]) + [action_count]
    return list(zip(bounds, ends, strict=True))
