"""
Counting core: metadata codec, tally store, vote counting engine and
winner selection.
"""

from .engine import allocate, count_vote, decode_coefficients, resolve_policy
from .errors import (
    AlreadyVotedError,
    BoundaryOutOfRangeError,
    CountingError,
    InvalidChoiceError,
    InvalidCoefficientLengthError,
    InvalidWeightError,
    MalformedMetadataError,
    MetadataError,
    NonMonotonicBoundariesError,
    VotePolicyError,
    WeightConservationError,
    ZeroWeightVoteError,
)
from .metadata import (
    check_boundaries,
    decode_metadata,
    encode_metadata,
    option_slices,
    validate_config,
)
from .selection import build_bundle, select_winners
from .tally import Tally, TallyStore

__all__ = [
    # Codec
    "decode_metadata",
    "encode_metadata",
    "validate_config",
    "check_boundaries",
    "option_slices",
    # Tally
    "Tally",
    "TallyStore",
    # Engine
    "allocate",
    "count_vote",
    "decode_coefficients",
    "resolve_policy",
    # Selection
    "build_bundle",
    "select_winners",
    # Errors
    "CountingError",
    "MetadataError",
    "MalformedMetadataError",
    "NonMonotonicBoundariesError",
    "BoundaryOutOfRangeError",
    "VotePolicyError",
    "InvalidChoiceError",
    "InvalidCoefficientLengthError",
    "ZeroWeightVoteError",
    "InvalidWeightError",
    "AlreadyVotedError",
    "WeightConservationError",
]
