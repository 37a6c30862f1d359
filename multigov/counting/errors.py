"""
Counting errors.

Every error raised by the codec, the counting engine or the winner
selector derives from ``CountingError``, except the weight-conservation
fault which signals a defect rather than bad input.
"""


class CountingError(Exception):
    """Base exception for counting errors."""
    pass


# ═══════════════════════════════════════════════════════════════
# DECODE ERRORS
# ═══════════════════════════════════════════════════════════════


class MetadataError(CountingError):
    """Proposal metadata does not conform to the wire layout."""
    pass


class MalformedMetadataError(MetadataError):
    """Payload length, option count or winner count is invalid."""
    pass


class NonMonotonicBoundariesError(MetadataError):
    """Option boundaries are not strictly increasing."""

    def __init__(self, boundaries: tuple[int, ...] | list[int], index: int):
        self.boundaries = tuple(boundaries)
        self.index = index
        super().__init__(
            f"Option boundaries must be strictly increasing: "
            f"boundary[{index}]={self.boundaries[index]} <= boundary[{index - 1}]={self.boundaries[index - 1]}"
        )


class BoundaryOutOfRangeError(MetadataError):
    """An option boundary points past the end of the action list."""

    def __init__(self, boundary: int, action_count: int):
        self.boundary = boundary
        self.action_count = action_count
        super().__init__(
            f"Option boundary {boundary} is out of range for {action_count} actions"
        )


# ═══════════════════════════════════════════════════════════════
# VOTE POLICY ERRORS
# ═══════════════════════════════════════════════════════════════


class VotePolicyError(CountingError):
    """Vote does not conform to the proposal's counting policy."""
    pass


class InvalidChoiceError(VotePolicyError):
    """Support value outside the valid choices for this proposal."""
    pass


class InvalidCoefficientLengthError(VotePolicyError):
    """Coefficient buffer size matches no accepted layout."""
    pass


class ZeroWeightVoteError(VotePolicyError):
    """Coefficients of the selected options sum to zero."""
    pass


class InvalidWeightError(VotePolicyError):
    """Voter weight is negative or not an integer."""
    pass


# ═══════════════════════════════════════════════════════════════
# DOUBLE VOTE
# ═══════════════════════════════════════════════════════════════


class AlreadyVotedError(CountingError):
    """Voter already has a vote recorded on this proposal."""

    def __init__(self, voter: str):
        self.voter = voter
        super().__init__(f"Voter {voter} has already voted")


# ═══════════════════════════════════════════════════════════════
# FATAL
# ═══════════════════════════════════════════════════════════════


class WeightConservationError(RuntimeError):
    """Applied weight exceeded the voter's weight. Indicates a defect."""
    pass
