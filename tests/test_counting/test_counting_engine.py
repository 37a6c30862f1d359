"""
Tests for the vote counting engine

Tests the three counting policies:
- SIMPLE: for/against/abstain buckets
- APPROVAL: bitmap, full weight to every selected option
- WEIGHTED: coefficient split with floor division
"""

from __future__ import annotations

import builtins

import pytest

from multigov.counting import engine
from multigov.counting.engine import (
    PACKED_MAX_OPTIONS,
    allocate,
    count_vote,
    decode_coefficients,
    full_mask,
    resolve_policy,
)
from multigov.counting.errors import (
    AlreadyVotedError,
    CountingError,
    InvalidChoiceError,
    InvalidCoefficientLengthError,
    InvalidWeightError,
    VotePolicyError,
    WeightConservationError,
    ZeroWeightVoteError,
)
from multigov.counting.tally import Tally
from multigov.models.governance import CountingPolicy, ProposalConfig, VoteType


def wide(*coefficients: int) -> bytes:
    return b"".join(c.to_bytes(32, "big") for c in coefficients)


def packed(*coefficients: int) -> bytes:
    slots = list(coefficients) + [0] * (PACKED_MAX_OPTIONS - len(coefficients))
    return b"".join(c.to_bytes(4, "big") for c in slots)


@pytest.fixture
def two_option_config() -> ProposalConfig:
    return ProposalConfig(option_count=2, winner_count=1, option_boundaries=(0, 1))


# =============================================================================
# Policy Resolution
# =============================================================================


class TestResolvePolicy:
    """Tests for policy resolution."""

    def test_simple(self, simple_config):
        """Test simple mode ignores params."""
        assert resolve_policy(simple_config, b"") == CountingPolicy.SIMPLE
        assert resolve_policy(simple_config, wide(1, 2)) == CountingPolicy.SIMPLE

    def test_approval_without_params(self, three_option_config):
        """Test empty params select approval."""
        assert resolve_policy(three_option_config, b"") == CountingPolicy.APPROVAL
        assert resolve_policy(three_option_config, None) == CountingPolicy.APPROVAL

    def test_weighted_with_params(self, three_option_config):
        """Test any params select weighted."""
        assert resolve_policy(three_option_config, b"\x01") == CountingPolicy.WEIGHTED

    def test_full_mask(self):
        """Test the all-options bitmap."""
        assert full_mask(3) == 0b111


# =============================================================================
# Simple Policy
# =============================================================================


class TestSimplePolicy:
    """Tests for simple (bravo) counting."""

    def test_for_vote(self, simple_config):
        """Test a For vote lands in the for bucket only."""
        tally = Tally(config=simple_config)

        applied = count_vote(tally, "alice", VoteType.FOR, 40)

        assert applied == 40
        assert tally.option_weight == [0, 40, 0]

    def test_all_buckets(self, simple_config):
        """Test against, for and abstain buckets."""
        tally = Tally(config=simple_config)

        count_vote(tally, "a", 0, 3)
        count_vote(tally, "b", 1, 5)
        count_vote(tally, "c", 2, 7)

        assert tally.option_weight == [3, 5, 7]

    def test_invalid_choice(self, simple_config):
        """Test support 7 is rejected without side effects."""
        tally = Tally(config=simple_config)

        with pytest.raises(InvalidChoiceError):
            count_vote(tally, "alice", 7, 40)

        assert tally.option_weight == [0, 0, 0]
        assert not tally.has_voted("alice")

    def test_params_ignored(self, simple_config):
        """Test coefficient bytes have no effect in simple mode."""
        tally = Tally(config=simple_config)

        count_vote(tally, "alice", VoteType.AGAINST, 10, wide(1, 2, 3))

        assert tally.option_weight == [10, 0, 0]


# =============================================================================
# Approval Policy
# =============================================================================


class TestApprovalPolicy:
    """Tests for approval counting."""

    def test_bitmap(self, three_option_config):
        """Test 0b101 gives full weight to options 0 and 2."""
        tally = Tally(config=three_option_config)

        applied = count_vote(tally, "alice", 0b101, 50)

        assert tally.option_weight == [50, 0, 50]
        assert applied == 100

    def test_bitmap_beyond_options(self, three_option_config):
        """Test bits above option_count are rejected."""
        tally = Tally(config=three_option_config)

        with pytest.raises(InvalidChoiceError):
            count_vote(tally, "alice", 0b1001, 50)

        assert tally.option_weight == [0, 0, 0]

    def test_empty_ballot_marks_voter(self, three_option_config):
        """Test support 0 counts nothing but still uses up the vote."""
        tally = Tally(config=three_option_config)

        assert count_vote(tally, "alice", 0, 50) == 0
        assert tally.option_weight == [0, 0, 0]
        with pytest.raises(AlreadyVotedError):
            count_vote(tally, "alice", 0b001, 50)


# =============================================================================
# Weighted Policy
# =============================================================================


class TestWeightedPolicy:
    """Tests for coefficient-weighted counting."""

    def test_wide_split(self, two_option_config):
        """Test [1, 3] with weight 100 gives [25, 75]."""
        tally = Tally(config=two_option_config)

        applied = count_vote(tally, "alice", 0, 100, wide(1, 3))

        assert tally.option_weight == [25, 75]
        assert applied == 100

    def test_packed_split(self, two_option_config):
        """Test the packed layout gives the same result."""
        tally = Tally(config=two_option_config)

        count_vote(tally, "alice", 0, 100, packed(1, 3))

        assert tally.option_weight == [25, 75]

    def test_floor_division_never_exceeds_weight(self, three_option_config):
        """Test rounding down keeps the total at or below the weight."""
        tally = Tally(config=three_option_config)

        applied = count_vote(tally, "alice", 0, 10, wide(1, 1, 1))

        assert tally.option_weight == [3, 3, 3]
        assert applied == 9
        assert applied <= 10

    def test_mask_restricts_options(self, three_option_config):
        """Test a non-zero support limits the split to masked options."""
        tally = Tally(config=three_option_config)

        count_vote(tally, "alice", 0b011, 100, wide(1, 1, 8))

        assert tally.option_weight == [50, 50, 0]

    def test_zero_coefficients(self, two_option_config):
        """Test all-zero coefficients are rejected."""
        tally = Tally(config=two_option_config)

        with pytest.raises(ZeroWeightVoteError):
            count_vote(tally, "alice", 0, 100, wide(0, 0))

        assert not tally.has_voted("alice")

    def test_masked_coefficients_zero(self, two_option_config):
        """Test a mask selecting only zero-coefficient options."""
        with pytest.raises(ZeroWeightVoteError):
            allocate(two_option_config, 0b01, 100, wide(0, 5))

    @pytest.mark.parametrize("length", [1, 31, 33, 63, 65, 96])
    def test_bad_length(self, two_option_config, length):
        """Test buffers matching neither layout."""
        with pytest.raises(InvalidCoefficientLengthError):
            decode_coefficients(two_option_config, b"\x01" * length)

    def test_packed_slot_beyond_options(self, two_option_config):
        """Test a non-zero packed slot past option_count."""
        with pytest.raises(InvalidChoiceError):
            decode_coefficients(two_option_config, packed(1, 1, 1))

    def test_packed_disabled(self, two_option_config):
        """Test the packed layout can be turned off."""
        with pytest.raises(InvalidCoefficientLengthError):
            decode_coefficients(two_option_config, packed(1, 3), allow_packed=False)

    def test_packed_unavailable_above_eight_options(self):
        """Test nine options only accept the wide layout."""
        config = ProposalConfig(
            option_count=9, winner_count=1, option_boundaries=tuple(range(9))
        )

        with pytest.raises(InvalidCoefficientLengthError):
            decode_coefficients(config, b"\x00\x00\x00\x01" * 8)
        assert decode_coefficients(config, wide(*range(9))) == tuple(range(9))

    def test_conservation_fault_is_fatal(self, two_option_config, monkeypatch):
        """Test an over-allocation raises a non-counting error."""
        calls = []

        def undercounted_sum(values):
            values = list(values)
            calls.append(values)
            return 1 if len(calls) == 1 else builtins.sum(values)

        monkeypatch.setattr(engine, "sum", undercounted_sum, raising=False)
        tally = Tally(config=two_option_config)

        with pytest.raises(WeightConservationError):
            count_vote(tally, "alice", 0, 100, wide(1, 1))

        assert not issubclass(WeightConservationError, CountingError)
        assert tally.option_weight == [0, 0]


# =============================================================================
# Double Voting and Input Checks
# =============================================================================


class TestCountVote:
    """Tests for count_vote bookkeeping."""

    def test_double_vote_rejected(self, three_option_config):
        """Test a second vote leaves the tally unchanged."""
        tally = Tally(config=three_option_config)
        count_vote(tally, "alice", 0b001, 10)

        with pytest.raises(AlreadyVotedError) as exc_info:
            count_vote(tally, "alice", 0b010, 10)

        assert exc_info.value.voter == "alice"
        assert tally.option_weight == [10, 0, 0]

    def test_rejected_vote_can_be_retried(self, three_option_config):
        """Test a rejected vote does not mark the voter."""
        tally = Tally(config=three_option_config)

        with pytest.raises(InvalidChoiceError):
            count_vote(tally, "alice", 0b1000, 10)
        count_vote(tally, "alice", 0b100, 10)

        assert tally.option_weight == [0, 0, 10]

    def test_zero_weight_vote(self, three_option_config):
        """Test a zero-weight voter is recorded with nothing added."""
        tally = Tally(config=three_option_config)

        assert count_vote(tally, "alice", 0b111, 0) == 0
        assert tally.has_voted("alice")

    @pytest.mark.parametrize("weight", [-1, 1.5, True, "10"])
    def test_invalid_weight(self, three_option_config, weight):
        """Test negative or non-integer weights."""
        tally = Tally(config=three_option_config)

        with pytest.raises(InvalidWeightError):
            count_vote(tally, "alice", 0b001, weight)

    @pytest.mark.parametrize("support", [-1, 1.0, None])
    def test_invalid_support(self, three_option_config, support):
        """Test negative or non-integer support."""
        with pytest.raises(InvalidChoiceError):
            allocate(three_option_config, support, 10)

    def test_policy_errors_share_base(self):
        """Test every policy error is a VotePolicyError."""
        for error in (
            InvalidChoiceError,
            InvalidCoefficientLengthError,
            ZeroWeightVoteError,
            InvalidWeightError,
        ):
            assert issubclass(error, VotePolicyError)

    def test_large_weights(self, two_option_config):
        """Test weights far beyond 64 bits."""
        tally = Tally(config=two_option_config)
        weight = 2**200

        count_vote(tally, "whale", 0, weight, wide(1, 1))

        assert tally.option_weight == [2**199, 2**199]
