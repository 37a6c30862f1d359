"""
Multigov - Test Fixtures

Shared pytest fixtures for all test modules.
"""

from __future__ import annotations

import os

os.environ["MULTIGOV_APP_ENV"] = "testing"
os.environ.setdefault("MULTIGOV_LOG_LEVEL", "WARNING")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from multigov.config import Settings  # noqa: E402
from multigov.counting.metadata import encode_metadata  # noqa: E402
from multigov.models.governance import ProposalConfig  # noqa: E402
from multigov.monitoring.metrics import reset_metrics  # noqa: E402
from multigov.services.governor import GovernorService  # noqa: E402
from multigov.services.lifecycle import (  # noqa: E402
    InMemoryLifecycle,
    RecordingExecutor,
    StaticVotingPower,
)

# =============================================================================
# Global State
# =============================================================================


@pytest.fixture(autouse=True)
def _reset_metrics():
    """Metrics are process-global; start every test from zero."""
    reset_metrics()
    yield
    reset_metrics()


@pytest.fixture
def settings() -> Settings:
    return Settings(app_env="testing", log_level="WARNING")


# =============================================================================
# Configurations
# =============================================================================


@pytest.fixture
def simple_config() -> ProposalConfig:
    return ProposalConfig()


@pytest.fixture
def three_option_config() -> ProposalConfig:
    """Three options over six actions, one winner."""
    return ProposalConfig(option_count=3, winner_count=1, option_boundaries=(0, 2, 4))


@pytest.fixture
def four_option_config() -> ProposalConfig:
    """Four options, one action each, two winners."""
    return ProposalConfig(option_count=4, winner_count=2, option_boundaries=(0, 1, 2, 3))


@pytest.fixture
def four_option_metadata(four_option_config) -> bytes:
    return encode_metadata(four_option_config)


# =============================================================================
# Governor
# =============================================================================


@pytest.fixture
def lifecycle() -> InMemoryLifecycle:
    return InMemoryLifecycle()


@pytest.fixture
def voting_power() -> StaticVotingPower:
    return StaticVotingPower({"alice": 100, "bob": 40, "carol": 25})


@pytest.fixture
def executor() -> RecordingExecutor:
    return RecordingExecutor()


@pytest.fixture
def governor(lifecycle, voting_power, executor, settings) -> GovernorService:
    return GovernorService(
        lifecycle=lifecycle,
        voting_power=voting_power,
        executor=executor,
        settings=settings,
    )


# =============================================================================
# API Client
# =============================================================================


@pytest.fixture
def app(governor, settings):
    from multigov.api.app import create_app

    return create_app(governor=governor, settings=settings)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
