"""Shared pytest fixtures for tokenwatch tests.

This module provides fixtures for:
- Settings isolation (cache cleared around every test)
- Well-known token addresses and candidate lists
- Chain contexts, activation state and gates
- Mocked collaborators (candidate source, token store, balance fetcher)
- A private AsyncIOScheduler per test
"""

from collections.abc import AsyncGenerator, Generator
from unittest.mock import AsyncMock, MagicMock

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from tests.factories.token import CandidateTokenFactory, DetectedTokenFactory
from tokenwatch.detection.cycle import DetectionCycle
from tokenwatch.detection.gate import ActivationGate
from tokenwatch.models.chain import ActivationState, ChainContext
from tokenwatch.models.token import CandidateToken

# =============================================================================
# Well-known addresses (lowercase, as the token API returns them)
# =============================================================================

SNX_ADDRESS = "0xc011a73ee8576fb46f5e1c5751ca3b9fe0af2a6f"
LINK_ADDRESS = "0x514910771af9ca656af840dff83e8264ecf986ca"
BNT_ADDRESS = "0x1f573d6fb3f13d689ff844b4ce37794d79a7ff1c"
ACCOUNT_ADDRESS = "0xbc86727e770de68b1060c91f6bb6945c73e10388"


# =============================================================================
# Environment Configuration
# =============================================================================


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None, None, None]:
    """Make every test read settings fresh from the environment."""
    from tokenwatch.config.settings import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# =============================================================================
# Factory Fixtures
# =============================================================================


@pytest.fixture
def candidate_factory() -> type[CandidateTokenFactory]:
    """Provide candidate token factory."""
    return CandidateTokenFactory


@pytest.fixture
def detected_factory() -> type[DetectedTokenFactory]:
    """Provide detected token factory."""
    return DetectedTokenFactory


@pytest.fixture
def candidates() -> list[CandidateToken]:
    """SNX, LINK and BNT as served by the token list API for mainnet."""
    return [
        CandidateToken(address=SNX_ADDRESS, symbol="SNX", decimals=18, name="Synthetix"),
        CandidateToken(address=LINK_ADDRESS, symbol="LINK", decimals=18, name="Chainlink"),
        CandidateToken(address=BNT_ADDRESS, symbol="BNT", decimals=18, name="Bancor"),
    ]


# =============================================================================
# Chain / State Fixtures
# =============================================================================


@pytest.fixture
def mainnet_context() -> ChainContext:
    """Mainnet context with a mocked provider."""
    return ChainContext(
        chain_id="0x1",
        network_client_id="mainnet",
        provider=MagicMock(name="provider"),
        block_tracker=MagicMock(name="block_tracker"),
    )


@pytest.fixture
def sepolia_context() -> ChainContext:
    """Context for a chain without a token list."""
    return ChainContext(chain_id="0xaa36a7", network_client_id="sepolia")


@pytest.fixture
def active_state() -> ActivationState:
    """Open, unlocked wallet with a selected account."""
    return ActivationState(
        is_open=True,
        is_unlocked=True,
        selected_address=ACCOUNT_ADDRESS,
    )


@pytest.fixture
def gate(active_state: ActivationState) -> ActivationGate:
    """Gate over ``active_state`` supporting mainnet and polygon."""
    return ActivationGate(active_state, supported_chains={"0x1", "0x89"})


# =============================================================================
# Mock Collaborators
# =============================================================================


@pytest.fixture
def mock_candidate_source(candidates: list[CandidateToken]) -> MagicMock:
    """Candidate source returning ``candidates`` for every chain."""
    mock = MagicMock()
    mock.get_candidates = AsyncMock(return_value=candidates)
    return mock


@pytest.fixture
def mock_token_store() -> MagicMock:
    """Token store with nothing tracked or ignored."""
    mock = MagicMock()
    mock.get_ignored = AsyncMock(return_value=set())
    mock.get_tracked = AsyncMock(return_value=set())
    mock.add_detected = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def mock_balance_fetcher() -> MagicMock:
    """Balance fetcher reporting zero balances."""
    mock = MagicMock()
    mock.get_balances = AsyncMock(return_value={})
    return mock


@pytest.fixture
def cycle(
    gate: ActivationGate,
    mock_candidate_source: MagicMock,
    mock_token_store: MagicMock,
    mock_balance_fetcher: MagicMock,
) -> DetectionCycle:
    """Detection cycle wired to the mocked collaborators."""
    return DetectionCycle(
        gate=gate,
        candidate_source=mock_candidate_source,
        token_store=mock_token_store,
        balance_fetcher=mock_balance_fetcher,
        max_batch_width=2,
    )


# =============================================================================
# Scheduler Fixtures
# =============================================================================


@pytest.fixture
async def scheduler() -> AsyncGenerator[AsyncIOScheduler, None]:
    """Private AsyncIOScheduler, not started.

    Jobs stay pending so tests can inspect them without timers firing.
    """
    sched = AsyncIOScheduler()
    yield sched
    if sched.running:
        sched.shutdown(wait=False)


@pytest.fixture
async def running_scheduler() -> AsyncGenerator[AsyncIOScheduler, None]:
    """Private AsyncIOScheduler started on the test's event loop."""
    sched = AsyncIOScheduler()
    sched.start()
    yield sched
    sched.shutdown(wait=False)
