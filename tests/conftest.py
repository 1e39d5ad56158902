"""Pytest configuration and fixtures."""

import os
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from stellar_sdk import Keypair

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["TELEGRAM_BOT_TOKEN"] = ""
os.environ["DEBUG"] = "false"
os.environ["LEDGER_CLIENT"] = "simulated"
os.environ["DEPOSIT_DELAY_SECONDS"] = "0"
os.environ["WITHDRAW_DELAY_SECONDS"] = "0"
os.environ.pop("ANCHOR_DISTRIBUTION_SECRET", None)

from stellramp.anchor.deposits import DepositLedger
from stellramp.anchor.fiat_rail import FiatRailSimulator
from stellramp.anchor.service import RampService, build_ramp_service, reset_ramp_service
from stellramp.anchor.withdrawals import WithdrawalLedger
from stellramp.config import Settings
from stellramp.ledger.database import build_engine, build_session_factory, create_tables
from stellramp.stellar.factory import reset_ledger_client
from stellramp.stellar.simulated import SimulatedLedgerClient
from stellramp.utils.locks import clear_record_locks

TREASURY = "GBCWLQYUSY4K4W7T23IK5F6DPIAXWJ3WKYGVFFYGU7GOG3K2X3GHAQ4D"


@pytest.fixture(autouse=True)
def _reset_globals():
    """Drop cached locks and singletons between tests."""
    clear_record_locks()
    reset_ramp_service()
    reset_ledger_client()
    yield
    clear_record_locks()
    reset_ramp_service()
    reset_ledger_client()


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """File-backed SQLite engine so every session sees the same tables."""
    engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    await create_tables(engine)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(db_engine)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for testing."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def settings() -> Settings:
    """Settings with zero fiat delays and no .env file."""
    return Settings(
        _env_file=None,
        deposit_delay_seconds=0,
        withdraw_delay_seconds=0,
        anchor_distribution_secret=None,
        anchor_treasury_public=TREASURY,
        ledger_client="simulated",
    )


@pytest.fixture
def ledger_client() -> SimulatedLedgerClient:
    return SimulatedLedgerClient(network="testnet")


@pytest.fixture
def fiat_rail() -> FiatRailSimulator:
    return FiatRailSimulator(deposit_delay=0, withdraw_delay=0)


@pytest.fixture
def deposit_ledger(session_factory, fiat_rail, ledger_client) -> DepositLedger:
    return DepositLedger(session_factory, fiat_rail, ledger_client)


@pytest.fixture
def treasury_address() -> str:
    return TREASURY


@pytest.fixture
def withdrawal_ledger(
    session_factory, fiat_rail, ledger_client, treasury_address
) -> WithdrawalLedger:
    return WithdrawalLedger(
        session_factory, fiat_rail, ledger_client, treasury_address=treasury_address
    )


@pytest.fixture
def ramp_service(session_factory, ledger_client, settings, fiat_rail) -> RampService:
    return build_ramp_service(session_factory, ledger_client, settings, fiat_rail)


@pytest.fixture
def user_keypair() -> Keypair:
    return Keypair.random()


@pytest.fixture
def funded_keypair(ledger_client, user_keypair) -> Keypair:
    """A user account holding 100 XLM on the simulated ledger."""
    ledger_client.fund(user_keypair.public_key, Decimal("100"))
    return user_keypair
