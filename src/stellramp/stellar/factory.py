"""Factory for creating the ledger client."""

from typing import Optional

from stellar_sdk import StrKey

from stellramp.config import get_settings
from stellramp.stellar.base import LedgerClient

# Process-wide client instance
_client: Optional[LedgerClient] = None


def get_ledger_client() -> LedgerClient:
    """Get the ledger client selected by settings.

    Returns:
        HorizonLedgerClient when LEDGER_CLIENT=horizon, else SimulatedLedgerClient
    """
    global _client
    if _client is not None:
        return _client

    settings = get_settings()

    if settings.ledger_client.lower() == "horizon":
        from stellramp.stellar.horizon import HorizonLedgerClient
        _client = HorizonLedgerClient(
            horizon_url=settings.resolved_horizon_url,
            network=settings.stellar_network,
            friendbot_url=settings.friendbot_url,
            base_fee=settings.base_fee,
        )
    else:
        from stellramp.stellar.simulated import SimulatedLedgerClient
        _client = SimulatedLedgerClient(network=settings.stellar_network)

    return _client


def is_valid_address(address: str) -> bool:
    """Check that ``address`` is a Stellar account public key (G...)."""
    return bool(address) and StrKey.is_valid_ed25519_public_key(address)


def reset_ledger_client() -> None:
    """Drop the cached client (useful for testing)."""
    global _client
    _client = None
