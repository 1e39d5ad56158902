"""Horizon ledger client.

Uses httpx for Horizon / Friendbot requests and stellar-sdk for building
and signing payment envelopes.
"""

import json
import logging
from decimal import Decimal
from typing import Optional

import httpx
from stellar_sdk import Account, Asset, Keypair, Network, TransactionBuilder

from stellramp.stellar.base import (
    FAUCET_AMOUNT,
    MIN_CREATE_ACCOUNT_BALANCE,
    AssetBalance,
    BalanceInfo,
    LedgerClient,
    TransferOutcome,
)

logger = logging.getLogger(__name__)

TX_TIMEOUT_SECONDS = 60


class HorizonLedgerClient(LedgerClient):
    """Ledger client backed by a Horizon server."""

    def __init__(
        self,
        horizon_url: str,
        network: str = "testnet",
        friendbot_url: str = "https://friendbot.stellar.org",
        base_fee: int = 100,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(network)
        self.horizon_url = horizon_url.rstrip("/")
        self.friendbot_url = friendbot_url
        self.base_fee = base_fee
        self.timeout = timeout
        self.transport = transport
        self.network_passphrase = (
            Network.TESTNET_NETWORK_PASSPHRASE
            if self.is_testnet
            else Network.PUBLIC_NETWORK_PASSPHRASE
        )

    async def _load_account(self, client: httpx.AsyncClient, address: str) -> Optional[dict]:
        """Fetch raw account JSON, None if the account does not exist."""
        response = await client.get(f"{self.horizon_url}/accounts/{address}")
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.json()

    async def get_balance(self, address: str) -> BalanceInfo:
        """Load account from Horizon and return balance info."""
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            account = await self._load_account(client, address)

        if account is None:
            return BalanceInfo(exists=False)

        native = "0"
        others = []
        for bal in account.get("balances", []):
            if bal.get("asset_type") == "native":
                native = bal.get("balance", "0")
            elif "asset_code" in bal:
                others.append(
                    AssetBalance(
                        code=bal["asset_code"],
                        balance=bal.get("balance", "0"),
                        issuer=bal.get("asset_issuer", ""),
                    )
                )

        return BalanceInfo(exists=True, native_balance=native, other_assets=others)

    async def transfer(
        self, source_credential: str, destination: str, amount: Decimal
    ) -> TransferOutcome:
        """Send XLM with a payment, or createAccount if the destination is new."""
        amount = Decimal(amount)
        try:
            keypair = Keypair.from_secret(source_credential)
        except ValueError:
            self.transfer_log.record(
                "transfer", "(invalid secret)", destination, amount, None, "failed",
                "invalid source secret",
            )
            return TransferOutcome(success=False, error="Invalid source secret")

        source_public = keypair.public_key

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            source = await self._load_account(client, source_public)
            if source is None:
                self.transfer_log.record(
                    "transfer", source_public, destination, amount, None, "failed",
                    "source account not found",
                )
                return TransferOutcome(success=False, error="Source account not found")

            destination_exists = await self._load_account(client, destination) is not None

            builder = TransactionBuilder(
                source_account=Account(source_public, int(source["sequence"])),
                network_passphrase=self.network_passphrase,
                base_fee=self.base_fee,
            )
            if destination_exists:
                builder.append_payment_op(
                    destination=destination,
                    asset=Asset.native(),
                    amount=f"{amount:.7f}",
                )
                note = "payment"
            elif amount < MIN_CREATE_ACCOUNT_BALANCE:
                error = (
                    f"Destination account does not exist and {amount} XLM is below "
                    f"the {MIN_CREATE_ACCOUNT_BALANCE} XLM needed to create it"
                )
                self.transfer_log.record(
                    "transfer", source_public, destination, amount, None, "failed", error
                )
                return TransferOutcome(success=False, error=error)
            else:
                builder.append_create_account_op(
                    destination=destination,
                    starting_balance=f"{amount:.7f}",
                )
                note = "createAccount"

            envelope = builder.set_timeout(TX_TIMEOUT_SECONDS).build()
            envelope.sign(keypair)

            response = await client.post(
                f"{self.horizon_url}/transactions",
                data={"tx": envelope.to_xdr()},
            )

        data = response.json()
        if response.status_code != 200:
            result_codes = data.get("extras", {}).get("result_codes")
            error = json.dumps(result_codes) if result_codes else data.get("title", "Transfer failed")
            logger.warning(f"Horizon rejected transfer to {destination}: {error}")
            self.transfer_log.record(
                "transfer", source_public, destination, amount, None, "failed", error
            )
            return TransferOutcome(success=False, error=error)

        tx_hash = data.get("hash")
        logger.info(f"Sent {amount} XLM {source_public[:6]}... -> {destination[:6]}... ({tx_hash})")
        self.transfer_log.record(
            "transfer", source_public, destination, amount, tx_hash, "ok", note
        )
        return TransferOutcome(success=True, reference=tx_hash, ledger=data.get("ledger"))

    async def fund_via_faucet(self, address: str) -> TransferOutcome:
        """Fund an address via Friendbot (testnet only)."""
        if not self.is_testnet:
            return TransferOutcome(success=False, error="Friendbot is testnet-only")

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.get(self.friendbot_url, params={"addr": address})

        if response.status_code != 200:
            # Already funded accounts are not an error for the ramp
            if "createAccountAlreadyExist" in response.text or "op_already_exists" in response.text:
                return TransferOutcome(success=True, reference="already-funded")
            error = f"Friendbot HTTP {response.status_code}"
            self.transfer_log.record(
                "faucet", "friendbot", address, FAUCET_AMOUNT, None, "failed", error
            )
            return TransferOutcome(success=False, error=error)

        tx_hash = response.json().get("hash") or "friendbot-ok"
        self.transfer_log.record(
            "faucet", "friendbot", address, FAUCET_AMOUNT, tx_hash, "ok", "testnet funding"
        )
        return TransferOutcome(success=True, reference=tx_hash)
