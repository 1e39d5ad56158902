"""Reply text builders for the chat commands.

Pure functions so handlers stay thin and the wording is testable without a bot.
"""

from decimal import Decimal
from typing import Optional

from stellramp.anchor.results import DepositResult, RateQuote, WithdrawalResult
from stellramp.ledger.models import DepositRecord, WithdrawalRecord

STATUS_ICONS = {
    "created": "🕓",
    "processing": "⏳",
    "completed": "✅",
    "failed": "❌",
    "expired": "⌛",
    "cancelled": "🚫",
}

HELP_TEXT = """Stellramp Bot Commands

Wallet:
  /linkwallet <address> - Link your Stellar public address

Ramp:
  /addfunds <amount> [currency]  - Buy XLM with fiat
              Usage: /addfunds 50 USD
  /withdraw <amount> [currency]  - Sell XLM for fiat
              Usage: /withdraw 25 EUR
  /rates    - Current exchange rates

History & Status:
  /txhistory              - Your deposits and withdrawals
  /depositstatus <id>     - Look up a deposit
  /withdrawstatus <id>    - Look up a withdrawal

  /help     - Show this help message
  /start    - Restart the bot

Fiat settlement is simulated on the test network."""


def short_address(address: Optional[str]) -> str:
    """Abbreviate a Stellar address for display."""
    if not address:
        return "(none)"
    if len(address) <= 14:
        return address
    return f"{address[:6]}...{address[-6:]}"


def _status(value) -> str:
    status = str(getattr(value, "value", value))
    return f"{STATUS_ICONS.get(status, '•')} {status}"


def _trim(amount: Decimal) -> str:
    """Drop trailing zeros from stored Numeric values."""
    text = f"{Decimal(amount):f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


def format_welcome(first_name: Optional[str], linked_address: Optional[str]) -> str:
    name = first_name or "there"
    if linked_address:
        wallet_line = f"Linked wallet: {short_address(linked_address)}"
    else:
        wallet_line = "No wallet linked yet. Use /linkwallet <address> to get started."

    return f"""Welcome to Stellramp, {name}!

Move money between fiat and XLM on the Stellar network.

  Add funds: fiat -> XLM
  Withdraw:  XLM -> fiat
  Supported currencies: USD, EUR, INR, GBP

{wallet_line}

Type /help for commands."""


def format_usage(command: str, usage: str, error: Optional[str] = None) -> str:
    lines = []
    if error:
        lines.append(f"❌ {error}\n")
    lines.append(f"Usage: /{command} {usage}")
    return "\n".join(lines)


def format_wallet_linked(address: str, network: str) -> str:
    return f"""✅ Wallet linked

Address: {address}
Network: {network}

Use /addfunds or /withdraw to move funds."""


def format_deposit_result(result: DepositResult) -> str:
    if not result.success:
        return f"❌ Deposit failed\n\n{result.message}"

    return f"""✅ Deposit complete

ID: {result.deposit_id}
Credited: {_trim(result.credited_value)} XLM
Reference: {result.settlement_reference or 'N/A'}

{result.message}"""


def format_withdrawal_result(result: WithdrawalResult) -> str:
    if not result.success:
        return f"❌ Withdrawal failed\n\n{result.message}"

    return f"""✅ Withdrawal complete

ID: {result.withdrawal_id}
Debited: {_trim(result.value_debited)} XLM
Payout: {result.fiat_payout} {result.currency}
ETA: {result.eta}
Reference: {result.settlement_reference or 'N/A'}"""


def format_rates(quotes: list[RateQuote]) -> str:
    lines = ["📈 Exchange Rates (demo)\n"]
    for quote in quotes:
        lines.append(
            f"  1 {quote.currency} = {_trim(quote.fiat_to_value)} XLM"
            f"   |   1 XLM = {_trim(quote.value_to_fiat)} {quote.currency}"
        )
    return "\n".join(lines)


def format_history(
    deposits: list[DepositRecord],
    withdrawals: list[WithdrawalRecord],
    limit: int = 10,
) -> str:
    """Newest entries of each kind, up to ``limit``."""
    if not deposits and not withdrawals:
        return "📊 No ramp history yet.\n\nUse /addfunds to make your first deposit."

    lines = ["📊 Ramp History\n"]

    if deposits:
        lines.append("Deposits:")
        for d in list(reversed(deposits))[:limit]:
            lines.append(
                f"  {d.deposit_id}  {_trim(d.fiat_amount)} {d.currency} -> "
                f"{_trim(d.estimated_value)} XLM  {_status(d.status)}"
            )

    if withdrawals:
        if deposits:
            lines.append("")
        lines.append("Withdrawals:")
        for w in list(reversed(withdrawals))[:limit]:
            lines.append(
                f"  {w.withdrawal_id}  {_trim(w.requested_value)} XLM -> "
                f"{w.estimated_fiat_payout} {w.currency}  {_status(w.status)}"
            )

    return "\n".join(lines)


def format_deposit_status(record: Optional[DepositRecord], deposit_id: str) -> str:
    if record is None:
        return f"❌ Deposit {deposit_id} not found"

    lines = [
        f"Deposit {record.deposit_id}\n",
        f"Status: {_status(record.status)}",
        f"Amount: {_trim(record.fiat_amount)} {record.currency}",
        f"Estimated: {_trim(record.estimated_value)} XLM",
        f"Wallet: {short_address(record.destination_address)}",
    ]
    if record.credited_value:
        lines.append(f"Credited: {_trim(record.credited_value)} XLM")
    if record.settlement_reference:
        lines.append(f"Reference: {record.settlement_reference}")
    if record.error_message:
        lines.append(f"Error: {record.error_message}")
    return "\n".join(lines)


def format_withdrawal_status(record: Optional[WithdrawalRecord], withdrawal_id: str) -> str:
    if record is None:
        return f"❌ Withdrawal {withdrawal_id} not found"

    lines = [
        f"Withdrawal {record.withdrawal_id}\n",
        f"Status: {_status(record.status)}",
        f"Amount: {_trim(record.requested_value)} XLM",
        f"Estimated payout: {record.estimated_fiat_payout} {record.currency}",
        f"Wallet: {short_address(record.source_address)}",
    ]
    if record.actual_fiat_payout:
        lines.append(f"Paid out: {record.actual_fiat_payout} {record.currency}")
    if record.ledger_reference:
        lines.append(f"Reference: {record.ledger_reference}")
    if record.error_message:
        lines.append(f"Error: {record.error_message}")
    return "\n".join(lines)
