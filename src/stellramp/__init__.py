"""Stellramp - Stellar anchor on/off-ramp ledger with REST and Telegram surfaces."""

__version__ = "0.1.0"
