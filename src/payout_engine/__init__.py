"""Vendor payout engine: local currency to stablecoin to bank payout."""

__version__ = "1.0.0"
