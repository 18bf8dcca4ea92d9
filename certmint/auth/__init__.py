"""Wallet authentication and session credentials for certmint."""
