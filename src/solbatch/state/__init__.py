"""
State management module.

Handles the wallet list files the commands read and write.
"""

from solbatch.state.wallet_store import load_wallets, save_wallets, wallet_file_exists

__all__ = [
    "load_wallets",
    "save_wallets",
    "wallet_file_exists",
]
