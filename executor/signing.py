"""
Signing capability for live execution. Built once at startup from the
configured private key; a missing or malformed key is a ConfigurationError.
"""

from __future__ import annotations

import logging

from eth_account import Account
from eth_account.signers.local import LocalAccount

from config import Config, ConfigurationError

logger = logging.getLogger(__name__)


def build_signer(cfg: Config) -> LocalAccount:
    """
    Derive the local account used to sign live transactions.
    Never logs the key itself.
    """
    if not cfg.private_key:
        raise ConfigurationError("PRIVATE_KEY required for live execution mode")

    key = cfg.private_key if cfg.private_key.startswith("0x") else "0x" + cfg.private_key
    try:
        account: LocalAccount = Account.from_key(key)
    except Exception as e:
        raise ConfigurationError(f"PRIVATE_KEY is not a valid signing key: {type(e).__name__}") from e

    logger.debug("Signer ready: %s", account.address)
    return account
