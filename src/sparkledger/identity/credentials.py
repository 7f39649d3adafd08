# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Credential → account resolution.

A voter identifies itself with its Ed25519 private key (raw 32-byte hex or
DER-prefixed hex). The public key is derived locally with ``cryptography``
and looked up on the mirror node; the key itself never leaves the process.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol, runtime_checkable

import aiohttp
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    PublicFormat,
)

from ..core.exceptions import IdentityResolutionError, LedgerUnavailable

logger = logging.getLogger(__name__)

# ASN.1 prefixes for Ed25519 PKCS#8 private keys and SPKI public keys
DER_PRIVATE_PREFIX = "302e020100300506032b657004220420"
DER_PUBLIC_PREFIX = "302a300506032b6570032100"


def load_private_key(credential: str) -> Ed25519PrivateKey:
    """Parse a hex-encoded Ed25519 private key.

    Raises:
        IdentityResolutionError: If the credential is not a valid Ed25519 key.
    """
    text = credential.strip().lower()
    if text.startswith("0x"):
        text = text[2:]
    if text.startswith(DER_PRIVATE_PREFIX):
        text = text[len(DER_PRIVATE_PREFIX) :]
    if len(text) != 64:
        raise IdentityResolutionError("Credential is not an Ed25519 private key")
    try:
        raw = bytes.fromhex(text)
    except ValueError as e:
        raise IdentityResolutionError("Credential is not valid hex") from e
    return Ed25519PrivateKey.from_private_bytes(raw)


def public_key_der_hex(public_key: Ed25519PublicKey) -> str:
    """DER-encoded public key hex, the form mirror nodes index accounts by."""
    raw = public_key.public_bytes(Encoding.Raw, PublicFormat.Raw)
    return DER_PUBLIC_PREFIX + raw.hex()


@runtime_checkable
class IdentityResolver(Protocol):
    async def resolve(self, credential: str) -> str:
        """Map a credential to a stable account id.

        Raises:
            IdentityResolutionError: If no account matches the credential.
        """
        ...


class MirrorIdentityResolver:
    """Resolve accounts via ``/api/v1/accounts?account.publickey=``."""

    def __init__(self, base_url: str, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def resolve(self, credential: str) -> str:
        public_key = public_key_der_hex(load_private_key(credential).public_key())
        url = f"{self.base_url}/api/v1/accounts"
        params = {"account.publickey": public_key, "limit": 1}
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(
                    url, params=params, timeout=aiohttp.ClientTimeout(total=self.timeout)
                ) as response:
                    if response.status != 200:
                        raise LedgerUnavailable(f"Account lookup returned {response.status}")
                    data = await response.json()
        except aiohttp.ClientError as e:
            raise LedgerUnavailable(f"Network error during account lookup: {e}") from e
        except asyncio.TimeoutError as e:
            raise LedgerUnavailable("Timed out during account lookup") from e

        accounts = data.get("accounts") if isinstance(data, dict) else None
        if not accounts:
            raise IdentityResolutionError("No ledger account found for the supplied key")
        account = accounts[0].get("account")
        if not account:
            raise IdentityResolutionError("Account lookup returned no account id")
        return str(account)


class StaticIdentityResolver:
    """Resolve credentials from a fixed mapping (local development and tests)."""

    def __init__(self, accounts: dict[str, str]):
        self._accounts = dict(accounts)

    async def resolve(self, credential: str) -> str:
        try:
            return self._accounts[credential]
        except KeyError:
            raise IdentityResolutionError("Unknown credential") from None
