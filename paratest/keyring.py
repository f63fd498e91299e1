"""
Development keyring.

Derives the well-known development accounts (`//Alice`, `//Bob`, ...) from the
development seed. Relay chain dev accounts, sudo included, are sr25519 keys;
Ed25519 keys are available for runtimes configured with them.

sr25519 signatures are randomized, so only the signing payload is a pure
function of the transaction inputs. Ed25519 signatures are deterministic.
"""

from dataclasses import dataclass
from enum import Enum

import sr25519
from nacl.signing import SigningKey

from paratest import scale

# Mini secret of the development phrase
# "bottom drive obey lake curtain smoke basket hold race lonely fit walk".
DEV_SEED = bytes.fromhex("fac7959dbfe72f052e5a0c3c8d6530f202b02fd8f9f5ca3580ec8deb7797479e")

ED25519_HDKD_TAG = scale.text("Ed25519HDKD")
CHAIN_CODE_LEN = 32


class KeypairType(str, Enum):
    Sr25519 = "sr25519"
    Ed25519 = "ed25519"

    def __str__(self) -> str:
        return self.value


# `MultiSignature` variant index per key type
MULTISIG_VARIANT = {
    KeypairType.Ed25519: 0,
    KeypairType.Sr25519: 1,
}


def _chain_code(junction: str) -> bytes:
    """Junctions are SCALE-encoded, numbers as u64, and hashed when longer than 32 bytes."""
    if junction.isdigit():
        code = scale.u64(int(junction))
    else:
        code = scale.text(junction)
    if len(code) > CHAIN_CODE_LEN:
        return scale.blake2_256(code)
    return code.ljust(CHAIN_CODE_LEN, b"\x00")


def parse_uri(uri: str) -> list[str]:
    """
    Split a derivation URI such as `//Alice` or `//Alice//stash` into junctions.

    Only hard junctions are supported.
    """
    if not uri.startswith("//"):
        raise ValueError(f"unsupported key URI {uri!r}, expected hard junctions like //Alice")
    junctions = uri[2:].split("//")
    for junction in junctions:
        if not junction or "/" in junction:
            raise ValueError(f"unsupported key URI {uri!r}, soft junctions are not supported")
    return junctions


def _derive_sr25519(seed: bytes, junctions: list[str]) -> tuple[bytes, bytes]:
    public, secret = sr25519.pair_from_seed(seed)
    for junction in junctions:
        _, public, secret = sr25519.hard_derive_keypair((_chain_code(junction), public, secret), b"")
    return bytes(public), bytes(secret)


def _derive_ed25519(seed: bytes, junctions: list[str]) -> tuple[bytes, bytes]:
    for junction in junctions:
        seed = scale.blake2_256(ED25519_HDKD_TAG + seed + _chain_code(junction))
    return bytes(SigningKey(seed).verify_key), seed


@dataclass(frozen=True)
class Keypair:
    """
    A signing key and its public key.

    `secret` is the 64-byte expanded secret for sr25519, the 32-byte seed for
    Ed25519.
    """

    crypto_type: KeypairType
    public_key: bytes
    secret: bytes

    @classmethod
    def from_uri(
        cls,
        uri: str,
        crypto_type: KeypairType | str = KeypairType.Sr25519,
        seed: bytes = DEV_SEED,
    ) -> "Keypair":
        crypto_type = KeypairType(crypto_type)
        scale.fixed(seed, 32)
        junctions = parse_uri(uri)
        if crypto_type is KeypairType.Sr25519:
            public, secret = _derive_sr25519(seed, junctions)
        else:
            public, secret = _derive_ed25519(seed, junctions)
        return cls(crypto_type, public, secret)

    @property
    def account_id(self) -> bytes:
        # Both key types use the public key as the account id
        return self.public_key

    @property
    def multisig_variant(self) -> int:
        return MULTISIG_VARIANT[self.crypto_type]

    def sign(self, message: bytes) -> bytes:
        if self.crypto_type is KeypairType.Sr25519:
            return bytes(sr25519.sign((self.public_key, self.secret), message))
        return SigningKey(self.secret).sign(message).signature
