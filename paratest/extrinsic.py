"""
Construction and signing of the parachain registration extrinsic.

Everything here except `TransactionBuilder.fetch_context` is a pure function of
its inputs: the same call, extensions and chain context always give the same
signing payload. Signatures are reproducible only for Ed25519 signers, sr25519
signing is randomized.
"""

import logging
from dataclasses import dataclass
from typing import Protocol

from paratest import scale
from paratest.config import ExtrinsicConfig, ParachainConfig
from paratest.errors import RpcFailure
from paratest.keyring import MULTISIG_VARIANT, Keypair, KeypairType
from paratest.rpc import ChainApi, StateApi

logger = logging.getLogger(__name__)

# Payloads longer than this are hashed before signing
MAX_UNHASHED_PAYLOAD = 256

EXTRINSIC_VERSION = 4
SIGNED_FLAG = 0b1000_0000

SCHEDULING = {"always": 0, "dynamic": 1}


class ContextApi(ChainApi, StateApi, Protocol):
    """What the builder needs from the node to sign against its current state."""


def next_power_of_two(n: int) -> int:
    if n <= 1:
        return 1
    return 1 << (n - 1).bit_length()


def mortality_period(block_hash_count: int) -> int:
    """Half of the next power of two of `block_hash_count`, at least 2."""
    return max(next_power_of_two(block_hash_count) // 2, 2)


@dataclass(frozen=True)
class Era:
    """A mortal transaction era: valid for `period` blocks starting at the birth block."""

    period: int
    phase: int

    @classmethod
    def mortal(cls, period: int, current: int) -> "Era":
        period = min(max(next_power_of_two(period), 4), 1 << 16)
        phase = current % period
        quantize_factor = max(period >> 12, 1)
        quantized_phase = phase // quantize_factor * quantize_factor
        return cls(period, quantized_phase)

    def encode(self) -> bytes:
        quantize_factor = max(self.period >> 12, 1)
        trailing_zeros = (self.period & -self.period).bit_length() - 1
        encoded = min(15, max(1, trailing_zeros - 1)) | ((self.phase // quantize_factor) << 4)
        return scale.u16(encoded)


@dataclass(frozen=True)
class ChainContext:
    """Chain state the signature commits to."""

    spec_version: int
    genesis_hash: bytes
    block_hash: bytes
    block_number: int


@dataclass(frozen=True)
class SignedExtension:
    """
    One transaction extension.

    `extra` is included in the extrinsic, `additional` only in the signing
    payload. Either can be empty.
    """

    name: str
    extra: bytes = b""
    additional: bytes = b""


def registration_extensions(
    context: ChainContext,
    nonce: int,
    tip: int,
    period: int,
) -> tuple[SignedExtension, ...]:
    """The relay runtime's `SignedExtra`, in the order the runtime mandates."""
    era = Era.mortal(period, context.block_number)
    return (
        SignedExtension("OnlyStakingAndClaims"),
        SignedExtension("CheckVersion", additional=scale.u32(context.spec_version)),
        SignedExtension("CheckGenesis", additional=scale.fixed(context.genesis_hash, 32)),
        SignedExtension(
            "CheckEra",
            extra=era.encode(),
            additional=scale.fixed(context.block_hash, 32),
        ),
        SignedExtension("CheckNonce", extra=scale.compact(nonce)),
        SignedExtension("CheckWeight"),
        SignedExtension("ChargeTransactionPayment", extra=scale.compact(tip)),
        SignedExtension("LimitParathreadCommits"),
        SignedExtension("ValidateDoubleVoteReports"),
    )


def _call_index(index: list[int]) -> bytes:
    pallet, call = index
    return scale.u8(pallet) + scale.u8(call)


def register_para_call(
    cfg: ExtrinsicConfig,
    para_id: int,
    scheduling: str,
    code: bytes,
    genesis_head: bytes,
) -> bytes:
    """Encode `Sudo::sudo(Registrar::register_para(id, info, code, head))`."""
    if scheduling not in SCHEDULING:
        raise ValueError(f"unknown scheduling {scheduling!r}")
    inner = (
        _call_index(cfg.register_para_call_index)
        + scale.compact(para_id)
        + scale.u8(SCHEDULING[scheduling])
        + scale.vec(code)
        + scale.vec(genesis_head)
    )
    return _call_index(cfg.sudo_call_index) + inner


def signing_payload(call: bytes, extensions: tuple[SignedExtension, ...]) -> bytes:
    """
    Bytes the signer signs: call, then all extras, then all additional data.

    Long payloads are replaced by their blake2-256 hash.
    """
    extra = b"".join(ext.extra for ext in extensions)
    additional = b"".join(ext.additional for ext in extensions)
    payload = call + extra + additional
    if len(payload) > MAX_UNHASHED_PAYLOAD:
        return scale.blake2_256(payload)
    return payload


@dataclass(frozen=True)
class SignedTransaction:
    call: bytes
    extensions: tuple[SignedExtension, ...]
    signer: bytes
    signature: bytes
    multisig_variant: int = MULTISIG_VARIANT[KeypairType.Sr25519]
    address_prefix: int | None = 0xFF

    def encode(self) -> bytes:
        address = scale.fixed(self.signer, 32)
        if self.address_prefix is not None:
            address = scale.u8(self.address_prefix) + address
        body = (
            scale.u8(SIGNED_FLAG | EXTRINSIC_VERSION)
            + address
            + scale.u8(self.multisig_variant)
            + scale.fixed(self.signature, 64)
            + b"".join(ext.extra for ext in self.extensions)
            + self.call
        )
        return scale.vec(body)

    def to_hex(self) -> str:
        return "0x" + self.encode().hex()


def sign_transaction(
    call: bytes,
    extensions: tuple[SignedExtension, ...],
    keypair: Keypair,
    address_prefix: int | None = 0xFF,
) -> SignedTransaction:
    signature = keypair.sign(signing_payload(call, extensions))
    return SignedTransaction(
        call,
        extensions,
        keypair.account_id,
        signature,
        keypair.multisig_variant,
        address_prefix,
    )


class TransactionBuilder:
    """
    Builds the signed parachain registration extrinsic.

    Usage:
        builder = TransactionBuilder(alice_rpc, Keypair.from_uri("//Alice"), cfg.extrinsic)
        ctx = await builder.fetch_context()
        tx = builder.register_parachain(ctx, cfg.parachain, wasm, genesis_state)
        await alice_rpc.submit_extrinsic(tx.to_hex())
    """

    def __init__(self, rpc: ContextApi, keypair: Keypair, cfg: ExtrinsicConfig):
        self.rpc = rpc
        self.keypair = keypair
        self.cfg = cfg

    async def fetch_context(self) -> ChainContext:
        """Read spec version, genesis hash and the current block from the node."""
        version = await self.rpc.runtime_version()

        current_hash = await self.rpc.block_hash(None)
        if current_hash is None:
            raise RpcFailure("node returned no best block hash")
        header = await self.rpc.header(current_hash)
        if header is None:
            raise RpcFailure(f"node has no header for best block {current_hash}")

        genesis_hash = await self.rpc.block_hash(0)
        if genesis_hash is None:
            raise RpcFailure("node returned no genesis hash")

        context = ChainContext(
            spec_version=version.spec_version,
            genesis_hash=scale.hex_to_bytes(genesis_hash, 32),
            block_hash=scale.hex_to_bytes(current_hash, 32),
            block_number=header.number,
        )
        logger.info(
            f"chain context: spec_version={context.spec_version} "
            f"block=#{context.block_number} ({current_hash})"
        )
        return context

    def build(self, call: bytes, context: ChainContext) -> SignedTransaction:
        period = mortality_period(self.cfg.block_hash_count)
        extensions = registration_extensions(context, self.cfg.nonce, self.cfg.tip, period)
        return sign_transaction(call, extensions, self.keypair, self.cfg.address_prefix)

    def register_parachain(
        self,
        context: ChainContext,
        parachain: ParachainConfig,
        code: bytes,
        genesis_state: bytes,
    ) -> SignedTransaction:
        call = register_para_call(
            self.cfg, parachain.para_id, parachain.scheduling, code, genesis_state
        )
        return self.build(call, context)
