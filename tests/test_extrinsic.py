"""Tests for building and signing the registration extrinsic."""

import pytest
import sr25519
from nacl.signing import VerifyKey

from paratest import scale
from paratest.config import ExtrinsicConfig, ParachainConfig
from paratest.errors import RpcFailure
from paratest.extrinsic import (
    ChainContext,
    Era,
    SignedExtension,
    TransactionBuilder,
    mortality_period,
    register_para_call,
    registration_extensions,
    sign_transaction,
    signing_payload,
)
from paratest.keyring import Keypair, KeypairType

from .conftest import (
    ALICE_ED25519,
    ALICE_SR25519,
    BOB_SR25519,
    GENESIS_HASH,
    FakeNode,
    block_hash,
)

CONTEXT = ChainContext(
    spec_version=25,
    genesis_hash=bytes([0xAA]) * 32,
    block_hash=bytes([0xBB]) * 32,
    block_number=42,
)

# sudo(register_para(100, always, code = "", head = ""))
EMPTY_REGISTRATION = bytes.fromhex("110015009101000000")

# era (2048, 42), nonce 0, tip 0
REGISTRATION_EXTRA = bytes.fromhex("aa020000")

# call ++ extra ++ (spec_version 25, genesis hash, current block hash)
REGISTRATION_PAYLOAD = bytes.fromhex(
    "110015009101000000" + "aa020000" + "19000000" + "aa" * 32 + "bb" * 32
)


@pytest.fixture
def alice() -> Keypair:
    return Keypair.from_uri("//Alice")


@pytest.fixture
def alice_ed25519() -> Keypair:
    return Keypair.from_uri("//Alice", KeypairType.Ed25519)


class TestMortality:
    def test_default_block_hash_count(self) -> None:
        # 2400 -> 4096 -> 2048
        assert mortality_period(2400) == 2048

    def test_power_of_two_is_kept(self) -> None:
        assert mortality_period(256) == 128

    def test_minimum(self) -> None:
        assert mortality_period(1) == 2
        assert mortality_period(0) == 2

    @pytest.mark.parametrize(
        ("period", "current", "expected"),
        [
            (64, 42, Era(64, 42)),
            (32768, 20_000, Era(32768, 20_000)),
            (200, 513, Era(256, 1)),
            (2, 1, Era(4, 1)),
            (4, 5, Era(4, 1)),
            # clamped to 65536, phase quantized to a multiple of 16
            (1_000_000, 1_000_001, Era(65536, 16960)),
        ],
    )
    def test_mortal_era_construction(self, period: int, current: int, expected: Era) -> None:
        assert Era.mortal(period, current) == expected

    @pytest.mark.parametrize(
        ("period", "current", "encoded"),
        [
            (64, 42, "a502"),
            (32768, 20_000, "4e9c"),
            (2048, 42, "aa02"),
            (2048, 1000, "8a3e"),
        ],
    )
    def test_mortal_era_encoding(self, period: int, current: int, encoded: str) -> None:
        assert Era.mortal(period, current).encode().hex() == encoded


class TestExtensions:
    def test_fixed_order(self) -> None:
        names = [ext.name for ext in registration_extensions(CONTEXT, 0, 0, 2048)]
        assert names == [
            "OnlyStakingAndClaims",
            "CheckVersion",
            "CheckGenesis",
            "CheckEra",
            "CheckNonce",
            "CheckWeight",
            "ChargeTransactionPayment",
            "LimitParathreadCommits",
            "ValidateDoubleVoteReports",
        ]

    def test_additional_signed_data(self) -> None:
        extensions = registration_extensions(CONTEXT, 0, 0, 2048)
        additional = b"".join(ext.additional for ext in extensions)
        # (), spec_version, genesis hash, current block hash, then five units
        assert additional.hex() == "19000000" + "aa" * 32 + "bb" * 32

    def test_extra_carries_era_nonce_and_tip(self) -> None:
        extensions = registration_extensions(CONTEXT, 3, 1000, 2048)
        extra = b"".join(ext.extra for ext in extensions)
        # era aa02, compact(3) = 0c, compact(1000) = a10f
        assert extra.hex() == "aa020ca10f"


class TestRegisterParaCall:
    def test_call_bytes(self) -> None:
        call = register_para_call(ExtrinsicConfig(), 100, "always", b"\x00asm", b"Hello")
        # sudo 17/0, register_para 21/0, compact(100), always, vec(code), vec(head)
        assert call.hex() == "1100" + "1500" + "9101" + "00" + "100061736d" + "1448656c6c6f"

    def test_empty_blobs(self) -> None:
        assert register_para_call(ExtrinsicConfig(), 100, "always", b"", b"") == EMPTY_REGISTRATION

    def test_configured_indices(self) -> None:
        cfg = ExtrinsicConfig(sudo_call_index=[5, 0], register_para_call_index=[9, 2])
        call = register_para_call(cfg, 2000, "always", b"", b"")
        # compact(2000) = 41 1f
        assert call.hex() == "0500" + "0902" + "411f" + "000000"

    def test_dynamic_scheduling(self) -> None:
        call = register_para_call(ExtrinsicConfig(), 100, "dynamic", b"", b"")
        assert call.hex() == "110015009101010000"

    def test_unknown_scheduling(self) -> None:
        with pytest.raises(ValueError):
            register_para_call(ExtrinsicConfig(), 100, "sometimes", b"", b"")


class TestSigningPayload:
    def test_registration_payload(self) -> None:
        extensions = registration_extensions(CONTEXT, 0, 0, 2048)
        assert signing_payload(EMPTY_REGISTRATION, extensions) == REGISTRATION_PAYLOAD

    def test_payload_is_deterministic(self) -> None:
        call = register_para_call(ExtrinsicConfig(), 100, "always", b"code", b"head")
        first = registration_extensions(CONTEXT, 0, 0, 2048)
        second = registration_extensions(CONTEXT, 0, 0, 2048)
        assert signing_payload(call, first) == signing_payload(call, second)

    def test_long_payload_is_hashed(self) -> None:
        call = bytes(300)
        extensions = (SignedExtension("CheckNonce", extra=b"\x00"),)
        assert signing_payload(call, extensions) == scale.blake2_256(call + b"\x00")

    def test_short_payload_is_raw(self) -> None:
        extensions = (SignedExtension("CheckVersion", additional=b"\x01\x00\x00\x00"),)
        assert signing_payload(b"\x05", extensions) == b"\x05\x01\x00\x00\x00"


class TestSignedTransaction:
    def test_sr25519_layout(self, alice: Keypair) -> None:
        extensions = registration_extensions(CONTEXT, 0, 0, 2048)
        tx = sign_transaction(EMPTY_REGISTRATION, extensions, alice)
        encoded = tx.encode()

        # compact(112) = c1 01, then version 4 signed, 0xff full account id
        assert encoded[:4].hex() == "c10184ff"
        assert encoded[4:36].hex() == ALICE_SR25519
        # MultiSignature::Sr25519
        assert encoded[36] == 1
        assert encoded[37:101] == tx.signature
        assert encoded[101:] == REGISTRATION_EXTRA + EMPTY_REGISTRATION
        assert tx.to_hex() == "0x" + encoded.hex()

        assert sr25519.verify(tx.signature, REGISTRATION_PAYLOAD, bytes.fromhex(ALICE_SR25519))

    def test_ed25519_layout(self, alice_ed25519: Keypair) -> None:
        extensions = registration_extensions(CONTEXT, 0, 0, 2048)
        tx = sign_transaction(EMPTY_REGISTRATION, extensions, alice_ed25519)
        encoded = tx.encode()

        assert encoded[4:36].hex() == ALICE_ED25519
        # MultiSignature::Ed25519
        assert encoded[36] == 0
        VerifyKey(bytes.fromhex(ALICE_ED25519)).verify(REGISTRATION_PAYLOAD, tx.signature)

    def test_ed25519_signatures_are_reproducible(self, alice_ed25519: Keypair) -> None:
        extensions = registration_extensions(CONTEXT, 0, 0, 2048)
        tx1 = sign_transaction(EMPTY_REGISTRATION, extensions, alice_ed25519)
        tx2 = sign_transaction(EMPTY_REGISTRATION, extensions, alice_ed25519)
        assert tx1.encode() == tx2.encode()

    def test_different_context_changes_signature(self, alice_ed25519: Keypair) -> None:
        other = ChainContext(26, CONTEXT.genesis_hash, CONTEXT.block_hash, 42)
        tx1 = sign_transaction(
            EMPTY_REGISTRATION, registration_extensions(CONTEXT, 0, 0, 2048), alice_ed25519
        )
        tx2 = sign_transaction(
            EMPTY_REGISTRATION, registration_extensions(other, 0, 0, 2048), alice_ed25519
        )
        assert tx1.signature != tx2.signature

    def test_without_address_prefix(self, alice: Keypair) -> None:
        extensions = registration_extensions(CONTEXT, 0, 0, 2048)
        tx = sign_transaction(EMPTY_REGISTRATION, extensions, alice, address_prefix=None)
        # one byte shorter: compact(111) = bd 01
        assert tx.encode()[:3].hex() == "bd0184"
        assert tx.encode()[3:35].hex() == ALICE_SR25519


class TestKeyring:
    def test_dev_accounts(self) -> None:
        assert Keypair.from_uri("//Alice").account_id.hex() == ALICE_SR25519
        assert Keypair.from_uri("//Bob").account_id.hex() == BOB_SR25519
        assert Keypair.from_uri("//Alice", "ed25519").account_id.hex() == ALICE_ED25519

    def test_default_signer_is_sudo_account(self) -> None:
        cfg = ExtrinsicConfig()
        signer = Keypair.from_uri(cfg.signer, cfg.crypto_type)
        assert signer.account_id.hex() == ALICE_SR25519
        assert signer.multisig_variant == 1

    def test_rejects_soft_junctions(self) -> None:
        with pytest.raises(ValueError):
            Keypair.from_uri("/Alice")
        with pytest.raises(ValueError):
            Keypair.from_uri("//Alice/soft")

    def test_rejects_unknown_key_type(self) -> None:
        with pytest.raises(ValueError):
            Keypair.from_uri("//Alice", "ecdsa")


class TestTransactionBuilder:
    @pytest.mark.asyncio
    async def test_fetch_context(self, alice: Keypair) -> None:
        node = FakeNode(heads=[block_hash(9)], spec_version=31, block_number=77)
        builder = TransactionBuilder(node, alice, ExtrinsicConfig())

        context = await builder.fetch_context()

        assert context.spec_version == 31
        assert context.block_number == 77
        assert context.block_hash == scale.hex_to_bytes(block_hash(9))
        assert context.genesis_hash == scale.hex_to_bytes(GENESIS_HASH)

    @pytest.mark.asyncio
    async def test_missing_best_block(self, alice: Keypair) -> None:
        node = FakeNode()

        async def no_head(index=None):
            return None

        node.block_hash = no_head
        with pytest.raises(RpcFailure):
            await TransactionBuilder(node, alice, ExtrinsicConfig()).fetch_context()

    def test_register_parachain(self, alice: Keypair) -> None:
        builder = TransactionBuilder(FakeNode(), alice, ExtrinsicConfig())
        para = ParachainConfig(para_id=100)

        tx = builder.register_parachain(CONTEXT, para, b"", b"")

        assert tx.call == EMPTY_REGISTRATION
        assert tx.signer.hex() == ALICE_SR25519
        assert tx.encode().endswith(REGISTRATION_EXTRA + EMPTY_REGISTRATION)
        assert sr25519.verify(tx.signature, REGISTRATION_PAYLOAD, tx.signer)

    def test_register_parachain_is_reproducible(self, alice_ed25519: Keypair) -> None:
        builder = TransactionBuilder(FakeNode(), alice_ed25519, ExtrinsicConfig())
        para = ParachainConfig(para_id=100)
        tx1 = builder.register_parachain(CONTEXT, para, b"wasm", b"Hello")
        tx2 = builder.register_parachain(CONTEXT, para, b"wasm", b"Hello")
        assert tx1 == tx2
