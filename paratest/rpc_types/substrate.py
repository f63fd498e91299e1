"""
Response schemas for the relay/parachain node RPC.
"""

from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, TypeAdapter, field_validator

# "0x" followed by exactly 64 hex characters
Hash32 = Annotated[str, StringConstraints(pattern=r"^0x[0-9A-Fa-f]{64}$")]

HASH = TypeAdapter(Hash32)
OPTIONAL_HASH = TypeAdapter(Hash32 | None)


class _Schema(BaseModel):
    model_config = ConfigDict(strict=True, extra="allow", populate_by_name=True)


class Header(_Schema):
    parent_hash: Hash32 = Field(alias="parentHash")
    number: int
    state_root: Hash32 = Field(alias="stateRoot")
    extrinsics_root: Hash32 = Field(alias="extrinsicsRoot")
    digest: dict[str, Any] = Field(default_factory=dict)

    @field_validator("number", mode="before")
    @classmethod
    def _decode_number(cls, v: Any) -> Any:
        # Block numbers are serialized as hex strings
        if isinstance(v, str):
            try:
                return int(v, 16)
            except ValueError as e:
                raise ValueError(f"invalid block number {v!r}") from e
        return v


class RuntimeVersion(_Schema):
    spec_name: str = Field(alias="specName")
    impl_name: str = Field(alias="implName")
    authoring_version: int = Field(alias="authoringVersion")
    spec_version: int = Field(alias="specVersion")
    impl_version: int = Field(alias="implVersion")
    apis: list[Any] = Field(default_factory=list)
    transaction_version: int | None = Field(default=None, alias="transactionVersion")


class NetworkState(_Schema):
    peer_id: str = Field(alias="peerId", min_length=1)
    listened_addresses: list[str] = Field(default_factory=list, alias="listenedAddresses")
    external_addresses: list[str] = Field(default_factory=list, alias="externalAddresses")
