"""
Inbound contract event models.

Each model is the decoded form of one contract log as handed over by the
event-delivery layer: kind-specific arguments plus the block number, block
timestamp and transaction identity every handler needs. Addresses and hashes
are case-folded on validation; no other normalization happens here.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator

from .enums import EventKind


class ChainEvent(BaseModel):
    """
    Fields shared by every contract event.

    Attributes:
        block_number: Block the log was emitted in
        block_timestamp: Block timestamp in Unix seconds
        transaction_hash: Hash of the emitting transaction
        log_index: Position of the log in the block (0 when unknown)
    """

    block_number: int = Field(ge=0, description="Block the log was emitted in")
    block_timestamp: int = Field(ge=0, description="Block timestamp (Unix seconds)")
    transaction_hash: str = Field(min_length=1, description="Emitting transaction hash")
    log_index: int = Field(default=0, ge=0, description="Log position inside the block")

    @field_validator("transaction_hash")
    @classmethod
    def normalize_transaction_hash(cls, v: str) -> str:
        return v.lower()

    @property
    def event_kind(self) -> EventKind:
        return EventKind(getattr(self, "kind"))

    @property
    def event_id(self) -> str:
        """Delivery identity used to recognise re-delivered events."""
        return f"{self.transaction_hash}-{self.log_index}"


class PodiumCreated(ChainEvent):
    """A voter ranked up to three brands and paid ``cost`` for it."""

    kind: Literal["PodiumCreated"] = "PodiumCreated"
    voter: str
    fid: int = Field(ge=0)
    brand_ids: list[int] = Field(default_factory=list, max_length=3)
    cost: int = Field(ge=0)

    @field_validator("voter")
    @classmethod
    def normalize_voter(cls, v: str) -> str:
        return v.lower()


class BrandCreated(ChainEvent):
    kind: Literal["BrandCreated"] = "BrandCreated"
    brand_id: int = Field(ge=0)
    handle: str = ""
    fid: int = Field(ge=0)
    wallet_address: str
    created_at: int = Field(ge=0)

    @field_validator("wallet_address")
    @classmethod
    def normalize_wallet(cls, v: str) -> str:
        return v.lower()


class BrandsCreated(ChainEvent):
    """
    Batch brand registration.

    The four arrays correspond index by index. Length agreement is checked by
    the reducer, which rejects the whole event on mismatch.
    """

    kind: Literal["BrandsCreated"] = "BrandsCreated"
    brand_ids: list[int] = Field(default_factory=list)
    handles: list[str] = Field(default_factory=list)
    fids: list[int] = Field(default_factory=list)
    wallet_addresses: list[str] = Field(default_factory=list)
    created_at: int = Field(ge=0)

    @field_validator("wallet_addresses")
    @classmethod
    def normalize_wallets(cls, v: list[str]) -> list[str]:
        return [w.lower() for w in v]


class WalletAuthorized(ChainEvent):
    kind: Literal["WalletAuthorized"] = "WalletAuthorized"
    fid: int = Field(ge=0)
    wallet: str

    @field_validator("wallet")
    @classmethod
    def normalize_wallet(cls, v: str) -> str:
        return v.lower()


class RewardClaimed(ChainEvent):
    kind: Literal["RewardClaimed"] = "RewardClaimed"
    recipient: str
    fid: int = Field(ge=0)
    amount: int = Field(ge=0)
    cast_hash: str = ""
    caller: str

    @field_validator("recipient", "caller")
    @classmethod
    def normalize_addresses(cls, v: str) -> str:
        return v.lower()


class BrandRewardWithdrawn(ChainEvent):
    kind: Literal["BrandRewardWithdrawn"] = "BrandRewardWithdrawn"
    brand_id: int = Field(ge=0)
    fid: int = Field(ge=0)
    amount: int = Field(ge=0)


class BrndPowerLevelUp(ChainEvent):
    kind: Literal["BrndPowerLevelUp"] = "BrndPowerLevelUp"
    fid: int = Field(ge=0)
    new_level: int = Field(ge=0)
    wallet: str

    @field_validator("wallet")
    @classmethod
    def normalize_wallet(cls, v: str) -> str:
        return v.lower()


class BrandUpdated(ChainEvent):
    kind: Literal["BrandUpdated"] = "BrandUpdated"
    brand_id: int = Field(ge=0)
    new_metadata_hash: str = ""
    new_fid: int = Field(ge=0)
    new_wallet_address: str

    @field_validator("new_wallet_address")
    @classmethod
    def normalize_wallet(cls, v: str) -> str:
        return v.lower()


AnyEvent = Annotated[
    Union[
        PodiumCreated,
        BrandCreated,
        BrandsCreated,
        WalletAuthorized,
        RewardClaimed,
        BrandRewardWithdrawn,
        BrndPowerLevelUp,
        BrandUpdated,
    ],
    Field(discriminator="kind"),
]

_event_adapter: TypeAdapter = TypeAdapter(AnyEvent)


def parse_event(payload: dict[str, Any]) -> ChainEvent:
    """
    Parse a decoded event payload into its typed model.

    Args:
        payload: Mapping carrying a ``kind`` key plus the event fields

    Returns:
        The matching ChainEvent subclass instance

    Raises:
        pydantic.ValidationError: If the kind is unknown or fields are invalid
    """
    return _event_adapter.validate_python(payload)
