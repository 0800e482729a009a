"""Addresses of pallet constants and a client to look them up."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, Union

from .errors import IncompatibleConstantMetadata, MetadataError
from .hashing import NotFound, get_constant_hash
from .types import RuntimeMetadata

__all__ = [
    "DecodedValueThunk",
    "StaticConstantAddress",
    "DynamicConstantAddress",
    "ConstantsClient",
    "dynamic",
]


class _DecodeWithMetadata(Protocol):
    def decode_with_metadata(
        self, data: bytes, type_id: int, metadata: RuntimeMetadata
    ) -> Any: ...


class _MetadataSource(Protocol):
    def metadata(self) -> RuntimeMetadata: ...


@dataclass(frozen=True)
class DecodedValueThunk:
    """Encoded bytes handed back by a node, with the type they decode to."""

    type_id: int
    metadata: RuntimeMetadata = field(repr=False, compare=False)
    scale_bytes: bytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "scale_bytes", bytes(self.scale_bytes))

    @classmethod
    def decode_with_metadata(
        cls, data: Union[bytes, bytearray, memoryview], type_id: int,
        metadata: RuntimeMetadata,
    ) -> "DecodedValueThunk":
        """Keep all of ``data`` undecoded together with its type."""
        return cls(type_id=type_id, metadata=metadata, scale_bytes=bytes(data))

    def encoded(self) -> bytes:
        """Return the encoded bytes handed back from the node."""
        return self.scale_bytes


@dataclass(frozen=True)
class StaticConstantAddress:
    """A constant address checked against the metadata by its type hash."""

    pallet_name: str
    constant_name: str
    validation_hash: Optional[bytes]
    target: Any = DecodedValueThunk

    def __post_init__(self) -> None:
        if self.validation_hash is not None:
            object.__setattr__(self, "validation_hash", bytes(self.validation_hash))

    def unvalidated(self) -> "StaticConstantAddress":
        """Return a copy of this address that is not validated before use."""
        return dataclasses.replace(self, validation_hash=None)


@dataclass(frozen=True)
class DynamicConstantAddress:
    """A constant address built at run time; it decodes to a value thunk."""

    pallet_name: str
    constant_name: str

    @property
    def validation_hash(self) -> Optional[bytes]:
        return None

    @property
    def target(self) -> type[DecodedValueThunk]:
        return DecodedValueThunk


ConstantAddress = Union[StaticConstantAddress, DynamicConstantAddress]


def dynamic(pallet_name: str, constant_name: str) -> DynamicConstantAddress:
    """Construct a dynamic constant lookup."""
    return DynamicConstantAddress(pallet_name, constant_name)


def _validate(metadata: RuntimeMetadata, address: ConstantAddress) -> None:
    actual = address.validation_hash
    if actual is None:
        return
    try:
        expected = get_constant_hash(
            metadata, address.pallet_name, address.constant_name
        )
    except NotFound as exc:
        raise MetadataError(str(exc)) from exc
    if actual != expected:
        raise IncompatibleConstantMetadata(address.pallet_name, address.constant_name)


class ConstantsClient:
    """Looks up constants in the metadata of a client."""

    def __init__(self, client: _MetadataSource) -> None:
        self.client = client

    def validate(self, address: ConstantAddress) -> None:
        """Raise if the address's hash does not match the metadata.

        Addresses without a hash always pass.
        """
        _validate(self.client.metadata(), address)

    def at(self, address: ConstantAddress) -> Any:
        """Return the constant at ``address``, decoded to the address's target."""
        metadata = self.client.metadata()
        _validate(metadata, address)

        pallet = metadata.find_pallet(address.pallet_name)
        if pallet is None:
            raise MetadataError(f"Pallet not found: {address.pallet_name}")
        constant = pallet.find_constant(address.constant_name)
        if constant is None:
            raise MetadataError(
                f"Constant not found: {address.pallet_name}::{address.constant_name}"
            )
        return address.target.decode_with_metadata(
            constant.value, constant.type_id, metadata
        )