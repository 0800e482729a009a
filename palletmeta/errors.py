"""Errors raised by the clients, and decoding of runtime dispatch errors."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Union

from .types import RuntimeMetadata, VariantDef

__all__ = [
    "Error",
    "RpcError",
    "MetadataError",
    "IncompatibleConstantMetadata",
    "OtherError",
    "TransactionError",
    "FinalitySubscriptionTimeout",
    "BlockHashNotFound",
    "StorageAddressError",
    "MapTypeMustBeTuple",
    "WrongNumberOfKeys",
    "TypeNotFound",
    "WrongNumberOfHashers",
    "ModuleErrorData",
    "ModuleError",
    "DispatchError",
    "ModuleDispatchError",
    "OtherDispatchError",
]

_log = logging.getLogger(__name__)

_DISPATCH_ERROR_PATH = ("sp_runtime", "DispatchError")


class Error(Exception):
    """Base class of every error raised by this package."""


class RpcError(Error):
    """An RPC call failed; the message describes why."""

    def __init__(self, message: str) -> None:
        super().__init__(f"RPC error: {message}")
        self.message = message


class MetadataError(Error):
    """Something asked of the metadata could not be found or does not match."""


class IncompatibleConstantMetadata(MetadataError):
    """A constant's type differs from the one the address was built for."""

    def __init__(self, pallet_name: str, constant_name: str) -> None:
        super().__init__(
            f"Pallet {pallet_name} Constant {constant_name} has incompatible metadata"
        )
        self.pallet_name = pallet_name
        self.constant_name = constant_name


class OtherError(Error):
    """Any other error, described by a message."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Other error: {message}")
        self.message = message


class TransactionError(Error):
    """Something went wrong while following a transaction's progress."""


class FinalitySubscriptionTimeout(TransactionError):
    """The block holding the transaction was not finalized in time."""

    def __init__(self) -> None:
        super().__init__("The finality subscription expired")


class BlockHashNotFound(TransactionError):
    """The block the transaction was added to can no longer be found."""

    def __init__(self) -> None:
        super().__init__(
            "The block containing the transaction can no longer be found "
            "(perhaps it was on a non-finalized fork?)"
        )


class StorageAddressError(Error):
    """A storage address could not be encoded."""


class MapTypeMustBeTuple(StorageAddressError):
    """The key type of a storage map is not a composite type."""

    def __init__(self) -> None:
        super().__init__("Storage map type must be a composite type")


class WrongNumberOfKeys(StorageAddressError):
    """A storage lookup was given the wrong number of keys."""

    def __init__(self, actual: int, expected: int) -> None:
        super().__init__(
            f"Storage lookup requires {expected} keys but got {actual} keys"
        )
        self.actual = actual
        self.expected = expected


class TypeNotFound(StorageAddressError):
    """A storage lookup needs a type id that the metadata does not hold."""

    def __init__(self, type_id: int) -> None:
        super().__init__(
            f"Storage lookup requires type {type_id} to exist in the metadata, "
            "but it was not found"
        )
        self.type_id = type_id


class WrongNumberOfHashers(StorageAddressError):
    """A storage entry has a different number of hashers than key fields."""

    def __init__(self, hashers: int, fields: int) -> None:
        super().__init__(
            "Storage entry in metadata does not have the correct number of "
            "hashers to fields"
        )
        self.hashers = hashers
        self.fields = fields


@dataclass(frozen=True)
class ModuleErrorData:
    """The raw pallet index and error bytes of a module error."""

    pallet_index: int
    error: bytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "error", bytes(self.error))
        if len(self.error) != 4:
            raise ValueError("module error data must be exactly 4 bytes")

    def error_index(self) -> int:
        """Return the error index, the first of the error bytes."""
        return self.error[0]

    def __str__(self) -> str:
        return f"Pallet index {self.pallet_index}: raw error: {list(self.error)}"


@dataclass(frozen=True)
class ModuleError:
    """Details of an error emitted by a specific pallet."""

    pallet: str
    error: str
    description: tuple[str, ...]
    error_data: ModuleErrorData

    def __post_init__(self) -> None:
        object.__setattr__(self, "description", tuple(self.description))

    def __str__(self) -> str:
        return f"{self.pallet}: {self.error}\n\n" + "\n".join(self.description)


def _module_variant_index(metadata: RuntimeMetadata) -> Optional[int]:
    type_id = metadata.types.find_by_path(_DISPATCH_ERROR_PATH)
    if type_id is None:
        _log.warning(
            "Can't decode error: sp_runtime::DispatchError was not found in Metadata"
        )
        return None
    type_info = metadata.types.resolve(type_id)
    if type_info is None:
        _log.warning(
            "Can't decode error: sp_runtime::DispatchError type ID doesn't resolve "
            "to a known type"
        )
        return None
    if not isinstance(type_info.type_def, VariantDef):
        _log.warning(
            "Can't decode error: sp_runtime::DispatchError type is not a Variant"
        )
        return None
    index = next(
        (v.index for v in type_info.type_def.variants if v.name == "Module"), None
    )
    if index is None:
        _log.warning(
            "Can't decode error: sp_runtime::DispatchError does not have a "
            "'Module' variant"
        )
    return index


def _error_details(
    metadata: RuntimeMetadata, pallet_index: int, error_index: int
) -> Optional[tuple[str, str, tuple[str, ...]]]:
    pallet = metadata.find_pallet_by_index(pallet_index)
    if pallet is None or pallet.error_type_id is None:
        return None
    type_info = metadata.types.resolve(pallet.error_type_id)
    if type_info is None or not isinstance(type_info.type_def, VariantDef):
        return None
    variant = next(
        (v for v in type_info.type_def.variants if v.index == error_index), None
    )
    if variant is None:
        return None
    return pallet.name, variant.name, variant.docs


class DispatchError(Error):
    """An error returned by the runtime when dispatching a call."""

    @classmethod
    def decode_from(
        cls, data: Union[bytes, bytearray, memoryview], metadata: RuntimeMetadata
    ) -> "DispatchError":
        """Decode a dispatch error, keeping the raw bytes if it is not a module error."""
        raw = bytes(data)

        module_index = _module_variant_index(metadata)
        if module_index is None:
            return OtherDispatchError(raw)

        # Errors that are not module errors are expected; keep their bytes.
        if not raw or raw[0] != module_index:
            return OtherDispatchError(raw)

        rest = raw[1:]
        if len(rest) >= 5:
            pallet_index, error = rest[0], rest[1:5]
        elif len(rest) >= 2:
            # The older shape carried a single error byte.
            pallet_index, error = rest[0], bytes([rest[1], 0, 0, 0])
        else:
            _log.warning(
                "Can't decode error: sp_runtime::DispatchError does not match "
                "known formats"
            )
            return OtherDispatchError(rest)

        details = _error_details(metadata, pallet_index, error[0])
        if details is None:
            _log.warning(
                "Can't decode error: sp_runtime::DispatchError::Module details do "
                "not match known information"
            )
            return OtherDispatchError(rest)

        pallet_name, error_name, docs = details
        return ModuleDispatchError(
            ModuleError(
                pallet=pallet_name,
                error=error_name,
                description=docs,
                error_data=ModuleErrorData(pallet_index=pallet_index, error=error),
            )
        )


class ModuleDispatchError(DispatchError):
    """A dispatch error emitted by a specific pallet."""

    def __init__(self, module_error: ModuleError) -> None:
        super().__init__(f"Module error: {module_error}")
        self.module_error = module_error


class OtherDispatchError(DispatchError):
    """A dispatch error that could not be decoded; holds its raw bytes."""

    def __init__(self, data: bytes) -> None:
        self.data = bytes(data)
        super().__init__(f"Undecoded dispatch error: {list(self.data)}")