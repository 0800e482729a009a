"""Deterministic hashes of runtime metadata, used to check type compatibility."""

from __future__ import annotations

from enum import IntEnum
from typing import Iterable, Optional, Union

from .twox import twox_256
from .types import (
    Array,
    BitSequence,
    Compact,
    Composite,
    ExtrinsicMetadata,
    Field,
    MapStorage,
    PalletMetadata,
    PlainStorage,
    PrimitiveDef,
    RuntimeMetadata,
    Sequence,
    StorageEntry,
    Tuple,
    TypeDef,
    TypeRegistry,
    Variant,
    VariantDef,
)

__all__ = [
    "NotFound",
    "PalletNotFound",
    "ItemNotFound",
    "get_type_hash",
    "get_storage_hash",
    "get_constant_hash",
    "get_call_hash",
    "get_pallet_hash",
    "get_metadata_hash",
    "get_metadata_per_pallet_hash",
]


class NotFound(LookupError):
    """A pallet or an item asked for does not exist in the metadata."""


class PalletNotFound(NotFound):
    """The pallet asked for does not exist."""


class ItemNotFound(NotFound):
    """The call, constant or storage item asked for does not exist."""


class _TypeBeingHashed(IntEnum):
    COMPOSITE = 0
    VARIANT = 1
    SEQUENCE = 2
    ARRAY = 3
    TUPLE = 4
    PRIMITIVE = 5
    COMPACT = 6
    BIT_SEQUENCE = 7


_RECURSION_MARKER = 123
_PALLET_SEED = 19


def _hash(data: bytes) -> bytes:
    return twox_256(data)


def _xor(a: bytes, b: bytes) -> bytes:
    """Combine two hashes with xor; fine for one-off combinations."""
    return bytes(x ^ y for x, y in zip(a, b))


def _hash_hashes(a: bytes, b: bytes) -> bytes:
    """Combine two hashes so that merging identical values stays unique."""
    return _hash(a + b)


def _field_hash(registry: TypeRegistry, field: Field, visited_ids: set[int]) -> bytes:
    result = get_type_hash(registry, field.type_id, visited_ids)
    if field.name is not None:
        result = _xor(result, _hash(field.name.encode()))
    return result


def _variant_hash(
    registry: TypeRegistry, variant: Variant, visited_ids: set[int]
) -> bytes:
    result = _hash(variant.name.encode())
    for field in variant.fields:
        result = _hash_hashes(result, _field_hash(registry, field, visited_ids))
    return result


def _type_def_hash(
    registry: TypeRegistry, type_def: TypeDef, visited_ids: set[int]
) -> bytes:
    match type_def:
        case Composite(fields=fields):
            result = _hash(bytes([_TypeBeingHashed.COMPOSITE]))
            for field in fields:
                result = _hash_hashes(result, _field_hash(registry, field, visited_ids))
            return result
        case VariantDef(variants=variants):
            result = _hash(bytes([_TypeBeingHashed.VARIANT]))
            for variant in variants:
                result = _hash_hashes(
                    result, _variant_hash(registry, variant, visited_ids)
                )
            return result
        case Sequence(type_param=param):
            return _xor(
                _hash(bytes([_TypeBeingHashed.SEQUENCE])),
                get_type_hash(registry, param, visited_ids),
            )
        case Array(length=length, type_param=param):
            # The length is part of the hash: different lengths, different hashes.
            header = bytes([_TypeBeingHashed.ARRAY]) + length.to_bytes(4, "big")
            return _xor(_hash(header), get_type_hash(registry, param, visited_ids))
        case Tuple(fields=fields):
            result = _hash(bytes([_TypeBeingHashed.TUPLE]))
            for type_id in fields:
                result = _hash_hashes(
                    result, get_type_hash(registry, type_id, visited_ids)
                )
            return result
        case PrimitiveDef(primitive=primitive):
            return _hash(bytes([_TypeBeingHashed.PRIMITIVE, int(primitive)]))
        case Compact(type_param=param):
            return _xor(
                _hash(bytes([_TypeBeingHashed.COMPACT])),
                get_type_hash(registry, param, visited_ids),
            )
        case BitSequence(bit_store_type=store, bit_order_type=order):
            result = _hash(bytes([_TypeBeingHashed.BIT_SEQUENCE]))
            result = _xor(result, get_type_hash(registry, order, visited_ids))
            return _xor(result, get_type_hash(registry, store, visited_ids))
    raise TypeError(f"unsupported type definition: {type_def!r}")


def get_type_hash(
    registry: TypeRegistry, type_id: int, visited_ids: Optional[set[int]] = None
) -> bytes:
    """Return the 32-byte hash of the type with this id.

    ``visited_ids`` is updated in place; a type already in it hashes to a fixed
    value, which keeps recursive types finite.
    """
    if visited_ids is None:
        visited_ids = set()
    if type_id in visited_ids:
        return _hash(bytes([_RECURSION_MARKER]))
    visited_ids.add(type_id)

    type_info = registry.resolve(type_id)
    if type_info is None:
        raise KeyError(f"type {type_id} is not in the registry")
    return _type_def_hash(registry, type_info.type_def, visited_ids)


def _extrinsic_hash(registry: TypeRegistry, extrinsic: ExtrinsicMetadata) -> bytes:
    visited_ids: set[int] = set()
    result = get_type_hash(registry, extrinsic.type_id, visited_ids)
    result = _xor(result, _hash(bytes([extrinsic.version])))
    for extension in extrinsic.signed_extensions:
        ext = _hash(extension.identifier.encode())
        ext = _xor(ext, get_type_hash(registry, extension.type_id, visited_ids))
        ext = _xor(
            ext,
            get_type_hash(registry, extension.additional_signed_type_id, visited_ids),
        )
        result = _hash_hashes(result, ext)
    return result


def _storage_entry_hash(
    registry: TypeRegistry, entry: StorageEntry, visited_ids: set[int]
) -> bytes:
    result = _hash(entry.name.encode())
    result = _xor(result, _hash(bytes([entry.modifier])))
    result = _xor(result, _hash(entry.default))

    match entry.entry_type:
        case PlainStorage(value_type_id=value_id):
            result = _xor(result, get_type_hash(registry, value_id, visited_ids))
        case MapStorage(hashers=hashers, key_type_id=key_id, value_type_id=value_id):
            for hasher in hashers:
                result = _hash_hashes(result, bytes([hasher]) * 32)
            result = _xor(result, get_type_hash(registry, key_id, visited_ids))
            result = _xor(result, get_type_hash(registry, value_id, visited_ids))
        case other:
            raise TypeError(f"unsupported storage entry type: {other!r}")
    return result


def _require_pallet(metadata: RuntimeMetadata, pallet_name: str) -> PalletMetadata:
    pallet = metadata.find_pallet(pallet_name)
    if pallet is None:
        raise PalletNotFound(f"pallet {pallet_name!r} not found")
    return pallet


def get_storage_hash(
    metadata: RuntimeMetadata, pallet_name: str, storage_name: str
) -> bytes:
    """Return the hash of one storage item; raise NotFound if it is missing."""
    pallet = _require_pallet(metadata, pallet_name)
    if pallet.storage is None:
        raise ItemNotFound(f"pallet {pallet_name!r} has no storage")
    entry = next((e for e in pallet.storage.entries if e.name == storage_name), None)
    if entry is None:
        raise ItemNotFound(f"storage {pallet_name}::{storage_name} not found")
    return _storage_entry_hash(metadata.types, entry, set())


def get_constant_hash(
    metadata: RuntimeMetadata, pallet_name: str, constant_name: str
) -> bytes:
    """Return the hash of one constant's type; raise NotFound if it is missing."""
    pallet = _require_pallet(metadata, pallet_name)
    constant = pallet.find_constant(constant_name)
    if constant is None:
        raise ItemNotFound(f"constant {pallet_name}::{constant_name} not found")
    return get_type_hash(metadata.types, constant.type_id, set())


def get_call_hash(metadata: RuntimeMetadata, pallet_name: str, call_name: str) -> bytes:
    """Return the hash of one call; raise NotFound if it is missing."""
    pallet = _require_pallet(metadata, pallet_name)
    if pallet.calls_type_id is None:
        raise ItemNotFound(f"pallet {pallet_name!r} has no calls")
    call_type = metadata.types.resolve(pallet.calls_type_id)
    if call_type is None or not isinstance(call_type.type_def, VariantDef):
        raise ItemNotFound(f"calls of pallet {pallet_name!r} are not a variant type")
    variant = next(
        (v for v in call_type.type_def.variants if v.name == call_name), None
    )
    if variant is None:
        raise ItemNotFound(f"call {pallet_name}::{call_name} not found")
    return _variant_hash(metadata.types, variant, set())


def get_pallet_hash(registry: TypeRegistry, pallet: PalletMetadata) -> bytes:
    """Return the hash of a whole pallet."""
    result = _hash(bytes([_PALLET_SEED]))
    visited_ids: set[int] = set()

    if pallet.calls_type_id is not None:
        result = _xor(result, get_type_hash(registry, pallet.calls_type_id, visited_ids))
    if pallet.event_type_id is not None:
        result = _xor(result, get_type_hash(registry, pallet.event_type_id, visited_ids))
    for constant in pallet.constants:
        result = _xor(result, _hash(constant.name.encode()))
        result = _xor(result, get_type_hash(registry, constant.type_id, visited_ids))
    if pallet.error_type_id is not None:
        result = _xor(result, get_type_hash(registry, pallet.error_type_id, visited_ids))
    if pallet.storage is not None:
        result = _xor(result, _hash(pallet.storage.prefix.encode()))
        for entry in pallet.storage.entries:
            result = _hash_hashes(
                result, _storage_entry_hash(registry, entry, visited_ids)
            )
    return result


def _sorted_pallet_hashes(
    metadata: RuntimeMetadata, pallets: Iterable[PalletMetadata]
) -> bytes:
    # Sorting by name makes the result independent of pallet order; names
    # themselves are not hashed.
    hashed = sorted(
        ((p.name, get_pallet_hash(metadata.types, p)) for p in pallets),
        key=lambda pair: pair[0],
    )
    return b"".join(h for _, h in hashed)


def get_metadata_hash(metadata: RuntimeMetadata) -> bytes:
    """Return the hash of the full runtime metadata."""
    data = _sorted_pallet_hashes(metadata, metadata.pallets)
    data += _extrinsic_hash(metadata.types, metadata.extrinsic)
    data += get_type_hash(metadata.types, metadata.type_id, set())
    return _hash(data)


def get_metadata_per_pallet_hash(
    metadata: RuntimeMetadata, pallets: Union[str, Iterable[str]]
) -> bytes:
    """Return a hash of only the named pallets that exist in the metadata."""
    wanted = {pallets} if isinstance(pallets, str) else set(pallets)
    selected = (p for p in metadata.pallets if p.name in wanted)
    return _hash(_sorted_pallet_hashes(metadata, selected))