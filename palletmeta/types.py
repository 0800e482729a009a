"""A model of runtime metadata: a registry of types and the pallets using them."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Iterator, Optional, Sequence, Union

__all__ = [
    "Primitive",
    "Field",
    "Variant",
    "Composite",
    "VariantDef",
    "Sequence",
    "Array",
    "Tuple",
    "PrimitiveDef",
    "Compact",
    "BitSequence",
    "TypeDef",
    "TypeInfo",
    "TypeRegistry",
    "StorageEntryModifier",
    "StorageHasher",
    "PlainStorage",
    "MapStorage",
    "StorageEntry",
    "PalletStorage",
    "PalletConstant",
    "PalletMetadata",
    "SignedExtension",
    "ExtrinsicMetadata",
    "RuntimeMetadata",
]

_U32_MAX = (1 << 32) - 1


def _freeze(obj: object, name: str, value) -> None:
    object.__setattr__(obj, name, tuple(value))


class Primitive(IntEnum):
    """Primitive types, numbered in their canonical order."""

    BOOL = 0
    CHAR = 1
    STR = 2
    U8 = 3
    U16 = 4
    U32 = 5
    U64 = 6
    U128 = 7
    U256 = 8
    I8 = 9
    I16 = 10
    I32 = 11
    I64 = 12
    I128 = 13
    I256 = 14


@dataclass(frozen=True)
class Field:
    """A field of a composite type or variant, optionally named."""

    type_id: int
    name: Optional[str] = None
    type_name: Optional[str] = None
    docs: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        _freeze(self, "docs", self.docs)


@dataclass(frozen=True)
class Variant:
    """One variant of an enum type."""

    name: str
    fields: tuple[Field, ...] = ()
    index: int = 0
    docs: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        _freeze(self, "fields", self.fields)
        _freeze(self, "docs", self.docs)
        if not 0 <= self.index <= 255:
            raise ValueError(f"variant index {self.index} does not fit in a byte")


@dataclass(frozen=True)
class Composite:
    """A struct-like type."""

    fields: tuple[Field, ...] = ()

    def __post_init__(self) -> None:
        _freeze(self, "fields", self.fields)


@dataclass(frozen=True)
class VariantDef:
    """An enum-like type."""

    variants: tuple[Variant, ...] = ()

    def __post_init__(self) -> None:
        _freeze(self, "variants", self.variants)


@dataclass(frozen=True)
class Sequence:
    """A variable-length sequence of one element type."""

    type_param: int


@dataclass(frozen=True)
class Array:
    """A fixed-length array of one element type."""

    length: int
    type_param: int

    def __post_init__(self) -> None:
        if not 0 <= self.length <= _U32_MAX:
            raise ValueError(f"array length {self.length} does not fit in 32 bits")


@dataclass(frozen=True)
class Tuple:
    """A tuple of type ids."""

    fields: tuple[int, ...] = ()

    def __post_init__(self) -> None:
        _freeze(self, "fields", self.fields)


@dataclass(frozen=True)
class PrimitiveDef:
    """A primitive type."""

    primitive: Primitive

    def __post_init__(self) -> None:
        object.__setattr__(self, "primitive", Primitive(self.primitive))


@dataclass(frozen=True)
class Compact:
    """A compact-encoded wrapper around another type."""

    type_param: int


@dataclass(frozen=True)
class BitSequence:
    """A sequence of bits stored in a given store type and bit order."""

    bit_store_type: int
    bit_order_type: int


TypeDef = Union[
    Composite, VariantDef, Sequence, Array, Tuple, PrimitiveDef, Compact, BitSequence
]


@dataclass(frozen=True)
class TypeInfo:
    """A type definition together with its path and docs."""

    type_def: TypeDef
    path: tuple[str, ...] = ()
    docs: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        _freeze(self, "path", self.path)
        _freeze(self, "docs", self.docs)


def _split_path(path: Union[str, Sequence[str]]) -> tuple[str, ...]:
    if isinstance(path, str):
        return tuple(path.split("::")) if path else ()
    return tuple(path)


class TypeRegistry:
    """Types addressed by integer ids, in registration order."""

    def __init__(self, types: Sequence[TypeInfo] = ()) -> None:
        self._types: list[TypeInfo] = []
        self._ids: dict[TypeInfo, int] = {}
        for type_info in types:
            self.register(type_info)

    def register(self, type_info: TypeInfo) -> int:
        """Add a type and return its id; an identical type keeps its first id."""
        existing = self._ids.get(type_info)
        if existing is not None:
            return existing
        type_id = len(self._types)
        self._types.append(type_info)
        self._ids[type_info] = type_id
        return type_id

    def resolve(self, type_id: int) -> Optional[TypeInfo]:
        """Return the type with this id, or None if there is none."""
        if 0 <= type_id < len(self._types):
            return self._types[type_id]
        return None

    def find_by_path(self, path: Union[str, Sequence[str]]) -> Optional[int]:
        """Return the id of the first type with this path ("a::b" or segments)."""
        wanted = _split_path(path)
        return next(
            (type_id for type_id, info in self if info.path == wanted and wanted),
            None,
        )

    def __len__(self) -> int:
        return len(self._types)

    def __iter__(self) -> Iterator[tuple[int, TypeInfo]]:
        return iter(enumerate(self._types))

    def __contains__(self, type_id: object) -> bool:
        return isinstance(type_id, int) and 0 <= type_id < len(self._types)

    def __repr__(self) -> str:
        return f"TypeRegistry({len(self._types)} types)"


class StorageEntryModifier(IntEnum):
    """Whether a storage entry yields an optional value or a default."""

    OPTIONAL = 0
    DEFAULT = 1


class StorageHasher(IntEnum):
    """Hashers applied to storage map keys."""

    BLAKE2_128 = 0
    BLAKE2_256 = 1
    BLAKE2_128_CONCAT = 2
    TWOX_128 = 3
    TWOX_256 = 4
    TWOX_64_CONCAT = 5
    IDENTITY = 6


@dataclass(frozen=True)
class PlainStorage:
    """A storage entry holding a single value."""

    value_type_id: int


@dataclass(frozen=True)
class MapStorage:
    """A storage entry mapping hashed keys to values."""

    hashers: tuple[StorageHasher, ...]
    key_type_id: int
    value_type_id: int

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "hashers", tuple(StorageHasher(h) for h in self.hashers)
        )


@dataclass(frozen=True)
class StorageEntry:
    """One named storage item of a pallet."""

    name: str
    modifier: StorageEntryModifier
    entry_type: Union[PlainStorage, MapStorage]
    default: bytes = b""
    docs: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "modifier", StorageEntryModifier(self.modifier))
        object.__setattr__(self, "default", bytes(self.default))
        _freeze(self, "docs", self.docs)


@dataclass(frozen=True)
class PalletStorage:
    """The storage items of a pallet under a common prefix."""

    prefix: str
    entries: tuple[StorageEntry, ...] = ()

    def __post_init__(self) -> None:
        _freeze(self, "entries", self.entries)


@dataclass(frozen=True)
class PalletConstant:
    """A named constant with its type and encoded value."""

    name: str
    type_id: int
    value: bytes = b""
    docs: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", bytes(self.value))
        _freeze(self, "docs", self.docs)


@dataclass(frozen=True)
class PalletMetadata:
    """Everything the metadata describes about one pallet."""

    name: str
    index: int = 0
    storage: Optional[PalletStorage] = None
    calls_type_id: Optional[int] = None
    event_type_id: Optional[int] = None
    constants: tuple[PalletConstant, ...] = ()
    error_type_id: Optional[int] = None

    def __post_init__(self) -> None:
        _freeze(self, "constants", self.constants)
        if not 0 <= self.index <= 255:
            raise ValueError(f"pallet index {self.index} does not fit in a byte")

    def find_constant(self, name: str) -> Optional[PalletConstant]:
        """Return the constant with this name, or None."""
        return next((c for c in self.constants if c.name == name), None)


@dataclass(frozen=True)
class SignedExtension:
    """A signed extension of extrinsics."""

    identifier: str
    type_id: int
    additional_signed_type_id: int


@dataclass(frozen=True)
class ExtrinsicMetadata:
    """The shape of extrinsics accepted by the runtime."""

    type_id: int
    version: int = 0
    signed_extensions: tuple[SignedExtension, ...] = ()

    def __post_init__(self) -> None:
        _freeze(self, "signed_extensions", self.signed_extensions)
        if not 0 <= self.version <= 255:
            raise ValueError(f"extrinsic version {self.version} does not fit in a byte")


@dataclass
class RuntimeMetadata:
    """The full metadata of a runtime."""

    types: TypeRegistry
    pallets: tuple[PalletMetadata, ...]
    extrinsic: ExtrinsicMetadata
    type_id: int
    _unused: tuple = field(default=(), repr=False, compare=False)

    def __post_init__(self) -> None:
        self.pallets = tuple(self.pallets)

    def find_pallet(self, name: str) -> Optional[PalletMetadata]:
        """Return the pallet with this name, or None."""
        return next((p for p in self.pallets if p.name == name), None)

    def find_pallet_by_index(self, index: int) -> Optional[PalletMetadata]:
        """Return the pallet with this index, or None."""
        return next((p for p in self.pallets if p.index == index), None)