from dataclasses import replace

import pytest

from palletmeta.hashing import (
    ItemNotFound,
    NotFound,
    PalletNotFound,
    get_call_hash,
    get_constant_hash,
    get_metadata_hash,
    get_metadata_per_pallet_hash,
    get_pallet_hash,
    get_storage_hash,
    get_type_hash,
)
from palletmeta.twox import twox_256
from palletmeta.types import (
    Array,
    BitSequence,
    Compact,
    Composite,
    ExtrinsicMetadata,
    Field,
    MapStorage,
    PalletConstant,
    PalletMetadata,
    PalletStorage,
    PlainStorage,
    Primitive,
    PrimitiveDef,
    RuntimeMetadata,
    Sequence,
    StorageEntry,
    StorageEntryModifier,
    StorageHasher,
    Tuple,
    TypeInfo,
    TypeRegistry,
    Variant,
    VariantDef,
)


class _Builder:
    def __init__(self):
        self.registry = TypeRegistry()
        self._recursive = {}

    def add(self, type_def, path=()):
        return self.registry.register(TypeInfo(type_def, path=tuple(path)))

    def prim(self, primitive):
        return self.add(PrimitiveDef(primitive))

    def unit(self):
        return self.add(Tuple())

    def recursive(self, name):
        """Register A { b: B } and B { a: A }, starting with ``name``."""
        if name not in self._recursive:
            other = "B" if name == "A" else "A"
            first = len(self.registry)
            self._recursive[name] = first
            self._recursive[other] = first + 1
            self.add(Composite((Field(first + 1, name=other.lower()),)), (name,))
            self.add(Composite((Field(first, name=name.lower()),)), (other,))
        return self._recursive[name]

    def account_id(self):
        arr = self.add(Array(32, self.prim(Primitive.U8)))
        return self.add(
            Composite((Field(arr, type_name="[u8; 32]"),)), ("AccountId32",)
        )

    def digest_item(self):
        u8 = self.prim(Primitive.U8)
        arr4 = self.add(Array(4, u8))
        vec = self.add(Sequence(u8))
        small = self.add(
            Tuple((self.prim(Primitive.I8), self.prim(Primitive.I16)))
        )
        large = self.add(
            Tuple((self.prim(Primitive.U32), self.prim(Primitive.U64)))
        )
        nested = self.add(Tuple((small, large)))
        compact = self.add(Compact(u8))
        lsb0 = self.add(Composite(), ("bitvec", "order", "Lsb0"))
        bits = self.add(BitSequence(bit_store_type=u8, bit_order_type=lsb0))
        variants = (
            Variant("PreRuntime", (Field(arr4), Field(vec)), index=0),
            Variant("Other", (Field(vec),), index=1),
            Variant("RuntimeEnvironmentUpdated", (Field(nested),), index=2),
            Variant("Index", (Field(compact),), index=3),
            Variant("BitSeq", (Field(bits),), index=4),
        )
        return self.add(VariantDef(variants), ("DigestItem",))

    def metadata_test_type(self):
        fields = (
            Field(self.recursive("A"), name="recursive"),
            Field(self.account_id(), name="composite"),
            Field(self.digest_item(), name="type_def"),
        )
        return self.add(Composite(fields), ("MetadataTestType",))

    def call(self):
        variants = (
            Variant("FillBlock", (Field(self.account_id(), name="ratio"),), index=0),
            Variant("Remark", (Field(self.digest_item(), name="remark"),), index=1),
        )
        return self.add(VariantDef(variants), ("Call",))

    def metadata(self, pallets):
        unit = self.unit()
        return RuntimeMetadata(
            types=self.registry,
            pallets=tuple(pallets),
            extrinsic=ExtrinsicMetadata(type_id=unit, version=0),
            type_id=unit,
        )


def _first(b, index=0):
    return PalletMetadata("First", index=index, calls_type_id=b.metadata_test_type())


def _second(b, index=1):
    ty = b.add(Tuple((b.digest_item(), b.account_id(), b.recursive("A"))))
    return PalletMetadata("Second", index=index, calls_type_id=ty)


def _default_metadata():
    b = _Builder()
    pallets = [_first(b), _second(b)]
    return b, b.metadata(pallets)


def _assert_distinct(lhs, rhs):
    assert len(lhs) == 32
    assert len(rhs) == 32
    assert lhs != rhs


# --- type hashes -----------------------------------------------------------


def test_primitive_type_hash_is_fixed_by_kind():
    reg = TypeRegistry()
    u8 = reg.register(TypeInfo(PrimitiveDef(Primitive.U8)))
    assert get_type_hash(reg, u8, set()) == twox_256(bytes([5, 3]))


def test_empty_composite_hash():
    reg = TypeRegistry()
    ty = reg.register(TypeInfo(Composite()))
    assert get_type_hash(reg, ty) == twox_256(bytes([0]))


def test_visited_type_hashes_to_recursion_marker():
    reg = TypeRegistry()
    u8 = reg.register(TypeInfo(PrimitiveDef(Primitive.U8)))
    assert get_type_hash(reg, u8, {u8}) == twox_256(bytes([123]))


def test_type_hash_records_visited_ids():
    b = _Builder()
    a = b.recursive("A")
    visited = set()
    get_type_hash(b.registry, a, visited)
    assert visited == {a, a + 1}


def test_unknown_type_id_raises():
    with pytest.raises(KeyError):
        get_type_hash(TypeRegistry(), 7, set())


def test_array_length_changes_hash():
    b = _Builder()
    u8 = b.prim(Primitive.U8)
    _assert_distinct(
        get_type_hash(b.registry, b.add(Array(4, u8))),
        get_type_hash(b.registry, b.add(Array(5, u8))),
    )


# --- cases carried over from the metadata tests -----------------------------


def test_different_pallet_index():
    _, metadata = _default_metadata()

    swapped_builder = _Builder()
    second = _second(swapped_builder, index=0)
    first = _first(swapped_builder, index=1)
    metadata_swap = swapped_builder.metadata([second, first])

    assert get_metadata_hash(metadata) == get_metadata_hash(metadata_swap)


def test_recursive_type():
    b = _Builder()
    metadata = b.metadata([PalletMetadata("Test", calls_type_id=b.recursive("A"))])
    result = get_metadata_hash(metadata)

    other = _Builder()
    other.recursive("B")
    metadata_other = other.metadata(
        [PalletMetadata("Test", calls_type_id=other.recursive("A"))]
    )
    assert len(result) == 32
    assert result == get_metadata_hash(metadata_other)


def test_recursive_types_different_order():
    b = _Builder()
    metadata = b.metadata(
        [
            PalletMetadata("First", index=0, calls_type_id=b.recursive("A")),
            PalletMetadata("Second", index=1, calls_type_id=b.recursive("B")),
        ]
    )

    s = _Builder()
    second = PalletMetadata("Second", index=0, calls_type_id=s.recursive("B"))
    first = PalletMetadata("First", index=1, calls_type_id=s.recursive("A"))
    metadata_swap = s.metadata([second, first])

    assert get_metadata_hash(metadata) == get_metadata_hash(metadata_swap)


def test_pallet_hash_correctness():
    b = _Builder()

    def compare(lhs, rhs):
        _assert_distinct(
            get_metadata_hash(b.metadata([lhs])), get_metadata_hash(b.metadata([rhs]))
        )

    pallet = PalletMetadata("Test")
    lhs = pallet
    pallet = replace(
        pallet,
        storage=PalletStorage(
            "Storage",
            (
                StorageEntry(
                    "BlockWeight",
                    StorageEntryModifier.DEFAULT,
                    PlainStorage(b.prim(Primitive.U8)),
                    b"",
                ),
            ),
        ),
    )
    compare(lhs, pallet)

    lhs = pallet
    pallet = replace(pallet, calls_type_id=b.call())
    compare(lhs, pallet)

    lhs = pallet
    pallet = replace(pallet, event_type_id=b.call())
    compare(lhs, pallet)

    lhs = pallet
    pallet = replace(
        pallet,
        constants=(
            PalletConstant(
                "BlockHashCount", b.prim(Primitive.U64), bytes([96, 0, 0, 0])
            ),
        ),
    )
    compare(lhs, pallet)

    lhs = pallet
    pallet = replace(pallet, error_type_id=b.metadata_test_type())
    compare(lhs, pallet)


def test_metadata_per_pallet_hash_correctness():
    b = _Builder()
    first = _first(b)
    second = _second(b)
    metadata_one = b.metadata([first])
    metadata_both = b.metadata([first, second])

    result = get_metadata_per_pallet_hash(metadata_one, ["First", "Second"])
    assert result == get_metadata_per_pallet_hash(metadata_one, ["First"])

    assert get_metadata_per_pallet_hash(metadata_both, ["First"]) == result

    _assert_distinct(
        get_metadata_per_pallet_hash(metadata_both, ["First", "Second"]), result
    )


def _to_hash(make):
    b = _Builder()
    ty = make(b)
    return get_metadata_hash(b.metadata([PalletMetadata("Test", calls_type_id=ty)]))


def _enum_unnamed(type_name, variant_name):
    def make(b):
        field = Field(b.prim(Primitive.U8), type_name="u8")
        return b.add(VariantDef((Variant(variant_name, (field,), index=0),)), (type_name,))

    return make


def _enum_named(type_name, field_name):
    def make(b):
        field = Field(b.prim(Primitive.U8), name=field_name, type_name="u8")
        return b.add(VariantDef((Variant("First", (field,), index=0),)), (type_name,))

    return make


def _struct_array(type_name):
    def make(b):
        arr = b.add(Array(32, b.prim(Primitive.U8)))
        return b.add(Composite((Field(arr, type_name="[u8; 32]"),)), (type_name,))

    return make


def _struct_named(type_name, *names):
    def make(b):
        u32 = b.prim(Primitive.U32)
        fields = tuple(Field(u32, name=n, type_name="u32") for n in names)
        return b.add(Composite(fields), (type_name,))

    return make


def _enum_three(type_name, order):
    def make(b):
        u8 = b.prim(Primitive.U8)
        variants = {
            "First": Variant("First", ()),
            "Second": Variant("Second", (Field(u8, type_name="u8"),)),
            "Third": Variant("Third", (Field(u8, name="named", type_name="u8"),)),
        }
        chosen = tuple(
            replace(variants[name], index=i) for i, name in enumerate(order)
        )
        return b.add(VariantDef(chosen), (type_name,))

    return make


def test_field_semantic_type_names_are_ignored():
    assert _to_hash(_enum_unnamed("EnumFieldNotNamedA", "First")) == _to_hash(
        _enum_unnamed("EnumFieldNotNamedB", "First")
    )
    assert _to_hash(_struct_array("StructFieldNotNamedA")) == _to_hash(
        _struct_array("StructFieldNotNamedSecondB")
    )


def test_field_semantic_variant_names_matter():
    _assert_distinct(
        _to_hash(_enum_unnamed("EnumFieldNotNamed", "First")),
        _to_hash(_enum_unnamed("EnumFieldNotNamedSecond", "Second")),
    )


def test_field_semantic_field_names_matter():
    _assert_distinct(
        _to_hash(_enum_named("EnumFieldNamed", "a")),
        _to_hash(_enum_named("EnumFieldNamedSecond", "b")),
    )
    _assert_distinct(
        _to_hash(_struct_named("StructFieldNamed", "a")),
        _to_hash(_struct_named("StructFieldNamedSecond", "b")),
    )


def test_field_semantic_order_matters():
    _assert_distinct(
        _to_hash(_enum_three("EnumField", ["First", "Second", "Third"])),
        _to_hash(_enum_three("EnumFieldSwap", ["Second", "First", "Third"])),
    )
    _assert_distinct(
        _to_hash(_struct_named("StructField", "a", "b")),
        _to_hash(_struct_named("StructFieldSwap", "b", "a")),
    )


# --- item lookups, as exercised by the benchmarks -----------------------------


def _full_metadata():
    b = _Builder()
    u8 = b.prim(Primitive.U8)
    u64 = b.prim(Primitive.U64)
    storage = PalletStorage(
        "System",
        (
            StorageEntry(
                "BlockWeight", StorageEntryModifier.DEFAULT, PlainStorage(u8), b"\x00"
            ),
            StorageEntry(
                "Account",
                StorageEntryModifier.OPTIONAL,
                MapStorage((StorageHasher.BLAKE2_128_CONCAT,), b.account_id(), u64),
            ),
        ),
    )
    pallet = PalletMetadata(
        "System",
        index=0,
        storage=storage,
        calls_type_id=b.call(),
        event_type_id=b.call(),
        constants=(
            PalletConstant("BlockHashCount", u64, bytes([96, 0, 0, 0])),
            PalletConstant("Version", u8, b"\x01"),
        ),
        error_type_id=b.metadata_test_type(),
    )
    return b.metadata([pallet, _second(b, index=1)])


def test_all_items_hash_as_the_benchmarks_walk_them():
    metadata = _full_metadata()
    call_hashes = []
    for pallet in metadata.pallets:
        assert len(get_pallet_hash(metadata.types, pallet)) == 32
        if pallet.calls_type_id is not None:
            call_type = metadata.types.resolve(pallet.calls_type_id)
            if isinstance(call_type.type_def, VariantDef):
                for variant in call_type.type_def.variants:
                    call_hashes.append(get_call_hash(metadata, pallet.name, variant.name))
        for constant in pallet.constants:
            assert get_constant_hash(
                metadata, pallet.name, constant.name
            ) == get_type_hash(metadata.types, constant.type_id, set())
        if pallet.storage is not None:
            for entry in pallet.storage.entries:
                assert len(get_storage_hash(metadata, pallet.name, entry.name)) == 32
    assert len(call_hashes) == 2
    assert len(set(call_hashes)) == 2


def test_storage_hasher_changes_storage_hash():
    b = _Builder()
    u64 = b.prim(Primitive.U64)
    key = b.account_id()

    def storage_hash(hasher):
        entry = StorageEntry(
            "Account", StorageEntryModifier.OPTIONAL, MapStorage((hasher,), key, u64)
        )
        pallet = PalletMetadata("System", storage=PalletStorage("System", (entry,)))
        return get_storage_hash(b.metadata([pallet]), "System", "Account")

    _assert_distinct(
        storage_hash(StorageHasher.BLAKE2_128_CONCAT),
        storage_hash(StorageHasher.TWOX_64_CONCAT),
    )


def test_metadata_hash_is_deterministic():
    result = get_metadata_hash(_full_metadata())
    assert len(result) == 32
    assert result == get_metadata_hash(_full_metadata())
    _, default = _default_metadata()
    _assert_distinct(result, get_metadata_hash(default))


def test_missing_pallet_raises_pallet_not_found():
    metadata = _full_metadata()
    with pytest.raises(PalletNotFound):
        get_storage_hash(metadata, "Nope", "Account")
    with pytest.raises(PalletNotFound):
        get_constant_hash(metadata, "Nope", "Version")
    with pytest.raises(PalletNotFound):
        get_call_hash(metadata, "Nope", "Remark")


def test_missing_items_raise_item_not_found():
    metadata = _full_metadata()
    with pytest.raises(ItemNotFound):
        get_storage_hash(metadata, "System", "Nope")
    with pytest.raises(ItemNotFound):
        get_storage_hash(metadata, "Second", "Account")
    with pytest.raises(ItemNotFound):
        get_constant_hash(metadata, "System", "Nope")
    with pytest.raises(ItemNotFound):
        get_call_hash(metadata, "System", "Nope")


def test_call_type_that_is_not_a_variant_raises():
    metadata = _full_metadata()
    with pytest.raises(ItemNotFound):
        get_call_hash(metadata, "Second", "Remark")


def test_not_found_errors_share_a_base():
    with pytest.raises(NotFound):
        get_constant_hash(_full_metadata(), "Missing", "Version")