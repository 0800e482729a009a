# palletmeta

Tools for working with the runtime metadata of Substrate-style chains. The
package has no runtime dependencies.

| Module | What it holds |
| --- | --- |
| `palletmeta.twox` | `xxh64`, `twox_64`, `twox_128`, `twox_256` |
| `palletmeta.types` | the metadata model: `TypeRegistry`, `TypeInfo`, type definitions, pallets, storage entries, constants, `ExtrinsicMetadata`, `RuntimeMetadata` |
| `palletmeta.hashing` | deterministic hashes of a whole runtime, a pallet, a call, a constant or a storage entry |
| `palletmeta.errors` | the `Error` hierarchy, and `DispatchError.decode_from` |
| `palletmeta.constants` | static and dynamic constant addresses, `ConstantsClient` |
| `palletmeta.client` | `OfflineClient`, `OnlineClient`, runtime updates |
| `palletmeta.blocks` | `BlocksClient` and header subscriptions with gaps filled in |

## Installing

```
pip install palletmeta
```

To install the test tools as well:

```
pip install "palletmeta[test]"
```

## Describing a runtime

Types live in a `TypeRegistry` and are referred to by integer id.
`register` returns the id of a type. If an identical type is already
registered, it returns that type's id instead.

```python
from palletmeta.types import (
    ExtrinsicMetadata, PalletConstant, PalletMetadata, Primitive,
    PrimitiveDef, RuntimeMetadata, Tuple, TypeInfo, TypeRegistry,
)

registry = TypeRegistry()
u128 = registry.register(TypeInfo(PrimitiveDef(Primitive.U128)))
unit = registry.register(TypeInfo(Tuple()))

balances = PalletMetadata(
    name="Balances",
    index=5,
    constants=[PalletConstant("ExistentialDeposit", u128, (500).to_bytes(16, "little"))],
)
metadata = RuntimeMetadata(
    types=registry,
    pallets=[balances],
    extrinsic=ExtrinsicMetadata(type_id=unit),
    type_id=unit,
)
```

## Hashing metadata

Every hash is 32 bytes.

```python
from palletmeta.hashing import (
    ItemNotFound, PalletNotFound,
    get_constant_hash, get_metadata_hash, get_metadata_per_pallet_hash,
)

digest = get_metadata_hash(metadata)
subset = get_metadata_per_pallet_hash(metadata, ["Balances", "System"])

try:
    get_constant_hash(metadata, "Balances", "ExistentialDeposit")
except PalletNotFound:
    ...
except ItemNotFound:
    ...
```

The module also provides `get_call_hash`, `get_storage_hash`,
`get_pallet_hash` and `get_type_hash`.

- The order in which pallets are listed does not change the result.
- Recursive types are handled.
- Field names and variant names count towards the hash. Type names and
  paths do not.
- `get_metadata_per_pallet_hash` ignores any name that is not a pallet of
  the metadata.
- `PalletNotFound` and `ItemNotFound` both derive from `NotFound`, which is
  a `LookupError`.

## Storage key hashing

```python
from palletmeta.twox import twox_128

prefix = twox_128(b"System") + twox_128(b"Account")
```

## Constants

```python
from palletmeta.client import OfflineClient
from palletmeta.constants import dynamic

client = OfflineClient(genesis_hash=b"\x00" * 32, runtime_version=1, metadata=metadata)
thunk = client.constants().at(dynamic("Balances", "ExistentialDeposit"))
raw = thunk.encoded()
```

A dynamic address decodes to a `DecodedValueThunk`, which holds the
undecoded bytes and the constant's type id.

A `StaticConstantAddress` carries an expected type hash, and it may carry a
`target`. A target is any object with a
`decode_with_metadata(data, type_id, metadata)` method.

`ConstantsClient.validate` and `ConstantsClient.at` check the address
against the metadata:

- If the hashes differ, they raise `IncompatibleConstantMetadata`.
- If the pallet or the constant is missing, they raise `MetadataError`.

`unvalidated()` returns a copy of the address that is not checked.

## Dispatch errors

`DispatchError.decode_from(data, metadata)` returns a `DispatchError`. It
looks up the type with path `sp_runtime::DispatchError` in the registry,
and then its `Module` variant.

- A module error, in either the four-byte or the one-byte error shape,
  becomes a `ModuleDispatchError`. Its `module_error` is a `ModuleError`
  that names the pallet, the error and its docs.
- Anything else becomes an `OtherDispatchError` holding the raw bytes.

## Online clients

An `OnlineClient` works over any RPC object you supply. The object needs
these coroutine methods:

- `genesis_hash()`
- `runtime_version(at)`
- `metadata()`, which returns a `RuntimeMetadata`
- `subscribe_runtime_version()`, which returns an async iterator of versions

For block headers it also needs these:

- `finalized_head()`
- `header(block_hash)`
- `block_hash(number)`
- `subscribe_blocks()`
- `subscribe_finalized_blocks()`

Headers only need a `number` attribute.

```python
from palletmeta.client import OnlineClient

async def run(rpc):
    client = await OnlineClient.from_rpc_client(rpc)
    offline = client.offline()

    headers = await client.blocks().subscribe_finalized_headers()
    async for header in headers:
        print(header.number)
```

`subscribe_to_updates()` returns a `ClientRuntimeUpdater`:

- `perform_runtime_updates()` applies every new runtime version, together
  with freshly fetched metadata, until the subscription ends.
- `runtime_updates()` returns a `RuntimeUpdaterStream` of `Update` objects
  and does not apply them.
- `apply_update(update)` raises `UpgradeError` when the version is
  unchanged.

`subscribe_finalized_headers()` yields every finalized header in order. It
fetches any block that the node's subscription skipped.
`subscribe_headers()` passes on the node's best-block headers unchanged.

## What the package does not do

- It opens no network connections and has no RPC transport of its own. You
  supply the RPC object.
- It does not decode metadata from its SCALE encoding. You build
  `RuntimeMetadata` from the model in `palletmeta.types`.
- It does not decode values beyond keeping the raw bytes in a
  `DecodedValueThunk`.
- It does not build, sign or submit transactions, read storage, or follow
  events.

## Running the tests

```
pytest
```