"""Offline and online clients, and keeping an online client's runtime up to date."""

from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional, Protocol

from .blocks import BlocksClient
from .constants import ConstantsClient
from .errors import Error
from .types import RuntimeMetadata

__all__ = [
    "OfflineClient",
    "OnlineClient",
    "Update",
    "UpgradeError",
    "ClientRuntimeUpdater",
    "RuntimeUpdaterStream",
]


class _Rpc(Protocol):
    async def genesis_hash(self) -> Any: ...

    async def runtime_version(self, at: Any) -> Any: ...

    async def metadata(self) -> RuntimeMetadata: ...

    async def subscribe_runtime_version(self) -> AsyncIterator[Any]: ...


class OfflineClient:
    """A client for operations that need no network access."""

    def __init__(
        self, genesis_hash: Any, runtime_version: Any, metadata: RuntimeMetadata
    ) -> None:
        self._genesis_hash = genesis_hash
        self._runtime_version = runtime_version
        self._metadata = metadata

    def genesis_hash(self) -> Any:
        """Return the genesis hash."""
        return self._genesis_hash

    def runtime_version(self) -> Any:
        """Return the runtime version."""
        return self._runtime_version

    def metadata(self) -> RuntimeMetadata:
        """Return the metadata used by this client."""
        return self._metadata

    def constants(self) -> ConstantsClient:
        """Access constants."""
        return ConstantsClient(self)

    def __repr__(self) -> str:
        return (
            f"OfflineClient(genesis_hash={self._genesis_hash!r}, "
            f"runtime_version={self._runtime_version!r})"
        )


@dataclass
class _State:
    genesis_hash: Any
    runtime_version: Any
    metadata: RuntimeMetadata


class OnlineClient:
    """A client that talks to a node over an RPC connection."""

    def __init__(
        self,
        rpc: _Rpc,
        genesis_hash: Any,
        runtime_version: Any,
        metadata: RuntimeMetadata,
    ) -> None:
        self._rpc = rpc
        self._state = _State(genesis_hash, runtime_version, metadata)
        self._lock = threading.Lock()

    @classmethod
    async def from_rpc_client(cls, rpc: _Rpc) -> "OnlineClient":
        """Fetch the chain details through ``rpc`` and build a client on it."""
        genesis_hash, runtime_version, metadata = await asyncio.gather(
            rpc.genesis_hash(),
            rpc.runtime_version(None),
            rpc.metadata(),
        )
        return cls(rpc, genesis_hash, runtime_version, metadata)

    @property
    def rpc(self) -> _Rpc:
        """The RPC client used to talk to the node."""
        return self._rpc

    def subscribe_to_updates(self) -> "ClientRuntimeUpdater":
        """Return an object that keeps this client's runtime up to date."""
        return ClientRuntimeUpdater(self)

    def metadata(self) -> RuntimeMetadata:
        """Return the metadata currently used by this client."""
        with self._lock:
            return self._state.metadata

    def genesis_hash(self) -> Any:
        """Return the genesis hash."""
        with self._lock:
            return self._state.genesis_hash

    def runtime_version(self) -> Any:
        """Return the runtime version currently used by this client."""
        with self._lock:
            return self._state.runtime_version

    def offline(self) -> OfflineClient:
        """Return an offline client with the same configuration as this one."""
        with self._lock:
            return OfflineClient(
                self._state.genesis_hash,
                self._state.runtime_version,
                self._state.metadata,
            )

    def constants(self) -> ConstantsClient:
        """Access constants."""
        return ConstantsClient(self)

    def blocks(self) -> BlocksClient:
        """Work with blocks."""
        return BlocksClient(self)

    def _is_runtime_version_different(self, new: Any) -> bool:
        with self._lock:
            return self._state.runtime_version != new

    def _apply(self, update: "Update") -> None:
        with self._lock:
            self._state.metadata = update.metadata
            self._state.runtime_version = update.runtime_version

    def __repr__(self) -> str:
        with self._lock:
            return f"Client(rpc='RpcClient', inner={self._state!r})"


class UpgradeError(Error):
    """A runtime update could not be applied: the version is unchanged."""

    def __init__(self) -> None:
        super().__init__("The version is the same as the current version")


@dataclass(frozen=True)
class Update:
    """A new runtime version together with the metadata that goes with it."""

    runtime_version: Any
    metadata: RuntimeMetadata


class ClientRuntimeUpdater:
    """Applies runtime updates to an online client."""

    def __init__(self, client: OnlineClient) -> None:
        self.client = client

    def apply_update(self, update: Update) -> None:
        """Apply ``update``; raise UpgradeError if the version is unchanged."""
        if not self.client._is_runtime_version_different(update.runtime_version):
            raise UpgradeError()
        self.client._apply(update)

    async def perform_runtime_updates(self) -> None:
        """Apply updates until the subscription ends or fails."""
        stream = await self.runtime_updates()
        async for update in stream:
            # The subscription also sends the current version when it starts.
            try:
                self.apply_update(update)
            except UpgradeError:
                pass

    async def runtime_updates(self) -> "RuntimeUpdaterStream":
        """Return a stream of updates, without applying any of them."""
        stream = await self.client.rpc.subscribe_runtime_version()
        return RuntimeUpdaterStream(stream, self.client)


class RuntimeUpdaterStream:
    """Runtime versions from the node, each paired with fresh metadata."""

    def __init__(self, stream: AsyncIterator[Any], client: OnlineClient) -> None:
        self._stream = stream
        self._client = client

    async def next(self) -> Optional[Update]:
        """Return the next update, or None once the subscription has ended."""
        try:
            runtime_version = await anext(self._stream)
        except StopAsyncIteration:
            return None
        metadata = await self._client.rpc.metadata()
        return Update(runtime_version=runtime_version, metadata=metadata)

    def __aiter__(self) -> "RuntimeUpdaterStream":
        return self

    async def __anext__(self) -> Update:
        update = await self.next()
        if update is None:
            raise StopAsyncIteration
        return update