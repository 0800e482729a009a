"""Subscriptions to block headers."""

from __future__ import annotations

from typing import Any, AsyncIterator, Optional, Protocol

__all__ = ["BlocksClient", "subscribe_to_block_headers_filling_in_gaps"]


class _Header(Protocol):
    number: Any


class _Rpc(Protocol):
    async def block_hash(self, number: Optional[int]) -> Any: ...

    async def header(self, block_hash: Any) -> Optional[_Header]: ...

    async def finalized_head(self) -> Any: ...

    async def subscribe_blocks(self) -> AsyncIterator[_Header]: ...

    async def subscribe_finalized_blocks(self) -> AsyncIterator[_Header]: ...


class _OnlineClient(Protocol):
    @property
    def rpc(self) -> _Rpc: ...


class BlocksClient:
    """A client for working with blocks."""

    def __init__(self, client: _OnlineClient) -> None:
        self.client = client

    async def subscribe_headers(self) -> AsyncIterator[Any]:
        """Subscribe to new best block headers, which may not be finalized."""
        return await self.client.rpc.subscribe_blocks()

    async def subscribe_finalized_headers(self) -> AsyncIterator[Any]:
        """Subscribe to finalized block headers, with no block left out."""
        rpc = self.client.rpc
        # Note the last finalized block now, so that every later one is returned.
        last_hash = await rpc.finalized_head()
        last_header = await rpc.header(last_hash)
        last_number = None if last_header is None else int(last_header.number)
        sub = await rpc.subscribe_finalized_blocks()
        return subscribe_to_block_headers_filling_in_gaps(rpc, last_number, sub)


async def subscribe_to_block_headers_filling_in_gaps(
    rpc: _Rpc, last_block_num: Optional[int], sub: AsyncIterator[_Header]
) -> AsyncIterator[Any]:
    """Yield headers from ``sub``, fetching any blocks skipped since the last one."""
    async for header in sub:
        end = int(header.number)
        start = end if last_block_num is None else last_block_num + 1
        last_block_num = end
        for number in range(start, end):
            block_hash = await rpc.block_hash(number)
            previous = await rpc.header(block_hash)
            if previous is not None:
                yield previous
        yield header