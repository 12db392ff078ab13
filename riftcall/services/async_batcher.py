"""Named groups of deferred calls.

Usage:
    handle = pipeline.enqueue("summoners", on_fulfilled=store)
    await pipeline.call("/lol/...", resource="v4:summoner", batch=handle)
    ...
    results = await pipeline.commit("summoners")

Each group owns its transport, so two groups never share a connection
pool. commit() waits for every call of the group, closes its transport and
forgets the group so the name can be reused.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from riftcall.core.logging import get_logger
from riftcall.services.transport import Transport

logger = get_logger(__name__)

Callback = Callable[[Any], Any]


@dataclass
class PendingCall:
    """Handle of one deferred call.

    Attributes:
        group: Name of the group the call belongs to
        on_fulfilled: Called with the result; its return value becomes the result
        on_rejected: Called with the exception; its return value becomes the result
        task: The asyncio task running the call once attached
    """
    group: str
    on_fulfilled: Optional[Callback] = None
    on_rejected: Optional[Callback] = None
    task: Optional[asyncio.Task] = field(default=None, repr=False)

    @property
    def attached(self) -> bool:
        return self.task is not None

    def done(self) -> bool:
        return self.task is not None and self.task.done()


@dataclass
class AsyncGroup:
    name: str
    transport: Transport
    calls: List[PendingCall] = field(default_factory=list)


class AsyncBatcher:
    """Keeps async groups and settles them on commit."""

    def __init__(self, transport_factory: Callable[[], Transport]):
        self._transport_factory = transport_factory
        self._groups: Dict[str, AsyncGroup] = {}

    @property
    def groups(self) -> List[str]:
        return list(self._groups)

    def enqueue(
        self,
        group: str = "default",
        on_fulfilled: Optional[Callback] = None,
        on_rejected: Optional[Callback] = None,
    ) -> PendingCall:
        """Reserve a slot in a group, creating the group on first use."""
        if group not in self._groups:
            self._groups[group] = AsyncGroup(name=group, transport=self._transport_factory())
            logger.debug(f"Created async group '{group}'", extra={"group": group})
        handle = PendingCall(group=group, on_fulfilled=on_fulfilled, on_rejected=on_rejected)
        self._groups[group].calls.append(handle)
        return handle

    def transport_of(self, handle: PendingCall) -> Transport:
        group = self._groups.get(handle.group)
        if group is None or handle not in group.calls:
            raise RuntimeError(f"Handle is not pending in async group '{handle.group}'")
        return group.transport

    def attach(self, handle: PendingCall, call: Awaitable[Any]) -> PendingCall:
        """Start the call for a handle.

        Raises:
            RuntimeError: If the handle already carries a call.
        """
        if handle.attached:
            raise RuntimeError("PendingCall handles are single-use")
        handle.task = asyncio.ensure_future(self._settle(handle, call))
        return handle

    @staticmethod
    async def _settle(handle: PendingCall, call: Awaitable[Any]) -> Any:
        try:
            result = await call
        except Exception as e:
            if handle.on_rejected is None:
                raise
            return handle.on_rejected(e)
        if handle.on_fulfilled is None:
            return result
        return handle.on_fulfilled(result)

    async def commit(self, group: str = "default") -> List[Any]:
        """Wait for every call of a group.

        Calls settle independently; a failed call's exception takes its
        place in the returned list. Handles that were never attached yield
        None.
        """
        async_group = self._groups.pop(group, None)
        if async_group is None:
            return []

        tasks = [handle.task for handle in async_group.calls if handle.task is not None]
        unattached = len(async_group.calls) - len(tasks)
        if unattached:
            logger.warning(
                f"{unattached} handle(s) in async group '{group}' were never used",
                extra={"group": group},
            )

        try:
            settled = await asyncio.gather(*tasks, return_exceptions=True)
        finally:
            await async_group.transport.aclose()

        outcomes = iter(settled)
        results = [
            next(outcomes) if handle.task is not None else None
            for handle in async_group.calls
        ]
        failed = sum(1 for r in results if isinstance(r, BaseException))
        logger.debug(
            f"Committed async group '{group}': {len(results)} call(s), {failed} failed",
            extra={"group": group},
        )
        return results

    async def aclose(self) -> None:
        """Cancel unfinished calls and close the transport of every group."""
        groups, self._groups = self._groups, {}
        for async_group in groups.values():
            for handle in async_group.calls:
                if handle.task is not None and not handle.task.done():
                    handle.task.cancel()
            await async_group.transport.aclose()
