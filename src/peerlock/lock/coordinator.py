"""Lock coordinator: ownership of a single exclusive resource.

Peers share a key/value store and a best-effort broadcast bus, nothing
else. Ownership is recorded in two store keys:

- ``owner``: peer id of the current owner, absent when free
- ``heartbeat``: epoch ms of the owner's last durable liveness commit

A recorded owner whose heartbeat is older than ``stale_after_ms`` is
presumed dead and may be replaced.

Acquisition is optimistic and double-checked:
1. Read the record; give up if a live owner exists
2. Sleep a random jitter, re-read, and write ``owner = self`` if still free
3. Sleep another jitter and read ``owner`` back; we won if it is still us

This is a last-writer-wins race detector, not a compare-and-swap. Two
claimants can both believe they won; the loser finds out when it observes
the winner's write and steps down (see ``MessageDispatcher``).

While owner, a heartbeat task broadcasts a cheap liveness message every
``heartbeat_period_ms`` and durably commits ``heartbeat = now`` every
``commit_every`` ticks.

Example:
    coordinator = LockCoordinator(store, bus, callbacks=LockCallbacks(
        on_became_owner=lambda: print("mine"),
    ))
    async with coordinator:
        if await coordinator.claim() or await coordinator.request_takeover():
            await use_resource()
            await coordinator.release(announce=True)
"""

from __future__ import annotations

import asyncio
import logging
import random
import secrets
from collections.abc import Callable
from types import TracebackType

from peerlock.bus.base import BroadcastBus
from peerlock.bus.messages import LockMessage, now_ms
from peerlock.config import Settings
from peerlock.config import settings as default_settings
from peerlock.keys import LockKeys
from peerlock.lock.arbiter import TakeoverArbiter
from peerlock.lock.callbacks import LockCallbacks
from peerlock.lock.dispatcher import MessageDispatcher
from peerlock.lock.state import NEVER_NOTIFIED, LockState, NotifiedOwner, OwnershipRecord
from peerlock.store.base import SharedStore

logger = logging.getLogger(__name__)


def generate_peer_id() -> str:
    """Generate a 128-bit random peer identity rendered as hex."""
    return secrets.token_hex(16)


def _parse_ms(value: str | None) -> int:
    if value is None:
        return 0
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Ignoring unparseable heartbeat value {value!r}")
        return 0


class LockCoordinator:
    """Owns this peer's identity, ownership state and heartbeat.

    One coordinator guards one resource for one process. Inbound broadcasts
    and store changes are routed through ``self.dispatcher``; negotiated
    takeovers run in ``self.arbiter``.

    Args:
        store: Shared store visible to all peers
        bus: Broadcast bus shared by all peers
        settings: Timing and naming configuration
        callbacks: Observer hooks
        peer_id: Identity to use (random 128-bit id if None)
        keys: Store keys (derived from settings if None)
        clock: Epoch-millisecond clock
        rng: Random source for jitter
    """

    def __init__(
        self,
        store: SharedStore,
        bus: BroadcastBus,
        settings: Settings | None = None,
        callbacks: LockCallbacks | None = None,
        *,
        peer_id: str | None = None,
        keys: LockKeys | None = None,
        clock: Callable[[], int] | None = None,
        rng: random.Random | None = None,
    ):
        self.settings = settings or default_settings
        self.store = store
        self.bus = bus
        self.callbacks = callbacks or LockCallbacks()
        self.peer_id = peer_id or generate_peer_id()
        self.keys = keys or LockKeys(self.settings.resource, self.settings.key_prefix)

        self._clock = clock or now_ms
        self._rng = rng or random.Random()

        self._is_owner = False
        self._state = LockState.IDLE
        self.last_notified_owner: NotifiedOwner = NEVER_NOTIFIED

        self._tick = 0
        self._heartbeat_task: asyncio.Task[None] | None = None
        self._started = False
        self._ownership_waiters: list[asyncio.Future[bool]] = []

        self.arbiter = TakeoverArbiter(self)
        self.dispatcher = MessageDispatcher(self, self.arbiter)

        self._log_extra = {"peer_id": self.peer_id, "resource": self.keys.resource}

    @property
    def is_owner(self) -> bool:
        """Check if this peer currently believes it owns the resource."""
        return self._is_owner

    @property
    def state(self) -> LockState:
        return self._state

    def now(self) -> int:
        return self._clock()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """Subscribe to store changes and broadcasts."""
        if self._started:
            return

        await self.store.watch(self.dispatcher.on_store_change)
        await self.bus.subscribe(self.dispatcher.on_message)
        await self.store.start()
        await self.bus.start()

        self._started = True
        logger.info(
            f"Peer {self.peer_id} joined lock '{self.keys.resource}'", extra=self._log_extra
        )

    async def destroy(self) -> None:
        """Tear down timers and subscriptions without telling anyone.

        Other peers notice the departure only once the heartbeat goes stale.
        """
        await self._stop_heartbeat()
        self._is_owner = False
        self._state = LockState.IDLE

        await self.store.unwatch(self.dispatcher.on_store_change)
        await self.bus.unsubscribe(self.dispatcher.on_message)
        await self.store.stop()
        await self.bus.stop()

        self._resolve_waiters(False)

        self._started = False
        logger.info(f"Peer {self.peer_id} left lock '{self.keys.resource}'", extra=self._log_extra)

    async def shutdown(self) -> None:
        """Release with an announcement, then destroy."""
        await self.release(announce=True)
        await self.destroy()

    async def __aenter__(self) -> "LockCoordinator":
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.destroy()

    # -------------------------------------------------------------------------
    # Store access
    # -------------------------------------------------------------------------

    async def read_record(self) -> OwnershipRecord:
        """Read the shared ownership record."""
        owner = await self.store.get(self.keys.owner)
        heartbeat = await self.store.get(self.keys.heartbeat)
        return OwnershipRecord(owner=owner, heartbeat=_parse_ms(heartbeat))

    async def current_owner(self) -> str | None:
        """Get the peer id recorded as owner, live or stale."""
        return await self.store.get(self.keys.owner)

    async def heartbeat_age_ms(self) -> int | None:
        """Milliseconds since the last durable heartbeat, None if never committed."""
        value = await self.store.get(self.keys.heartbeat)
        if value is None:
            return None
        return self.now() - _parse_ms(value)

    async def is_free(self) -> bool:
        """True if no owner is recorded or the recorded owner is stale."""
        record = await self.read_record()
        if record.is_live(self.now(), self.settings.stale_after_ms):
            return False
        if record.owner is not None:
            logger.debug(
                f"Owner {record.owner} is stale "
                f"(last heartbeat {record.age_ms(self.now())} ms ago)"
            )
        return True

    # -------------------------------------------------------------------------
    # Claim
    # -------------------------------------------------------------------------

    async def claim(self) -> bool:
        """Try to become owner when no live owner exists.

        Returns:
            True if this peer is owner afterwards, False if the resource is
            actively held or another peer won the race.
        """
        if self._is_owner:
            return True

        if not await self.is_free():
            logger.debug("Claim refused: resource is actively held")
            return False

        self._state = LockState.CLAIMING
        try:
            await self.sleep_jitter()
            if not await self.is_free():
                logger.debug("Claim refused on re-check: resource was taken")
                return False
            return await self.write_and_confirm()
        finally:
            if not self._is_owner:
                self._state = LockState.IDLE

    async def write_and_confirm(self) -> bool:
        """Write ourselves as owner and read it back after a jitter."""
        await self.store.set(self.keys.owner, self.peer_id)
        await self.sleep_jitter()

        if await self.store.get(self.keys.owner) == self.peer_id:
            return await self._become_owner()

        logger.debug("Lost acquisition race to another peer", extra=self._log_extra)
        return False

    async def request_takeover(self) -> bool:
        """Ask the current owner to step aside, then run an election.

        See ``TakeoverArbiter.request_takeover``.
        """
        return await self.arbiter.request_takeover()

    async def _become_owner(self) -> bool:
        """Take ownership, then start the heartbeat and announce it.

        The host is told before anything is awaited. A store change seen
        while the first heartbeat is committed can release us again, in
        which case nothing is announced and False is returned.
        """
        self._is_owner = True
        self._state = LockState.OWNER
        logger.info(
            f"Peer {self.peer_id} became owner of '{self.keys.resource}'", extra=self._log_extra
        )
        self.callbacks.on_became_owner()
        self._resolve_waiters(True)

        await self._start_heartbeat()
        if not self._is_owner:
            logger.info("Ownership lost while starting the heartbeat", extra=self._log_extra)
            return False

        await self.bus.publish(LockMessage.owner_changed(self.peer_id, self.peer_id))
        return self._is_owner

    def _resolve_waiters(self, acquired: bool) -> None:
        for future in self._ownership_waiters:
            if not future.done():
                future.set_result(acquired)
        self._ownership_waiters.clear()

    async def wait_for_ownership(self, timeout: float | None = None) -> bool:
        """Wait until this peer becomes the owner.

        Does not claim by itself; pair it with ``claim`` or
        ``request_takeover`` running elsewhere.

        Args:
            timeout: Maximum time to wait in seconds (None = wait forever)

        Returns:
            True if ownership was acquired, False on timeout or if the
            coordinator is destroyed first
        """
        if self._is_owner:
            return True

        future: asyncio.Future[bool] = asyncio.get_running_loop().create_future()
        self._ownership_waiters.append(future)

        try:
            return await asyncio.wait_for(future, timeout=timeout)
        except asyncio.TimeoutError:
            if future in self._ownership_waiters:
                self._ownership_waiters.remove(future)
            return False

    # -------------------------------------------------------------------------
    # Heartbeat
    # -------------------------------------------------------------------------

    async def _start_heartbeat(self) -> None:
        await self._stop_heartbeat()
        self._tick = 0
        await self._beat()
        if self._is_owner:
            self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())

    async def _beat(self) -> None:
        """Broadcast liveness; commit the durable heartbeat every N ticks.

        The first tick after becoming owner commits, so a fresh owner never
        carries its predecessor's stale heartbeat.
        """
        await self.bus.publish(LockMessage.heartbeat(self.peer_id))

        commit = self._tick == 0
        self._tick = (self._tick + 1) % self.settings.commit_every
        if commit:
            await self.store.set(self.keys.heartbeat, str(self.now()))

    async def _heartbeat_loop(self) -> None:
        period = self.settings.heartbeat_period_ms / 1000
        while self._is_owner:
            try:
                await asyncio.sleep(period)
                if not self._is_owner:
                    break
                await self._beat()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Heartbeat failed: {e}", extra=self._log_extra)

    async def _stop_heartbeat(self) -> None:
        task = self._heartbeat_task
        self._heartbeat_task = None
        if task is None or task is asyncio.current_task():
            return

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    # -------------------------------------------------------------------------
    # Release
    # -------------------------------------------------------------------------

    async def release(self, announce: bool = False) -> None:
        """Give up ownership.

        No-op if this peer is not the owner. The ``owner`` key is only
        deleted if it still names this peer; ``heartbeat`` is always
        deleted.

        Args:
            announce: Broadcast a ``released`` message to other peers
        """
        if not self._is_owner:
            return

        self._is_owner = False
        await self._stop_heartbeat()

        if await self.store.get(self.keys.owner) == self.peer_id:
            await self.store.delete(self.keys.owner)
        await self.store.delete(self.keys.heartbeat)

        if announce:
            await self.bus.publish(LockMessage.released(self.peer_id))

        self._state = LockState.IDLE
        logger.info(
            f"Peer {self.peer_id} released '{self.keys.resource}'"
            f"{' (announced)' if announce else ''}",
            extra=self._log_extra,
        )
        self.callbacks.on_lost_ownership()

    # -------------------------------------------------------------------------
    # Timing helpers
    # -------------------------------------------------------------------------

    def jitter_ms(self) -> int:
        return self._rng.randint(self.settings.jitter_min_ms, self.settings.jitter_max_ms)

    async def sleep_jitter(self) -> None:
        await asyncio.sleep(self.jitter_ms() / 1000)

    @staticmethod
    async def sleep_ms(ms: int) -> None:
        await asyncio.sleep(ms / 1000)
