"""Realtime new-order relay.

A seller session subscribes to insert events on ``orders`` filtered to its own
``store_id``. For each new order the relay drops the store's cached order
list / dashboard metrics and, when the seller granted desktop-notification
permission, pushes a "New sale received!" notification.

Two channel backends exist:

* ``InMemoryOrderChannel``: process-local fan-out fed by the order creation
  endpoint. Used in single-process deployments and tests.
* ``SupabaseOrderChannel``: Supabase Realtime ``postgres_changes`` with the
  filter ``store_id=eq.<id>``, so inserts made by any writer are seen.

Subscription errors are surfaced to the seller as a warning. There is no
automatic resubscribe.
"""

import asyncio
import uuid
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Awaitable, Callable, Optional, Protocol

from libs.auth.session import AuthEvent, SessionContext, SessionState
from libs.common.cache import invalidate_store_views
from libs.common.config import get_settings
from libs.common.logging import get_logger

logger = get_logger(__name__)

SUBSCRIBED = "SUBSCRIBED"
CHANNEL_ERROR = "CHANNEL_ERROR"
TIMED_OUT = "TIMED_OUT"


@dataclass(frozen=True)
class OrderInsertEvent:
    store_id: str
    order_id: str
    order_number: Optional[str]
    buyer_name: Optional[str]
    total_amount: Decimal

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "OrderInsertEvent":
        """Build from an ``orders`` row as delivered by a change feed."""
        try:
            total = Decimal(str(record.get("total_amount") or 0))
        except InvalidOperation:
            total = Decimal("0")
        return cls(
            store_id=str(record["store_id"]),
            order_id=str(record["id"]),
            order_number=record.get("order_number"),
            buyer_name=record.get("buyer_name"),
            total_amount=total,
        )

    def to_message(self) -> dict[str, Any]:
        return {
            "type": "order_inserted",
            "store_id": self.store_id,
            "order_id": self.order_id,
            "order_number": self.order_number,
            "buyer_name": self.buyer_name,
            "total_amount": f"{self.total_amount:.2f}",
        }


def new_sale_notification(event: OrderInsertEvent) -> dict[str, Any]:
    currency = get_settings().CURRENCY
    return {
        "type": "desktop_notification",
        "title": "New sale received!",
        "body": (
            f"Order from {event.buyer_name or 'Customer'} "
            f"for {currency} {event.total_amount:.2f}."
        ),
        "order_id": event.order_id,
    }


InsertHandler = Callable[[OrderInsertEvent], Awaitable[None]]
StatusHandler = Callable[[str, Optional[str]], Awaitable[None]]


class OrderChannel(Protocol):
    async def subscribe(
        self, store_id: str, on_insert: InsertHandler, on_status: StatusHandler
    ) -> Any: ...

    async def unsubscribe(self, handle: Any) -> None: ...


# ============================================================================
# CHANNELS
# ============================================================================


class _LocalSubscription:
    def __init__(self, store_id: str, on_insert: InsertHandler):
        self.store_id = store_id
        self.on_insert = on_insert
        self.queue: asyncio.Queue[OrderInsertEvent] = asyncio.Queue()
        self.task: Optional[asyncio.Task] = None

    async def pump(self) -> None:
        while True:
            event = await self.queue.get()
            try:
                await self.on_insert(event)
            except Exception:
                logger.exception(f"Order insert handler failed for store {self.store_id}")


class InMemoryOrderChannel:
    """Process-local, store-scoped fan-out of order insert events."""

    def __init__(self):
        self._subscriptions: dict[str, set[_LocalSubscription]] = {}

    def subscriber_count(self, store_id: str) -> int:
        return len(self._subscriptions.get(str(store_id), ()))

    async def subscribe(
        self, store_id: str, on_insert: InsertHandler, on_status: StatusHandler
    ) -> _LocalSubscription:
        subscription = _LocalSubscription(str(store_id), on_insert)
        subscription.task = asyncio.create_task(subscription.pump())
        self._subscriptions.setdefault(subscription.store_id, set()).add(subscription)
        await on_status(SUBSCRIBED, None)
        return subscription

    async def unsubscribe(self, handle: _LocalSubscription) -> None:
        subscribers = self._subscriptions.get(handle.store_id)
        if subscribers is not None:
            subscribers.discard(handle)
            if not subscribers:
                del self._subscriptions[handle.store_id]
        if handle.task is not None:
            handle.task.cancel()

    def publish(self, event: OrderInsertEvent) -> int:
        """Queue ``event`` for every subscriber of its store. Returns the fan-out size."""
        subscribers = self._subscriptions.get(event.store_id, ())
        for subscription in subscribers:
            subscription.queue.put_nowait(event)
        return len(subscribers)


class SupabaseOrderChannel:
    """Supabase Realtime ``postgres_changes`` feed on ``public.orders``."""

    def __init__(self, client: Any = None):
        self._client = client
        self._tasks: dict[int, set[asyncio.Task]] = {}

    async def _get_client(self):
        if self._client is None:
            from supabase import acreate_client

            settings = get_settings()
            self._client = await acreate_client(
                settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY
            )
        return self._client

    @staticmethod
    def extract_record(payload: dict[str, Any]) -> Optional[dict[str, Any]]:
        """Pull the new row out of a change payload (shape varies by client version)."""
        data = payload.get("data", payload)
        return data.get("record") or data.get("new") or payload.get("new")

    def pending_tasks(self, handle: Any) -> int:
        return len(self._tasks.get(id(handle), ()))

    def _spawn(
        self, loop: asyncio.AbstractEventLoop, tasks: set[asyncio.Task], coro: Awaitable[None]
    ) -> None:
        task = loop.create_task(coro)
        tasks.add(task)
        task.add_done_callback(lambda t: self._task_done(tasks, t))

    @staticmethod
    def _task_done(tasks: set[asyncio.Task], task: asyncio.Task) -> None:
        tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.exception("Realtime order callback failed", exc_info=error)

    async def subscribe(
        self, store_id: str, on_insert: InsertHandler, on_status: StatusHandler
    ) -> Any:
        client = await self._get_client()
        loop = asyncio.get_running_loop()
        channel = client.channel(f"orders_store_{store_id}")
        tasks = self._tasks.setdefault(id(channel), set())

        def handle_change(payload: dict[str, Any]) -> None:
            record = self.extract_record(payload)
            if not record:
                logger.warning(f"Ignoring order change without a record: {payload}")
                return
            self._spawn(loop, tasks, on_insert(OrderInsertEvent.from_record(record)))

        def handle_status(state: Any, error: Optional[Exception] = None) -> None:
            self._spawn(
                loop,
                tasks,
                on_status(getattr(state, "value", str(state)), str(error) if error else None),
            )

        channel.on_postgres_changes(
            "INSERT",
            schema="public",
            table="orders",
            filter=f"store_id=eq.{store_id}",
            callback=handle_change,
        )
        await channel.subscribe(handle_status)
        return channel

    async def unsubscribe(self, handle: Any) -> None:
        for task in self._tasks.pop(id(handle), set()):
            task.cancel()
        client = await self._get_client()
        await client.remove_channel(handle)


order_channel = InMemoryOrderChannel()
_supabase_channel: Optional[SupabaseOrderChannel] = None


def get_order_channel() -> OrderChannel:
    """The channel seller sessions subscribe to, per REALTIME_BACKEND."""
    global _supabase_channel
    if get_settings().REALTIME_BACKEND == "supabase":
        if _supabase_channel is None:
            _supabase_channel = SupabaseOrderChannel()
        return _supabase_channel
    return order_channel


def publish_order_insert(event: OrderInsertEvent) -> None:
    """Announce a committed order on the in-process channel."""
    delivered = order_channel.publish(event)
    logger.debug(f"Order {event.order_id} published to {delivered} local subscribers")


# ============================================================================
# RELAY
# ============================================================================

SellerSink = Callable[[dict[str, Any]], Awaitable[None]]
CacheInvalidator = Callable[[str], Awaitable[Any]]


class OrderNotificationRelay:
    """One store-scoped subscription, forwarding new orders to one seller session."""

    def __init__(
        self,
        store_id: str,
        channel: OrderChannel,
        sink: SellerSink,
        invalidate: CacheInvalidator = invalidate_store_views,
    ):
        self.store_id = str(store_id)
        self.channel = channel
        self.sink = sink
        self.invalidate = invalidate
        self.notifications_allowed = False
        self.status: Optional[str] = None
        self._handle: Any = None

    @property
    def active(self) -> bool:
        return self._handle is not None

    def set_permission(self, granted: bool) -> None:
        self.notifications_allowed = granted

    async def start(self) -> None:
        if self._handle is None:
            self._handle = await self.channel.subscribe(
                self.store_id, self.handle_insert, self.handle_status
            )

    async def stop(self) -> None:
        if self._handle is not None:
            handle, self._handle = self._handle, None
            await self.channel.unsubscribe(handle)

    async def handle_status(self, status: str, error: Optional[str] = None) -> None:
        self.status = status
        if status == SUBSCRIBED:
            logger.info(f"Subscribed to new orders of store {self.store_id}")
            await self.sink({"type": "subscription_status", "status": status})
        elif status in (CHANNEL_ERROR, TIMED_OUT):
            logger.warning(
                f"Realtime subscription error for store {self.store_id}: {status}",
                extra={"extra_fields": {"error": error}},
            )
            await self.sink(
                {
                    "type": "warning",
                    "status": status,
                    "message": "Live order updates are unavailable; refresh to retry.",
                }
            )

    async def handle_insert(self, event: OrderInsertEvent) -> None:
        # The channel filter already scopes by store; this guards the local path too
        if event.store_id != self.store_id:
            return
        await self.invalidate(self.store_id)
        await self.sink(event.to_message())
        if self.notifications_allowed:
            await self.sink(new_sale_notification(event))


class RelayRegistry:
    """Exactly one relay per seller session."""

    def __init__(self):
        self._relays: dict[str, OrderNotificationRelay] = {}

    def get(self, session_key: str) -> Optional[OrderNotificationRelay]:
        return self._relays.get(session_key)

    def __len__(self) -> int:
        return len(self._relays)

    async def start(self, session_key: str, relay: OrderNotificationRelay) -> OrderNotificationRelay:
        await self.stop(session_key)
        self._relays[session_key] = relay
        await relay.start()
        return relay

    async def stop(self, session_key: str) -> None:
        relay = self._relays.pop(session_key, None)
        if relay is not None:
            await relay.stop()


relay_registry = RelayRegistry()


class RealtimeLifecycle:
    """
    Tie a relay to a ``SessionContext``: subscribe once both a session and a
    store are known, tear down on sign-out or ``close``.
    """

    def __init__(
        self,
        context: SessionContext,
        sink: SellerSink,
        channel: Optional[OrderChannel] = None,
        registry: Optional[RelayRegistry] = None,
    ):
        self.context = context
        self.sink = sink
        self.channel = channel or get_order_channel()
        self.registry = registry or relay_registry
        self.store_id: Optional[str] = None
        self.notifications_allowed = False
        self.session_key = uuid.uuid4().hex
        self._unsubscribe = context.subscribe(self._on_auth_event)

    @property
    def relay(self) -> Optional[OrderNotificationRelay]:
        return self.registry.get(self.session_key)

    async def set_store(self, store_id: Optional[str]) -> None:
        store_id = str(store_id) if store_id else None
        if store_id != self.store_id:
            self.store_id = store_id
            await self.registry.stop(self.session_key)
        await self._sync()

    def set_permission(self, granted: bool) -> None:
        """Record the seller's desktop-notification answer for this session."""
        self.notifications_allowed = granted
        if self.relay is not None:
            self.relay.set_permission(granted)

    async def _on_auth_event(self, event: AuthEvent, state: SessionState) -> None:
        if event == AuthEvent.SIGNED_OUT:
            await self.registry.stop(self.session_key)
        else:
            await self._sync()

    async def _sync(self) -> None:
        ready = self.context.session is not None and self.store_id is not None
        if ready and self.relay is None:
            relay = OrderNotificationRelay(self.store_id, self.channel, self.sink)
            relay.set_permission(self.notifications_allowed)
            await self.registry.start(self.session_key, relay)
        elif not ready:
            await self.registry.stop(self.session_key)

    async def close(self) -> None:
        self._unsubscribe()
        await self.registry.stop(self.session_key)
