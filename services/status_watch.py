# services/status_watch.py

"""
Requester-side status tracking for an approval request.

    controller = StatusController(ApprovalKey(contact="p@x.com"), context)
    await controller.start()          # one fetch, then watch if pending
    status = await controller.wait()  # returns once a terminal status lands
    await controller.stop()

Two watchers feed one controller:
  • RealtimeWatcher: Supabase Realtime UPDATE events for the row
  • PollingFallback: re-reads the row on a fixed interval

Whichever reports first wins. The controller accepts a status only when
it differs from the current one and is not older (by updated_at) than the
last accepted update, so duplicate deliveries are no-ops. After a
terminal status or stop(), every watcher is disarmed and late callbacks
do nothing.
"""

import asyncio
from typing import Awaitable, Callable, Optional

from pydantic import BaseModel, Field

from core.config import settings
from core.logging_config import logger
from models.approval import PendingApprovalRecord
from models.enums import ApprovalStatus
from services.approval_store import ApprovalStore, ApprovalTable
from services.markers import PendingMarkerStore


COMPLETE_ACCOUNT_ROUTE = "/auth/complete-account"

FAILED_CHANNEL_STATES = {"CHANNEL_ERROR", "TIMED_OUT", "CLOSED"}

TERMINAL_MESSAGES = {
    ApprovalStatus.rejected: "Your parent declined this request.",
    ApprovalStatus.expired: "This approval request has expired. Please send a new one.",
    ApprovalStatus.blocked: "Too many attempts. Please request a new code.",
}

Fetch = Callable[[], Awaitable[Optional[PendingApprovalRecord]]]


# -----------------------------------------------------
# Inputs
# -----------------------------------------------------
class ApprovalKey(BaseModel):
    """How to find the record: token, record id, or owner contact."""
    token: Optional[str] = None
    record_id: Optional[str] = None
    contact: Optional[str] = None
    extra_filters: dict = Field(default_factory=dict)

    def describe(self) -> str:
        if self.record_id:
            return f"id={self.record_id}"
        if self.token:
            return "token=***"
        return f"contact={self.contact}"


class Navigator:
    """
    Where the controller sends the requester. The default just logs;
    a UI layer overrides both methods.
    """

    def replace(self, route: str, params: Optional[dict] = None):
        logger.info(f"Navigate (replace) → {route} {params or {}}")

    def show(self, status: ApprovalStatus, message: str):
        logger.info(f"Approval {status}: {message}")


class ApprovalContext:
    """Everything a controller needs, passed in rather than looked up."""

    def __init__(
        self,
        store: ApprovalStore,
        realtime_client=None,
        markers: Optional[PendingMarkerStore] = None,
        navigator: Optional[Navigator] = None,
        poll_interval: Optional[float] = None,
    ):
        self.store = store
        self.realtime_client = realtime_client
        self.markers = markers
        self.navigator = navigator or Navigator()
        self.poll_interval = poll_interval if poll_interval is not None else settings.STATUS_POLL_INTERVAL_SECONDS


def make_fetcher(store: ApprovalStore, key: ApprovalKey) -> Fetch:
    """Async fetch for `key`; the Supabase client is sync, so it runs in a thread."""

    def fetch_sync():
        if key.record_id:
            return store.fetch_by_id(key.record_id)
        if key.token:
            return store.fetch_by_token(key.token)
        if key.contact:
            return store.fetch_by_contact(key.contact, key.extra_filters)
        raise ValueError("ApprovalKey needs a token, record_id or contact")

    async def fetch():
        return await asyncio.to_thread(fetch_sync)

    return fetch


# -----------------------------------------------------
# Realtime
# -----------------------------------------------------
def _change_rows(payload) -> tuple[dict, dict]:
    """(new, old) rows from a postgres_changes payload, across client versions."""
    if not isinstance(payload, dict):
        return {}, {}
    data = payload.get("data", payload)
    new = data.get("record") or data.get("new") or {}
    old = data.get("old_record") or data.get("old") or {}
    return new, old


class RealtimeWatcher:
    def __init__(
        self,
        client,
        table: ApprovalTable,
        on_change: Callable[[PendingApprovalRecord], object],
        on_failure: Callable[[], object],
    ):
        self.client = client
        self.table = table
        self.on_change = on_change
        self.on_failure = on_failure
        self.armed = False
        # Rows a contact-scoped channel may deliver; others are siblings
        self.record_id: Optional[str] = None
        self.extra_filters: dict = {}
        self._channel = None

    @property
    def started(self) -> bool:
        return self._channel is not None

    async def start(self, record_id: Optional[str] = None, contact: Optional[str] = None):
        if self._channel is not None:
            return

        if record_id:
            row_filter = f"{self.table.id_column}=eq.{record_id}"
            topic = f"approval:{self.table.name}:{record_id}"
        elif contact and self.table.contact_column:
            row_filter = f"{self.table.contact_column}=eq.{contact}"
            topic = f"approval:{self.table.name}:{contact}"
        else:
            raise ValueError("RealtimeWatcher needs a record id or contact")

        self.armed = True
        channel = self.client.channel(topic)
        channel.on_postgres_changes(
            "UPDATE",
            schema="public",
            table=self.table.name,
            filter=row_filter,
            callback=self._on_event,
        )
        self._channel = channel

        try:
            await channel.subscribe(self._on_subscribe_state)
        except Exception as e:
            logger.warning(f"Realtime subscribe failed for {topic}: {e}")
            if self.armed:
                self.on_failure()

    def _on_subscribe_state(self, state, error=None):
        if not self.armed:
            return
        value = str(getattr(state, "value", state))
        if value in FAILED_CHANNEL_STATES:
            logger.warning(f"Realtime channel for {self.table.name} is {value}: {error or ''}")
            self.on_failure()
        elif value == "SUBSCRIBED":
            logger.info(f"Realtime channel for {self.table.name} subscribed")

    def _on_event(self, payload):
        if not self.armed:
            return

        new, old = _change_rows(payload)
        if not new:
            return
        if not self._matches(new):
            return
        # old_record only carries the primary key unless REPLICA IDENTITY FULL
        if "status" in old and old.get("status") == new.get("status"):
            return

        try:
            record = self.table.to_record(new).with_effective_status()
        except (KeyError, ValueError) as e:
            logger.warning(f"Ignoring malformed realtime payload for {self.table.name}: {e}")
            return
        self.on_change(record)

    def _matches(self, row: dict) -> bool:
        if self.record_id and str(row.get(self.table.id_column)) != str(self.record_id):
            return False
        for column, value in self.extra_filters.items():
            if column in row and str(row[column]) != str(value):
                return False
        return True

    async def stop(self):
        self.armed = False
        channel, self._channel = self._channel, None
        if channel is None:
            return
        try:
            await self.client.remove_channel(channel)
        except Exception as e:
            logger.warning(f"Error removing realtime channel: {e}")


# -----------------------------------------------------
# Polling
# -----------------------------------------------------
class PollingFallback:
    def __init__(
        self,
        fetch: Fetch,
        interval: float,
        on_change: Callable[[PendingApprovalRecord], object],
        current_status: Callable[[], Optional[ApprovalStatus]],
    ):
        self.fetch = fetch
        self.interval = interval
        self.on_change = on_change
        self.current_status = current_status
        self.armed = False
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        if self.running:
            return
        self.armed = True
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self):
        while self.armed:
            await asyncio.sleep(self.interval)
            if not self.armed:
                return
            try:
                record = await self.fetch()
            except Exception as e:
                logger.warning(f"Status poll failed, retrying next tick: {e}")
                continue
            if not self.armed:
                return
            if record is not None and record.status != self.current_status():
                # A terminal status makes the controller call stop()
                self.on_change(record)

    def stop(self):
        self.armed = False
        task, self._task = self._task, None
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        if task is not current:
            task.cancel()


# -----------------------------------------------------
# Controller
# -----------------------------------------------------
class StatusController:
    def __init__(self, key: ApprovalKey, context: ApprovalContext, approved_route: str = COMPLETE_ACCOUNT_ROUTE):
        self.key = key
        self.context = context
        self.approved_route = approved_route

        self.status: Optional[ApprovalStatus] = None
        self.record: Optional[PendingApprovalRecord] = None
        self.message: Optional[str] = None

        self._version = None
        self._active = False
        self._done = asyncio.Event()
        self._background: set[asyncio.Task] = set()

        self._fetch = make_fetcher(context.store, key)
        self.poller = PollingFallback(self._fetch, context.poll_interval, self.on_status, lambda: self.status)
        self.realtime = None
        if context.realtime_client is not None:
            self.realtime = RealtimeWatcher(
                context.realtime_client,
                context.store.table,
                self.on_status,
                self._on_realtime_failure,
            )
            self.realtime.record_id = key.record_id
            self.realtime.extra_filters = dict(key.extra_filters)

    @property
    def contact(self) -> Optional[str]:
        if self.record and self.record.owner_contact:
            return self.record.owner_contact
        return self.key.contact

    # -------------------------------------------------
    # Lifecycle
    # -------------------------------------------------
    async def start(self) -> Optional[ApprovalStatus]:
        self._active = True
        try:
            record = await self._fetch()
        except Exception as e:
            # Stay in the waiting state; the next poll retries
            logger.warning(f"Initial status fetch for {self.key.describe()} failed: {e}")
            if not self._active:
                return self.status
            self._arm()
            return self.status

        if not self._active:
            return self.status

        if record is None:
            self.message = "No approval request found."
            logger.info(f"No approval request for {self.key.describe()}")
            self._done.set()
            return None

        self.on_status(record)
        return self.status

    async def wait(self, timeout: Optional[float] = None) -> Optional[ApprovalStatus]:
        await asyncio.wait_for(self._done.wait(), timeout)
        return self.status

    async def stop(self):
        self._active = False
        self._disarm()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    # -------------------------------------------------
    # Status updates
    # -------------------------------------------------
    def on_status(self, record: PendingApprovalRecord) -> bool:
        """Returns True when `record` caused a transition."""
        if not self._active:
            return False
        if self.status is not None and self.status.is_terminal:
            return False
        if record.status == self.status:
            return False
        if self._version and record.version and record.version < self._version:
            logger.info(f"Dropping stale {record.status} update for {record.id}")
            return False

        self._set_state(record)

        if record.status == ApprovalStatus.pending:
            self._mark_pending(record)
            self._arm(record)
        else:
            self._finish(record)
        return True

    def _set_state(self, record: PendingApprovalRecord):
        logger.info(f"Approval {record.id}: {self.status or 'unknown'} → {record.status}")
        self.record = record
        self.status = record.status
        if record.version:
            self._version = record.version
        if self.realtime is not None:
            self.realtime.record_id = record.id

    def _finish(self, record: PendingApprovalRecord):
        self._disarm()

        if self.context.markers and self.contact:
            self.context.markers.clear(self.contact)

        if record.status == ApprovalStatus.approved:
            self.context.navigator.replace(self.approved_route, {"parentEmail": self.contact})
        else:
            self.message = TERMINAL_MESSAGES.get(record.status, str(record.status))
            self.context.navigator.show(record.status, self.message)

        self._done.set()

    def _mark_pending(self, record: PendingApprovalRecord):
        if self.context.markers and self.contact:
            self.context.markers.set(
                self.contact,
                table=self.context.store.table.name,
                record_id=record.id,
            )

    # -------------------------------------------------
    # Watchers
    # -------------------------------------------------
    def _arm(self, record: Optional[PendingApprovalRecord] = None):
        self.poller.start()

        if self.realtime is None or self.realtime.started:
            return
        record_id = record.id if record else self.key.record_id
        if not record_id and not self.key.contact:
            # Token-only key: wait until a poll gives us the id
            return
        self._spawn(self.realtime.start(record_id=record_id, contact=self.key.contact))

    def _disarm(self):
        self.poller.stop()
        if self.realtime is not None:
            self.realtime.armed = False
            self._spawn(self.realtime.stop())

    def _on_realtime_failure(self):
        if self._active and not (self.status and self.status.is_terminal):
            logger.info("Realtime unavailable, relying on polling")
            self.poller.start()

    def _spawn(self, coro):
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
