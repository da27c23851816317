# tests/fakes.py

"""
In-memory stand-ins for the Supabase client, Supabase Realtime and the
payment provider. Only the calls the app makes are implemented.
"""

import re
import uuid
from copy import deepcopy
from datetime import timedelta
from threading import Lock
from types import SimpleNamespace

from core.errors import ValidationError
from core.stripe_helpers import ExternalBankAccount, PaymentProvider
from core.utils import utcnow


def _same(a, b) -> bool:
    if a == b:
        return True
    return a is not None and b is not None and str(a) == str(b)


# ============================================================
# PostgREST
# ============================================================
class FakeQuery:
    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.op = "select"
        self.payload = None
        self.on_conflict = None
        self.filters = []
        self._order = None
        self._limit = None

    # --- operations ---
    def select(self, *columns):
        self.op = "select"
        return self

    def insert(self, data, **kwargs):
        self.op, self.payload = "insert", data
        return self

    def update(self, data, **kwargs):
        self.op, self.payload = "update", data
        return self

    def upsert(self, data, on_conflict=None, **kwargs):
        self.op, self.payload, self.on_conflict = "upsert", data, on_conflict
        return self

    def delete(self):
        self.op = "delete"
        return self

    # --- filters ---
    def eq(self, column, value):
        self.filters.append(lambda row: _same(row.get(column), value))
        return self

    def ilike(self, column, pattern):
        regex = re.compile("^" + ".*".join(re.escape(p) for p in pattern.split("%")) + "$", re.IGNORECASE)
        self.filters.append(lambda row: row.get(column) is not None and bool(regex.match(str(row[column]))))
        return self

    def in_(self, column, values):
        self.filters.append(lambda row: any(_same(row.get(column), v) for v in values))
        return self

    def order(self, column, desc=False):
        self._order = (column, desc)
        return self

    def limit(self, count):
        self._limit = count
        return self

    # --- run ---
    def execute(self):
        self.db.calls.append((self.op, self.table))
        if (self.op, self.table) in self.db.fail_on:
            raise Exception(f"simulated {self.op} failure on {self.table}")
        with self.db.lock:
            rows = getattr(self, f"_{self.op}")()
        return SimpleNamespace(data=deepcopy(rows))

    def _matching(self):
        rows = self.db.tables.setdefault(self.table, [])
        return [r for r in rows if all(f(r) for f in self.filters)]

    def _select(self):
        rows = self._matching()
        if self._order:
            column, desc = self._order
            rows = sorted(rows, key=lambda r: str(r.get(column) or ""), reverse=desc)
        if self._limit is not None:
            rows = rows[: self._limit]
        return rows

    def _insert(self):
        items = self.payload if isinstance(self.payload, list) else [self.payload]
        out = []
        for item in items:
            row = {"id": str(uuid.uuid4()), "created_at": self.db.tick(), **item}
            row["updated_at"] = self.db.tick()
            self.db.tables.setdefault(self.table, []).append(row)
            out.append(row)
        return out

    def _update(self):
        out = []
        for row in self._matching():
            row.update(self.payload)
            row["updated_at"] = self.db.tick()
            out.append(row)
        return out

    def _upsert(self):
        key = self.on_conflict or "id"
        rows = self.db.tables.setdefault(self.table, [])
        for row in rows:
            if _same(row.get(key), self.payload.get(key)):
                row.update(self.payload)
                row["updated_at"] = self.db.tick()
                return [row]
        return self._insert()

    def _delete(self):
        doomed = self._matching()
        self.db.tables[self.table] = [r for r in self.db.tables[self.table] if r not in doomed]
        return doomed


# ============================================================
# GoTrue
# ============================================================
class FakeAuthError(Exception):
    def __init__(self, message, status=None, code=None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code


class FakeAdmin:
    def __init__(self, db):
        self.db = db

    def create_user(self, attributes):
        email = attributes["email"].lower()
        if any(u.email == email for u in self.db.auth_users.values()):
            raise FakeAuthError("A user with this email address has already been registered", status=422)
        user = SimpleNamespace(
            id=str(uuid.uuid4()),
            email=email,
            user_metadata=dict(attributes.get("user_metadata") or {}),
        )
        self.db.auth_users[user.id] = user
        return SimpleNamespace(user=user)

    def get_user_by_id(self, user_id):
        return SimpleNamespace(user=self.db.auth_users.get(user_id))

    def update_user_by_id(self, user_id, attributes):
        user = self.db.auth_users[user_id]
        if "user_metadata" in attributes:
            user.user_metadata = dict(attributes["user_metadata"])
        return SimpleNamespace(user=user)

    def list_users(self):
        return list(self.db.auth_users.values())

    def delete_user(self, user_id):
        self.db.auth_users.pop(user_id, None)


class FakeAuth:
    def __init__(self, db):
        self.db = db
        self.admin = FakeAdmin(db)

    def get_user(self, token):
        user_id = self.db.sessions.get(token)
        if not user_id:
            raise FakeAuthError("invalid JWT", status=401)
        return SimpleNamespace(user=self.db.auth_users[user_id])


class FakeSupabase:
    def __init__(self):
        self.tables = {}
        self.auth_users = {}
        self.sessions = {}
        self.calls = []
        self.fail_on = set()
        self.lock = Lock()
        self.auth = FakeAuth(self)
        self._last = utcnow()

    def table(self, name):
        return FakeQuery(self, name)

    def tick(self) -> str:
        """Strictly increasing timestamp, like a per-row updated_at trigger."""
        now = utcnow()
        self._last = now if now > self._last else self._last + timedelta(microseconds=1)
        return self._last.isoformat()

    # --- seeding helpers ---
    def add_row(self, table, **row):
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", self.tick())
        row.setdefault("updated_at", self.tick())
        self.tables.setdefault(table, []).append(row)
        return row

    def rows(self, table):
        return self.tables.get(table, [])

    def add_auth_user(self, email, token=None, **metadata):
        user = SimpleNamespace(id=str(uuid.uuid4()), email=email, user_metadata=metadata)
        self.auth_users[user.id] = user
        if token:
            self.sessions[token] = user.id
        return user


# ============================================================
# Realtime
# ============================================================
class FakeChannel:
    def __init__(self, topic, subscribe_state="SUBSCRIBED"):
        self.topic = topic
        self.subscribe_state = subscribe_state
        self.bindings = []
        self.state_callback = None

    def on_postgres_changes(self, event, callback, table="*", schema="public", filter=None):
        self.bindings.append({"event": event, "table": table, "schema": schema, "filter": filter, "callback": callback})
        return self

    async def subscribe(self, callback=None):
        self.state_callback = callback
        if callback:
            callback(self.subscribe_state, None)
        return self

    def emit(self, new, old=None):
        for binding in self.bindings:
            binding["callback"]({"data": {"type": "UPDATE", "record": new, "old_record": old or {}}})

    def report(self, state):
        if self.state_callback:
            self.state_callback(state, None)


class FakeRealtimeClient:
    def __init__(self, subscribe_state="SUBSCRIBED"):
        self.subscribe_state = subscribe_state
        self.channels = []
        self.removed = []

    def channel(self, topic):
        channel = FakeChannel(topic, self.subscribe_state)
        self.channels.append(channel)
        return channel

    async def remove_channel(self, channel):
        self.removed.append(channel)


# ============================================================
# Payments
# ============================================================
class FakePaymentProvider(PaymentProvider):
    name = "fake"
    configured = True

    def __init__(self, status="new", bank_name="STRIPE TEST BANK", deposits=(32, 45), verified_status="verified"):
        self.status = status
        self.bank_name = bank_name
        self.deposits = sorted(deposits)
        self.verified_status = verified_status
        self.created = []
        self.deleted = []
        self.customers = []
        self.verifications = []

    def find_or_create_customer(self, email, user_id, role="teen"):
        self.customers.append((email, user_id, role))
        return "cus_test"

    def create_bank_account(self, customer_id, *, routing_number, account_number, account_holder_name, account_type, user_id):
        self.created.append({
            "customer_id": customer_id,
            "routing_number": routing_number,
            "account_number": account_number,
            "account_holder_name": account_holder_name,
            "account_type": account_type,
        })
        return ExternalBankAccount(id="ba_test", status=self.status, bank_name=self.bank_name)

    def delete_bank_account(self, customer_id, external_account_id):
        self.deleted.append((customer_id, external_account_id))

    def verify_bank_account(self, customer_id, external_account_id, amounts):
        self.verifications.append((customer_id, external_account_id, list(amounts)))
        if sorted(amounts) != self.deposits:
            raise ValidationError("Verification failed. The amounts you entered do not match. Please try again.")
        return ExternalBankAccount(id=external_account_id, status=self.verified_status, bank_name=self.bank_name)


# ============================================================
# Seed data
# ============================================================
def seed_signup(db, token="tok-1", parent_email="p@x.com", status="pending", expires_in=timedelta(days=7), **extra):
    return db.add_row(
        "pending_teen_signups",
        approval_token=token,
        parent_email=parent_email,
        full_name=extra.pop("full_name", "Sam Teen"),
        date_of_birth=extra.pop("date_of_birth", "2010-05-01"),
        status=status,
        token_expires_at=(utcnow() + expires_in).isoformat(),
        **extra,
    )
