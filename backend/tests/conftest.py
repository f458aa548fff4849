import os

os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("ENV", "test")
os.environ.setdefault("ENSURE_INDEXES_ON_STARTUP", "false")

from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from models.order import OrderCreate, OrderStatus
from models.product import Product
from utils.hash import hash_password
from utils.jwt import create_access_token
from utils.order_lifecycle import InvalidTransition, create_order_record
from utils.order_store import OrderStoreFailure
from utils.role_cache import CacheUnavailable
from utils.role_resolver import RoleResolver
from utils.user_directory import DirectoryLookupFailure


# ============================================================================
# In-memory collaborators
# ============================================================================

class MemoryCache:
    def __init__(self):
        self.data = {}
        self.fail_reads = False
        self.fail_writes = False

    async def get(self, key):
        if self.fail_reads:
            raise CacheUnavailable("cache unavailable")
        return self.data.get(key)

    async def set(self, key, value):
        if self.fail_writes:
            raise CacheUnavailable("cache unavailable")
        self.data[key] = value

    async def remove(self, key):
        self.data.pop(key, None)


_PASSWORD = "Passw0rd!"
_PASSWORD_HASH = hash_password(_PASSWORD)


class FakeDirectory:
    def __init__(self):
        self.users = {}
        self.lookups = 0
        self.fail = False

    def add(self, user_id, email, role, status="active"):
        self.users[email] = {
            "_id": user_id,
            "email": email,
            "display_name": user_id.title(),
            "role": role,
            "status": status,
            "password": _PASSWORD_HASH,
            "created_at": datetime(2024, 1, 1),
        }
        return self.users[email]

    async def lookup(self, email):
        self.lookups += 1
        if self.fail:
            raise DirectoryLookupFailure("directory unavailable")
        user = self.users.get(email.lower())
        if not user:
            return None
        return {"role": user["role"], "status": user["status"]}

    async def find_by_email(self, email):
        return self.users.get(email.lower())

    async def find_by_id(self, user_id):
        return next((u for u in self.users.values() if u["_id"] == user_id), None)

    async def create(self, *, email, password_hash, display_name):
        user = {
            "_id": f"user-{len(self.users) + 1}",
            "email": email.lower(),
            "display_name": display_name,
            "role": "buyer",
            "status": "active",
            "password": password_hash,
            "created_at": datetime(2024, 1, 1),
        }
        self.users[user["email"]] = user
        return user

    async def update(self, user_id, changes):
        user = await self.find_by_id(user_id)
        user.update(changes)
        return user

    async def list(self, *, role=None, skip=0, limit=10):
        users = [u for u in self.users.values() if role is None or u["role"] == role]
        return len(users), users[skip:skip + limit]


class MemoryOrderStore:
    def __init__(self):
        self.products = {}
        self.orders = {}
        self.fail = False
        self._counter = 0

    def new_order_id(self):
        self._counter += 1
        return f"order-{self._counter}"

    def _check(self):
        if self.fail:
            raise OrderStoreFailure("order store unavailable")

    async def get_product(self, product_id):
        self._check()
        return self.products.get(product_id)

    async def insert_order(self, order):
        self._check()
        self.orders[order.id] = order
        return order

    async def get_order(self, order_id):
        self._check()
        return self.orders.get(order_id)

    async def list_by_buyer(self, buyer_id):
        self._check()
        return [o for o in self.orders.values() if o.buyer_id == buyer_id]

    async def list_by_status(self, statuses=None, *, skip=0, limit=10):
        self._check()
        wanted = None if statuses is None else {OrderStatus(s) for s in statuses}
        orders = [o for o in self.orders.values() if wanted is None or o.status in wanted]
        return len(orders), orders[skip:skip + limit]

    async def save_transition(self, before, after):
        self._check()
        stored = self.orders[before.id]
        if stored.status != before.status:
            raise InvalidTransition(stored.status, after.status, "Order was changed by someone else")
        self.orders[after.id] = after
        return after


class FakeCollection:
    def __init__(self):
        self.docs = []

    async def insert_one(self, doc):
        self.docs.append(doc)


class FakeDB:
    def __init__(self):
        self.audit_logs = FakeCollection()


class Clock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


# ============================================================================
# Fixtures
# ============================================================================

BUYER_EMAIL = "buyer@garmentflow.com"
OTHER_BUYER_EMAIL = "other@garmentflow.com"
MANAGER_EMAIL = "manager@garmentflow.com"
ADMIN_EMAIL = "admin@garmentflow.com"
SUSPENDED_EMAIL = "suspended@garmentflow.com"


@pytest.fixture
def cache():
    return MemoryCache()


@pytest.fixture
def directory():
    d = FakeDirectory()
    d.add("buyer", BUYER_EMAIL, "buyer")
    d.add("other", OTHER_BUYER_EMAIL, "buyer")
    d.add("manager", MANAGER_EMAIL, "manager")
    d.add("admin", ADMIN_EMAIL, "admin")
    d.add("suspended", SUSPENDED_EMAIL, "manager", status="suspended")
    return d


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def resolver(cache, directory, clock):
    return RoleResolver(cache, directory, ttl_seconds=3600, clock=clock)


@pytest.fixture
def product():
    return Product(
        id="prod-1",
        title="Premium Cotton T-Shirt",
        price=500,
        minimum_order_quantity=3,
        available_quantity=10,
        payment_options=["Cash on Delivery", "PayFast"],
    )


@pytest.fixture
def store(product):
    s = MemoryOrderStore()
    s.products[product.id] = product
    return s


@pytest.fixture
def booking():
    return OrderCreate(
        product_id="prod-1",
        quantity=5,
        delivery_address="House 12, Road 4, Dhaka",
        contact_number="01700000000",
        payment_option="Cash on Delivery",
    )


@pytest.fixture
def pending_order(product, booking):
    return create_order_record(
        product=product,
        payload=booking,
        buyer_id="buyer",
        order_id="order-1",
        now=datetime(2024, 5, 1, 10, 0),
    )


@pytest.fixture
def fake_db():
    return FakeDB()


@pytest.fixture
def client(cache, directory, store, fake_db):
    from database import get_db
    from main import app
    from utils.dependencies import get_client_cache, get_order_store, get_user_directory

    app.dependency_overrides[get_db] = lambda: fake_db
    app.dependency_overrides[get_client_cache] = lambda: cache
    app.dependency_overrides[get_user_directory] = lambda: directory
    app.dependency_overrides[get_order_store] = lambda: store

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


def auth(email):
    return {"Authorization": f"Bearer {create_access_token(email)}"}
