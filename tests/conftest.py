from collections import Counter

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storefront_flow.app_factory import create_app
from storefront_flow.config import EXCLUDED_ADDITIONAL_GROUP_NAMES
from storefront_flow.flow.errors import FetchFailure
from storefront_flow.flow.interfaces import CatalogGateway, ProductBrowser
from storefront_flow.flow.models import (
    AdditionalItem,
    Category,
    ContentType,
    OptionKind,
    PizzaSize,
    PriceableOption,
    Product,
)
from storefront_flow.models import Base
from storefront_flow.routes import flow as flow_routes
from storefront_flow.routes import limiter
from storefront_flow.seed_menu import seed_demo_catalog
from storefront_flow.services.cart import InMemoryCart, LoggingNotifier
from storefront_flow.services.catalog import SqlCatalogGateway
from storefront_flow.services.session import SESSION_CACHE


PIZZA = Category(id="cat-pizza", name="Pizza", slug="pizza")

LARGE = PizzaSize(id="size-l", name="Grande", category_id="cat-pizza", max_flavors=2, base_price=30.0)
MEDIUM = PizzaSize(id="size-m", name="Média", category_id="cat-pizza", max_flavors=1, base_price=25.0)
SMALL = PizzaSize(id="size-s", name="Broto", category_id="cat-pizza", max_flavors=1, base_price=20.0)

MARGHERITA = PriceableOption(id="flv-margherita", name="Margherita", price=30.0, flavor_type="salgada")
PEPPERONI = PriceableOption(id="flv-pepperoni", name="Pepperoni", price=30.0, flavor_type="salgada")
SHRIMP = PriceableOption(
    id="flv-camarao", name="Camarão", price=30.0, surcharge=8.0, is_premium=True, flavor_type="salgada",
)
CHOCOLATE = PriceableOption(id="flv-chocolate", name="Chocolate", price=32.0, flavor_type="doce")

CATUPIRY = PriceableOption(id="edge-catupiry", name="Catupiry", price=6.0)
CHEDDAR = PriceableOption(id="edge-cheddar", name="Cheddar", price=7.0)
THIN = PriceableOption(id="dough-fina", name="Fina", price=0.0)
WHOLE_WHEAT = PriceableOption(id="dough-integral", name="Integral", price=4.0)
WHOLE_WHEAT_M = PriceableOption(id="dough-integral", name="Integral", price=3.0)

COKE = Product(id="prod-coca", name="Coca-Cola 2L", price=12.0, promotional_price=10.0,
               category_id="cat-drinks", category_name="Bebidas")
GUARANA = Product(id="prod-guarana", name="Guaraná 2L", price=9.0,
                  category_id="cat-drinks", category_name="Bebidas")
PETIT = Product(id="prod-petit", name="Petit Gâteau", price=15.0,
                category_id="cat-desserts", category_name="Sobremesas")

BACON = AdditionalItem(id="add-bacon", name="Bacon", price=4.0, group_name="Adicionais")
OLIVES = AdditionalItem(id="add-azeitona", name="Azeitona extra", price=2.5, group_name="Adicionais")
STUFFED_EDGE = AdditionalItem(id="add-borda", name="Borda recheada", price=7.0, group_name="Bordas")


class FakeCatalogGateway(CatalogGateway):
    """In-memory CatalogGateway with per-method failure injection and call counts."""

    def __init__(self):
        self.categories = {PIZZA.id: PIZZA}
        self.sizes = {PIZZA.id: [LARGE, MEDIUM, SMALL]}
        self.options = {
            (PIZZA.id, LARGE.id, OptionKind.FLAVOR): [MARGHERITA, PEPPERONI, SHRIMP, CHOCOLATE],
            (PIZZA.id, MEDIUM.id, OptionKind.FLAVOR): [MARGHERITA, PEPPERONI],
            (PIZZA.id, LARGE.id, OptionKind.EDGE): [CATUPIRY, CHEDDAR],
            (PIZZA.id, LARGE.id, OptionKind.DOUGH): [THIN, WHOLE_WHEAT],
            (PIZZA.id, MEDIUM.id, OptionKind.DOUGH): [WHOLE_WHEAT_M],
        }
        self.flow_config = {}
        self.prompts = {}
        self.quick_add = {}
        self.drinks = [COKE, GUARANA]
        self.additionals = {PIZZA.id: [BACON, OLIVES, STUFFED_EDGE]}
        self.store_open = True
        self.failing: set[str] = set()
        self.calls: Counter = Counter()

    def _enter(self, method: str) -> None:
        self.calls[method] += 1
        if method in self.failing:
            raise FetchFailure(f"{method} failed")

    def fetch_category(self, category_id):
        self._enter("fetch_category")
        return self.categories.get(category_id)

    def fetch_sizes(self, category_id):
        self._enter("fetch_sizes")
        return list(self.sizes.get(category_id, []))

    def fetch_options_for_size(self, category_id, size_id, kind):
        self._enter("fetch_options_for_size")
        return list(self.options.get((category_id, size_id, kind), []))

    def fetch_flow_config(self, store_id):
        self._enter("fetch_flow_config")
        return self.flow_config

    def fetch_upsell_prompts(self, store_id, trigger_category_id):
        self._enter("fetch_upsell_prompts")
        return list(self.prompts.get(trigger_category_id, []))

    def fetch_quick_add_products(self, store_id, prompt):
        self._enter("fetch_quick_add_products")
        if prompt.id in self.quick_add:
            products = self.quick_add[prompt.id]
        elif prompt.content_type == ContentType.DRINK:
            products = self.drinks
        else:
            products = []
        return list(products)[: prompt.max_products]

    def fetch_drinks(self, store_id, limit):
        self._enter("fetch_drinks")
        return list(self.drinks)[:limit]

    def fetch_additionals(self, store_id, category_id, exclude_dedicated_groups=False):
        self._enter("fetch_additionals")
        items = list(self.additionals.get(category_id, []))
        if exclude_dedicated_groups:
            items = [i for i in items if i.group_name.lower() not in EXCLUDED_ADDITIONAL_GROUP_NAMES]
        return items

    def is_store_open(self, store_id):
        self._enter("is_store_open")
        return self.store_open


class RecordingBrowser(ProductBrowser):
    def __init__(self):
        self.browsed = []

    def browse(self, store_id, category_id):
        self.browsed.append((store_id, category_id))


@pytest.fixture
def gateway():
    """Fake catalog with a pizza category and the default (unconfigured) flow."""
    return FakeCatalogGateway()


@pytest.fixture
def cart():
    return InMemoryCart()


@pytest.fixture
def notifier():
    return LoggingNotifier()


@pytest.fixture
def browser():
    return RecordingBrowser()


@pytest.fixture
def session_factory():
    """In-memory SQLite database seeded with the demo catalog.

    Uses StaticPool so all connections share the same in-memory database.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    seed_demo_catalog(session)
    session.close()

    yield TestingSessionLocal

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def sql_gateway(session_factory):
    return SqlCatalogGateway(session_factory)


@pytest.fixture
def client(sql_gateway):
    """Shared FastAPI TestClient backed by the seeded in-memory database."""
    app = create_app()
    app.dependency_overrides[flow_routes.get_gateway] = lambda: sql_gateway

    original_enabled = limiter.enabled
    limiter.enabled = False
    SESSION_CACHE.clear()

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    SESSION_CACHE.clear()
    limiter.enabled = original_enabled
