"""
Catalog Gateway over SQLAlchemy
===============================

This module implements the CatalogGateway interface consumed by the flow
engine on top of the catalog tables in storefront_flow.models.

Every fetch opens a short-lived session from the injected session factory and
maps ORM rows to the engine's pydantic read models. Database errors are
wrapped in FetchFailure so the engine can treat them as "no data" for the
affected step.

Per-Size Pricing:
-----------------
Flavors, edges and doughs are offered for a size only when a price row exists
for that (option, size) pair with is_available set. Options without such a row
are omitted; they are never priced as zero.

Drink Detection:
----------------
Drink categories are detected by name or slug containing one of
DRINK_CATEGORY_KEYWORDS ("bebida", "drink", "refrigerante", "suco").

Usage:
------
    from storefront_flow.db import SessionLocal
    from storefront_flow.services.catalog import SqlCatalogGateway

    gateway = SqlCatalogGateway(SessionLocal)
    sizes = gateway.fetch_sizes("cat-pizza")
"""

import logging
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import (
    DRINK_CATEGORY_KEYWORDS,
    EXCLUDED_ADDITIONAL_GROUP_NAMES,
    QUICK_ADD_MAX_PRODUCTS,
)
from ..flow.errors import FetchFailure
from ..flow.interfaces import CatalogGateway
from ..flow.models import (
    AdditionalItem,
    Category,
    ContentType,
    FlowStepConfig,
    OptionKind,
    PizzaSize,
    PriceableOption,
    Product,
    StoreFlowConfig,
    UpsellPromptConfig,
)
from .. import models

logger = logging.getLogger(__name__)


class SqlCatalogGateway(CatalogGateway):
    """CatalogGateway backed by the catalog tables."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    @contextmanager
    def _session(self, description: str) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
        except SQLAlchemyError as e:
            logger.error("Database error while fetching %s: %s", description, e)
            raise FetchFailure(f"Failed to fetch {description}") from e
        finally:
            db.close()

    # =========================================================================
    # Categories and sizes
    # =========================================================================

    def fetch_category(self, category_id: str) -> Optional[Category]:
        with self._session(f"category {category_id}") as db:
            row = db.query(models.Category).filter(models.Category.id == category_id).first()
            if row is None:
                return None
            return Category(id=row.id, name=row.name, slug=row.slug)

    def fetch_sizes(self, category_id: str) -> list[PizzaSize]:
        with self._session(f"sizes for category {category_id}") as db:
            rows = (
                db.query(models.PizzaSize)
                .filter(
                    models.PizzaSize.category_id == category_id,
                    models.PizzaSize.is_active.is_(True),
                )
                .order_by(models.PizzaSize.display_order, models.PizzaSize.name)
                .all()
            )
            return [
                PizzaSize(
                    id=row.id,
                    name=row.name,
                    category_id=row.category_id,
                    max_flavors=row.max_flavors,
                    base_price=row.base_price,
                    image_url=row.image_url,
                )
                for row in rows
            ]

    # =========================================================================
    # Per-size options
    # =========================================================================

    def fetch_options_for_size(
        self, category_id: str, size_id: str, kind: OptionKind
    ) -> list[PriceableOption]:
        with self._session(f"{kind.value} options for size {size_id}") as db:
            if kind == OptionKind.FLAVOR:
                return self._flavors_for_size(db, category_id, size_id)
            if kind == OptionKind.EDGE:
                return self._attributes_for_size(
                    db, models.PizzaEdge, models.PizzaEdgePrice,
                    models.PizzaEdgePrice.edge_id, category_id, size_id,
                )
            return self._attributes_for_size(
                db, models.PizzaDough, models.PizzaDoughPrice,
                models.PizzaDoughPrice.dough_id, category_id, size_id,
            )

    def _flavors_for_size(self, db: Session, category_id: str, size_id: str) -> list[PriceableOption]:
        rows = (
            db.query(models.PizzaFlavor, models.PizzaFlavorPrice)
            .join(models.PizzaFlavorPrice, models.PizzaFlavorPrice.flavor_id == models.PizzaFlavor.id)
            .filter(
                models.PizzaFlavor.category_id == category_id,
                models.PizzaFlavor.is_active.is_(True),
                models.PizzaFlavorPrice.size_id == size_id,
                models.PizzaFlavorPrice.is_available.is_(True),
            )
            .order_by(models.PizzaFlavor.display_order, models.PizzaFlavor.name)
            .all()
        )
        return [
            PriceableOption(
                id=flavor.id,
                name=flavor.name,
                description=flavor.description,
                price=price_row.price,
                surcharge=price_row.surcharge or 0.0,
                is_premium=flavor.is_premium,
                flavor_type=flavor.flavor_type,
                image_url=flavor.image_url,
            )
            for flavor, price_row in rows
        ]

    def _attributes_for_size(
        self, db: Session, option_model, price_model, price_fk, category_id: str, size_id: str
    ) -> list[PriceableOption]:
        rows = (
            db.query(option_model, price_model)
            .join(price_model, price_fk == option_model.id)
            .filter(
                option_model.category_id == category_id,
                option_model.is_active.is_(True),
                price_model.size_id == size_id,
                price_model.is_available.is_(True),
            )
            .order_by(option_model.display_order, option_model.name)
            .all()
        )
        return [
            PriceableOption(
                id=option.id,
                name=option.name,
                description=getattr(option, "description", None),
                price=price_row.price,
            )
            for option, price_row in rows
        ]

    # =========================================================================
    # Flow and upsell configuration
    # =========================================================================

    def fetch_flow_config(self, store_id: str) -> StoreFlowConfig:
        with self._session(f"flow config for store {store_id}") as db:
            rows = (
                db.query(models.CategoryFlowStep)
                .filter(models.CategoryFlowStep.store_id == store_id)
                .order_by(models.CategoryFlowStep.category_id, models.CategoryFlowStep.step_order)
                .all()
            )
            config: StoreFlowConfig = {}
            for row in rows:
                config.setdefault(row.category_id, {})[row.step_type] = FlowStepConfig(
                    enabled=row.is_enabled,
                    next_step_id=row.next_step_id,
                )
            logger.debug("Loaded flow config for %d categories of store %s", len(config), store_id)
            return config

    def fetch_upsell_prompts(
        self, store_id: str, trigger_category_id: str
    ) -> list[UpsellPromptConfig]:
        with self._session(f"upsell prompts for category {trigger_category_id}") as db:
            rows = (
                db.query(models.UpsellModal)
                .filter(
                    models.UpsellModal.store_id == store_id,
                    models.UpsellModal.trigger_category_id == trigger_category_id,
                    models.UpsellModal.is_active.is_(True),
                )
                .all()
            )
            prompts = [_prompt_from_row(row) for row in rows]
            return sorted(prompts, key=lambda p: p.display_order)

    # =========================================================================
    # Products
    # =========================================================================

    def fetch_quick_add_products(
        self, store_id: str, prompt: UpsellPromptConfig
    ) -> list[Product]:
        with self._session(f"quick-add products for prompt {prompt.id}") as db:
            if prompt.target_category_id:
                category_ids = [prompt.target_category_id]
            elif prompt.content_type == ContentType.DRINK:
                category_ids = self._drink_category_ids(db, store_id)
            else:
                category_ids = []
            if not category_ids:
                return []
            return self._products_in(db, store_id, category_ids, prompt.max_products)

    def fetch_drinks(self, store_id: str, limit: int) -> list[Product]:
        with self._session(f"drinks for store {store_id}") as db:
            category_ids = self._drink_category_ids(db, store_id)
            if not category_ids:
                return []
            return self._products_in(db, store_id, category_ids, limit)

    def _drink_category_ids(self, db: Session, store_id: str) -> list[str]:
        categories = (
            db.query(models.Category)
            .filter(models.Category.store_id == store_id, models.Category.is_active.is_(True))
            .all()
        )
        return [c.id for c in categories if is_drink_category(c.name, c.slug)]

    def _products_in(
        self, db: Session, store_id: str, category_ids: list[str], limit: int
    ) -> list[Product]:
        rows = (
            db.query(models.Product)
            .filter(
                models.Product.store_id == store_id,
                models.Product.category_id.in_(category_ids),
                models.Product.is_available.is_(True),
            )
            .order_by(
                models.Product.is_featured.desc(),
                models.Product.display_order,
                models.Product.name,
            )
            .limit(limit)
            .all()
        )
        return [
            Product(
                id=row.id,
                name=row.name,
                price=row.price,
                promotional_price=row.promotional_price,
                image_url=row.image_url,
                category_id=row.category_id,
                category_name=row.category.name if row.category else None,
            )
            for row in rows
        ]

    # =========================================================================
    # Add-ons
    # =========================================================================

    def fetch_additionals(
        self, store_id: str, category_id: str, exclude_dedicated_groups: bool = False
    ) -> list[AdditionalItem]:
        with self._session(f"additionals for category {category_id}") as db:
            groups = (
                db.query(models.CategoryOptionGroup)
                .filter(
                    models.CategoryOptionGroup.store_id == store_id,
                    models.CategoryOptionGroup.category_id == category_id,
                    models.CategoryOptionGroup.is_primary.is_(False),
                    models.CategoryOptionGroup.is_active.is_(True),
                )
                .order_by(models.CategoryOptionGroup.display_order)
                .all()
            )
            if exclude_dedicated_groups:
                groups = [
                    g for g in groups
                    if g.name.strip().lower() not in EXCLUDED_ADDITIONAL_GROUP_NAMES
                ]

            items: list[AdditionalItem] = []
            for group in groups:
                active = sorted(
                    (i for i in group.items if i.is_active),
                    key=lambda i: i.display_order,
                )
                for item in active:
                    items.append(
                        AdditionalItem(
                            id=item.id,
                            name=item.name,
                            price=item.additional_price or 0.0,
                            description=item.description,
                            image_url=item.image_url,
                            group_name=group.name,
                        )
                    )
            return items

    # =========================================================================
    # Store status
    # =========================================================================

    def is_store_open(self, store_id: str) -> bool:
        with self._session(f"status of store {store_id}") as db:
            store = db.query(models.Store).filter(models.Store.id == store_id).first()
            if store is None:
                logger.warning("Unknown store %s; treating as closed", store_id)
                return False
            return bool(store.is_open)


def is_drink_category(name: str, slug: Optional[str]) -> bool:
    haystack = f"{name} {slug or ''}".lower()
    return any(keyword in haystack for keyword in DRINK_CATEGORY_KEYWORDS)


def _prompt_from_row(row: models.UpsellModal) -> UpsellPromptConfig:
    return UpsellPromptConfig(
        id=row.id,
        trigger_category_id=row.trigger_category_id,
        target_category_id=row.target_category_id,
        content_type=ContentType.parse(row.content_type),
        title=row.title,
        description=row.description,
        button_text=row.button_text,
        secondary_button_text=row.secondary_button_text,
        icon=row.icon,
        max_products=row.max_products or QUICK_ADD_MAX_PRODUCTS,
        display_order=row.display_order or 0,
        primary_redirect_category_id=row.primary_redirect_category_id,
        secondary_redirect_category_id=row.secondary_redirect_category_id,
    )
