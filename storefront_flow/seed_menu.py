"""
Demo pizzeria catalog.

Seeds one open store with a pizza category (two active sizes, per-size flavor,
edge and dough prices, add-on groups, a configured flow chain and two upsell
prompts), a drinks category and a desserts category.

Run directly to seed the database at DATABASE_URL:

    python -m storefront_flow.seed_menu
"""

import logging

from sqlalchemy.orm import Session

from .models import (
    Category,
    CategoryFlowStep,
    CategoryOptionGroup,
    CategoryOptionItem,
    PizzaDough,
    PizzaDoughPrice,
    PizzaEdge,
    PizzaEdgePrice,
    PizzaFlavor,
    PizzaFlavorPrice,
    PizzaSize,
    Product,
    Store,
    UpsellModal,
)

logger = logging.getLogger(__name__)

DEMO_STORE_ID = "store-1"


def seed_demo_catalog(db: Session) -> bool:
    """
    Insert the demo catalog.

    Returns:
        False if the demo store already exists, True if it was seeded
    """
    if db.query(Store).filter(Store.id == DEMO_STORE_ID).first() is not None:
        logger.info("Demo store already exists. Not seeding again.")
        return False

    sid = DEMO_STORE_ID
    db.add(Store(id=sid, name="Pizzaria Demo", slug="pizzaria-demo", is_open=True))
    db.add_all([
        Category(id="cat-pizza", store_id=sid, name="Pizzas", slug="pizzas", category_type="pizza", display_order=0),
        Category(id="cat-drinks", store_id=sid, name="Bebidas", slug="bebidas", display_order=1),
        Category(id="cat-desserts", store_id=sid, name="Sobremesas", slug="sobremesas", display_order=2),
    ])
    db.flush()

    # Sizes
    db.add_all([
        PizzaSize(id="size-m", store_id=sid, category_id="cat-pizza", name="Média",
                  slices=6, max_flavors=2, base_price=40.0, display_order=0),
        PizzaSize(id="size-g", store_id=sid, category_id="cat-pizza", name="Grande",
                  slices=8, max_flavors=3, base_price=50.0, display_order=1),
        PizzaSize(id="size-broto", store_id=sid, category_id="cat-pizza", name="Broto",
                  slices=4, max_flavors=1, base_price=25.0, display_order=2, is_active=False),
    ])

    # Flavors: (id, name, flavor_type, premium, {size: (price, surcharge, available)})
    flavors = [
        ("flv-calabresa", "Calabresa", "salgada", False,
         {"size-m": (40.0, 0.0, True), "size-g": (50.0, 0.0, True)}),
        ("flv-mussarela", "Mussarela", "salgada", False,
         {"size-m": (38.0, 0.0, True), "size-g": (48.0, 0.0, True)}),
        ("flv-camarao", "Camarão", "salgada", True,
         {"size-m": (40.0, 12.0, True), "size-g": (50.0, 15.0, True)}),
        ("flv-portuguesa", "Portuguesa", "salgada", False,
         {"size-m": (42.0, 0.0, True), "size-g": (52.0, 0.0, False)}),
        ("flv-chocolate", "Chocolate", "doce", False,
         {"size-m": (42.0, 0.0, True)}),
    ]
    for order, (fid, name, flavor_type, premium, prices) in enumerate(flavors):
        db.add(PizzaFlavor(id=fid, store_id=sid, category_id="cat-pizza", name=name,
                           flavor_type=flavor_type, is_premium=premium, display_order=order))
        for size_id, (price, surcharge, available) in prices.items():
            db.add(PizzaFlavorPrice(flavor_id=fid, size_id=size_id, price=price,
                                    surcharge=surcharge, is_available=available))

    # Edges
    db.add_all([
        PizzaEdge(id="edge-catupiry", store_id=sid, category_id="cat-pizza", name="Catupiry", display_order=0),
        PizzaEdge(id="edge-cheddar", store_id=sid, category_id="cat-pizza", name="Cheddar", display_order=1),
    ])
    db.add_all([
        PizzaEdgePrice(edge_id="edge-catupiry", size_id="size-m", price=8.0),
        PizzaEdgePrice(edge_id="edge-catupiry", size_id="size-g", price=10.0),
        PizzaEdgePrice(edge_id="edge-cheddar", size_id="size-m", price=9.0),
    ])

    # Doughs
    db.add_all([
        PizzaDough(id="dough-fina", store_id=sid, category_id="cat-pizza", name="Fina", display_order=0),
        PizzaDough(id="dough-integral", store_id=sid, category_id="cat-pizza", name="Integral", display_order=1),
    ])
    db.add_all([
        PizzaDoughPrice(dough_id="dough-fina", size_id="size-m", price=0.0),
        PizzaDoughPrice(dough_id="dough-fina", size_id="size-g", price=0.0),
        PizzaDoughPrice(dough_id="dough-integral", size_id="size-m", price=5.0),
        PizzaDoughPrice(dough_id="dough-integral", size_id="size-g", price=6.0),
    ])

    # Option groups: the primary group holds the product itself, "Bordas"
    # duplicates the dedicated edge table
    db.add_all([
        CategoryOptionGroup(id="grp-pizza", store_id=sid, category_id="cat-pizza",
                            name="Pizza", is_primary=True, display_order=0),
        CategoryOptionGroup(id="grp-adicionais", store_id=sid, category_id="cat-pizza",
                            name="Adicionais", display_order=1),
        CategoryOptionGroup(id="grp-bordas", store_id=sid, category_id="cat-pizza",
                            name="Bordas", display_order=2),
    ])
    db.flush()
    db.add_all([
        CategoryOptionItem(id="add-bacon", store_id=sid, group_id="grp-adicionais",
                           name="Bacon", additional_price=4.0, display_order=0),
        CategoryOptionItem(id="add-azeitona", store_id=sid, group_id="grp-adicionais",
                           name="Azeitona extra", additional_price=2.5, display_order=1),
        CategoryOptionItem(id="add-borda-recheada", store_id=sid, group_id="grp-bordas",
                           name="Borda recheada", additional_price=7.0, display_order=0),
    ])

    # Products
    db.add_all([
        Product(id="prod-coca", store_id=sid, category_id="cat-drinks", name="Coca-Cola 2L",
                price=12.0, promotional_price=10.0, is_featured=True, display_order=1),
        Product(id="prod-guarana", store_id=sid, category_id="cat-drinks", name="Guaraná 2L",
                price=10.0, display_order=0),
        Product(id="prod-suco", store_id=sid, category_id="cat-drinks", name="Suco de Laranja",
                price=8.0, is_available=False, display_order=2),
        Product(id="prod-petit", store_id=sid, category_id="cat-desserts", name="Petit Gâteau",
                price=15.0, display_order=0),
    ])

    # Flow chain for pizzas
    chain = [("flavor", "edge"), ("edge", "dough"), ("dough", "drink"), ("drink", "cart")]
    for order, (step_type, next_step) in enumerate(chain):
        db.add(CategoryFlowStep(store_id=sid, category_id="cat-pizza", step_type=step_type,
                                step_order=order, is_enabled=True, next_step_id=next_step))

    # Upsell prompts after a pizza
    db.add_all([
        UpsellModal(id="ups-drinks", store_id=sid, name="Bebidas", trigger_category_id="cat-pizza",
                    content_type="drink", title="Que tal uma bebida?",
                    button_text="Ver bebidas", secondary_button_text="Não, obrigado",
                    max_products=4, display_order=0),
        UpsellModal(id="ups-dessert", store_id=sid, name="Sobremesa", trigger_category_id="cat-pizza",
                    target_category_id="cat-desserts", content_type="generic",
                    title="Uma sobremesa?", button_text="Ver sobremesas",
                    secondary_button_text="Pular", display_order=1),
    ])

    db.commit()
    logger.info("Seeded demo catalog for store %s", sid)
    return True


def main() -> None:
    from .db import SessionLocal, init_db
    from .logging_config import setup_logging

    setup_logging()
    init_db()
    db = SessionLocal()
    try:
        seed_demo_catalog(db)
    finally:
        db.close()


if __name__ == "__main__":
    main()
