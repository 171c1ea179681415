from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class Store(Base):
    __tablename__ = "stores"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False, unique=True)
    is_open = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    categories = relationship("Category", back_populates="store", cascade="all, delete-orphan")


class Category(Base):
    __tablename__ = "categories"

    id = Column(String, primary_key=True)
    store_id = Column(String, ForeignKey("stores.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False)
    category_type = Column(String, nullable=True)  # 'pizza', 'standard', ...
    display_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    store = relationship("Store", back_populates="categories")
    sizes = relationship("PizzaSize", back_populates="category", cascade="all, delete-orphan")
    products = relationship("Product", back_populates="category")
    option_groups = relationship("CategoryOptionGroup", back_populates="category", cascade="all, delete-orphan")


# =============================================================================
# Pizza catalog: sizes and per-size priced attributes
# =============================================================================

class PizzaSize(Base):
    __tablename__ = "pizza_sizes"

    id = Column(String, primary_key=True)
    store_id = Column(String, ForeignKey("stores.id"), nullable=False, index=True)
    category_id = Column(String, ForeignKey("categories.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    slices = Column(Integer, nullable=False, default=8)
    max_flavors = Column(Integer, nullable=False, default=1)
    base_price = Column(Float, nullable=False, default=0.0)
    image_url = Column(String, nullable=True)
    display_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    category = relationship("Category", back_populates="sizes")


class PizzaFlavor(Base):
    __tablename__ = "pizza_flavors"

    id = Column(String, primary_key=True)
    store_id = Column(String, ForeignKey("stores.id"), nullable=False, index=True)
    category_id = Column(String, ForeignKey("categories.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    flavor_type = Column(String, nullable=False, default="salgada")  # 'salgada', 'doce', ...
    is_premium = Column(Boolean, nullable=False, default=False)
    image_url = Column(String, nullable=True)
    display_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    prices = relationship("PizzaFlavorPrice", back_populates="flavor", cascade="all, delete-orphan")


class PizzaFlavorPrice(Base):
    __tablename__ = "pizza_flavor_prices"

    id = Column(Integer, primary_key=True, autoincrement=True)
    flavor_id = Column(String, ForeignKey("pizza_flavors.id"), nullable=False)
    size_id = Column(String, ForeignKey("pizza_sizes.id"), nullable=False)
    price = Column(Float, nullable=False, default=0.0)
    surcharge = Column(Float, nullable=False, default=0.0)
    is_available = Column(Boolean, nullable=False, default=True)

    flavor = relationship("PizzaFlavor", back_populates="prices")

    __table_args__ = (
        UniqueConstraint("flavor_id", "size_id", name="uq_flavor_price_size"),
        Index("ix_flavor_prices_size", "size_id"),
    )


class PizzaEdge(Base):
    __tablename__ = "pizza_edges"

    id = Column(String, primary_key=True)
    store_id = Column(String, ForeignKey("stores.id"), nullable=False, index=True)
    category_id = Column(String, ForeignKey("categories.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    display_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    prices = relationship("PizzaEdgePrice", back_populates="edge", cascade="all, delete-orphan")


class PizzaEdgePrice(Base):
    __tablename__ = "pizza_edge_prices"

    id = Column(Integer, primary_key=True, autoincrement=True)
    edge_id = Column(String, ForeignKey("pizza_edges.id"), nullable=False)
    size_id = Column(String, ForeignKey("pizza_sizes.id"), nullable=False)
    price = Column(Float, nullable=False, default=0.0)
    is_available = Column(Boolean, nullable=False, default=True)

    edge = relationship("PizzaEdge", back_populates="prices")

    __table_args__ = (
        UniqueConstraint("edge_id", "size_id", name="uq_edge_price_size"),
    )


class PizzaDough(Base):
    __tablename__ = "pizza_doughs"

    id = Column(String, primary_key=True)
    store_id = Column(String, ForeignKey("stores.id"), nullable=False, index=True)
    category_id = Column(String, ForeignKey("categories.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    display_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    prices = relationship("PizzaDoughPrice", back_populates="dough", cascade="all, delete-orphan")


class PizzaDoughPrice(Base):
    __tablename__ = "pizza_dough_prices"

    id = Column(Integer, primary_key=True, autoincrement=True)
    dough_id = Column(String, ForeignKey("pizza_doughs.id"), nullable=False)
    size_id = Column(String, ForeignKey("pizza_sizes.id"), nullable=False)
    price = Column(Float, nullable=False, default=0.0)
    is_available = Column(Boolean, nullable=False, default=True)

    dough = relationship("PizzaDough", back_populates="prices")

    __table_args__ = (
        UniqueConstraint("dough_id", "size_id", name="uq_dough_price_size"),
    )


# =============================================================================
# Option groups (add-ons) and plain products
# =============================================================================

class CategoryOptionGroup(Base):
    __tablename__ = "category_option_groups"

    id = Column(String, primary_key=True)
    store_id = Column(String, ForeignKey("stores.id"), nullable=False, index=True)
    category_id = Column(String, ForeignKey("categories.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    is_primary = Column(Boolean, nullable=False, default=False)  # primary groups hold the product itself
    display_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    category = relationship("Category", back_populates="option_groups")
    items = relationship("CategoryOptionItem", back_populates="group", cascade="all, delete-orphan")


class CategoryOptionItem(Base):
    __tablename__ = "category_option_items"

    id = Column(String, primary_key=True)
    store_id = Column(String, ForeignKey("stores.id"), nullable=False, index=True)
    group_id = Column(String, ForeignKey("category_option_groups.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    additional_price = Column(Float, nullable=True)
    image_url = Column(String, nullable=True)
    display_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    group = relationship("CategoryOptionGroup", back_populates="items")


class Product(Base):
    __tablename__ = "products"

    id = Column(String, primary_key=True)
    store_id = Column(String, ForeignKey("stores.id"), nullable=False, index=True)
    category_id = Column(String, ForeignKey("categories.id"), nullable=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Float, nullable=False)
    promotional_price = Column(Float, nullable=True)
    image_url = Column(String, nullable=True)
    is_available = Column(Boolean, nullable=False, default=True)
    is_featured = Column(Boolean, nullable=False, default=False)
    display_order = Column(Integer, nullable=False, default=0)

    category = relationship("Category", back_populates="products")


# =============================================================================
# Flow and upsell configuration
# =============================================================================

class CategoryFlowStep(Base):
    """One node of a category's customization chain, edited by the store."""
    __tablename__ = "category_flow_steps"

    id = Column(Integer, primary_key=True, autoincrement=True)
    store_id = Column(String, ForeignKey("stores.id"), nullable=False)
    category_id = Column(String, ForeignKey("categories.id"), nullable=False)
    step_type = Column(String, nullable=False)  # 'flavor', 'edge', 'dough', 'drink', 'additionals', 'combo'
    step_order = Column(Integer, nullable=False, default=0)
    is_enabled = Column(Boolean, nullable=False, default=True)
    next_step_id = Column(String, nullable=True)  # another step_type, 'cart' or NULL

    __table_args__ = (
        UniqueConstraint("store_id", "category_id", "step_type", name="uq_flow_step_category_type"),
        Index("ix_flow_steps_store", "store_id"),
    )


class UpsellModal(Base):
    __tablename__ = "upsell_modals"

    id = Column(String, primary_key=True)
    store_id = Column(String, ForeignKey("stores.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    trigger_category_id = Column(String, ForeignKey("categories.id"), nullable=True, index=True)
    target_category_id = Column(String, ForeignKey("categories.id"), nullable=True)
    content_type = Column(String, nullable=True)  # see flow.models.ContentType
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    button_text = Column(String, nullable=True)
    secondary_button_text = Column(String, nullable=True)
    icon = Column(String, nullable=True)
    max_products = Column(Integer, nullable=True)
    display_order = Column(Integer, nullable=True)
    primary_redirect_category_id = Column(String, nullable=True)
    secondary_redirect_category_id = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
