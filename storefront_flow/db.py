"""
Database connection management.

The flow engine only reads catalog data. The session factory defined here is
handed to SqlCatalogGateway, which opens a short-lived Session per read.

Environment variables:
    - DATABASE_URL: SQLAlchemy connection URL (default: sqlite:///./storefront.db)
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from .config import DATABASE_URL
from .models import Base

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    DATABASE_URL,
    pool_pre_ping=True,
    echo=False,
    connect_args=_connect_args,
)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)


def init_db() -> None:
    """Create the catalog tables if they do not exist."""
    Base.metadata.create_all(bind=engine)
