#!/usr/bin/env python3
"""
Database models and configuration for the gift registry.
Handles the items and config tables on PostgreSQL (or SQLite for local use).
"""

import os
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import create_engine, Column, String, DateTime, Text, JSON, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.dialects import postgresql, sqlite
import logging

from registry.errors import StoreError

logger = logging.getLogger('gift_registry.database')

# Database URL - adjust for your PostgreSQL setup
DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///gift_registry.db')

RECIPIENTS_KEY = 'recipients'

Base = declarative_base()
engine = None
SessionLocal = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Item(Base):
    """A gift on the registry. ``claimed_at`` is NULL while the item is open."""
    __tablename__ = "items"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(500), nullable=False)
    url = Column(Text, nullable=True)
    price = Column(String(100), nullable=True)
    size = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    claimed_at = Column(DateTime(timezone=True), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)


class ConfigEntry(Base):
    """Key/value settings; one row per key."""
    __tablename__ = "config"

    key = Column(String(100), primary_key=True)
    value = Column(JSON, nullable=False, default=dict)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


def configure(url: Optional[str] = None):
    """(Re)bind the module-level engine and session factory to *url*."""
    global engine, SessionLocal
    url = url or DATABASE_URL
    kwargs = {}
    if url.startswith('sqlite'):
        # Sessions are opened per request, possibly on different threads.
        kwargs['connect_args'] = {'check_same_thread': False, 'timeout': 15}
    engine = create_engine(url, echo=False, **kwargs)
    SessionLocal = sessionmaker(autoflush=False, bind=engine)
    return engine


try:
    configure()
except Exception as e:
    logger.warning(f"Database engine could not be created: {e}")
    engine = None
    SessionLocal = None


def get_db():
    """Get database session."""
    if SessionLocal:
        db = SessionLocal()
        try:
            yield db
        finally:
            db.close()
    else:
        yield None


def init_db():
    """Initialize database tables."""
    if engine:
        try:
            Base.metadata.create_all(bind=engine)
            logger.info("Database tables initialized successfully")
            return True
        except Exception as e:
            logger.error(f"Failed to initialize database: {e}")
            return False
    return False


def check_connection(db) -> bool:
    """Return ``True`` if a trivial query succeeds on *db*."""
    if not db:
        return False
    try:
        db.execute(text('SELECT 1'))
        return True
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        return False


def _require(db):
    if db is None:
        raise StoreError('Database not available')


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------

def item_to_dict(item: Item) -> Dict:
    """Serialise *item* for JSON responses."""
    return {
        'id': item.id,
        'name': item.name,
        'item': item.name,
        'url': item.url,
        'price': item.price,
        'size': item.size,
        'notes': item.notes,
        'claimed': item.claimed_at is not None,
        'claimed_at': _isoformat(item.claimed_at),
        'created_at': _isoformat(item.created_at),
    }


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        # SQLite hands back naive values; they were written as UTC.
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def list_items(db) -> List[Item]:
    """Get all items, newest first."""
    _require(db)
    try:
        return db.query(Item).order_by(Item.created_at.desc()).all()
    except SQLAlchemyError as e:
        logger.error(f"Error listing items: {e}")
        db.rollback()
        raise StoreError() from e


def get_item(db, item_id: str) -> Optional[Item]:
    """Get a single item by id, or ``None``."""
    _require(db)
    try:
        return db.query(Item).filter(Item.id == str(item_id)).first()
    except SQLAlchemyError as e:
        logger.error(f"Error getting item {item_id}: {e}")
        db.rollback()
        raise StoreError() from e


def create_item(db, name: str, url: Optional[str] = None, price: Optional[str] = None,
                size: Optional[str] = None, notes: Optional[str] = None,
                created_at: Optional[datetime] = None) -> Item:
    """Insert a new, unclaimed item and return it."""
    _require(db)
    try:
        item = Item(name=name, url=url, price=price, size=size, notes=notes)
        if created_at is not None:
            item.created_at = created_at
        db.add(item)
        db.commit()
        db.refresh(item)
        logger.info(f"Created item {item.id} ({name})")
        return item
    except SQLAlchemyError as e:
        logger.error(f"Error creating item: {e}")
        db.rollback()
        raise StoreError() from e


def delete_item(db, item_id: str) -> bool:
    """Delete an item by id. Returns ``True`` if a row was removed."""
    _require(db)
    try:
        count = db.query(Item).filter(Item.id == str(item_id)).delete(synchronize_session=False)
        db.commit()
        if count:
            logger.info(f"Deleted item {item_id}")
        return bool(count)
    except SQLAlchemyError as e:
        logger.error(f"Error deleting item {item_id}: {e}")
        db.rollback()
        raise StoreError() from e


def claim_item(db, item_id: str, claimed_at: datetime) -> Optional[Item]:
    """Set ``claimed_at`` on an open item.

    The update is guarded by ``claimed_at IS NULL`` in the same statement, so
    of several concurrent callers exactly one sees a changed row.

    Returns:
        The claimed item, or ``None`` when the id is unknown or the item
        was already claimed.
    """
    _require(db)
    try:
        count = db.query(Item).filter(
            Item.id == str(item_id),
            Item.claimed_at.is_(None),
        ).update({Item.claimed_at: claimed_at}, synchronize_session=False)
        db.commit()
        if count != 1:
            return None
        return db.query(Item).filter(Item.id == str(item_id)).first()
    except SQLAlchemyError as e:
        logger.error(f"Error claiming item {item_id}: {e}")
        db.rollback()
        raise StoreError() from e


def release_claim(db, item_id: str, claimed_at: datetime) -> bool:
    """Clear ``claimed_at`` again, but only if it still holds *claimed_at*."""
    _require(db)
    try:
        count = db.query(Item).filter(
            Item.id == str(item_id),
            Item.claimed_at == claimed_at,
        ).update({Item.claimed_at: None}, synchronize_session=False)
        db.commit()
        return count == 1
    except SQLAlchemyError as e:
        logger.error(f"Error releasing claim on {item_id}: {e}")
        db.rollback()
        raise StoreError() from e


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

def get_config_value(db, key: str) -> Optional[Dict]:
    """Return the JSON value stored under *key*, or ``None``."""
    _require(db)
    try:
        entry = db.query(ConfigEntry).filter(ConfigEntry.key == key).first()
        return entry.value if entry else None
    except SQLAlchemyError as e:
        logger.error(f"Error reading config {key}: {e}")
        db.rollback()
        raise StoreError() from e


def set_config_value(db, key: str, value: Dict) -> Dict:
    """Insert or overwrite the value stored under *key* (last writer wins)."""
    _require(db)
    try:
        dialect = db.get_bind().dialect.name
        if dialect in ('postgresql', 'sqlite'):
            insert = postgresql.insert if dialect == 'postgresql' else sqlite.insert
            stmt = insert(ConfigEntry).values(key=key, value=value, updated_at=_utcnow())
            stmt = stmt.on_conflict_do_update(
                index_elements=['key'],
                set_={'value': stmt.excluded.value, 'updated_at': stmt.excluded.updated_at},
            )
            db.execute(stmt)
        else:
            db.merge(ConfigEntry(key=key, value=value, updated_at=_utcnow()))
        db.commit()
        logger.info(f"Config '{key}' updated")
        return value
    except SQLAlchemyError as e:
        logger.error(f"Error writing config {key}: {e}")
        db.rollback()
        raise StoreError() from e
