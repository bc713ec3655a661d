from __future__ import annotations

from dataclasses import dataclass
from datetime import tzinfo

from flask import current_app, has_app_context

from lottoledger.errors import NotFoundError, StoreAccessError, ValidationError
from lottoledger.extensions import db
from lottoledger.models import Store
from lottoledger.services.concurrency import run_with_retry
from lottoledger.time_utils import resolve_timezone


@dataclass(frozen=True)
class StoreContext:
    """
    Store scope of one request or command.

    Built per request by the route layer (never a process-wide singleton)
    and passed explicitly to ledger commands.
    """
    store_id: int
    timezone: tzinfo


def create_store(name: str, code: str | None = None, timezone: str | None = None) -> Store:
    def _op():
        if not name or not name.strip():
            raise ValidationError("Store name is required")

        tz_name = timezone or default_timezone_name()
        try:
            resolve_timezone(tz_name)
        except ValueError as e:
            raise ValidationError(str(e))

        if code:
            existing = db.session.query(Store).filter_by(code=code).first()
            if existing:
                raise ValidationError(f"Store code '{code}' already exists")

        store = Store(name=name.strip(), code=code, timezone=tz_name)
        db.session.add(store)
        db.session.commit()
        return store

    return run_with_retry(_op)


def list_stores(include_inactive: bool = False) -> list[Store]:
    query = db.session.query(Store)
    if not include_inactive:
        query = query.filter_by(is_active=True)
    return query.order_by(Store.id).all()


def require_store(store_id: int) -> Store:
    store = db.session.get(Store, store_id)
    if not store:
        raise NotFoundError(f"Store {store_id} not found")
    return store


def default_timezone_name() -> str:
    if has_app_context():
        return current_app.config.get("DEFAULT_STORE_TIMEZONE", "UTC")
    return "UTC"


def get_store_context(store_id: int) -> StoreContext:
    """Resolve a store id into a StoreContext (NotFoundError if unknown or inactive)."""
    store = require_store(store_id)
    if not store.is_active:
        raise NotFoundError(f"Store {store_id} not found")
    return StoreContext(store_id=store.id, timezone=resolve_timezone(store.timezone))


def ensure_same_store(entity_store_id: int, ctx: StoreContext | None) -> None:
    """Reject commands that touch another store's records."""
    if ctx is not None and entity_store_id != ctx.store_id:
        raise StoreAccessError("Store access denied")
