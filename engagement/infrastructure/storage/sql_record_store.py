"""
SQL Record Store
RecordStore implementation on SQLAlchemy. Uniqueness (active slots, lead
emails, notification dedup keys) is enforced by database indexes, so
concurrent writers race on the constraint rather than on a prior read.
"""
import logging
import uuid
from typing import Any, Dict, List, Optional, Type

from sqlalchemy import select, update, delete, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from engagement.domain.interfaces.record_store import (
    RecordStore,
    StorageError,
    DuplicateKeyError,
    Filter,
    Sort,
)
from engagement.infrastructure.storage.database import (
    create_db_engine,
    create_session_factory,
    session_scope,
)
from engagement.infrastructure.storage.models import Base, COLLECTIONS

logger = logging.getLogger(__name__)


def _is_unique_violation(error: IntegrityError) -> bool:
    detail = str(error.orig).lower()
    return "unique" in detail or "duplicate" in detail


class SQLRecordStore(RecordStore):
    """
    Record store backed by a relational database.

    Records are exchanged as dicts keyed by column name.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @classmethod
    def from_url(cls, database_url: Optional[str] = None, create_tables: bool = True) -> "SQLRecordStore":
        """Build a store for a database URL."""
        engine = create_db_engine(database_url)
        return cls(create_session_factory(engine, create_tables=create_tables))

    # ------------------------------------------------------------------
    # Mapping helpers
    # ------------------------------------------------------------------

    def _model(self, collection: str) -> Type[Base]:
        try:
            return COLLECTIONS[collection]
        except KeyError:
            raise StorageError(f"Unknown collection: {collection}")

    def _attr_names(self, model: Type[Base]) -> Dict[str, str]:
        """Column name -> mapped attribute name"""
        return {column.name: attr.key for attr in model.__mapper__.column_attrs for column in attr.columns}

    def _to_dict(self, row: Base) -> Dict[str, Any]:
        return {name: getattr(row, key) for name, key in self._attr_names(type(row)).items()}

    def _to_attrs(self, model: Type[Base], data: Dict[str, Any]) -> Dict[str, Any]:
        names = self._attr_names(model)
        unknown = set(data) - set(names)
        if unknown:
            raise StorageError(f"Unknown fields for {model.__tablename__}: {sorted(unknown)}")
        return {names[name]: value for name, value in data.items()}

    def _column(self, model: Type[Base], name: str):
        key = self._attr_names(model).get(name)
        if key is None:
            raise StorageError(f"Unknown field for {model.__tablename__}: {name}")
        return getattr(model, key)

    def _conditions(self, model: Type[Base], filter: Optional[Filter]) -> list:
        conditions = []
        for name, value in (filter or {}).items():
            column = self._column(model, name)
            if isinstance(value, dict):
                for op, operand in value.items():
                    if op == "$in":
                        conditions.append(column.in_(list(operand)))
                    elif op == "$ne":
                        conditions.append(column.is_not(None) if operand is None else column != operand)
                    elif op == "$gt":
                        conditions.append(column > operand)
                    elif op == "$gte":
                        conditions.append(column >= operand)
                    elif op == "$lt":
                        conditions.append(column < operand)
                    elif op == "$lte":
                        conditions.append(column <= operand)
                    else:
                        raise StorageError(f"Unsupported filter operator: {op}")
            elif value is None:
                conditions.append(column.is_(None))
            else:
                conditions.append(column == value)
        return conditions

    # ------------------------------------------------------------------
    # RecordStore
    # ------------------------------------------------------------------

    def insert(self, collection: str, record: Dict[str, Any]) -> Dict[str, Any]:
        model = self._model(collection)
        data = dict(record)
        data["id"] = data.get("id") or uuid.uuid4().hex

        try:
            with session_scope(self._session_factory) as db:
                row = model(**self._to_attrs(model, data))
                db.add(row)
                db.flush()
                db.refresh(row)
                result = self._to_dict(row)
        except IntegrityError as e:
            if _is_unique_violation(e):
                raise DuplicateKeyError(collection, str(e.orig))
            raise StorageError(f"Insert into {collection} failed: {e.orig}")
        except SQLAlchemyError as e:
            logger.error(f"Insert into {collection} failed: {e}")
            raise StorageError(str(e))

        logger.debug(f"Inserted {collection} record {result['id']}")
        return result

    def find_one(self, collection: str, filter: Filter) -> Optional[Dict[str, Any]]:
        results = self.find(collection, filter, limit=1)
        return results[0] if results else None

    def find(
        self,
        collection: str,
        filter: Optional[Filter] = None,
        sort: Optional[Sort] = None,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        model = self._model(collection)
        stmt = select(model).where(*self._conditions(model, filter))

        for name, direction in sort or []:
            column = self._column(model, name)
            stmt = stmt.order_by(column.desc() if direction < 0 else column.asc())
        if limit is not None:
            stmt = stmt.limit(limit)

        try:
            with session_scope(self._session_factory) as db:
                return [self._to_dict(row) for row in db.execute(stmt).scalars().all()]
        except SQLAlchemyError as e:
            logger.error(f"Query on {collection} failed: {e}")
            raise StorageError(str(e))

    def update_by_id(
        self,
        collection: str,
        record_id: str,
        patch: Dict[str, Any],
        expected: Optional[Filter] = None
    ) -> Optional[Dict[str, Any]]:
        model = self._model(collection)
        conditions = [model.id == record_id] + self._conditions(model, expected)

        try:
            with session_scope(self._session_factory) as db:
                if patch:
                    stmt = update(model).where(*conditions).values(**self._to_attrs(model, patch))
                    if db.execute(stmt).rowcount == 0:
                        return None
                row = db.execute(select(model).where(model.id == record_id)).scalar_one_or_none()
                return self._to_dict(row) if row is not None else None
        except IntegrityError as e:
            if _is_unique_violation(e):
                raise DuplicateKeyError(collection, str(e.orig))
            raise StorageError(f"Update on {collection} failed: {e.orig}")
        except SQLAlchemyError as e:
            logger.error(f"Update on {collection} failed: {e}")
            raise StorageError(str(e))

    def update_where(self, collection: str, filter: Filter, patch: Dict[str, Any]) -> int:
        model = self._model(collection)
        stmt = update(model).where(*self._conditions(model, filter)).values(**self._to_attrs(model, patch))

        try:
            with session_scope(self._session_factory) as db:
                return db.execute(stmt).rowcount
        except IntegrityError as e:
            if _is_unique_violation(e):
                raise DuplicateKeyError(collection, str(e.orig))
            raise StorageError(f"Update on {collection} failed: {e.orig}")
        except SQLAlchemyError as e:
            logger.error(f"Update on {collection} failed: {e}")
            raise StorageError(str(e))

    def delete_by_id(self, collection: str, record_id: str) -> bool:
        model = self._model(collection)
        try:
            with session_scope(self._session_factory) as db:
                return db.execute(delete(model).where(model.id == record_id)).rowcount > 0
        except SQLAlchemyError as e:
            logger.error(f"Delete on {collection} failed: {e}")
            raise StorageError(str(e))

    def count_where(self, collection: str, filter: Optional[Filter] = None) -> int:
        model = self._model(collection)
        stmt = select(func.count()).select_from(model).where(*self._conditions(model, filter))
        try:
            with session_scope(self._session_factory) as db:
                return db.execute(stmt).scalar_one()
        except SQLAlchemyError as e:
            logger.error(f"Count on {collection} failed: {e}")
            raise StorageError(str(e))
