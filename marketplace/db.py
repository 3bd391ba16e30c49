"""
Database access for users, products and messages.

PostgresDbClient talks to the platform's Postgres through SQLAlchemy (any
SQLAlchemy URL works, SQLite included for tests); InMemoryDbClient backs
development and tests. Both publish a ChangeEvent for every committed write
when a realtime client is attached.
"""

from __future__ import annotations

import itertools
import time
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from typing import Dict, Iterable, Iterator, Optional, Protocol

from sqlalchemy import (
    Boolean,
    Column,
    Float,
    Integer,
    String,
    Text,
    create_engine,
    delete,
    or_,
    select,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from marketplace.errors import DatabaseError
from marketplace.realtime import ChangeEvent, RealtimeClient
from marketplace.types import (
    MESSAGES_TABLE,
    PRODUCTS_TABLE,
    USERS_TABLE,
    ChangeEventType,
    ProductCondition,
)

USER_COLUMNS = (
    "id",
    "full_name",
    "email",
    "student_id",
    "profile_img",
    "bio",
    "cor_url",
    "verified",
)
PRODUCT_UPDATABLE_COLUMNS = (
    "product_name",
    "product_descrip",
    "product_img",
    "product_cond",
    "category",
    "price",
)


@dataclass
class UserRecord:
    id: str
    full_name: str
    email: Optional[str] = None
    student_id: Optional[int] = None
    profile_img: Optional[str] = None
    bio: Optional[str] = None
    cor_url: Optional[str] = None
    verified: bool = False

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class ProductRecord:
    user_id: str
    product_name: str
    price: float
    category: str
    product_cond: ProductCondition = ProductCondition.NEW
    product_descrip: Optional[str] = None
    product_img: Optional[str] = None
    id: Optional[int] = None
    created_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        data = asdict(self)
        data["product_cond"] = ProductCondition(self.product_cond).value
        return data


@dataclass
class MessageRecord:
    sender_id: str
    receiver_id: str
    product_id: int
    content: str
    id: Optional[int] = None
    created_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: dict) -> "MessageRecord":
        return cls(
            id=payload.get("id"),
            sender_id=payload["sender_id"],
            receiver_id=payload["receiver_id"],
            product_id=int(payload["product_id"]),
            content=payload["content"],
            created_at=payload.get("created_at") or time.time(),
        )


class DbClient(Protocol):
    """Interface for database access."""

    def insert_user(self, user: UserRecord) -> UserRecord:
        ...

    def upsert_user(self, values: dict) -> UserRecord:
        ...

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        ...

    def get_users(self, user_ids: Iterable[str]) -> list[UserRecord]:
        ...

    def insert_product(self, product: ProductRecord) -> ProductRecord:
        ...

    def get_product(self, product_id: int) -> Optional[ProductRecord]:
        ...

    def list_products(
        self,
        *,
        category: Optional[str] = None,
        name_contains: Optional[str] = None,
        owner_id: Optional[str] = None,
    ) -> list[ProductRecord]:
        ...

    def update_product(
        self, product_id: int, values: dict
    ) -> Optional[ProductRecord]:
        ...

    def delete_product(self, product_id: int) -> bool:
        ...

    def insert_message(self, message: MessageRecord) -> MessageRecord:
        ...

    def list_messages(
        self, product_id: int, participant_id: Optional[str] = None
    ) -> list[MessageRecord]:
        ...

    def list_messages_for_user(self, user_id: str) -> list[MessageRecord]:
        ...


def _check_columns(values: dict, allowed: Iterable[str], table: str) -> None:
    unknown = sorted(set(values) - set(allowed))
    if unknown:
        raise DatabaseError(
            f"Could not find column(s) {', '.join(unknown)} of '{table}'",
            status=400,
        )


class _ChangePublisher:
    changes: Optional[RealtimeClient]

    def _publish(
        self,
        table: str,
        event_type: ChangeEventType,
        new: Optional[dict] = None,
        old: Optional[dict] = None,
    ) -> None:
        if self.changes is None:
            return
        self.changes.publish(
            ChangeEvent(
                table=table, event_type=event_type, new=new or {}, old=old or {}
            )
        )


class InMemoryDbClient(_ChangePublisher):
    """Simple in-memory database for development and tests."""

    def __init__(self, changes: Optional[RealtimeClient] = None):
        self.changes = changes
        self.users: Dict[str, UserRecord] = {}
        self.products: Dict[int, ProductRecord] = {}
        self.messages: Dict[int, MessageRecord] = {}
        self._product_ids = itertools.count(1)
        self._message_ids = itertools.count(1)

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.users.clear()
        self.products.clear()
        self.messages.clear()
        self._product_ids = itertools.count(1)
        self._message_ids = itertools.count(1)

    def insert_user(self, user: UserRecord) -> UserRecord:
        if user.id in self.users:
            raise DatabaseError(
                'duplicate key value violates unique constraint "users_pkey"',
                status=409,
            )
        self.users[user.id] = user
        self._publish(USERS_TABLE, ChangeEventType.INSERT, new=user.as_dict())
        return user

    def upsert_user(self, values: dict) -> UserRecord:
        _check_columns(values, USER_COLUMNS, USERS_TABLE)
        existing = self.users.get(values["id"])
        if existing is None:
            user = UserRecord(**{"full_name": "", **values})
            self.users[user.id] = user
            self._publish(USERS_TABLE, ChangeEventType.INSERT, new=user.as_dict())
            return user
        old = existing.as_dict()
        for key, value in values.items():
            setattr(existing, key, value)
        self._publish(
            USERS_TABLE, ChangeEventType.UPDATE, new=existing.as_dict(), old=old
        )
        return existing

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        return self.users.get(user_id)

    def get_users(self, user_ids: Iterable[str]) -> list[UserRecord]:
        wanted = set(user_ids)
        return [user for user in self.users.values() if user.id in wanted]

    def insert_product(self, product: ProductRecord) -> ProductRecord:
        product.id = next(self._product_ids)
        self.products[product.id] = product
        self._publish(PRODUCTS_TABLE, ChangeEventType.INSERT, new=product.as_dict())
        return product

    def get_product(self, product_id: int) -> Optional[ProductRecord]:
        return self.products.get(product_id)

    def list_products(
        self,
        *,
        category: Optional[str] = None,
        name_contains: Optional[str] = None,
        owner_id: Optional[str] = None,
    ) -> list[ProductRecord]:
        items: list[ProductRecord] = []
        for product in self.products.values():
            if category is not None and (
                (product.category or "").lower() != category.lower()
            ):
                continue
            if name_contains is not None and (
                name_contains.lower() not in (product.product_name or "").lower()
            ):
                continue
            if owner_id is not None and product.user_id != owner_id:
                continue
            items.append(product)
        return sorted(items, key=lambda p: p.id or 0)

    def update_product(
        self, product_id: int, values: dict
    ) -> Optional[ProductRecord]:
        _check_columns(values, PRODUCT_UPDATABLE_COLUMNS, PRODUCTS_TABLE)
        product = self.products.get(product_id)
        if not product:
            return None
        old = product.as_dict()
        for key, value in values.items():
            setattr(product, key, value)
        self._publish(
            PRODUCTS_TABLE, ChangeEventType.UPDATE, new=product.as_dict(), old=old
        )
        return product

    def delete_product(self, product_id: int) -> bool:
        product = self.products.pop(product_id, None)
        if not product:
            return False
        self._publish(PRODUCTS_TABLE, ChangeEventType.DELETE, old=product.as_dict())
        return True

    def insert_message(self, message: MessageRecord) -> MessageRecord:
        message.id = next(self._message_ids)
        self.messages[message.id] = message
        self._publish(MESSAGES_TABLE, ChangeEventType.INSERT, new=message.as_dict())
        return message

    def list_messages(
        self, product_id: int, participant_id: Optional[str] = None
    ) -> list[MessageRecord]:
        items = [
            message
            for message in self.messages.values()
            if message.product_id == product_id
            and (
                participant_id is None
                or participant_id in (message.sender_id, message.receiver_id)
            )
        ]
        return sorted(items, key=lambda m: (m.created_at, m.id or 0))

    def list_messages_for_user(self, user_id: str) -> list[MessageRecord]:
        items = [
            message
            for message in self.messages.values()
            if user_id in (message.sender_id, message.receiver_id)
        ]
        return sorted(items, key=lambda m: (m.created_at, m.id or 0), reverse=True)


class PostgresDbClient(_ChangePublisher):
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(
        self, database_url: str, changes: Optional[RealtimeClient] = None
    ):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        self.changes = changes
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with self.Session() as session:
                yield session
        except SQLAlchemyError as exc:
            raise DatabaseError(str(getattr(exc, "orig", None) or exc)) from exc

    @staticmethod
    def _to_user_record(row: "UserRow") -> UserRecord:
        return UserRecord(**{name: getattr(row, name) for name in USER_COLUMNS})

    @staticmethod
    def _to_product_record(row: "ProductRow") -> ProductRecord:
        return ProductRecord(
            id=row.id,
            user_id=row.user_id,
            product_name=row.product_name,
            product_descrip=row.product_descrip,
            product_img=row.product_img,
            product_cond=ProductCondition(row.product_cond),
            category=row.category,
            price=row.price,
            created_at=row.created_at,
        )

    @staticmethod
    def _to_message_record(row: "MessageRow") -> MessageRecord:
        return MessageRecord(
            id=row.id,
            sender_id=row.sender_id,
            receiver_id=row.receiver_id,
            product_id=row.product_id,
            content=row.content,
            created_at=row.created_at,
        )

    def insert_user(self, user: UserRecord) -> UserRecord:
        with self._session() as session:
            session.add(UserRow(**user.as_dict()))
            session.commit()
        self._publish(USERS_TABLE, ChangeEventType.INSERT, new=user.as_dict())
        return user

    def upsert_user(self, values: dict) -> UserRecord:
        _check_columns(values, USER_COLUMNS, USERS_TABLE)
        with self._session() as session:
            row = session.get(UserRow, values["id"])
            if row is None:
                row = UserRow(**{"full_name": "", "verified": False, **values})
                session.add(row)
                event_type, old = ChangeEventType.INSERT, None
            else:
                old = self._to_user_record(row).as_dict()
                for key, value in values.items():
                    setattr(row, key, value)
                event_type = ChangeEventType.UPDATE
            session.commit()
            session.refresh(row)
            record = self._to_user_record(row)
        self._publish(USERS_TABLE, event_type, new=record.as_dict(), old=old)
        return record

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        with self._session() as session:
            row = session.get(UserRow, user_id)
            return self._to_user_record(row) if row else None

    def get_users(self, user_ids: Iterable[str]) -> list[UserRecord]:
        ids = list(set(user_ids))
        if not ids:
            return []
        with self._session() as session:
            rows = session.execute(
                select(UserRow).where(UserRow.id.in_(ids))
            ).scalars()
            return [self._to_user_record(row) for row in rows]

    def insert_product(self, product: ProductRecord) -> ProductRecord:
        with self._session() as session:
            values = product.as_dict()
            values.pop("id")
            row = ProductRow(**values)
            session.add(row)
            session.commit()
            session.refresh(row)
            record = self._to_product_record(row)
        self._publish(PRODUCTS_TABLE, ChangeEventType.INSERT, new=record.as_dict())
        return record

    def get_product(self, product_id: int) -> Optional[ProductRecord]:
        with self._session() as session:
            row = session.get(ProductRow, product_id)
            return self._to_product_record(row) if row else None

    def list_products(
        self,
        *,
        category: Optional[str] = None,
        name_contains: Optional[str] = None,
        owner_id: Optional[str] = None,
    ) -> list[ProductRecord]:
        stmt = select(ProductRow)
        if category is not None:
            stmt = stmt.where(ProductRow.category.ilike(category))
        if name_contains is not None:
            pattern = (
                name_contains.replace("\\", "\\\\")
                .replace("%", "\\%")
                .replace("_", "\\_")
            )
            stmt = stmt.where(
                ProductRow.product_name.ilike(f"%{pattern}%", escape="\\")
            )
        if owner_id is not None:
            stmt = stmt.where(ProductRow.user_id == owner_id)
        stmt = stmt.order_by(ProductRow.id.asc())
        with self._session() as session:
            rows = session.execute(stmt).scalars()
            return [self._to_product_record(row) for row in rows]

    def update_product(
        self, product_id: int, values: dict
    ) -> Optional[ProductRecord]:
        _check_columns(values, PRODUCT_UPDATABLE_COLUMNS, PRODUCTS_TABLE)
        with self._session() as session:
            row = session.get(ProductRow, product_id)
            if not row:
                return None
            old = self._to_product_record(row).as_dict()
            for key, value in values.items():
                if key == "product_cond":
                    value = ProductCondition(value).value
                setattr(row, key, value)
            session.commit()
            session.refresh(row)
            record = self._to_product_record(row)
        self._publish(
            PRODUCTS_TABLE, ChangeEventType.UPDATE, new=record.as_dict(), old=old
        )
        return record

    def delete_product(self, product_id: int) -> bool:
        with self._session() as session:
            row = session.get(ProductRow, product_id)
            if not row:
                return False
            old = self._to_product_record(row).as_dict()
            session.execute(delete(ProductRow).where(ProductRow.id == product_id))
            session.commit()
        self._publish(PRODUCTS_TABLE, ChangeEventType.DELETE, old=old)
        return True

    def insert_message(self, message: MessageRecord) -> MessageRecord:
        with self._session() as session:
            values = message.as_dict()
            values.pop("id")
            row = MessageRow(**values)
            session.add(row)
            session.commit()
            session.refresh(row)
            record = self._to_message_record(row)
        self._publish(MESSAGES_TABLE, ChangeEventType.INSERT, new=record.as_dict())
        return record

    def list_messages(
        self, product_id: int, participant_id: Optional[str] = None
    ) -> list[MessageRecord]:
        stmt = select(MessageRow).where(MessageRow.product_id == product_id)
        if participant_id is not None:
            stmt = stmt.where(
                or_(
                    MessageRow.sender_id == participant_id,
                    MessageRow.receiver_id == participant_id,
                )
            )
        stmt = stmt.order_by(MessageRow.created_at.asc(), MessageRow.id.asc())
        with self._session() as session:
            rows = session.execute(stmt).scalars()
            return [self._to_message_record(row) for row in rows]

    def list_messages_for_user(self, user_id: str) -> list[MessageRecord]:
        stmt = (
            select(MessageRow)
            .where(
                or_(MessageRow.sender_id == user_id, MessageRow.receiver_id == user_id)
            )
            .order_by(MessageRow.created_at.desc(), MessageRow.id.desc())
        )
        with self._session() as session:
            rows = session.execute(stmt).scalars()
            return [self._to_message_record(row) for row in rows]


Base = declarative_base()


class UserRow(Base):
    __tablename__ = USERS_TABLE

    id = Column(String, primary_key=True)
    full_name = Column(String, nullable=False, default="")
    email = Column(String, nullable=True, index=True)
    student_id = Column(Integer, nullable=True)
    profile_img = Column(String, nullable=True)
    bio = Column(Text, nullable=True)
    cor_url = Column(String, nullable=True)
    verified = Column(Boolean, nullable=False, default=False)


class ProductRow(Base):
    __tablename__ = PRODUCTS_TABLE

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    product_name = Column(String, nullable=False)
    product_descrip = Column(Text, nullable=True)
    product_img = Column(String, nullable=True)
    product_cond = Column(String, nullable=False, default=ProductCondition.NEW.value)
    category = Column(String, nullable=False, index=True)
    price = Column(Float, nullable=False)
    created_at = Column(Float, nullable=False)


class MessageRow(Base):
    __tablename__ = MESSAGES_TABLE

    id = Column(Integer, primary_key=True, autoincrement=True)
    sender_id = Column(String, nullable=False, index=True)
    receiver_id = Column(String, nullable=False, index=True)
    product_id = Column(Integer, nullable=False, index=True)
    content = Column(Text, nullable=False)
    created_at = Column(Float, nullable=False)
