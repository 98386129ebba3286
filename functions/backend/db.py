"""
Database abstraction over Cloud Firestore, SQL (via SQLAlchemy) and an
in-memory test implementation.
"""

from __future__ import annotations

import copy
import json
import threading
import uuid
from datetime import datetime
from typing import Any, Callable, Iterable, Optional, Protocol

from sqlalchemy import JSON, Column, String, create_engine, select
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from shared.api import TransferResolution
from shared.firebase_constants import (
    BIKE_RIDES_COLLECTION,
    BIKES_COLLECTION,
    HOMEPAGE_CONTENT_COLLECTION,
    HOMEPAGE_CONTENT_DOC_ID,
    TRANSFER_REQUESTS_COLLECTION,
    USERS_COLLECTION,
)
from shared.json_utils import parse_datetime

# Firestore caps batched writes and "in" filters.
FIRESTORE_BATCH_LIMIT = 500
FIRESTORE_IN_FILTER_LIMIT = 30

Document = tuple[str, dict]
TransferDecision = Callable[[Optional[dict], Optional[dict]], TransferResolution]


class DbClient(Protocol):
    """Interface for database access."""

    def find_bike_by_serial(self, serial_number: str) -> Optional[Document]:
        ...

    def create_bike(self, data: dict) -> str:
        ...

    def get_bike(self, bike_id: str) -> Optional[dict]:
        ...

    def update_bike(
        self, bike_id: str, updates: dict, history_entry: Optional[dict] = None
    ) -> None:
        ...

    def list_bikes(
        self,
        *,
        owner_id: Optional[str] = None,
        owner_ids: Optional[list[str]] = None,
        registered_by_shop_id: Optional[str] = None,
    ) -> list[Document]:
        ...

    def update_bikes_by_owner(self, owner_id: str, updates: dict) -> int:
        ...

    def delete_bikes_by_owner(self, owner_id: str) -> int:
        ...

    def get_user(self, uid: str) -> Optional[dict]:
        ...

    def set_user(self, uid: str, data: dict, merge: bool = False) -> None:
        ...

    def delete_user(self, uid: str) -> None:
        ...

    def find_user_by_email(self, email: str) -> Optional[Document]:
        ...

    def list_users(
        self,
        *,
        role: Optional[str] = None,
        registered_by_shop_id: Optional[str] = None,
        referrer_id: Optional[str] = None,
    ) -> list[Document]:
        ...

    def increment_referral_count(self, uid: str) -> bool:
        ...

    def create_transfer_request(self, data: dict) -> str:
        ...

    def get_transfer_request(self, request_id: str) -> Optional[dict]:
        ...

    def list_transfer_requests(
        self,
        *,
        bike_id: Optional[str] = None,
        status: Optional[str] = None,
        from_owner_id: Optional[str] = None,
        to_user_email: Optional[str] = None,
    ) -> list[Document]:
        ...

    def resolve_transfer_request(
        self, request_id: str, decide: TransferDecision
    ) -> Any:
        ...

    def get_homepage_content(self) -> Optional[dict]:
        ...

    def update_homepage_content(self, data: dict) -> None:
        ...

    def create_ride(self, data: dict) -> str:
        ...

    def get_ride(self, ride_id: str) -> Optional[dict]:
        ...

    def update_ride(self, ride_id: str, data: dict) -> None:
        ...

    def delete_ride(self, ride_id: str) -> None:
        ...

    def list_rides(
        self,
        *,
        organizer_id: Optional[str] = None,
        from_date: Optional[datetime] = None,
    ) -> list[Document]:
        ...


def _matches(data: dict, filters: dict) -> bool:
    for field_name, expected in filters.items():
        if expected is None:
            continue
        if data.get(field_name) != expected:
            return False
    return True


class _DocumentStoreDbClient:
    """
    Implements DbClient on top of four document primitives.

    Subclasses provide `_get`, `_put`, `_remove` and `_scan`; queries are
    evaluated in Python, and multi-document updates run under a process lock.
    """

    def __init__(self):
        self._lock = threading.RLock()

    def _get(self, collection: str, doc_id: str) -> Optional[dict]:
        raise NotImplementedError

    def _put(self, collection: str, doc_id: str, data: dict) -> None:
        raise NotImplementedError

    def _remove(self, collection: str, doc_id: str) -> None:
        raise NotImplementedError

    def _scan(self, collection: str) -> Iterable[Document]:
        raise NotImplementedError

    def _add(self, collection: str, data: dict) -> str:
        doc_id = uuid.uuid4().hex
        self._put(collection, doc_id, data)
        return doc_id

    def _update(self, collection: str, doc_id: str, updates: dict) -> None:
        with self._lock:
            existing = self._get(collection, doc_id)
            if existing is None:
                raise KeyError(f"{collection}/{doc_id} does not exist")
            existing.update(updates)
            self._put(collection, doc_id, existing)

    def _query(self, collection: str, **filters) -> list[Document]:
        return [
            (doc_id, data)
            for doc_id, data in self._scan(collection)
            if _matches(data, filters)
        ]

    @staticmethod
    def _with_history(data: dict, history_entry: Optional[dict]) -> dict:
        if history_entry is not None:
            history = list(data.get("statusHistory") or [])
            history.append(history_entry)
            data["statusHistory"] = history
        return data

    # Bikes

    def find_bike_by_serial(self, serial_number: str) -> Optional[Document]:
        matches = self._query(BIKES_COLLECTION, serialNumber=serial_number)
        return matches[0] if matches else None

    def create_bike(self, data: dict) -> str:
        return self._add(BIKES_COLLECTION, data)

    def get_bike(self, bike_id: str) -> Optional[dict]:
        return self._get(BIKES_COLLECTION, bike_id)

    def update_bike(
        self, bike_id: str, updates: dict, history_entry: Optional[dict] = None
    ) -> None:
        with self._lock:
            existing = self._get(BIKES_COLLECTION, bike_id)
            if existing is None:
                raise KeyError(f"{BIKES_COLLECTION}/{bike_id} does not exist")
            existing.update(updates)
            self._put(
                BIKES_COLLECTION, bike_id, self._with_history(existing, history_entry)
            )

    def list_bikes(
        self,
        *,
        owner_id: Optional[str] = None,
        owner_ids: Optional[list[str]] = None,
        registered_by_shop_id: Optional[str] = None,
    ) -> list[Document]:
        bikes = self._query(
            BIKES_COLLECTION,
            ownerId=owner_id,
            registeredByShopId=registered_by_shop_id,
        )
        if owner_ids is not None:
            wanted = set(owner_ids)
            bikes = [(i, d) for i, d in bikes if d.get("ownerId") in wanted]
        return bikes

    def update_bikes_by_owner(self, owner_id: str, updates: dict) -> int:
        with self._lock:
            bikes = self._query(BIKES_COLLECTION, ownerId=owner_id)
            for bike_id, _ in bikes:
                self._update(BIKES_COLLECTION, bike_id, updates)
            return len(bikes)

    def delete_bikes_by_owner(self, owner_id: str) -> int:
        with self._lock:
            bikes = self._query(BIKES_COLLECTION, ownerId=owner_id)
            for bike_id, _ in bikes:
                self._remove(BIKES_COLLECTION, bike_id)
            return len(bikes)

    # Users

    def get_user(self, uid: str) -> Optional[dict]:
        return self._get(USERS_COLLECTION, uid)

    def set_user(self, uid: str, data: dict, merge: bool = False) -> None:
        with self._lock:
            existing = self._get(USERS_COLLECTION, uid) if merge else None
            if existing is not None:
                existing.update(data)
                data = existing
            self._put(USERS_COLLECTION, uid, dict(data))

    def delete_user(self, uid: str) -> None:
        self._remove(USERS_COLLECTION, uid)

    def find_user_by_email(self, email: str) -> Optional[Document]:
        wanted = email.strip().lower()
        for uid, user in self._scan(USERS_COLLECTION):
            if str(user.get("email") or "").lower() == wanted:
                return uid, user
        return None

    def list_users(
        self,
        *,
        role: Optional[str] = None,
        registered_by_shop_id: Optional[str] = None,
        referrer_id: Optional[str] = None,
    ) -> list[Document]:
        return self._query(
            USERS_COLLECTION,
            role=role,
            registeredByShopId=registered_by_shop_id,
            referrerId=referrer_id,
        )

    def increment_referral_count(self, uid: str) -> bool:
        with self._lock:
            user = self._get(USERS_COLLECTION, uid)
            if user is None:
                return False
            user["referralCount"] = (user.get("referralCount") or 0) + 1
            self._put(USERS_COLLECTION, uid, user)
            return True

    # Transfer requests

    def create_transfer_request(self, data: dict) -> str:
        return self._add(TRANSFER_REQUESTS_COLLECTION, data)

    def get_transfer_request(self, request_id: str) -> Optional[dict]:
        return self._get(TRANSFER_REQUESTS_COLLECTION, request_id)

    def list_transfer_requests(
        self,
        *,
        bike_id: Optional[str] = None,
        status: Optional[str] = None,
        from_owner_id: Optional[str] = None,
        to_user_email: Optional[str] = None,
    ) -> list[Document]:
        return self._query(
            TRANSFER_REQUESTS_COLLECTION,
            bikeId=bike_id,
            status=status,
            fromOwnerId=from_owner_id,
            toUserEmail=to_user_email,
        )

    def resolve_transfer_request(
        self, request_id: str, decide: TransferDecision
    ) -> Any:
        with self._lock:
            request = self._get(TRANSFER_REQUESTS_COLLECTION, request_id)
            bike_id = (request or {}).get("bikeId")
            bike = self._get(BIKES_COLLECTION, bike_id) if bike_id else None

            # Nothing is written unless decide() returns.
            resolution = decide(request, bike)

            request.update(resolution.request_updates)
            self._put(TRANSFER_REQUESTS_COLLECTION, request_id, request)
            if resolution.bike_updates is not None:
                bike.update(resolution.bike_updates)
                self._put(
                    BIKES_COLLECTION,
                    bike_id,
                    self._with_history(bike, resolution.history_entry),
                )
            return resolution.result

    # Homepage content

    def get_homepage_content(self) -> Optional[dict]:
        return self._get(HOMEPAGE_CONTENT_COLLECTION, HOMEPAGE_CONTENT_DOC_ID)

    def update_homepage_content(self, data: dict) -> None:
        with self._lock:
            existing = (
                self._get(HOMEPAGE_CONTENT_COLLECTION, HOMEPAGE_CONTENT_DOC_ID) or {}
            )
            existing.update(data)
            self._put(HOMEPAGE_CONTENT_COLLECTION, HOMEPAGE_CONTENT_DOC_ID, existing)

    # Rides

    def create_ride(self, data: dict) -> str:
        return self._add(BIKE_RIDES_COLLECTION, data)

    def get_ride(self, ride_id: str) -> Optional[dict]:
        return self._get(BIKE_RIDES_COLLECTION, ride_id)

    def update_ride(self, ride_id: str, data: dict) -> None:
        self._update(BIKE_RIDES_COLLECTION, ride_id, data)

    def delete_ride(self, ride_id: str) -> None:
        self._remove(BIKE_RIDES_COLLECTION, ride_id)

    def list_rides(
        self,
        *,
        organizer_id: Optional[str] = None,
        from_date: Optional[datetime] = None,
    ) -> list[Document]:
        rides = self._query(BIKE_RIDES_COLLECTION, organizerId=organizer_id)
        if from_date is not None:
            rides = [
                (ride_id, ride)
                for ride_id, ride in rides
                if ride.get("rideDate") and parse_datetime(ride["rideDate"]) >= from_date
            ]
        return rides


class InMemoryDbClient(_DocumentStoreDbClient):
    """Simple in-memory database for development and tests."""

    def __init__(self):
        super().__init__()
        self.collections: dict[str, dict[str, dict]] = {}

    def _get(self, collection: str, doc_id: str) -> Optional[dict]:
        data = self.collections.get(collection, {}).get(doc_id)
        return copy.deepcopy(data) if data is not None else None

    def _put(self, collection: str, doc_id: str, data: dict) -> None:
        self.collections.setdefault(collection, {})[doc_id] = copy.deepcopy(data)

    def _remove(self, collection: str, doc_id: str) -> None:
        self.collections.get(collection, {}).pop(doc_id, None)

    def _scan(self, collection: str) -> Iterable[Document]:
        items = list(self.collections.get(collection, {}).items())
        return [(doc_id, copy.deepcopy(data)) for doc_id, data in items]

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.collections.clear()


_DATETIME_TAG = "__datetime__"


def _json_default(value: Any):
    if isinstance(value, datetime):
        return {_DATETIME_TAG: value.isoformat()}
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _json_object_hook(obj: dict):
    if set(obj) == {_DATETIME_TAG}:
        return parse_datetime(obj[_DATETIME_TAG])
    return obj


def _dumps(data: Any) -> str:
    return json.dumps(data, default=_json_default)


def _loads(raw: str) -> Any:
    return json.loads(raw, object_hook=_json_object_hook)


Base = declarative_base()


class DocumentRow(Base):
    __tablename__ = "documents"

    collection = Column(String, primary_key=True)
    doc_id = Column(String, primary_key=True)
    data = Column(JSON, nullable=False)


class SqlDbClient(_DocumentStoreDbClient):
    """
    SQLAlchemy-backed implementation storing each document as a JSON row.
    Accepts any SQLAlchemy URL (e.g., Postgres, or SQLite for tests).
    """

    def __init__(self, database_url: str):
        super().__init__()
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
            json_serializer=_dumps,
            json_deserializer=_loads,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def _get(self, collection: str, doc_id: str) -> Optional[dict]:
        with self.Session() as session:
            row = session.get(DocumentRow, (collection, doc_id))
            return copy.deepcopy(row.data) if row else None

    def _put(self, collection: str, doc_id: str, data: dict) -> None:
        with self.Session() as session:
            row = session.get(DocumentRow, (collection, doc_id))
            if row:
                row.data = copy.deepcopy(data)
            else:
                session.add(
                    DocumentRow(
                        collection=collection, doc_id=doc_id, data=copy.deepcopy(data)
                    )
                )
            session.commit()

    def _remove(self, collection: str, doc_id: str) -> None:
        with self.Session() as session:
            row = session.get(DocumentRow, (collection, doc_id))
            if row:
                session.delete(row)
                session.commit()

    def _scan(self, collection: str) -> Iterable[Document]:
        with self.Session() as session:
            rows = session.execute(
                select(DocumentRow).where(DocumentRow.collection == collection)
            ).scalars()
            return [(row.doc_id, copy.deepcopy(row.data)) for row in rows]

    def _locked_row(
        self, session: Session, collection: str, doc_id: str
    ) -> Optional[DocumentRow]:
        stmt = (
            select(DocumentRow)
            .where(
                DocumentRow.collection == collection,
                DocumentRow.doc_id == doc_id,
            )
            .with_for_update()
        )
        return session.execute(stmt).scalar_one_or_none()

    def resolve_transfer_request(
        self, request_id: str, decide: TransferDecision
    ) -> Any:
        """Locks the request and bike rows and writes both in one commit."""
        with self._lock, self.Session() as session:
            request_row = self._locked_row(
                session, TRANSFER_REQUESTS_COLLECTION, request_id
            )
            request = copy.deepcopy(request_row.data) if request_row else None
            bike_id = (request or {}).get("bikeId")
            bike_row = (
                self._locked_row(session, BIKES_COLLECTION, bike_id) if bike_id else None
            )
            bike = copy.deepcopy(bike_row.data) if bike_row else None

            resolution = decide(request, bike)

            request.update(resolution.request_updates)
            request_row.data = request
            if resolution.bike_updates is not None:
                bike.update(resolution.bike_updates)
                bike_row.data = self._with_history(bike, resolution.history_entry)
            session.commit()
            return resolution.result


class FirestoreDbClient:
    """Cloud Firestore implementation using the Firebase Admin SDK."""

    def __init__(self, client=None):
        # Imported lazily so the in-memory and SQL backends never need
        # an initialized Firebase app.
        from firebase_admin import firestore

        self._firestore = firestore
        self._client = client or firestore.client()

    def _collection(self, name: str):
        return self._client.collection(name)

    def _where(self, query, field_name: str, op: str, value: Any):
        from google.cloud.firestore_v1.base_query import FieldFilter

        return query.where(filter=FieldFilter(field_name, op, value))

    def _query(self, collection: str, **filters) -> list[Document]:
        query = self._collection(collection)
        for field_name, value in filters.items():
            if value is not None:
                query = self._where(query, field_name, "==", value)
        return [(snap.id, snap.to_dict()) for snap in query.stream()]

    def _get(self, collection: str, doc_id: str) -> Optional[dict]:
        snapshot = self._collection(collection).document(doc_id).get()
        return snapshot.to_dict() if snapshot.exists else None

    def _history_update(self, updates: dict, history_entry: Optional[dict]) -> dict:
        updates = dict(updates)
        if history_entry is not None:
            updates["statusHistory"] = self._firestore.ArrayUnion([history_entry])
        return updates

    def _batched(self, refs: list, apply: Callable) -> None:
        for start in range(0, len(refs), FIRESTORE_BATCH_LIMIT):
            batch = self._client.batch()
            for ref in refs[start : start + FIRESTORE_BATCH_LIMIT]:
                apply(batch, ref)
            batch.commit()

    # Bikes

    def find_bike_by_serial(self, serial_number: str) -> Optional[Document]:
        query = self._where(
            self._collection(BIKES_COLLECTION), "serialNumber", "==", serial_number
        ).limit(1)
        for snap in query.stream():
            return snap.id, snap.to_dict()
        return None

    def create_bike(self, data: dict) -> str:
        _, doc_ref = self._collection(BIKES_COLLECTION).add(data)
        return doc_ref.id

    def get_bike(self, bike_id: str) -> Optional[dict]:
        return self._get(BIKES_COLLECTION, bike_id)

    def update_bike(
        self, bike_id: str, updates: dict, history_entry: Optional[dict] = None
    ) -> None:
        self._collection(BIKES_COLLECTION).document(bike_id).update(
            self._history_update(updates, history_entry)
        )

    def list_bikes(
        self,
        *,
        owner_id: Optional[str] = None,
        owner_ids: Optional[list[str]] = None,
        registered_by_shop_id: Optional[str] = None,
    ) -> list[Document]:
        if owner_ids is None:
            return self._query(
                BIKES_COLLECTION,
                ownerId=owner_id,
                registeredByShopId=registered_by_shop_id,
            )
        bikes: list[Document] = []
        for start in range(0, len(owner_ids), FIRESTORE_IN_FILTER_LIMIT):
            chunk = owner_ids[start : start + FIRESTORE_IN_FILTER_LIMIT]
            query = self._where(self._collection(BIKES_COLLECTION), "ownerId", "in", chunk)
            if registered_by_shop_id is not None:
                query = self._where(
                    query, "registeredByShopId", "==", registered_by_shop_id
                )
            bikes.extend((snap.id, snap.to_dict()) for snap in query.stream())
        return bikes

    def _bike_refs_for_owner(self, owner_id: str) -> list:
        query = self._where(self._collection(BIKES_COLLECTION), "ownerId", "==", owner_id)
        return [snap.reference for snap in query.stream()]

    def update_bikes_by_owner(self, owner_id: str, updates: dict) -> int:
        refs = self._bike_refs_for_owner(owner_id)
        self._batched(refs, lambda batch, ref: batch.update(ref, updates))
        return len(refs)

    def delete_bikes_by_owner(self, owner_id: str) -> int:
        refs = self._bike_refs_for_owner(owner_id)
        self._batched(refs, lambda batch, ref: batch.delete(ref))
        return len(refs)

    # Users

    def get_user(self, uid: str) -> Optional[dict]:
        return self._get(USERS_COLLECTION, uid)

    def set_user(self, uid: str, data: dict, merge: bool = False) -> None:
        self._collection(USERS_COLLECTION).document(uid).set(data, merge=merge)

    def delete_user(self, uid: str) -> None:
        self._collection(USERS_COLLECTION).document(uid).delete()

    def find_user_by_email(self, email: str) -> Optional[Document]:
        query = self._where(
            self._collection(USERS_COLLECTION), "email", "==", email.strip().lower()
        ).limit(1)
        for snap in query.stream():
            return snap.id, snap.to_dict()
        return None

    def list_users(
        self,
        *,
        role: Optional[str] = None,
        registered_by_shop_id: Optional[str] = None,
        referrer_id: Optional[str] = None,
    ) -> list[Document]:
        return self._query(
            USERS_COLLECTION,
            role=role,
            registeredByShopId=registered_by_shop_id,
            referrerId=referrer_id,
        )

    def increment_referral_count(self, uid: str) -> bool:
        user_ref = self._collection(USERS_COLLECTION).document(uid)
        transaction = self._client.transaction()

        @self._firestore.transactional
        def _increment(transaction, ref):
            snapshot = ref.get(transaction=transaction)
            if not snapshot.exists:
                return False
            transaction.update(ref, {"referralCount": self._firestore.Increment(1)})
            return True

        return _increment(transaction, user_ref)

    # Transfer requests

    def create_transfer_request(self, data: dict) -> str:
        _, doc_ref = self._collection(TRANSFER_REQUESTS_COLLECTION).add(data)
        return doc_ref.id

    def get_transfer_request(self, request_id: str) -> Optional[dict]:
        return self._get(TRANSFER_REQUESTS_COLLECTION, request_id)

    def list_transfer_requests(
        self,
        *,
        bike_id: Optional[str] = None,
        status: Optional[str] = None,
        from_owner_id: Optional[str] = None,
        to_user_email: Optional[str] = None,
    ) -> list[Document]:
        return self._query(
            TRANSFER_REQUESTS_COLLECTION,
            bikeId=bike_id,
            status=status,
            fromOwnerId=from_owner_id,
            toUserEmail=to_user_email,
        )

    def resolve_transfer_request(
        self, request_id: str, decide: TransferDecision
    ) -> Any:
        request_ref = self._collection(TRANSFER_REQUESTS_COLLECTION).document(
            request_id
        )
        transaction = self._client.transaction()

        @self._firestore.transactional
        def _resolve(transaction, ref):
            # Firestore transactions require every read before the first write.
            request_snapshot = ref.get(transaction=transaction)
            request = request_snapshot.to_dict() if request_snapshot.exists else None

            bike_ref = None
            bike = None
            if request and request.get("bikeId"):
                bike_ref = self._collection(BIKES_COLLECTION).document(
                    request["bikeId"]
                )
                bike_snapshot = bike_ref.get(transaction=transaction)
                bike = bike_snapshot.to_dict() if bike_snapshot.exists else None

            resolution = decide(request, bike)

            transaction.update(ref, resolution.request_updates)
            if resolution.bike_updates is not None:
                transaction.update(
                    bike_ref,
                    self._history_update(
                        resolution.bike_updates, resolution.history_entry
                    ),
                )
            return resolution.result

        return _resolve(transaction, request_ref)

    # Homepage content

    def get_homepage_content(self) -> Optional[dict]:
        return self._get(HOMEPAGE_CONTENT_COLLECTION, HOMEPAGE_CONTENT_DOC_ID)

    def update_homepage_content(self, data: dict) -> None:
        self._collection(HOMEPAGE_CONTENT_COLLECTION).document(
            HOMEPAGE_CONTENT_DOC_ID
        ).set(data, merge=True)

    # Rides

    def create_ride(self, data: dict) -> str:
        _, doc_ref = self._collection(BIKE_RIDES_COLLECTION).add(data)
        return doc_ref.id

    def get_ride(self, ride_id: str) -> Optional[dict]:
        return self._get(BIKE_RIDES_COLLECTION, ride_id)

    def update_ride(self, ride_id: str, data: dict) -> None:
        self._collection(BIKE_RIDES_COLLECTION).document(ride_id).update(data)

    def delete_ride(self, ride_id: str) -> None:
        self._collection(BIKE_RIDES_COLLECTION).document(ride_id).delete()

    def list_rides(
        self,
        *,
        organizer_id: Optional[str] = None,
        from_date: Optional[datetime] = None,
    ) -> list[Document]:
        query = self._collection(BIKE_RIDES_COLLECTION)
        if organizer_id is not None:
            query = self._where(query, "organizerId", "==", organizer_id)
        if from_date is not None:
            query = self._where(query, "rideDate", ">=", from_date)
        return [(snap.id, snap.to_dict()) for snap in query.stream()]
