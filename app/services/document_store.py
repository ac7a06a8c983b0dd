"""
Document Store
==============

Key-value persistence for JSON-serializable documents. The reminder services
only depend on the DocumentStore interface, so the app can run on the
SQLAlchemy-backed store and tests on the in-memory one.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from app.models.document_store_models import StoredDocument

logger = logging.getLogger(__name__)


class DocumentStore(ABC):
    """Async string-keyed JSON document store"""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        ...

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    @abstractmethod
    async def list_keys(self) -> List[str]:
        ...


class InMemoryDocumentStore(DocumentStore):
    """Store that keeps serialized documents in a dict"""

    def __init__(self):
        self._documents: Dict[str, str] = {}

    async def get(self, key: str) -> Optional[Any]:
        raw = self._documents.get(key)
        return json.loads(raw) if raw is not None else None

    async def set(self, key: str, value: Any) -> None:
        self._documents[key] = json.dumps(value)

    async def delete(self, key: str) -> None:
        self._documents.pop(key, None)

    async def list_keys(self) -> List[str]:
        return sorted(self._documents)


class SqlDocumentStore(DocumentStore):
    """Store backed by the stored_documents table"""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    async def get(self, key: str) -> Optional[Any]:
        db = self.session_factory()
        try:
            document = db.get(StoredDocument, key)
            return json.loads(document.value) if document else None
        finally:
            db.close()

    async def set(self, key: str, value: Any) -> None:
        db = self.session_factory()
        try:
            document = db.get(StoredDocument, key)
            if document is None:
                db.add(StoredDocument(key=key, value=json.dumps(value)))
            else:
                document.value = json.dumps(value)
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(f"Error writing document {key}: {e}")
            raise
        finally:
            db.close()

    async def delete(self, key: str) -> None:
        db = self.session_factory()
        try:
            db.query(StoredDocument).filter(StoredDocument.key == key).delete()
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(f"Error deleting document {key}: {e}")
            raise
        finally:
            db.close()

    async def list_keys(self) -> List[str]:
        db = self.session_factory()
        try:
            rows = db.query(StoredDocument.key).order_by(StoredDocument.key).all()
            return [row[0] for row in rows]
        finally:
            db.close()
