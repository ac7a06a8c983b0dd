from app.models.document_store_models import StoredDocument

__all__ = [
    "StoredDocument",
]
