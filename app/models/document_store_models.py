"""
Document Store Database Models
String-keyed JSON documents backing medications, dose records and preferences
"""

from sqlalchemy import Column, String, DateTime, Text
from sqlalchemy.sql import func
from app.database import Base


class StoredDocument(Base):
    """One JSON document per key"""
    __tablename__ = "stored_documents"

    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)  # JSON-encoded document

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
