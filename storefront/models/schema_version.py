"""Schema version stamp."""
from sqlalchemy import Column, Integer, DateTime
from sqlalchemy.sql import func

from storefront.database import Base


class SchemaVersion(Base):
    """Single row recording which migration the database is at."""

    __tablename__ = 'schema_version'

    SINGLETON_ID = 1

    id = Column(Integer, primary_key=True)
    version = Column(Integer, nullable=False)
    applied_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
