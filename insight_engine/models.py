from sqlalchemy import Column, DateTime, Integer, JSON, Text
from sqlalchemy.sql import func
from insight_engine.core.database import Base


class StoreRecord(Base):
    """
    One serialized record per logical store key.

    The engine only ever reads and replaces whole documents, so a key/value
    table with a JSON payload is all the SQL store needs.
    """
    __tablename__ = "insight_store_record"

    key = Column(Text, primary_key=True)
    payload = Column(JSON, nullable=False)
    version = Column(Integer, nullable=False, default=1)  # Bumped on every save
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
