"""Background job model (transactional outbox)."""
import enum

from sqlalchemy import Column, BigInteger, Integer, String, DateTime, Text
from sqlalchemy.sql import func

from storefront.database import Base, IdType


class JobKind(str, enum.Enum):
    """Work that runs after the customer-facing response."""
    POS_SYNC = 'pos_sync'
    SMS_CONFIRMATION = 'sms_confirmation'
    SMS_READY = 'sms_ready'


class JobStatus(str, enum.Enum):
    PENDING = 'pending'
    RUNNING = 'running'
    DONE = 'done'
    FAILED = 'failed'


class BackgroundJob(Base):
    """Durable job row written in the same transaction as the state change that triggers it."""

    __tablename__ = 'background_jobs'

    id = Column(IdType, primary_key=True, autoincrement=True)
    kind = Column(String(30), nullable=False, index=True)
    order_id = Column(BigInteger, nullable=False, index=True)
    status = Column(String(10), nullable=False, default=JobStatus.PENDING.value, index=True)
    attempts = Column(Integer, nullable=False, default=0)
    max_attempts = Column(Integer, nullable=False, default=1)
    run_after = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    locked_at = Column(DateTime(timezone=True), nullable=True)
    last_error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    finished_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<BackgroundJob(id={self.id}, kind='{self.kind}', order_id={self.order_id}, status='{self.status}')>"
