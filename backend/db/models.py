"""
LogiBill Database Models

Tables:
  Facts (written by uploads):
  1. inbound_facts      - Warehouse receipt lines (PIPO & BIBO Inward)
  2. outbound_facts     - Dispatch / invoice lines (Outward MIS)

  Derived (owned by services.aggregation, recomputed, never hand-edited):
  3. daily_summaries    - One row per calendar day
  4. monthly_revenue    - One row per calendar month

  Audit:
  5. upload_logs        - One row per ingest attempt (append-only)
  6. rejected_rows      - Input rows that failed coercion / validation
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    TypeDecorator,
    types,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID


class GUID(TypeDecorator):
    """Platform-independent UUID type.

    Uses PostgreSQL UUID when available, stores as CHAR(36) on SQLite.
    """

    impl = types.String(36)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PG_UUID(as_uuid=True))
        return dialect.type_descriptor(types.String(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if dialect.name == "postgresql":
            return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))
        return str(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        if isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(str(value))


from sqlalchemy.orm import relationship

from db.session import Base

# ─── 1. Inbound Facts ───────────────────────────────────────────────────────


class InboundFact(Base):
    __tablename__ = "inbound_facts"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    received_date = Column(DateTime, nullable=False)
    invoice_no = Column(String(100))
    invoice_value = Column(Float, nullable=False, default=0)
    party_name = Column(String(255))
    invoice_qty = Column(Float, nullable=False, default=0)
    boxes = Column(Float, nullable=False, default=0)
    type = Column(String(100))
    article_no = Column(String(100))
    source_file = Column(String(500))
    source_checksum = Column(String(64), nullable=False)
    upload_log_id = Column(GUID(), ForeignKey("upload_logs.id"))
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("invoice_value >= 0", name="ck_inbound_invoice_value"),
        CheckConstraint("invoice_qty >= 0", name="ck_inbound_invoice_qty"),
        CheckConstraint("boxes >= 0", name="ck_inbound_boxes"),
        Index("ix_inbound_received_date", "received_date"),
        Index("ix_inbound_checksum", "source_checksum"),
    )


# ─── 2. Outbound Facts ──────────────────────────────────────────────────────


class OutboundFact(Base):
    __tablename__ = "outbound_facts"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    invoice_no = Column(String(100))
    invoice_date = Column(DateTime, nullable=False)
    dispatched_date = Column(DateTime)
    party_name = Column(String(255))
    invoice_qty = Column(Float, nullable=False, default=0)
    boxes = Column(Float, nullable=False, default=0)
    gross_total = Column(Float, nullable=False, default=0)
    source_file = Column(String(500))
    source_checksum = Column(String(64), nullable=False)
    upload_log_id = Column(GUID(), ForeignKey("upload_logs.id"))
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    # (invoice_no, invoice_date) repeats under the "none" de-duplication policy.
    __table_args__ = (
        CheckConstraint("invoice_qty >= 0", name="ck_outbound_invoice_qty"),
        CheckConstraint("boxes >= 0", name="ck_outbound_boxes"),
        CheckConstraint("gross_total >= 0", name="ck_outbound_gross_total"),
        Index("ix_outbound_invoice_date", "invoice_date"),
        Index("ix_outbound_invoice_key", "invoice_no", "invoice_date"),
        Index("ix_outbound_checksum", "source_checksum"),
    )


# ─── 3. Daily Summaries ─────────────────────────────────────────────────────


class DailySummary(Base):
    __tablename__ = "daily_summaries"

    day = Column(Date, primary_key=True)
    outbound_invoices = Column(Integer, nullable=False, default=0)
    outbound_qty = Column(Float, nullable=False, default=0)
    outbound_boxes = Column(Float, nullable=False, default=0)
    gross_sale = Column(Float, nullable=False, default=0)
    inbound_qty = Column(Float, nullable=False, default=0)
    inbound_boxes = Column(Float, nullable=False, default=0)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


# ─── 4. Monthly Revenue ─────────────────────────────────────────────────────


class MonthlyRevenue(Base):
    __tablename__ = "monthly_revenue"

    month = Column(Date, primary_key=True)  # first day of the month
    gross_sale = Column(Float, nullable=False, default=0)
    revenue_marginal = Column(Float, nullable=False, default=0)
    revenue_flat = Column(Float, nullable=False, default=0)
    last_recalc_at = Column(DateTime, nullable=False, default=datetime.utcnow)


# ─── 5. Upload Logs ─────────────────────────────────────────────────────────


class UploadLog(Base):
    __tablename__ = "upload_logs"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    filename = Column(String(500), nullable=False)
    file_type = Column(String(20), nullable=False)
    row_count = Column(Integer, nullable=False, default=0)
    rejected_count = Column(Integer, nullable=False, default=0)
    checksum = Column(String(64), nullable=False, default="")
    status = Column(String(20), nullable=False)
    message = Column(Text)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("file_type IN ('INBOUND', 'OUTBOUND')", name="ck_upload_file_type"),
        CheckConstraint("status IN ('SUCCESS', 'FAILED')", name="ck_upload_status"),
        Index("ix_upload_checksum", "checksum", "file_type"),
    )

    rejected_rows = relationship("RejectedRow", back_populates="upload_log", cascade="all, delete-orphan")


# ─── 6. Rejected Rows ───────────────────────────────────────────────────────


class RejectedRow(Base):
    __tablename__ = "rejected_rows"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    upload_log_id = Column(GUID(), ForeignKey("upload_logs.id"), nullable=False)
    row_number = Column(Integer, nullable=False)
    row_data = Column(JSON, nullable=False)
    reason = Column(Text, nullable=False)
    file_type = Column(String(20), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (Index("ix_rejected_upload", "upload_log_id", "row_number"),)

    upload_log = relationship("UploadLog", back_populates="rejected_rows")
