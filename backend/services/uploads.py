"""
Upload Pipeline — workbook bytes to persisted facts, audit rows and fresh summaries.

Flow for one upload (single transaction):
  1. Reject non-.xlsx names and already-ingested checksums (unless replacing)
  2. Parse (structural errors abort; a FAILED upload log is still recorded)
  3. Checksum-scoped replace: drop facts from the earlier upload of this file
  4. Insert facts in fixed-size batches, plus one rejected_rows entry per bad row
  5. Recompute every affected day (and month, for outbound)
  6. Commit, then write the source file to upload_dir/YYYY/MM/DD/<checksum>.xlsx

If step 5 fails the whole transaction is rolled back and the upload is
logged as FAILED, so an upload is never SUCCESS with stale summaries.
A file whose every data row is rejected is also logged as FAILED; its
rejected rows are still stored for review.
"""

from __future__ import annotations

import hashlib
import io
import uuid
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

import pandas as pd
import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings, get_settings
from db.models import (
    DailySummary,
    InboundFact,
    MonthlyRevenue,
    OutboundFact,
    RejectedRow,
    UploadLog,
)
from ingest.errors import StructuralError
from ingest.parser import LAYOUTS, parse_workbook
from ingest.schemas import InboundRow, OutboundRow
from services.aggregation import refresh_for_dates

logger = structlog.get_logger()


class FileType(str, Enum):
    INBOUND = "INBOUND"
    OUTBOUND = "OUTBOUND"


class UploadStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class DuplicateUploadError(Exception):
    """The same file content was already ingested successfully."""

    def __init__(self, upload_id: uuid.UUID):
        self.upload_id = upload_id
        super().__init__("File with same content already uploaded")


class UploadNotFoundError(LookupError):
    pass


@dataclass
class UploadOutcome:
    upload_id: uuid.UUID
    row_count: int
    rejected_count: int
    message: str
    replaced_count: int = 0
    status: UploadStatus = UploadStatus.SUCCESS

    def to_dict(self) -> dict[str, Any]:
        return {
            "upload_id": str(self.upload_id),
            "row_count": self.row_count,
            "rejected_count": self.rejected_count,
            "replaced_count": self.replaced_count,
            "message": self.message,
            "status": self.status.value,
        }


# ── Helpers ────────────────────────────────────────────────────────────────


def compute_checksum(content: bytes) -> str:
    return hashlib.md5(content).hexdigest()


def _batched(items: Sequence[Any], size: int) -> Iterator[Sequence[Any]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def _source_path(settings: Settings, checksum: str, now: datetime) -> Path:
    return Path(settings.upload_dir) / f"{now:%Y}" / f"{now:%m}" / f"{now:%d}" / f"{checksum}.xlsx"


def _write_source_file(path: Path, content: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)


async def _find_successful_upload(db: AsyncSession, checksum: str, file_type: FileType) -> UploadLog | None:
    result = await db.execute(
        select(UploadLog)
        .where(
            UploadLog.checksum == checksum,
            UploadLog.file_type == file_type.value,
            UploadLog.status == UploadStatus.SUCCESS.value,
        )
        .order_by(UploadLog.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def _record_failure(
    db: AsyncSession,
    *,
    filename: str,
    file_type: FileType,
    checksum: str,
    message: str,
) -> None:
    db.add(
        UploadLog(
            filename=filename,
            file_type=file_type.value,
            row_count=0,
            rejected_count=0,
            checksum=checksum,
            status=UploadStatus.FAILED.value,
            message=message,
        )
    )
    await db.commit()


async def _delete_by_checksum(db: AsyncSession, file_type: FileType, checksum: str) -> tuple[int, list[datetime]]:
    model, date_column = (
        (InboundFact, InboundFact.received_date)
        if file_type is FileType.INBOUND
        else (OutboundFact, OutboundFact.invoice_date)
    )
    dates = (await db.execute(select(date_column).where(model.source_checksum == checksum))).scalars().all()
    await db.execute(delete(model).where(model.source_checksum == checksum))
    return len(dates), list(dates)


# ── Fact persistence ───────────────────────────────────────────────────────


async def _insert_inbound(
    db: AsyncSession,
    rows: Sequence[InboundRow],
    *,
    provenance: dict[str, Any],
    batch_size: int,
) -> list[datetime]:
    for batch in _batched(rows, batch_size):
        db.add_all(InboundFact(**row.model_dump(), **provenance) for row in batch)
        await db.flush()
    return [row.received_date for row in rows]


async def _insert_outbound(
    db: AsyncSession,
    rows: Sequence[OutboundRow],
    *,
    provenance: dict[str, Any],
    batch_size: int,
    dedup_policy: str,
) -> list[datetime]:
    """
    "none": every row becomes a fact.
    "invoice_date": rows sharing (invoice_no, invoice_date) with an existing
    fact overwrite it, latest wins. Rows without an invoice number always insert.
    """
    for batch in _batched(rows, batch_size):
        for row in batch:
            values = row.model_dump()
            if dedup_policy == "invoice_date" and row.invoice_no:
                result = await db.execute(
                    select(OutboundFact)
                    .where(
                        OutboundFact.invoice_no == row.invoice_no,
                        OutboundFact.invoice_date == row.invoice_date,
                    )
                    .limit(1)
                )
                existing = result.scalar_one_or_none()
                if existing is not None:
                    for key, value in {**values, **provenance}.items():
                        setattr(existing, key, value)
                    continue
            db.add(OutboundFact(**values, **provenance))
        await db.flush()
    return [row.invoice_date for row in rows]


# ── Ingest ─────────────────────────────────────────────────────────────────


async def ingest_upload(
    db: AsyncSession,
    *,
    content: bytes,
    filename: str,
    file_type: FileType | str,
    replace: bool = False,
    settings: Settings | None = None,
) -> UploadOutcome:
    settings = settings or get_settings()
    file_type = FileType(str(getattr(file_type, "value", file_type)).upper())
    checksum = compute_checksum(content)
    log = logger.bind(filename=filename, file_type=file_type.value, checksum=checksum)

    existing = await _find_successful_upload(db, checksum, file_type)
    if existing is not None and not replace:
        log.info("upload.duplicate", existing_upload_id=str(existing.id))
        raise DuplicateUploadError(existing.id)

    try:
        if not filename.lower().endswith(".xlsx"):
            raise StructuralError("Only .xlsx files are allowed")
        parsed = parse_workbook(content, LAYOUTS[file_type.value])
    except StructuralError as exc:
        log.warning("upload.structural_error", error=str(exc))
        await _record_failure(db, filename=filename, file_type=file_type, checksum=checksum, message=str(exc))
        raise

    now = datetime.now()
    all_rejected = not parsed.valid_rows
    source_path = _source_path(settings, checksum, now) if settings.store_source_files and not all_rejected else None
    affected: list[datetime] = []
    replaced = 0

    if all_rejected:
        status = UploadStatus.FAILED
        message = f"All {len(parsed.rejected_rows)} rows were rejected"
    else:
        status = UploadStatus.SUCCESS
        message = f"Successfully uploaded {len(parsed.valid_rows)} {file_type.value.lower()} rows"
        if parsed.rejected_rows:
            message += f" ({len(parsed.rejected_rows)} rejected)"

    try:
        # Nothing usable: facts from an earlier upload of this file stay in place.
        if existing is not None and not all_rejected:
            replaced, old_dates = await _delete_by_checksum(db, file_type, checksum)
            affected.extend(old_dates)

        upload = UploadLog(
            filename=filename,
            file_type=file_type.value,
            row_count=len(parsed.valid_rows),
            rejected_count=len(parsed.rejected_rows),
            checksum=checksum,
            status=status.value,
            message=message,
        )
        db.add(upload)
        await db.flush()

        provenance = {
            "source_file": str(source_path) if source_path else None,
            "source_checksum": checksum,
            "upload_log_id": upload.id,
        }
        if file_type is FileType.INBOUND:
            affected.extend(
                await _insert_inbound(db, parsed.valid_rows, provenance=provenance, batch_size=settings.upload_batch_size)
            )
        else:
            affected.extend(
                await _insert_outbound(
                    db,
                    parsed.valid_rows,
                    provenance=provenance,
                    batch_size=settings.upload_batch_size,
                    dedup_policy=settings.outbound_dedup_policy,
                )
            )

        db.add_all(
            RejectedRow(
                upload_log_id=upload.id,
                row_number=rejected.row_number,
                row_data=rejected.data,
                reason=rejected.reason,
                file_type=file_type.value,
            )
            for rejected in parsed.rejected_rows
        )

        await refresh_for_dates(db, affected, include_monthly=file_type is FileType.OUTBOUND)
        await db.commit()
    except Exception as exc:
        await db.rollback()
        log.error("upload.failed", error=str(exc))
        await _record_failure(db, filename=filename, file_type=file_type, checksum=checksum, message=str(exc))
        raise

    if source_path is not None:
        _write_source_file(source_path, content)

    log_event = log.warning if all_rejected else log.info
    log_event(
        "upload.rejected" if all_rejected else "upload.completed",
        upload_id=str(upload.id),
        rows=len(parsed.valid_rows),
        rejected=len(parsed.rejected_rows),
        replaced=replaced,
    )
    return UploadOutcome(
        upload_id=upload.id,
        row_count=len(parsed.valid_rows),
        rejected_count=len(parsed.rejected_rows),
        message=message,
        replaced_count=replaced,
        status=status,
    )


# ── Data deletion ──────────────────────────────────────────────────────────


async def delete_facts(db: AsyncSession, data_type: str) -> dict[str, Any]:
    """
    Delete inbound, outbound or all facts and recompute the days they touched.
    "all" also clears every summary row.
    """
    if data_type not in ("inbound", "outbound", "all"):
        raise ValueError('Invalid type parameter. Must be "inbound", "outbound", or "all"')

    affected: list[datetime] = []
    deleted = 0
    targets = []
    if data_type in ("inbound", "all"):
        targets.append((InboundFact, InboundFact.received_date))
    if data_type in ("outbound", "all"):
        targets.append((OutboundFact, OutboundFact.invoice_date))

    for model, date_column in targets:
        affected.extend((await db.execute(select(date_column))).scalars().all())
        result = await db.execute(delete(model))
        deleted += result.rowcount or 0

    if data_type == "all":
        await db.execute(delete(DailySummary))
        await db.execute(delete(MonthlyRevenue))
    else:
        await refresh_for_dates(db, affected, include_monthly=data_type == "outbound")

    await db.commit()
    logger.info("data.deleted", data_type=data_type, deleted=deleted)
    return {
        "success": True,
        "message": f"Successfully deleted {deleted} {data_type} record(s)",
        "deleted_count": deleted,
    }


# ── Audit queries ──────────────────────────────────────────────────────────


async def list_uploads(
    db: AsyncSession,
    *,
    file_type: str | None = None,
    status: str | None = None,
    skip: int = 0,
    limit: int = 10,
) -> list[UploadLog]:
    query = select(UploadLog)
    if file_type:
        query = query.where(UploadLog.file_type == file_type.upper())
    if status:
        query = query.where(UploadLog.status == status.upper())
    query = query.order_by(UploadLog.created_at.desc()).offset(skip).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all())


async def list_rejected_rows(
    db: AsyncSession,
    *,
    upload_id: uuid.UUID | None = None,
    file_type: str | None = None,
    skip: int = 0,
    limit: int = 100,
) -> tuple[list[RejectedRow], int]:
    filters = []
    if upload_id:
        filters.append(RejectedRow.upload_log_id == upload_id)
    if file_type:
        filters.append(RejectedRow.file_type == file_type.upper())

    total = (await db.execute(select(func.count(RejectedRow.id)).where(*filters))).scalar_one()
    result = await db.execute(
        select(RejectedRow)
        .where(*filters)
        .order_by(RejectedRow.created_at.desc(), RejectedRow.row_number.asc())
        .offset(skip)
        .limit(limit)
    )
    return list(result.scalars().all()), total


async def export_rejected_rows(db: AsyncSession, upload_id: uuid.UUID) -> tuple[str, bytes]:
    """Rejected rows of one upload as an .xlsx workbook: (download filename, bytes)."""
    upload = await db.get(UploadLog, upload_id)
    if upload is None:
        raise UploadNotFoundError("Upload not found")

    result = await db.execute(
        select(RejectedRow).where(RejectedRow.upload_log_id == upload_id).order_by(RejectedRow.row_number.asc())
    )
    rejected = result.scalars().all()
    if not rejected:
        raise UploadNotFoundError("No rejected rows found for this upload")

    frame = pd.DataFrame(
        [{"Row Number": row.row_number, "Reason": row.reason, **(row.row_data or {})} for row in rejected]
    )
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        frame.to_excel(writer, sheet_name="Rejected Rows", index=False)

    stem = Path(upload.filename).stem
    return f"rejected-rows-{stem}-{str(upload_id)[:8]}.xlsx", buffer.getvalue()
