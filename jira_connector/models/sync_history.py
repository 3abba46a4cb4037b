"""Append-only sync checkpoint log."""

from __future__ import annotations

import datetime as dt
import uuid

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from jira_connector.db.base import Base

SYNC_STATUS_COMPLETED = "completed"


def _new_sync_id() -> str:
    return str(uuid.uuid4())


class SyncHistory(Base):
    __tablename__ = "sync_history"

    sync_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_sync_id)
    sync_type: Mapped[str] = mapped_column(String(32), nullable=False)
    start_time: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    records_processed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
