"""Issue model, the central row of the local store."""

from __future__ import annotations

import datetime as dt

from sqlalchemy import JSON, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from jira_connector.db.base import Base


class Issue(Base):
    __tablename__ = "issues"

    issue_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    issue_key: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    project_id: Mapped[str] = mapped_column(String(64), ForeignKey("projects.project_id"), nullable=False, index=True)
    issue_type_id: Mapped[str] = mapped_column(String(64), ForeignKey("issue_types.issue_type_id"), nullable=False)
    status_id: Mapped[str] = mapped_column(String(64), ForeignKey("statuses.status_id"), nullable=False)
    priority_id: Mapped[str | None] = mapped_column(String(64), ForeignKey("priorities.priority_id"), nullable=True)
    assignee_id: Mapped[str | None] = mapped_column(String(128), ForeignKey("users.user_id"), nullable=True)
    reporter_id: Mapped[str | None] = mapped_column(String(128), ForeignKey("users.user_id"), nullable=True)
    summary: Mapped[str] = mapped_column(String(1024), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_date: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_date: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    resolved_date: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolution: Mapped[str | None] = mapped_column(String(128), nullable=True)
    labels: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    last_synced: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
