"""Dependent Jira entities referenced by issues."""

from __future__ import annotations

import datetime as dt

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from jira_connector.db.base import Base


class Project(Base):
    __tablename__ = "projects"

    project_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    project_key: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)
    project_name: Mapped[str] = mapped_column(String(255), nullable=False)
    updated_date: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class IssueType(Base):
    __tablename__ = "issue_types"

    issue_type_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    issue_type_name: Mapped[str] = mapped_column(String(128), nullable=False)
    icon_url: Mapped[str | None] = mapped_column(String(512), nullable=True)


class StatusCategory(Base):
    __tablename__ = "status_categories"

    status_category_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    category_name: Mapped[str] = mapped_column(String(128), nullable=False)
    category_key: Mapped[str] = mapped_column(String(64), nullable=False)


class Status(Base):
    __tablename__ = "statuses"

    status_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    status_name: Mapped[str] = mapped_column(String(128), nullable=False)
    status_category_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("status_categories.status_category_id"),
        nullable=True,
    )


class Priority(Base):
    __tablename__ = "priorities"

    priority_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    priority_name: Mapped[str] = mapped_column(String(128), nullable=False)
    icon_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
