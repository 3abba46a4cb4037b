"""Pydantic models for the Jira REST v2 payloads the connector consumes."""

from __future__ import annotations

import datetime as dt
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from jira_connector.integrations.jira.mapper import as_utc, parse_datetime


class JiraModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", coerce_numbers_to_str=True)


class JiraProject(JiraModel):
    id: str
    key: str
    name: str = ""


class JiraIssueType(JiraModel):
    id: str
    name: str = ""
    icon_url: str | None = Field(default=None, alias="iconUrl")


class JiraStatusCategory(JiraModel):
    id: int
    key: str = ""
    name: str = ""


class JiraStatus(JiraModel):
    id: str
    name: str = ""
    status_category: JiraStatusCategory | None = Field(default=None, alias="statusCategory")


class JiraPriority(JiraModel):
    id: str
    name: str = ""
    icon_url: str | None = Field(default=None, alias="iconUrl")


class JiraUser(JiraModel):
    account_id: str | None = Field(default=None, alias="accountId")
    name: str | None = None
    display_name: str | None = Field(default=None, alias="displayName")
    email_address: str | None = Field(default=None, alias="emailAddress")


class JiraResolution(JiraModel):
    id: str | None = None
    name: str = ""


class JiraComponent(JiraModel):
    id: str
    name: str = ""


class JiraVersion(JiraModel):
    id: str
    name: str = ""
    released: bool = False


class JiraIssueFields(JiraModel):
    summary: str = ""
    description: str | None = None
    project: JiraProject | None = None
    issue_type: JiraIssueType | None = Field(default=None, alias="issuetype")
    status: JiraStatus | None = None
    priority: JiraPriority | None = None
    assignee: JiraUser | None = None
    reporter: JiraUser | None = None
    created: dt.datetime
    updated: dt.datetime
    resolution_date: dt.datetime | None = Field(default=None, alias="resolutiondate")
    resolution: JiraResolution | None = None
    labels: list[str] = Field(default_factory=list)
    components: list[JiraComponent] = Field(default_factory=list)
    fix_versions: list[JiraVersion] = Field(default_factory=list, alias="fixVersions")

    @field_validator("created", "updated", "resolution_date", mode="before")
    @classmethod
    def _parse_jira_datetime(cls, value: Any) -> Any:
        if isinstance(value, str):
            parsed = parse_datetime(value)
            if parsed is None and value.strip():
                raise ValueError(f"invalid Jira datetime: {value}")
            return parsed
        if isinstance(value, dt.datetime):
            return as_utc(value)
        return value

    @field_validator("labels", mode="before")
    @classmethod
    def _none_labels(cls, value: Any) -> Any:
        return [] if value is None else value


class JiraIssue(JiraModel):
    id: str
    key: str
    self_url: str = Field(default="", alias="self")
    fields: JiraIssueFields


class JiraSearchResult(JiraModel):
    start_at: int = Field(default=0, alias="startAt")
    max_results: int = Field(default=0, alias="maxResults")
    total: int = 0
    issues: list[JiraIssue] = Field(default_factory=list)
