"""Convenience imports for metadata discovery."""

from jira_connector.models.catalog import IssueType, Priority, Project, Status, StatusCategory
from jira_connector.models.issue import Issue
from jira_connector.models.sync_history import SyncHistory
from jira_connector.models.user import JiraUser

__all__ = [
    "Issue",
    "IssueType",
    "JiraUser",
    "Priority",
    "Project",
    "Status",
    "StatusCategory",
    "SyncHistory",
]
