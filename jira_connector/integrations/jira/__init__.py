"""Jira REST integration: client, wire models, mapping and pagination."""
