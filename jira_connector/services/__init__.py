"""Sync orchestration and scheduling."""
