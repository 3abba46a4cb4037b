"""Relational store: engine lifecycle, upsert statements and the issue store."""
