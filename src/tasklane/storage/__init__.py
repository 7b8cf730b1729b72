"""Snapshot codec and durable, atomic persistence with backups."""
