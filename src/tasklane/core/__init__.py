"""Shared ports, errors and application state."""
