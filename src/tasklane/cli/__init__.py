"""Command surface and entry point."""
