"""Shared utilities (logging, API helpers)."""
