"""Shared helpers for months, money, sanitization and logging."""
