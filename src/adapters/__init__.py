"""Adapters binding the core ports to Telegram and SQLite."""
