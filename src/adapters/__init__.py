"""Adapters binding the core ports to SQLite, Untappd and Telegram."""
