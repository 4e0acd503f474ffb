"""Core domain package for beerscope.

Core contains the identity registry, watermarks, and check-in sync logic
without any Telegram, Untappd HTTP or storage-specific code.
"""
