"""Relay services: identity directory, session tokens, deep links, callback pipeline, proxy."""
