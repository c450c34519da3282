"""Core infrastructure: configuration, logging, errors, HTTP client, startup state."""
