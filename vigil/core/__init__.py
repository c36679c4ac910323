"""Core infrastructure: settings, database, logging, errors."""
