"""Core infrastructure: result models, errors, settings and file access."""
