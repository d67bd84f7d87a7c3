"""Local (in-process and SQLite) implementations."""
