"""Configuration schema and file I/O."""
