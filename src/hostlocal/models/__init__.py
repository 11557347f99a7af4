"""Data models for configuration, ranges and results."""
