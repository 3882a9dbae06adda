"""Cross-cutting runtime helpers: clock, logging and settings."""
