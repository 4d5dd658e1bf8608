"""Cross-cutting managers."""
