"""Command-line interface for change-session-linker."""
