"""Command implementations for the config-sync CLI."""
