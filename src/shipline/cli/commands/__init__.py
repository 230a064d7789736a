"""Command implementations for the shipline CLI."""
