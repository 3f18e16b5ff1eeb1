"""Command line interface for botmaid."""
