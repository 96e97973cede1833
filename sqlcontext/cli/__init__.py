"""Command line interface for sqlcontext."""
