"""Command line interface for AuthSession."""
