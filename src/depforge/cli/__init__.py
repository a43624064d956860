"""Command-line interface for depforge."""
