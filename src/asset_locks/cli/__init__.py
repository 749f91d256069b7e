"""Command-line interface for asset-locks."""
