"""Version information for asset-locks."""

__version__ = "1.2.0"
