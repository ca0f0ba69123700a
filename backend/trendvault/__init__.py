"""TrendVault - durable storage, deduplication and trending for fetched videos"""

__version__ = "1.0.0"
