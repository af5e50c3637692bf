"""
Client for the remote usage API.

Provides the quota fetcher used by the plugin and the terminal command.
"""

from .usage_client import QuotaFetcher, fetch_quota

__all__ = ["QuotaFetcher", "fetch_quota"]
