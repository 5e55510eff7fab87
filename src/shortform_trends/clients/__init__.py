"""
Platform search clients for short-form video trends
"""

from shortform_trends.clients.base import BasePlatformClient, QuotaTracker
from shortform_trends.clients.youtube import YouTubeClient
from shortform_trends.clients.serpapi import SerpAPIClient, TikTokClient, InstagramClient

__all__ = [
    "BasePlatformClient",
    "QuotaTracker",
    "YouTubeClient",
    "SerpAPIClient",
    "TikTokClient",
    "InstagramClient",
]
