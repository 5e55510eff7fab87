"""
Shortform Trends - Collect short-form video trends and score them with AI
"""

__version__ = "1.0.0"
__author__ = "Marketing Content Team"

from shortform_trends.models import NormalizedTrendVideo, TrendCollectionResult, Platform
from shortform_trends.collector import TrendCollector
from shortform_trends.curator import TrendCurator
from shortform_trends.researcher import TrendResearcher

__all__ = [
    "NormalizedTrendVideo",
    "TrendCollectionResult",
    "Platform",
    "TrendCollector",
    "TrendCurator",
    "TrendResearcher",
]
