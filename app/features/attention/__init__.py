"""
Attention insights feature package.

This vertical slice keeps every layer of the follow-up engine co-located:
business-day calendars, project status resolution, mention classification,
the five detectors, the aggregator, summaries, the API router and the
classification job.
"""

# Re-export the primary building blocks for easy access.
from .api.router import router as attention_router  # noqa: F401
from .service import AttentionInsightsService, attention_insights_service  # noqa: F401
from .summaries import build_follow_up_summaries  # noqa: F401
