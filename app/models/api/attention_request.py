# app/models/api/attention_request.py
"""
Attention API request models.
Used by routes for input validation.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ClassifyMentionsRequest(BaseModel):
    """Request for running the unanswered mention classifier."""

    force: bool = Field(default=False, description="Re-evaluate mentions with a current record")


class MentionManualOverrideRequest(BaseModel):
    """Request for recording an administrator decision on one mention."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    comment_id: str = Field(..., min_length=1, description="Comment node ID")
    mentioned_user_id: str = Field(..., min_length=1, description="Mentioned user node ID")
    state: Literal["suppress", "force", "clear"] = Field(..., description="Decision to store")
    sync_completed_at: datetime | None = Field(
        default=None, description="Timestamp to record the decision at (default: now)"
    )
