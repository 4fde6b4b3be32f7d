"""
Job runners for the attention feature.
"""

from .classification_job import run_mention_classification

__all__ = ["run_mention_classification"]
