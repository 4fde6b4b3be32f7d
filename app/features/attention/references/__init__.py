"""Dense user/repository references for attention output."""

from .repository import ReferenceRepository
from .resolver import ReferenceResolver

__all__ = ["ReferenceRepository", "ReferenceResolver"]
