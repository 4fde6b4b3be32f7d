"""
Reference resolver.

Resolves the union of every user and repository id referenced by one
insights computation in a single batch, then hands out the same reference
object for an id whatever role it is looked up under.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass, field

from app.infrastructure.observability.logging import get_logger
from app.models.api.attention_response import RepositoryReference, UserReference

from .repository import ReferenceRepository

logger = get_logger(__name__)


def _text(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    return None


@dataclass(slots=True)
class ReferenceResolver:
    users: dict[str, UserReference] = field(default_factory=dict)
    repositories: dict[str, RepositoryReference] = field(default_factory=dict)

    @classmethod
    async def load(cls, user_ids: Iterable[str], repository_ids: Iterable[str]) -> ReferenceResolver:
        user_rows, repository_rows = await asyncio.gather(
            ReferenceRepository.fetch_users(user_ids),
            ReferenceRepository.fetch_repositories(repository_ids),
        )
        return cls.from_rows(user_rows, repository_rows)

    @classmethod
    def from_rows(cls, user_rows: Iterable[dict], repository_rows: Iterable[dict]) -> ReferenceResolver:
        resolver = cls()
        for row in user_rows:
            if row.get("id"):
                resolver.users[row["id"]] = UserReference(
                    id=row["id"], login=_text(row.get("login")), name=_text(row.get("name"))
                )
        for row in repository_rows:
            if row.get("id"):
                resolver.repositories[row["id"]] = RepositoryReference(
                    id=row["id"],
                    name=_text(row.get("name")),
                    name_with_owner=_text(row.get("name_with_owner")),
                )
        logger.debug(
            "References resolved",
            users=len(resolver.users),
            repositories=len(resolver.repositories),
        )
        return resolver

    def user(self, user_id: str | None) -> UserReference | None:
        return self.users.get(user_id) if user_id else None

    def user_list(self, user_ids: Iterable[str]) -> list[UserReference]:
        """References for known ids, deduplicated, in input order."""
        seen: set[str] = set()
        references = []
        for user_id in user_ids:
            if user_id in seen:
                continue
            seen.add(user_id)
            reference = self.users.get(user_id)
            if reference is not None:
                references.append(reference)
        return references

    def repository(self, repository_id: str | None) -> RepositoryReference | None:
        if not repository_id:
            return None
        return self.repositories.get(repository_id) or RepositoryReference(id=repository_id)
