"""
Batch lookups of user and repository display data.
"""

from collections.abc import Iterable

from app.db.helpers import fetch_all


class ReferenceRepository:
    """Raw SQL helpers resolving ids into display rows."""

    @classmethod
    async def fetch_users(cls, user_ids: Iterable[str]) -> list[dict]:
        ids = sorted({user_id for user_id in user_ids if user_id})
        if not ids:
            return []

        query = """
            SELECT id, login, name
            FROM users
            WHERE id = ANY(%s::text[])
        """
        return await fetch_all(query, (ids,))

    @classmethod
    async def fetch_repositories(cls, repository_ids: Iterable[str]) -> list[dict]:
        ids = sorted({repository_id for repository_id in repository_ids if repository_id})
        if not ids:
            return []

        query = """
            SELECT id, name, name_with_owner
            FROM repositories
            WHERE id = ANY(%s::text[])
        """
        return await fetch_all(query, (ids,))
