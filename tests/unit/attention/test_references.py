from unittest.mock import AsyncMock

import pytest

from app.features.attention.references.resolver import ReferenceResolver


def test_user_list_is_deduplicated_and_ordered():
    resolver = ReferenceResolver.from_rows(
        [{"id": "u1", "login": "one", "name": ""}, {"id": "u2", "login": "two", "name": "Two"}], []
    )

    users = resolver.user_list(["u2", "u1", "u2", "ghost"])

    assert [user.id for user in users] == ["u2", "u1"]
    assert users[1].name is None


def test_same_id_resolves_to_same_object():
    resolver = ReferenceResolver.from_rows([{"id": "u1", "login": "one", "name": None}], [])

    assert resolver.user("u1") is resolver.user_list(["u1"])[0]
    assert resolver.user(None) is None
    assert resolver.user("missing") is None


def test_unknown_repository_keeps_its_id():
    resolver = ReferenceResolver.from_rows([], [{"id": "repo-1", "name": "api", "name_with_owner": "acme/api"}])

    assert resolver.repository("repo-1").name == "api"
    assert resolver.repository("repo-2").id == "repo-2"
    assert resolver.repository("repo-2").name is None
    assert resolver.repository(None) is None


@pytest.mark.asyncio
async def test_load_fetches_users_and_repositories(monkeypatch):
    users_mock = AsyncMock(return_value=[{"id": "u1", "login": "one", "name": None}])
    repositories_mock = AsyncMock(return_value=[])
    monkeypatch.setattr(
        "app.features.attention.references.resolver.ReferenceRepository.fetch_users", users_mock
    )
    monkeypatch.setattr(
        "app.features.attention.references.resolver.ReferenceRepository.fetch_repositories", repositories_mock
    )

    resolver = await ReferenceResolver.load({"u1"}, {"repo-1"})

    assert resolver.user("u1").login == "one"
    users_mock.assert_awaited_once_with({"u1"})
    repositories_mock.assert_awaited_once_with({"repo-1"})
