from unittest.mock import AsyncMock

import pytest

from app.features.attention.classification.classifier import MentionClassificationSummary
from app.features.attention.jobs import classification_job
from app.jobs import worker


@pytest.mark.asyncio
async def test_run_worker_runs_job(monkeypatch):
    called = {"ok": False}

    async def dummy_job():
        called["ok"] = True

    monkeypatch.setitem(worker.JOB_REGISTRY, "dummy", dummy_job)

    await worker.run_worker("dummy")

    assert called["ok"] is True


@pytest.mark.asyncio
async def test_run_worker_unknown_job():
    with pytest.raises(ValueError):
        await worker.run_worker("missing")


def test_job_name_from_env(monkeypatch):
    monkeypatch.setattr(worker.sys, "argv", ["worker"])
    monkeypatch.setenv("WORKER_JOB", " Mention_Classification ")

    assert worker._resolve_job_name() == "mention_classification"


def test_mention_classification_is_registered():
    assert worker.JOB_REGISTRY["mention_classification"] is classification_job.run_mention_classification


@pytest.mark.asyncio
async def test_classification_job_manages_pool(monkeypatch):
    initialize_mock = AsyncMock()
    close_mock = AsyncMock()
    run_mock = AsyncMock(return_value=MentionClassificationSummary(updated=1))
    monkeypatch.setattr(classification_job.db_pool, "initialize", initialize_mock)
    monkeypatch.setattr(classification_job.db_pool, "close", close_mock)
    monkeypatch.setattr(classification_job.mention_classifier, "run", run_mock)
    monkeypatch.setenv("ATTENTION_CLASSIFY_FORCE", "true")

    await classification_job.run_mention_classification()

    initialize_mock.assert_awaited_once()
    close_mock.assert_awaited_once()
    run_mock.assert_awaited_once_with(force=True)


@pytest.mark.asyncio
async def test_classification_job_closes_pool_on_failure(monkeypatch):
    close_mock = AsyncMock()
    monkeypatch.setattr(classification_job.db_pool, "initialize", AsyncMock())
    monkeypatch.setattr(classification_job.db_pool, "close", close_mock)
    monkeypatch.setattr(classification_job.mention_classifier, "run", AsyncMock(side_effect=RuntimeError("down")))

    with pytest.raises(RuntimeError):
        await classification_job.run_mention_classification(force=False)

    close_mock.assert_awaited_once()


@pytest.mark.asyncio
async def test_classification_job_respects_disabled_flag(monkeypatch):
    initialize_mock = AsyncMock()
    monkeypatch.setattr(classification_job.settings, "ATTENTION_MENTION_CLASSIFIER_ENABLED", False)
    monkeypatch.setattr(classification_job.db_pool, "initialize", initialize_mock)

    await classification_job.run_mention_classification()

    initialize_mock.assert_not_awaited()
