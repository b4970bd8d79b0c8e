"""Tests for the background jobs and their scheduling."""

from contextlib import asynccontextmanager

import pytest

from groups_api.models.domain.derived import DerivedRuleType
from groups_api.models.domain.group import GroupType
from groups_api.models.dto.derived import DerivedRuleCreate
from groups_api.services.derived_group_service import DerivedGroupService
from groups_api.tasks import scheduler


@pytest.fixture
def job_environment(monkeypatch, session, cache):
    """Point the jobs at the test session and cache."""
    import groups_api.database
    import groups_api.services.cache_service

    @asynccontextmanager
    async def _session_maker():
        yield session

    async def _get_cache():
        return cache

    monkeypatch.setattr(groups_api.database, "async_session_maker", _session_maker)
    monkeypatch.setattr(groups_api.services.cache_service, "get_group_cache", _get_cache)


class TestJobs:
    """Tests for the job bodies."""

    @pytest.mark.asyncio
    async def test_derived_sync_job(self, job_environment, make_group, group_service, session, cache):
        derived = await make_group("owner-1", name="Everyone", group_type=GroupType.DERIVED)
        source = await make_group("owner-a", name="Source")
        await group_service.join_group(source.id, "user-1")
        await DerivedGroupService(session, cache).create_derived_rule(
            DerivedRuleCreate(
                derived_group_id=derived.id,
                rule_type=DerivedRuleType.UNION,
                source_group_ids=[source.id],
            ),
            "owner-1",
        )

        await scheduler.sync_derived_groups_job()

        assert sorted(await group_service.member_repo.get_user_ids(derived.id)) == [
            "owner-1",
            "owner-a",
            "user-1",
        ]

    @pytest.mark.asyncio
    async def test_failed_job_does_not_raise(self, job_environment, monkeypatch, caplog):
        async def _explode(self):
            raise RuntimeError("database went away")

        monkeypatch.setattr(DerivedGroupService, "sync_all_derived_groups", _explode)

        await scheduler.sync_derived_groups_job()

        assert "Derived group sync failed" in caplog.text

    @pytest.mark.asyncio
    async def test_invitation_expiry_job(self, job_environment, caplog):
        import logging

        caplog.set_level(logging.INFO, logger="groups_api.tasks.scheduler")

        await scheduler.expire_invitations_job()

        assert "Invitation expiry completed: 0 expired" in caplog.text


class TestScheduler:
    """Tests for starting and stopping the scheduler."""

    @pytest.mark.asyncio
    async def test_start_registers_jobs(self, monkeypatch):
        async def _noop():
            return None

        monkeypatch.setattr(scheduler, "sync_derived_groups_job", _noop)
        monkeypatch.setattr(scheduler, "expire_invitations_job", _noop)

        await scheduler.start_scheduler()
        try:
            job_ids = {job.id for job in scheduler._scheduler.get_jobs()}
            assert job_ids == {"sync_derived_groups", "expire_invitations"}
        finally:
            await scheduler.stop_scheduler()

        assert scheduler._scheduler is None
