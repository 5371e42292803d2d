"""Unit tests for GithubPoller: eligibility handling, watermark, branch fan-out."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, call, patch

import pytest

from commitsync.services.sync.poller import GithubPoller

from tests.helpers.mock_factories import make_mock_branch, make_mock_project

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=UTC)


@pytest.fixture
def ops():
    """Patched project_ops, branch_ops and token decryption for the poller module."""
    with (
        patch("commitsync.services.sync.poller.project_ops") as project_ops,
        patch("commitsync.services.sync.poller.branch_ops") as branch_ops,
        patch("commitsync.services.sync.poller.token_encryption") as encryption,
    ):
        project_ops.get_eligible_for_polling = AsyncMock(return_value=[])
        project_ops.touch_polled_at = AsyncMock()
        branch_ops.get_oldest = AsyncMock(return_value=[])
        branch_ops.get_last_discovered_at = AsyncMock(return_value=NOW)
        encryption.decrypt = MagicMock(side_effect=lambda value: f"plain:{value}")
        yield MagicMock(project=project_ops, branch=branch_ops, encryption=encryption)


def _branches(*names: str) -> list:
    return [make_mock_branch(branch_name=name) for name in names]


class TestSelection:
    @pytest.mark.asyncio
    async def test_no_eligible_projects(self, ops):
        schedule = MagicMock()

        report = await GithubPoller(schedule).run(AsyncMock(), now=NOW)

        assert report.projects_found == 0
        schedule.assert_not_called()

    @pytest.mark.asyncio
    async def test_cutoff_uses_min_interval(self, ops):
        await GithubPoller(MagicMock()).run(AsyncMock(), now=NOW)

        cutoff = ops.project.get_eligible_for_polling.call_args.args[1]
        assert cutoff == NOW - timedelta(seconds=50)


class TestFanOut:
    @pytest.mark.asyncio
    async def test_enqueues_oldest_branches_with_decrypted_token(self, ops):
        project = make_mock_project()
        ops.project.get_eligible_for_polling.return_value = [(project, "enc-token")]
        ops.branch.get_oldest.return_value = _branches("main", "develop", "release")
        schedule = MagicMock()

        report = await GithubPoller(schedule, branch_limit=3).run(AsyncMock(), now=NOW)

        assert schedule.call_args_list == [
            call(project.id, "plain:enc-token", "main"),
            call(project.id, "plain:enc-token", "develop"),
            call(project.id, "plain:enc-token", "release"),
        ]
        assert ops.branch.get_oldest.call_args.args[2] == 3
        assert report.projects_polled == 1
        assert report.refreshes_enqueued == 3

    @pytest.mark.asyncio
    async def test_default_branch_limit_is_three(self, ops):
        ops.project.get_eligible_for_polling.return_value = [(make_mock_project(), "t")]

        await GithubPoller(MagicMock()).run(AsyncMock(), now=NOW)

        assert ops.branch.get_oldest.call_args.args[2] == 3

    @pytest.mark.asyncio
    async def test_blank_branch_names_skipped(self, ops):
        ops.project.get_eligible_for_polling.return_value = [(make_mock_project(), "t")]
        ops.branch.get_oldest.return_value = _branches("main", "  ")
        schedule = MagicMock()

        report = await GithubPoller(schedule).run(AsyncMock(), now=NOW)

        assert schedule.call_count == 1
        assert report.refreshes_enqueued == 1


class TestWatermark:
    @pytest.mark.asyncio
    async def test_watermark_committed_before_any_enqueue(self, ops):
        project = make_mock_project()
        ops.project.get_eligible_for_polling.return_value = [(project, "t")]
        ops.branch.get_oldest.return_value = _branches("main")

        order: list[str] = []
        db = AsyncMock()
        ops.project.touch_polled_at.side_effect = lambda *a: order.append("touch")
        db.commit.side_effect = lambda: order.append("commit")
        schedule = MagicMock(side_effect=lambda *a: order.append("enqueue"))

        await GithubPoller(schedule).run(db, now=NOW)

        ops.project.touch_polled_at.assert_awaited_once_with(db, project.id, NOW)
        assert order == ["touch", "commit", "enqueue"]

    @pytest.mark.asyncio
    async def test_project_without_branches_still_advances_watermark(self, ops):
        ops.project.get_eligible_for_polling.return_value = [(make_mock_project(), "t")]
        schedule = MagicMock()

        report = await GithubPoller(schedule).run(AsyncMock(), now=NOW)

        ops.project.touch_polled_at.assert_awaited_once()
        schedule.assert_not_called()
        assert report.projects_polled == 1


class TestErrorIsolation:
    @pytest.mark.asyncio
    async def test_failure_on_one_project_does_not_stop_cycle(self, ops):
        failing = make_mock_project()
        healthy = make_mock_project()
        ops.project.get_eligible_for_polling.return_value = [(failing, "t1"), (healthy, "t2")]
        ops.branch.get_oldest.return_value = _branches("main")

        async def touch(db, project_id, now):
            if project_id == failing.id:
                raise RuntimeError("connection reset")

        ops.project.touch_polled_at.side_effect = touch
        schedule = MagicMock()
        db = AsyncMock()

        report = await GithubPoller(schedule).run(db, now=NOW)

        assert report.projects_polled == 1
        assert report.projects_failed == 1
        assert "connection reset" in report.errors[0]
        db.rollback.assert_awaited_once()
        schedule.assert_called_once_with(healthy.id, "plain:t2", "main")

    @pytest.mark.asyncio
    async def test_enqueue_failure_counts_as_project_failure(self, ops):
        ops.project.get_eligible_for_polling.return_value = [(make_mock_project(), "t")]
        ops.branch.get_oldest.return_value = _branches("main")
        schedule = MagicMock(side_effect=RuntimeError("Task queue is not bound"))

        report = await GithubPoller(schedule).run(AsyncMock(), now=NOW)

        assert report.projects_failed == 1
        ops.project.touch_polled_at.assert_awaited_once()


class TestBranchDiscoveryInterval:
    @pytest.mark.asyncio
    async def test_stale_discovery_enqueues_branch_fetch(self, ops):
        project = make_mock_project()
        ops.project.get_eligible_for_polling.return_value = [(project, "t")]
        ops.branch.get_last_discovered_at.return_value = NOW - timedelta(minutes=11)
        fetch = MagicMock()

        report = await GithubPoller(MagicMock(), schedule_branch_fetch=fetch).run(
            AsyncMock(), now=NOW
        )

        fetch.assert_called_once_with(project.id, "plain:t")
        assert report.discoveries_enqueued == 1

    @pytest.mark.asyncio
    async def test_recent_discovery_skips_branch_fetch(self, ops):
        ops.project.get_eligible_for_polling.return_value = [(make_mock_project(), "t")]
        ops.branch.get_last_discovered_at.return_value = NOW - timedelta(minutes=5)
        fetch = MagicMock()

        report = await GithubPoller(MagicMock(), schedule_branch_fetch=fetch).run(
            AsyncMock(), now=NOW
        )

        fetch.assert_not_called()
        assert report.discoveries_enqueued == 0

    @pytest.mark.asyncio
    async def test_no_branch_fetch_hook_means_no_discovery_check(self, ops):
        ops.project.get_eligible_for_polling.return_value = [(make_mock_project(), "t")]

        await GithubPoller(MagicMock()).run(AsyncMock(), now=NOW)

        ops.branch.get_last_discovered_at.assert_not_awaited()
