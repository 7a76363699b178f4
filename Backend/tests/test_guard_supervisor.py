# tests/test_guard_supervisor.py
"""
Deployment guard and background supervisor.
"""
import asyncio

import pytest

from appforge.core.exceptions import DeploymentInFlightError
from appforge.deploy import BackgroundSupervisor, DeploymentGuard

from conftest import make_deploy_output


class TestDeploymentGuard:

    @pytest.mark.asyncio
    async def test_try_claim_is_exclusive_per_key(self):
        guard = DeploymentGuard()

        assert await guard.try_claim("app-1") is True
        assert await guard.try_claim("app-1") is False
        assert await guard.try_claim("app-2") is True

        await guard.release("app-1")
        assert await guard.try_claim("app-1") is True

    @pytest.mark.asyncio
    async def test_claim_waits_for_release(self):
        guard = DeploymentGuard()
        await guard.claim("app-1")

        waiter = asyncio.create_task(guard.claim("app-1"))
        await asyncio.sleep(0)
        assert not waiter.done()

        await guard.release("app-1")
        await asyncio.wait_for(waiter, timeout=1)
        assert guard.is_claimed("app-1")

    @pytest.mark.asyncio
    async def test_hold_releases_on_error(self):
        guard = DeploymentGuard()

        with pytest.raises(RuntimeError):
            async with guard.hold("app-1"):
                assert guard.is_claimed("app-1")
                raise RuntimeError("deploy blew up")

        assert not guard.is_claimed("app-1")

    @pytest.mark.asyncio
    async def test_hold_without_waiting_raises_when_held(self):
        guard = DeploymentGuard()
        await guard.claim("app-1")

        with pytest.raises(DeploymentInFlightError) as exc_info:
            async with guard.hold("app-1", wait=False):
                pass

        assert exc_info.value.app_key == "app-1"
        assert guard.is_claimed("app-1")

    @pytest.mark.asyncio
    async def test_holders_run_one_at_a_time(self):
        guard = DeploymentGuard()
        inside = []
        overlaps = []

        async def deploy(n):
            async with guard.hold("app-1"):
                if inside:
                    overlaps.append(n)
                inside.append(n)
                await asyncio.sleep(0)
                inside.remove(n)

        await asyncio.gather(*[deploy(n) for n in range(5)])

        assert overlaps == []
        assert not guard.is_claimed("app-1")

    def test_last_deployment(self):
        guard = DeploymentGuard()
        first = make_deploy_output(deployment_id="dpl_1")
        second = make_deploy_output(deployment_id="dpl_2")

        assert guard.last_deployment("app-1") is None
        guard.record_deployment("app-1", first)
        guard.record_deployment("app-1", second)

        assert guard.last_deployment("app-1") is second
        assert guard.last_deployment("app-2") is None

    def test_history_keeps_the_most_recent_apps(self):
        guard = DeploymentGuard(history_size=2)
        for key in ["app-1", "app-2"]:
            guard.record_deployment(key, make_deploy_output(deployment_id=f"dpl_{key}"))

        # Redeploying app-1 makes app-2 the oldest
        guard.record_deployment("app-1", make_deploy_output(deployment_id="dpl_again"))
        guard.record_deployment("app-3", make_deploy_output(deployment_id="dpl_app-3"))

        assert guard.last_deployment("app-2") is None
        assert guard.last_deployment("app-1").deployment_id == "dpl_again"
        assert guard.last_deployment("app-3").deployment_id == "dpl_app-3"
        assert len(guard._deployments) == 2


class TestBackgroundSupervisor:

    @pytest.mark.asyncio
    async def test_result_is_returned(self):
        supervisor = BackgroundSupervisor()

        async def work():
            return 42

        task = supervisor.spawn(work(), kind="test")
        await supervisor.drain()

        assert task.result() == 42
        assert supervisor.active_count == 0

    @pytest.mark.asyncio
    async def test_failures_are_contained(self):
        supervisor = BackgroundSupervisor()

        async def boom():
            raise ValueError("nope")

        task = supervisor.spawn(boom(), kind="test")
        await supervisor.drain()

        assert task.result() is None
        assert supervisor.active_count == 0

    @pytest.mark.asyncio
    async def test_drain_waits_for_nested_spawns(self):
        supervisor = BackgroundSupervisor()
        done = []

        async def child():
            await asyncio.sleep(0)
            done.append("child")

        async def parent():
            supervisor.spawn(child(), kind="child")
            done.append("parent")

        supervisor.spawn(parent(), kind="parent")
        await supervisor.drain()

        assert done == ["parent", "child"]

    @pytest.mark.asyncio
    async def test_shutdown_cancels_running_work(self):
        supervisor = BackgroundSupervisor()
        never = asyncio.Event()

        task = supervisor.spawn(never.wait(), kind="stuck")
        await asyncio.sleep(0)
        await supervisor.shutdown()

        assert task.cancelled()
        assert supervisor.active_count == 0
