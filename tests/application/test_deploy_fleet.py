"""Tests for DeployFleet use case."""

import asyncio
import logging
import pytest
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock
from henix.application.use_cases.deploy_fleet import DeployFleet
from henix.domain.errors import NodeTimeoutError, TargetValidationError
from henix.domain.value_objects.deployment_options import DeploymentOptions
from henix.domain.value_objects.deployment_result import (
    DeploymentOutcome,
    DeploymentResult,
)
from henix.domain.value_objects.node_target import NodeTarget

CFG_DIR = Path("/srv/config")


def _nodes(*names):
    return {
        name: NodeTarget(name=name, address=f"{name}.example.com")
        for name in sorted(names)
    }


def _succeeded(target, *_):
    return DeploymentResult(node=target.name, outcome=DeploymentOutcome.SUCCEEDED)


class TestDeployFleet:
    def _make_use_case(self, side_effect=_succeeded, timeout=0):
        deploy_node = MagicMock()
        deploy_node.execute = AsyncMock(side_effect=side_effect)
        return DeployFleet(deploy_node, node_timeout_seconds=timeout), deploy_node

    @pytest.mark.asyncio
    async def test_deploys_every_node(self):
        use_case, deploy_node = self._make_use_case()
        nodes = _nodes("web1", "web2", "db1")

        report = await use_case.execute(nodes, CFG_DIR, DeploymentOptions())

        assert report.nodes == ("db1", "web1", "web2")
        assert report.failed == ()
        assert deploy_node.execute.await_count == 3
        options = DeploymentOptions()
        for target in nodes.values():
            deploy_node.execute.assert_any_await(target, CFG_DIR, options)

    @pytest.mark.asyncio
    async def test_target_filter(self):
        use_case, deploy_node = self._make_use_case()
        nodes = _nodes("web1", "web2", "db1")

        report = await use_case.execute(
            nodes, CFG_DIR, DeploymentOptions.create(targets=["web2", "db1"])
        )

        assert report.nodes == ("db1", "web2")
        deployed = {c.args[0].name for c in deploy_node.execute.await_args_list}
        assert deployed == {"db1", "web2"}

    @pytest.mark.asyncio
    async def test_unknown_target_fails_before_any_node_runs(self):
        use_case, deploy_node = self._make_use_case()
        nodes = _nodes("web1", "web2")

        with pytest.raises(TargetValidationError, match="`web3`"):
            await use_case.execute(
                nodes, CFG_DIR, DeploymentOptions.create(targets=["web1", "web3"])
            )

        deploy_node.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_fleet(self, caplog):
        use_case, deploy_node = self._make_use_case()

        with caplog.at_level(logging.WARNING, logger="henix"):
            report = await use_case.execute({}, CFG_DIR, DeploymentOptions())

        assert report.results == ()
        deploy_node.execute.assert_not_called()
        assert "No nodes to deploy" in caplog.text

    @pytest.mark.asyncio
    async def test_one_failure_does_not_affect_siblings(self):
        def side_effect(target, *_):
            if target.name == "web1":
                return DeploymentResult(
                    node="web1",
                    outcome=DeploymentOutcome.CONNECTION_FAILED,
                    error=RuntimeError("unreachable"),
                )
            return _succeeded(target)

        use_case, _ = self._make_use_case(side_effect)

        report = await use_case.execute(
            _nodes("web1", "web2", "web3"), CFG_DIR, DeploymentOptions()
        )

        assert [r.node for r in report.failed] == ["web1"]
        assert [r.node for r in report.succeeded] == ["web2", "web3"]
        assert report.result_for("web1").outcome is DeploymentOutcome.CONNECTION_FAILED

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_contained(self, caplog):
        def side_effect(target, *_):
            if target.name == "web2":
                raise RuntimeError("bug in adapter")
            return _succeeded(target)

        use_case, _ = self._make_use_case(side_effect)

        with caplog.at_level(logging.INFO, logger="henix"):
            report = await use_case.execute(
                _nodes("web1", "web2"), CFG_DIR, DeploymentOptions()
            )

        failed = report.result_for("web2")
        assert failed.outcome is DeploymentOutcome.FAILED_NO_ROLLBACK
        assert str(failed.error) == "bug in adapter"
        assert report.result_for("web1").succeeded
        assert "Unexpected error during deployment" in caplog.text

    @pytest.mark.asyncio
    async def test_nodes_run_concurrently(self):
        # Each run waits until every run has started; sequential runs would hang
        started = []
        all_started = asyncio.Event()

        async def side_effect(target, *_):
            started.append(target.name)
            if len(started) == 3:
                all_started.set()
            await all_started.wait()
            return _succeeded(target)

        use_case, _ = self._make_use_case(side_effect)

        report = await asyncio.wait_for(
            use_case.execute(_nodes("a", "b", "c"), CFG_DIR, DeploymentOptions()),
            timeout=5,
        )

        assert sorted(started) == ["a", "b", "c"]
        assert len(report.succeeded) == 3

    @pytest.mark.asyncio
    async def test_slow_node_times_out(self):
        async def side_effect(target, *_):
            if target.name == "slow":
                await asyncio.sleep(10)
            return _succeeded(target)

        use_case, _ = self._make_use_case(side_effect, timeout=0.05)

        report = await use_case.execute(
            _nodes("fast", "slow"), CFG_DIR, DeploymentOptions()
        )

        slow = report.result_for("slow")
        assert slow.outcome is DeploymentOutcome.FAILED_NO_ROLLBACK
        assert isinstance(slow.error, NodeTimeoutError)
        assert report.result_for("fast").succeeded

    @pytest.mark.asyncio
    async def test_terminal_results_are_logged_per_node(self, caplog):
        use_case, _ = self._make_use_case()

        with caplog.at_level(logging.INFO, logger="henix"):
            await use_case.execute(_nodes("web1", "web2"), CFG_DIR, DeploymentOptions())

        finished = [r for r in caplog.records if "Finished" in r.getMessage()]
        assert sorted(r.node for r in finished) == ["web1", "web2"]
