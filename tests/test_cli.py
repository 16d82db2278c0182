"""Tests for the sgo command line interface."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
import yaml
from click.testing import CliRunner
from openstack_mock import MockOpenStackContext

from secgroup_operator.cli import cli, describe_rule
from secgroup_operator.rules import RemoteCIDR, RemoteGroup, ResolvedRule


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def spec_file(tmp_path: Path) -> Path:
    path = tmp_path / "cluster.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "apiVersion": "infrastructure.cluster.x-k8s.io/v1beta1",
                "kind": "OpenStackCluster",
                "metadata": {"name": "demo"},
                "spec": {"managedSecurityGroups": {}, "bastion": {"enabled": True}},
            }
        )
    )
    return path


class TestDescribeRule:
    """Tests for describe_rule."""

    def test_port_range_and_group(self) -> None:
        rule = ResolvedRule(
            description="Node Port Services",
            protocol="tcp",
            port_range_min=30000,
            port_range_max=32767,
            remote=RemoteGroup("sg-1"),
        )
        assert describe_rule(rule) == "ingress IPv4 tcp 30000-32767 from group:sg-1 (Node Port Services)"

    def test_match_all(self) -> None:
        rule = ResolvedRule(direction="egress", ether_type="IPv6")
        assert describe_rule(rule) == "egress IPv6 any * from any"

    def test_prefix(self) -> None:
        rule = ResolvedRule(protocol="tcp", port_range_min=22, port_range_max=22, remote=RemoteCIDR("10.0.0.0/8"))
        assert describe_rule(rule) == "ingress IPv4 tcp 22 from 10.0.0.0/8"


class TestCli:
    """Tests for sgo commands against the in-memory provider."""

    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "sgo" in result.output

    def test_plan(self, runner: CliRunner, spec_file: Path) -> None:
        with MockOpenStackContext() as ctx:
            result = runner.invoke(cli, ["plan", str(spec_file), "--cloud", "mycloud"])

            assert result.exit_code == 0, result.output
            assert "k8s-cluster-demo-secgroup-controlplane" in result.output
            assert "group will be created" in result.output
            assert ctx.connected_clouds == ["mycloud"]
            assert ctx.state.mutating_calls == []

    def test_reconcile_then_plan_is_clean(
        self, runner: CliRunner, spec_file: Path, tmp_path: Path
    ) -> None:
        status_file = tmp_path / "status.yaml"
        with MockOpenStackContext() as ctx:
            result = runner.invoke(cli, ["reconcile", str(spec_file), "-o", str(status_file)])
            assert result.exit_code == 0, result.output
            assert ctx.state.group_count == 3

            status = yaml.safe_load(status_file.read_text())
            assert set(status) == {
                "controlPlaneSecurityGroup",
                "workerSecurityGroup",
                "bastionSecurityGroup",
            }
            assert status["bastionSecurityGroup"]["name"] == "k8s-cluster-demo-secgroup-bastion"

            result = runner.invoke(cli, ["plan", str(spec_file)])
            assert result.exit_code == 0, result.output
            assert "No changes" in result.output

    def test_reconcile_prints_status(self, runner: CliRunner, spec_file: Path) -> None:
        with MockOpenStackContext():
            result = runner.invoke(cli, ["reconcile", str(spec_file)])
        assert result.exit_code == 0, result.output
        assert "workerSecurityGroup" in result.output

    def test_cluster_name_override(self, runner: CliRunner, spec_file: Path) -> None:
        with MockOpenStackContext() as ctx:
            result = runner.invoke(cli, ["reconcile", str(spec_file), "--cluster-name", "other"])
            assert result.exit_code == 0, result.output
            assert ctx.state.groups_named("k8s-cluster-other-secgroup-worker")

    def test_missing_cluster_name(self, runner: CliRunner, tmp_path: Path) -> None:
        path = tmp_path / "cluster.yaml"
        path.write_text("managedSecurityGroups: {}\n")
        with MockOpenStackContext():
            result = runner.invoke(cli, ["plan", str(path)], env={"CLUSTER_NAME": None})
        assert result.exit_code != 0
        assert "Cluster name is required" in result.output

    def test_config_error_is_reported(self, runner: CliRunner, tmp_path: Path) -> None:
        path = tmp_path / "cluster.yaml"
        path.write_text(
            yaml.safe_dump(
                {
                    "name": "demo",
                    "managedSecurityGroups": {
                        "allNodesSecurityGroupRules": [
                            {"direction": "ingress", "remoteManagedGroups": ["bastion"]}
                        ]
                    },
                }
            )
        )
        with MockOpenStackContext() as ctx:
            result = runner.invoke(cli, ["reconcile", str(path)])
            assert ctx.state.calls == []
        assert result.exit_code != 0
        assert "bastion is not a valid remote managed security group" in result.output

    def test_connect_failure_is_reported(self, runner: CliRunner, spec_file: Path) -> None:
        with MockOpenStackContext(fail_connect=True):
            result = runner.invoke(cli, ["plan", str(spec_file)])
        assert result.exit_code != 0
        assert "connect failed" in result.output

    def test_rule_failure_is_recorded_as_event(
        self, runner: CliRunner, spec_file: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        with MockOpenStackContext() as ctx:
            ctx.state.fail_on("create_rule", "rule quota exceeded")
            with caplog.at_level(logging.WARNING, logger="secgroup_operator.events"):
                result = runner.invoke(cli, ["reconcile", str(spec_file)])

        assert result.exit_code != 0
        assert "rule quota exceeded" in result.output
        reasons = [getattr(r, "reason", None) for r in caplog.records]
        assert "FailedReconcileSecurityGroupRules" in reasons

    def test_delete(self, runner: CliRunner, spec_file: Path) -> None:

        with MockOpenStackContext() as ctx:
            runner.invoke(cli, ["reconcile", str(spec_file)])
            result = runner.invoke(cli, ["delete", str(spec_file), "--yes"])

            assert result.exit_code == 0, result.output
            assert "Deleted k8s-cluster-demo-secgroup-bastion" in result.output
            assert ctx.state.group_count == 0

    def test_delete_asks_for_confirmation(self, runner: CliRunner, spec_file: Path) -> None:
        with MockOpenStackContext() as ctx:
            runner.invoke(cli, ["reconcile", str(spec_file)])
            result = runner.invoke(cli, ["delete", str(spec_file)], input="n\n")

            assert result.exit_code != 0
            assert ctx.state.group_count == 3
