"""Tests for plan file loading."""

import pytest
import yaml

from bounty_distribution.runner import PlanError, load_plan, parse_plan


@pytest.fixture
def plan_data() -> dict:
    return {
        "run_id": "acme-2026-10",
        "repository_id": 42,
        "total_bounty": "1.5",
        "project_index": 1,
        "token": {"address": "0x" + "3" * 40, "decimals": 6},
        "weights": {"version": "v1", "commit": 3, "pull_request": 5, "review": 2},
        "recipients": {"1001": "0x" + "0" * 39 + "1"},
        "contributors": [
            {"id": 1001, "login": "alice", "commits": 10, "pull_requests": 2},
        ],
    }


class TestParsePlan:
    """Tests for parse_plan()."""

    def test_full_plan(self, plan_data):
        plan = parse_plan(plan_data)

        assert plan.run_id == "acme-2026-10"
        assert plan.repository_id == "42"
        assert plan.total_bounty == "1.5"
        assert plan.token_decimals == 6
        assert plan.project_index == 1
        assert plan.weights.version == "v1"
        assert plan.recipients == {"1001": "0x" + "0" * 39 + "1"}
        assert plan.has_static_contributors
        alice = plan.contributors[0]
        assert alice.id == "1001"
        assert alice.activity.pull_requests == 2
        assert alice.activity.reviews == 0

    def test_defaults(self, plan_data):
        for key in ("run_id", "project_index", "contributors"):
            del plan_data[key]
        del plan_data["token"]["decimals"]

        plan = parse_plan(plan_data)

        assert plan.run_id.startswith("42-")
        assert plan.project_index == 0
        assert plan.precision == 0
        assert plan.token_decimals == 18
        assert not plan.has_static_contributors

    @pytest.mark.parametrize(
        "key", ["repository_id", "total_bounty", "token", "weights", "recipients"]
    )
    def test_missing_required_key(self, plan_data, key):
        del plan_data[key]

        with pytest.raises(PlanError, match=key):
            parse_plan(plan_data)

    def test_weights_have_no_default(self, plan_data):
        """Weights without a version are rejected."""
        del plan_data["weights"]["version"]

        with pytest.raises(PlanError):
            parse_plan(plan_data)

    def test_recipients_must_be_mapping(self, plan_data):
        plan_data["recipients"] = ["0x" + "1" * 40]

        with pytest.raises(PlanError, match="recipients"):
            parse_plan(plan_data)

    def test_unquoted_hex_address_rejected(self, plan_data):
        """PyYAML loads an unquoted 0x address as an integer."""
        plan_data["recipients"]["1001"] = 0x1

        with pytest.raises(PlanError, match="quote"):
            parse_plan(plan_data)

    def test_unquoted_token_address_rejected(self, tmp_path):
        path = tmp_path / "plan.yaml"
        path.write_text(
            "repository_id: '42'\n"
            "total_bounty: '1'\n"
            f"token:\n  address: 0x{'3' * 40}\n"
            "weights: {version: v1, commit: 1, pull_request: 1, review: 1}\n"
            "recipients: {}\n"
        )

        with pytest.raises(PlanError, match="token.address"):
            load_plan(path)

    def test_bad_number(self, plan_data):
        plan_data["project_index"] = "first"

        with pytest.raises(PlanError):
            parse_plan(plan_data)


class TestLoadPlan:
    """Tests for load_plan()."""

    def test_loads_yaml(self, tmp_path, plan_data):
        path = tmp_path / "plan.yaml"
        path.write_text(yaml.safe_dump(plan_data))

        assert load_plan(path).run_id == "acme-2026-10"

    def test_missing_file(self, tmp_path):
        with pytest.raises(PlanError, match="not found"):
            load_plan(tmp_path / "absent.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "plan.yaml"
        path.write_text("token: [unclosed")

        with pytest.raises(PlanError, match="Invalid YAML"):
            load_plan(path)

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "plan.yaml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(PlanError, match="mapping"):
            load_plan(path)


class TestDeriveRunId:
    """Tests for run ids of plans without an explicit run_id."""

    @pytest.fixture(autouse=True)
    def drop_run_id(self, plan_data):
        del plan_data["run_id"]

    def test_same_plan_same_id(self, plan_data):
        assert parse_plan(plan_data).run_id == parse_plan(dict(plan_data)).run_id

    def test_address_case_ignored(self, plan_data):
        plan_data["token"]["address"] = "0x" + "A" * 40
        upper = parse_plan(plan_data).run_id
        plan_data["token"]["address"] = "0x" + "a" * 40

        assert parse_plan(plan_data).run_id == upper

    def test_changed_amount_changes_id(self, plan_data):
        first = parse_plan(plan_data).run_id
        plan_data["total_bounty"] = "2.0"

        assert parse_plan(plan_data).run_id != first

    def test_repository_id_made_file_safe(self, plan_data):
        plan_data["repository_id"] = "acme/widgets"

        assert parse_plan(plan_data).run_id.startswith("acme-widgets-")
