"""Unit tests for condition utilities."""

from __future__ import annotations

from backup_bucket_operator.utils.conditions import (
    clear_condition,
    clear_failure_conditions,
    set_configuration_invalid_condition,
    set_policy_conflict_condition,
    set_provisioning_failed_condition,
    set_ready_condition,
    update_condition,
)


class TestConditions:
    """Test condition utilities."""

    def test_update_condition_new(self) -> None:
        """Test adding a new condition."""
        conditions = []
        result = update_condition(
            conditions, "TestCondition", "True", "TestReason", "Test message", observed_generation=1
        )

        assert len(result) == 1
        assert result[0]["type"] == "TestCondition"
        assert result[0]["status"] == "True"
        assert result[0]["reason"] == "TestReason"
        assert result[0]["message"] == "Test message"
        assert result[0]["observedGeneration"] == 1

    def test_update_condition_existing(self) -> None:
        """Test updating an existing condition."""
        conditions = [
            {
                "type": "TestCondition",
                "status": "False",
                "reason": "OldReason",
                "message": "Old message",
                "lastTransitionTime": "2023-01-01T00:00:00Z",
            }
        ]

        result = update_condition(
            conditions, "TestCondition", "True", "NewReason", "New message", observed_generation=2
        )

        assert len(result) == 1
        assert result[0]["status"] == "True"
        assert result[0]["reason"] == "NewReason"
        assert result[0]["message"] == "New message"
        assert result[0]["observedGeneration"] == 2
        assert result[0]["lastTransitionTime"] != "2023-01-01T00:00:00Z"

    def test_update_condition_same_status_keeps_transition_time(self) -> None:
        """Test that an unchanged status keeps its transition time."""
        conditions = [
            {
                "type": "Ready",
                "status": "True",
                "reason": "Converged",
                "message": "Old message",
                "lastTransitionTime": "2023-01-01T00:00:00Z",
            }
        ]

        result = set_ready_condition(conditions, True, "Still converged")

        assert result[0]["lastTransitionTime"] == "2023-01-01T00:00:00Z"
        assert result[0]["message"] == "Still converged"

    def test_set_ready_condition(self) -> None:
        """Test setting ready condition."""
        result = set_ready_condition([], True, "Ready", observed_generation=1)

        assert len(result) == 1
        assert result[0]["type"] == "Ready"
        assert result[0]["status"] == "True"
        assert result[0]["reason"] == "Converged"

    def test_set_ready_condition_false(self) -> None:
        """Test setting ready condition to false."""
        result = set_ready_condition([], False, "Failed")

        assert result[0]["status"] == "False"
        assert result[0]["reason"] == "NotConverged"
        assert "observedGeneration" not in result[0]

    def test_failure_conditions(self) -> None:
        """Test setting each failure condition."""
        conditions = set_configuration_invalid_condition([], "bad name", 1)
        conditions = set_provisioning_failed_condition(conditions, "quota", 1)
        conditions = set_policy_conflict_condition(conditions, "other key", 1)

        assert [c["type"] for c in conditions] == ["ConfigurationInvalid", "ProvisioningFailed", "PolicyConflict"]
        assert all(c["status"] == "True" for c in conditions)

    def test_clear_condition(self) -> None:
        """Test removing a condition."""
        conditions = set_ready_condition([], True, "Ready")
        assert clear_condition(conditions, "Ready") == []
        assert clear_condition(conditions, "Missing") == conditions

    def test_clear_failure_conditions_keeps_ready(self) -> None:
        """Test that clearing failures leaves other conditions."""
        conditions = set_ready_condition([], False, "Failed")
        conditions = set_policy_conflict_condition(conditions, "other key")
        conditions = set_provisioning_failed_condition(conditions, "quota")

        result = clear_failure_conditions(conditions)

        assert [c["type"] for c in result] == ["Ready"]
