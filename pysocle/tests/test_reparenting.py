"""Unit tests for the re-parenting plan sync applies before deleting branches."""

import pytest

from pysocle.stack.sync import plan_reparenting
from pysocle.typing import BrokenTrackingError


class TestPlanReparenting:
    """Tests for plan_reparenting."""

    def test_single_deleted_parent(self) -> None:
        """Test that a child of a deleted branch moves to the deleted branch's parent."""
        parents = {"a": "main", "b": "a", "c": "b"}
        assert plan_reparenting(parents, ["b"]) == {"c": "a"}

    def test_two_consecutive_deleted_ancestors(self) -> None:
        """Test that base -> B1 -> B2 -> C with B1 and B2 gone puts C on base."""
        parents = {"B1": "main", "B2": "B1", "C": "B2"}
        assert plan_reparenting(parents, ["B1", "B2"]) == {"C": "main"}

    @pytest.mark.parametrize("run_length", [3, 4, 7])
    def test_long_run_of_deleted_ancestors(self, run_length: int) -> None:
        """Test that a run of three or more deleted ancestors is spliced out in one pass."""
        doomed = [f"merged-{i}" for i in range(run_length)]
        chain = ["main"] + doomed + ["survivor", "tip"]
        parents = {branch: parent for parent, branch in zip(chain, chain[1:])}

        plan = plan_reparenting(parents, doomed)

        assert plan == {"survivor": "main"}

    def test_deletion_order_does_not_matter(self) -> None:
        """Test that the plan is the same whichever order candidates come in."""
        parents = {"B1": "main", "B2": "B1", "B3": "B2", "C": "B3"}
        assert plan_reparenting(parents, ["B3", "B1", "B2"]) == {"C": "main"}

    def test_gaps_between_deleted_branches(self) -> None:
        """Test that survivors between deleted runs each land on their nearest survivor."""
        parents = {"a": "main", "b": "a", "c": "b", "d": "c", "e": "d"}
        plan = plan_reparenting(parents, ["a", "c", "d"])
        assert plan == {"b": "main", "e": "b"}

    def test_nothing_to_delete(self) -> None:
        """Test that an empty candidate list changes nothing."""
        assert plan_reparenting({"a": "main"}, []) == {}

    def test_snapshot_is_not_modified(self) -> None:
        """Test that the parent map passed in is left untouched."""
        parents = {"B1": "main", "B2": "B1", "C": "B2"}
        plan_reparenting(parents, ["B1", "B2"])
        assert parents == {"B1": "main", "B2": "B1", "C": "B2"}

    def test_deleted_cycle(self) -> None:
        """Test that a cycle made only of deleted branches is reported."""
        parents = {"x": "y", "y": "x", "z": "x"}
        with pytest.raises(BrokenTrackingError):
            plan_reparenting(parents, ["x", "y"])
