"""Tests for the Structural Validator."""
import pytest

from symflow.engine.validator import StructuralValidator, validate_graph
from symflow.models import FindingCode, FlowNodeDraft, UnresolvedReference


def draft(node_id, kind, **kwargs):
    return FlowNodeDraft(id=node_id, kind=kind, title=node_id.title(), **kwargs)


def warning_codes(result):
    return [w.code for w in result.warnings]


class TestStructuralValidator:
    """Test suite for StructuralValidator."""

    @pytest.fixture
    def validator(self):
        return StructuralValidator()

    @pytest.fixture
    def linear(self):
        return [
            draft("t", "trigger", next_on_success="a"),
            draft("a", "action", next_on_success="e"),
            draft("e", "end", end_status="success"),
        ]

    # =========================================================================
    # Valid graphs
    # =========================================================================

    def test_linear_graph_is_valid(self, validator, linear):
        result = validator.validate(linear)

        assert result.is_valid
        assert result.errors == []
        assert result.warnings == []

    def test_warnings_never_block(self, validator, linear):
        """An unreachable node is reported but the graph stays valid."""
        nodes = linear + [draft("orphan", "action", next_on_success="e")]

        result = validator.validate(nodes)

        assert result.is_valid
        assert warning_codes(result) == [FindingCode.UNREACHABLE_NODE]
        assert result.warnings[0].affected_node_id == "orphan"

    # =========================================================================
    # Triggers and ends
    # =========================================================================

    def test_no_trigger(self, validator):
        result = validator.validate([
            draft("a", "action", next_on_success="e"),
            draft("e", "end", end_status="success"),
        ])

        assert result.codes() == [FindingCode.NO_TRIGGER]

    def test_multiple_triggers(self, validator):
        result = validator.validate([
            draft("t1", "trigger", next_on_success="e"),
            draft("t2", "trigger", next_on_success="e"),
            draft("e", "end", end_status="success"),
        ])

        assert result.codes() == [FindingCode.MULTIPLE_TRIGGERS]
        assert result.errors[0].affected_node_id == "t2"

    def test_no_success_end(self, validator):
        result = validator.validate([
            draft("t", "trigger", next_on_success="a"),
            draft("a", "action"),
        ])

        assert result.codes() == [FindingCode.NO_SUCCESS_END]
        assert warning_codes(result) == [FindingCode.NODE_NO_OUTPUT]

    def test_error_end_does_not_count_as_success(self, validator):
        result = validator.validate([
            draft("t", "trigger", next_on_success="e"),
            draft("e", "end", end_status="error"),
        ])

        assert FindingCode.NO_SUCCESS_END in result.codes()

    # =========================================================================
    # References
    # =========================================================================

    def test_dangling_reference(self, validator):
        result = validator.validate([
            draft("t", "trigger", next_on_success="ghost"),
            draft("e", "end", end_status="success"),
        ])

        assert result.codes() == [FindingCode.INVALID_REF, FindingCode.TRIGGER_NO_OUTPUT]
        invalid = result.errors[0]
        assert invalid.affected_node_id == "t"
        assert invalid.reference == "ghost"
        assert "ghost" in invalid.message

    def test_cleared_reference_is_still_reported(self, validator):
        """References the normalizer had to clear stay visible as INVALID_REF."""
        nodes = [
            draft("t", "trigger"),
            draft("e", "end", end_status="success"),
        ]
        unresolved = [UnresolvedReference(node_id="t", field="next_on_success", raw_value="bogus")]

        result = validator.validate(nodes, unresolved)

        assert result.codes()[0] == FindingCode.INVALID_REF
        assert result.errors[0].reference == "bogus"

    def test_cleared_reference_on_end_is_ignored(self, validator, linear):
        unresolved = [UnresolvedReference(node_id="e", field="next_on_success", raw_value="bogus")]

        assert validator.validate(linear, unresolved).is_valid

    def test_relinked_reference_is_not_reported(self, validator, linear):
        """Once something has filled the field again, the record is stale."""
        unresolved = [UnresolvedReference(node_id="a", field="next_on_success", raw_value="bogus")]

        assert validator.validate(linear, unresolved).is_valid

    # =========================================================================
    # Conditions and terminals
    # =========================================================================

    def test_condition_missing_failure(self, validator):
        result = validator.validate([
            draft("t", "trigger", next_on_success="c"),
            draft("c", "condition", next_on_success="e"),
            draft("e", "end", end_status="success"),
        ])

        assert result.codes() == [FindingCode.CONDITION_INCOMPLETE_FAILURE]

    def test_condition_missing_both_branches(self, validator):
        result = validator.validate([
            draft("t", "trigger", next_on_success="c"),
            draft("c", "condition"),
            draft("e", "end", end_status="success"),
        ])

        assert result.codes() == [
            FindingCode.CONDITION_INCOMPLETE_SUCCESS,
            FindingCode.CONDITION_INCOMPLETE_FAILURE,
        ]
        assert FindingCode.NODE_NO_OUTPUT in warning_codes(result)

    def test_end_with_outgoing(self, validator):
        result = validator.validate([
            draft("t", "trigger", next_on_success="e"),
            draft("e", "end", end_status="success", next_on_success="e2"),
            draft("e2", "end", end_status="error"),
        ])

        assert result.codes() == [FindingCode.END_HAS_OUTGOING]
        assert result.errors[0].affected_node_id == "e"

    def test_end_without_status(self, validator):
        result = validator.validate([
            draft("t", "trigger", next_on_success="e"),
            draft("e", "end"),
            draft("ok", "end", end_status="success"),
        ])

        assert result.codes() == [FindingCode.END_NO_STATUS]

    def test_trigger_without_output(self, validator):
        result = validator.validate([
            draft("t", "trigger"),
            draft("e", "end", end_status="success"),
        ])

        assert result.codes() == [FindingCode.TRIGGER_NO_OUTPUT]

    # =========================================================================
    # Cycles
    # =========================================================================

    def test_two_node_cycle_path(self, validator):
        """A -> B -> A is reported with the full path."""
        result = validator.validate([
            draft("A", "action", next_on_success="B"),
            draft("B", "action", next_on_success="A"),
        ])

        cycles = [e for e in result.errors if e.code == FindingCode.CYCLE_DETECTED]
        assert len(cycles) == 1
        assert cycles[0].path == ["A", "B", "A"]
        assert cycles[0].message == "Cycle detected: A -> B -> A"
        assert cycles[0].affected_node_id == "B"
        assert cycles[0].field == "next_on_success"
        assert cycles[0].reference == "A"

    def test_cycle_path_returns_to_start(self, validator):
        nodes = [
            draft("t", "trigger", next_on_success="a"),
            draft("a", "action", next_on_success="b"),
            draft("b", "condition", next_on_success="e", next_on_failure="c"),
            draft("c", "action", next_on_success="a"),
            draft("e", "end", end_status="success"),
        ]
        by_id = {n.id: n for n in nodes}

        result = validator.validate(nodes)

        cycles = [e for e in result.errors if e.code == FindingCode.CYCLE_DETECTED]
        assert len(cycles) == 1
        path = cycles[0].path
        assert path == ["a", "b", "c", "a"]
        assert path[0] == path[-1]
        for source, target in zip(path, path[1:]):
            assert target in (by_id[source].next_on_success, by_id[source].next_on_failure)

    def test_self_loop(self, validator):
        result = validator.validate([
            draft("t", "trigger", next_on_success="a"),
            draft("a", "action", next_on_success="a"),
            draft("e", "end", end_status="success"),
        ])

        cycle = next(e for e in result.errors if e.code == FindingCode.CYCLE_DETECTED)
        assert cycle.path == ["a", "a"]

    def test_deep_chain_does_not_hit_recursion_limit(self, validator):
        """Traversal uses an explicit stack."""
        depth = 3000
        nodes = [draft("t", "trigger", next_on_success="n0")]
        nodes += [draft(f"n{i}", "action", next_on_success=f"n{i + 1}") for i in range(depth)]
        nodes.append(draft(f"n{depth}", "end", end_status="success"))

        assert validator.validate(nodes).is_valid

    # =========================================================================
    # Exhaustiveness
    # =========================================================================

    def test_all_checks_run_in_order(self):
        """The validator does not stop at the first failure."""
        result = validate_graph([
            draft("a", "action", next_on_success="ghost"),
            draft("c", "condition"),
            draft("e", "end", next_on_success="a"),
        ])

        assert result.codes() == [
            FindingCode.NO_TRIGGER,
            FindingCode.NO_SUCCESS_END,
            FindingCode.INVALID_REF,
            FindingCode.CONDITION_INCOMPLETE_SUCCESS,
            FindingCode.CONDITION_INCOMPLETE_FAILURE,
            FindingCode.END_HAS_OUTGOING,
            FindingCode.END_NO_STATUS,
        ]
        assert result.to_dict()["is_valid"] is False
