"""End-to-end tests for the flow graph engine."""
import pytest

from symflow import EngineConfig, FlowGraphEngine, MalformedInputError, build_flow_graph
from symflow.models import (
    ConditionNode,
    ConnectionClassification,
    EndNode,
    EndStatus,
    FindingCode,
    Position,
    RepairStatus,
)

SCENARIO_A = [
    {"id": "n1", "kind": "trigger", "title": "Start", "next_on_success": "2"},
    {"id": "n2", "kind": "action", "title": "Work", "next_on_success": "3"},
    {"id": "n3", "kind": "end", "title": "Done", "end_status": "success"},
]

MESSY = [
    {"id": "Start", "type": "trigger", "title": "Order placed", "next_on_success": "2"},
    {"id": "Check Stock", "type": "choice", "title": "In stock?", "next_on_success": "ship", "db_id": "row-2"},
    {"id": "ship", "type": "form", "title": "Ship order", "next_on_success": "ghost", "next_on_failure": "1"},
    {"id": "Notify", "type": "action", "title": "Notify", "next_on_success": "Check Stock"},
]


def assert_well_formed(result):
    """Properties every valid output graph must have."""
    ids = {n.id for n in result.nodes}

    assert sum(1 for n in result.nodes if n.kind == "trigger") == 1
    assert any(isinstance(n, EndNode) and n.end_status == EndStatus.SUCCESS for n in result.nodes)
    for node in result.nodes:
        if isinstance(node, ConditionNode):
            assert node.next_on_success in ids
            assert node.next_on_failure in ids
    for conn in result.connections:
        assert conn.source_id in ids
        assert conn.target_id in ids
    assert set(result.positions) == ids


class TestFlowGraphEngine:
    """Test suite for FlowGraphEngine."""

    @pytest.fixture
    def engine(self):
        return FlowGraphEngine()

    # =========================================================================
    # Scenarios
    # =========================================================================

    def test_scenario_a_positional_references(self, engine):
        result = engine.build(SCENARIO_A)

        assert result.is_valid
        assert result.report.status == RepairStatus.CONVERGED
        assert result.report.iterations == 0
        assert result.report.fixes_applied == []
        assert [(c.source_id, c.target_id) for c in result.connections] == [("n1", "n2"), ("n2", "n3")]
        assert_well_formed(result)

    def test_scenario_b_missing_end(self, engine):
        result = engine.build([
            {"id": "t", "kind": "trigger", "title": "Start", "next_on_success": "a1"},
            {"id": "a1", "kind": "action", "title": "One", "next_on_success": "a2"},
            {"id": "a2", "kind": "action", "title": "Two"},
        ])

        assert result.is_valid
        a2 = result.get_node("a2")
        assert isinstance(a2, EndNode)
        assert a2.end_status == EndStatus.SUCCESS
        assert any("a2" in fix for fix in result.report.fixes_applied)

    def test_scenario_c_reuses_error_end(self, engine):
        result = engine.build([
            {"id": "t", "kind": "trigger", "title": "Start", "next_on_success": "c"},
            {"id": "c", "kind": "condition", "title": "Paid?", "next_on_success": "ok"},
            {"id": "ok", "kind": "end", "title": "Done", "end_status": "success"},
            {"id": "err", "kind": "end", "title": "Failed", "end_status": "error"},
        ])

        assert result.is_valid
        assert result.get_node("c").next_on_failure == "err"
        assert len(result.nodes) == 4

    def test_scenario_d_cycle_reported_by_validate(self, engine):
        validation = engine.validate([
            {"id": "a", "kind": "action", "title": "A", "next_on_success": "b"},
            {"id": "b", "kind": "action", "title": "B", "next_on_success": "a"},
        ])

        cycle = next(e for e in validation.errors if e.code == FindingCode.CYCLE_DETECTED)
        assert cycle.path == ["a", "b", "a"]

    def test_scenario_e_linear_layout(self, engine):
        result = engine.build([
            {"id": "t", "kind": "trigger", "title": "Start", "next_on_success": "a1"},
            {"id": "a1", "kind": "action", "title": "One", "next_on_success": "a2"},
            {"id": "a2", "kind": "action", "title": "Two", "next_on_success": "e"},
            {"id": "e", "kind": "end", "title": "Done", "end_status": "success"},
        ])

        xs = [result.positions[i].x for i in ("t", "a1", "a2", "e")]
        assert [b - a for a, b in zip(xs, xs[1:])] == [280, 280, 280]
        assert {result.positions[i].y for i in ("t", "a1", "a2", "e")} == {300}

    # =========================================================================
    # Messy input
    # =========================================================================

    def test_messy_input_is_repaired(self, engine):
        result = engine.build(MESSY)

        assert result.is_valid
        assert result.report.status == RepairStatus.CONVERGED
        assert [n.id for n in result.nodes] == [
            "start", "check_stock", "ship", "notify", "end_error_auto",
        ]
        assert result.get_node("ship").next_on_success == "notify"
        assert result.get_node("check_stock").next_on_failure == "end_error_auto"
        assert_well_formed(result)

        warning_codes = {w.code for w in result.report.warnings}
        assert FindingCode.ID_CANONICALIZED in warning_codes
        assert FindingCode.UNRESOLVED_REF in warning_codes
        assert FindingCode.FAILURE_REF_DROPPED in warning_codes

    def test_condition_whose_only_candidate_is_its_failure_target(self, engine):
        result = engine.build([
            {"id": "dup", "kind": "subflow", "title": "Load", "next_on_success": "0"},
            {"id": "dup", "kind": "choice", "title": "Valid?", "next_on_failure": "ste"},
            {"id": "Step One2", "kind": "action", "title": "Report"},
        ])

        assert result.report.status == RepairStatus.CONVERGED
        assert result.get_node("dup_2").next_on_success == "end_success_auto"
        assert result.get_node("dup_2").next_on_failure == "step_one2"
        assert_well_formed(result)

    def test_condition_edges_in_output(self, engine):
        result = engine.build(MESSY)
        check = [c for c in result.connections if c.source_id == "check_stock"]

        assert [c.classification for c in check] == [
            ConnectionClassification.CONDITIONAL,
            ConnectionClassification.ERROR,
        ]
        assert [c.label for c in check] == ["Yes", "No"]

    def test_correlation_id_is_echoed(self, engine):
        result = engine.build(MESSY)

        assert result.get_node("check_stock").correlation_id == "row-2"
        assert result.get_node("check_stock").subtype == "choice"

    def test_build_is_deterministic(self, engine):
        assert engine.build(MESSY).to_dict() == engine.build(MESSY).to_dict()

    def test_resolutions_are_audited(self, engine):
        result = engine.build(MESSY)
        methods = {(r.node_id, r.field): r.method for r in result.report.resolutions}

        assert methods[("start", "next_on_success")] == "positional"
        assert methods[("notify", "next_on_success")] == "alias"
        assert methods[("ship", "next_on_success")] == "unresolved"
        assert methods[("ship", "next_on_failure")] == "dropped"

    # =========================================================================
    # Failure states
    # =========================================================================

    def test_malformed_input_raises(self, engine):
        with pytest.raises(MalformedInputError):
            engine.build([{"id": "n1", "kind": "trigger"}])

    def test_unrepaired_graph_is_returned_with_errors(self):
        engine = FlowGraphEngine(EngineConfig(autofix_max_iterations=1))

        result = engine.build([
            {"id": "a1", "kind": "action", "title": "One"},
            {"id": "e", "kind": "end", "title": "Done", "end_status": "success"},
        ])

        assert not result.is_valid
        assert result.report.status == RepairStatus.FAILED
        assert [e.code for e in result.report.errors] == [FindingCode.TRIGGER_NO_OUTPUT]
        assert result.report.fixes_applied == ["Reclassified 'a1' as Trigger"]
        assert result.positions["e"] == Position(x=100, y=480)

    def test_to_dict_shape(self):
        data = build_flow_graph(SCENARIO_A).to_dict()

        assert set(data) == {"nodes", "connections", "positions", "placements", "bounds", "report"}
        assert data["report"]["is_valid"] is True
        assert data["report"]["status"] == "converged"
        assert data["nodes"][0]["kind"] == "trigger"
        assert data["positions"]["n1"] == {"x": 100, "y": 300}
        assert "next_on_failure" not in data["nodes"][0]
