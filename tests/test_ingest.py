"""Tests for input parsing and the malformed-input gate."""
import pytest

from symflow import build_flow_graph
from symflow.engine.ingest import MalformedInputError, parse_nodes
from symflow.models import (
    EndStatus,
    FindingCode,
    FlowNodeDraft,
    NodeKind,
    PathClass,
    RepairStatus,
)


class TestParseNodes:
    """Test suite for parse_nodes."""

    # =========================================================================
    # Payload shape
    # =========================================================================

    @pytest.mark.parametrize("payload", ["nodes", b"nodes", {"id": "n1"}, None, 42])
    def test_rejects_non_sequence_payload(self, payload):
        """Anything that is not a list or tuple is rejected outright."""
        with pytest.raises(MalformedInputError):
            parse_nodes(payload)

    def test_empty_list_is_accepted(self):
        """An empty batch is not malformed; the repairer deals with it."""
        assert parse_nodes([]) == []

    def test_rejects_non_mapping_node(self):
        """Each node must be an object."""
        with pytest.raises(MalformedInputError) as exc:
            parse_nodes([{"id": "n1", "kind": "trigger", "title": "Start"}, "n2"])

        assert exc.value.index == 1

    # =========================================================================
    # Required fields
    # =========================================================================

    def test_missing_title_is_rejected_with_detail(self):
        """Missing required fields carry the pydantic error location."""
        with pytest.raises(MalformedInputError) as exc:
            parse_nodes([{"id": "n1", "kind": "trigger"}])

        assert exc.value.index == 0
        assert any(d["loc"] == ["title"] for d in exc.value.details)
        assert exc.value.to_dict()["index"] == 0

    def test_blank_id_is_rejected(self):
        """Whitespace-only ids count as missing."""
        with pytest.raises(MalformedInputError):
            parse_nodes([{"id": "   ", "kind": "action", "title": "Do it"}])

    def test_missing_kind_is_rejected(self):
        with pytest.raises(MalformedInputError):
            parse_nodes([{"id": "n1", "title": "Start"}])

    def test_unknown_kind_is_rejected(self):
        """Kinds outside the known roles and subtypes are unparseable."""
        with pytest.raises(MalformedInputError) as exc:
            parse_nodes([{"id": "n1", "kind": "teleport", "title": "Beam me up"}])

        assert "teleport" in str(exc.value)

    def test_broken_references_are_not_rejected(self):
        """Garbage references are the normalizer's problem, not ingest's."""
        drafts = parse_nodes([
            {"id": "n1", "kind": "trigger", "title": "Start", "next_on_success": "???"},
        ])

        assert drafts[0].next_on_success == "???"

    @pytest.mark.parametrize("ref", [["e"], {"id": "e"}, 2.5])
    def test_odd_reference_types_are_not_rejected(self, ref):
        """Lists and objects are stringified for the normalizer, not fatal."""
        drafts = parse_nodes([
            {"id": "t", "kind": "trigger", "title": "Start", "next_on_success": ref},
            {"id": "e", "kind": "end", "title": "Done", "end_status": "success"},
        ])

        assert drafts[0].next_on_success == str(ref)

    def test_odd_reference_is_cleared_by_the_pipeline(self):
        result = build_flow_graph([
            {"id": "t", "kind": "trigger", "title": "Start", "next_on_success": "a"},
            {"id": "a", "kind": "action", "title": "Work", "next_on_success": {"id": "ghost"}},
            {"id": "e", "kind": "end", "title": "Done", "end_status": "success"},
        ])

        assert FindingCode.UNRESOLVED_REF in [w.code for w in result.report.warnings]
        assert result.report.status == RepairStatus.CONVERGED
        assert result.get_node("a").next_on_success == "e"

    # =========================================================================
    # Coercion and aliases
    # =========================================================================

    def test_numeric_references_become_strings(self):
        """AI output often emits bare integers for positional references."""
        drafts = parse_nodes([
            {"id": 1, "kind": "trigger", "title": "Start", "next_on_success": 2},
        ])

        assert drafts[0].id == "1"
        assert drafts[0].next_on_success == "2"

    def test_blank_reference_becomes_unset(self):
        drafts = parse_nodes([
            {"id": "n1", "kind": "trigger", "title": "Start", "next_on_success": "  "},
        ])

        assert drafts[0].next_on_success is None

    def test_type_alias_and_subtype_reduction(self):
        """Rich subtypes reduce to a structural role and keep the original type."""
        drafts = parse_nodes([
            {"id": "fail", "type": "end_error", "title": "Failed"},
            {"id": "ask", "type": "choice", "title": "Approved?"},
            {"id": "fill", "type": "form", "title": "Fill form"},
        ])

        assert drafts[0].kind == NodeKind.END
        assert drafts[0].end_status == EndStatus.ERROR
        assert drafts[0].subtype == "end_error"
        assert drafts[1].kind == NodeKind.CONDITION
        assert drafts[2].kind == NodeKind.ACTION
        assert drafts[2].subtype == "form"

    def test_plain_kind_has_no_subtype(self):
        drafts = parse_nodes([{"id": "n1", "kind": "Trigger", "title": "Start"}])

        assert drafts[0].kind == NodeKind.TRIGGER
        assert drafts[0].subtype is None

    def test_db_id_and_flow_category_aliases(self):
        drafts = parse_nodes([
            {
                "id": "n1",
                "kind": "action",
                "title": "Retry",
                "db_id": 1042,
                "flow_category": "error",
            },
        ])

        assert drafts[0].correlation_id == "1042"
        assert drafts[0].path_class == PathClass.ERROR

    def test_status_and_lane_hints_are_case_insensitive(self):
        drafts = parse_nodes([
            {"id": "e", "kind": "end", "title": "Done", "end_status": " Success "},
            {"id": "r", "kind": "action", "title": "Retry", "path_class": "Error"},
            {"id": "alt", "kind": "action", "title": "Other", "flow_category": "ALTERNATIVE"},
        ])

        assert drafts[0].end_status == EndStatus.SUCCESS
        assert drafts[1].path_class == PathClass.ERROR
        assert drafts[2].path_class == PathClass.ALTERNATIVE

    def test_unknown_lane_hint_falls_back_to_main(self):
        drafts = parse_nodes([
            {"id": "n1", "kind": "action", "title": "Side", "path_class": "sidebar"},
            {"id": "n2", "kind": "action", "title": "Blank", "path_class": None},
        ])

        assert drafts[0].path_class == PathClass.MAIN
        assert drafts[1].path_class == PathClass.MAIN

    def test_unknown_end_status_is_left_unset(self):
        drafts = parse_nodes([
            {"id": "e", "kind": "end", "title": "Done", "end_status": "neutral"},
        ])

        assert drafts[0].end_status is None

    def test_drafts_pass_through(self):
        draft = FlowNodeDraft(id="n1", kind="trigger", title="Start")

        assert parse_nodes((draft,)) == [draft]
