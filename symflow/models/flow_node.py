"""Symbolic node model for AI-synthesized workflow graphs.

Two shapes live here:
- FlowNodeDraft: the loosely-typed record produced by the synthesis step.
  The normalizer, validator and repairer work on drafts because they must
  be able to see malformed structure (an End with outgoing references, a
  Condition missing a branch).
- SymbolicNode: a tagged variant per structural role, emitted once the
  graph has been through the pipeline. Each variant only carries the
  fields meaningful to it.
"""
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

import structlog

logger = structlog.get_logger()


class NodeKind(str, Enum):
    """Structural roles of a flow node."""
    TRIGGER = "trigger"
    ACTION = "action"
    CONDITION = "condition"
    END = "end"
    SUBFLOW = "subflow"


class EndStatus(str, Enum):
    """Outcome of a terminal node."""
    SUCCESS = "success"
    ERROR = "error"


class PathClass(str, Enum):
    """Layout lane hint, independent of structural role."""
    MAIN = "main"
    ERROR = "error"
    ALTERNATIVE = "alternative"


# Rich UI subtypes and the structural role (plus implied end status) they reduce to
SUBTYPE_ROLES: dict[str, tuple[NodeKind, Optional[EndStatus]]] = {
    "trigger": (NodeKind.TRIGGER, None),
    "action": (NodeKind.ACTION, None),
    "condition": (NodeKind.CONDITION, None),
    "end": (NodeKind.END, None),
    "subflow": (NodeKind.SUBFLOW, None),
    "form": (NodeKind.ACTION, None),
    "feedback_success": (NodeKind.ACTION, None),
    "feedback_error": (NodeKind.ACTION, None),
    "retry": (NodeKind.ACTION, None),
    "fallback": (NodeKind.ACTION, None),
    "loopback": (NodeKind.ACTION, None),
    "background_action": (NodeKind.ACTION, None),
    "delayed_action": (NodeKind.ACTION, None),
    "configuration_matrix": (NodeKind.ACTION, None),
    "field_group": (NodeKind.ACTION, None),
    "text": (NodeKind.ACTION, None),
    "note": (NodeKind.ACTION, None),
    "choice": (NodeKind.CONDITION, None),
    "insight_branch": (NodeKind.CONDITION, None),
    "end_success": (NodeKind.END, EndStatus.SUCCESS),
    "end_error": (NodeKind.END, EndStatus.ERROR),
    "end_neutral": (NodeKind.END, None),
}


def resolve_subtype(value: str) -> tuple[NodeKind, Optional[EndStatus]]:
    """Map a kind/subtype string to its structural role.

    Raises:
        ValueError: If the string names no known role or subtype.
    """
    key = value.strip().lower().replace("-", "_").replace(" ", "_")
    if key not in SUBTYPE_ROLES:
        raise ValueError(f"Unknown node kind '{value}'")
    return SUBTYPE_ROLES[key]


class EdgeHint(BaseModel):
    """Connection type/label attached to a reference by the upstream domain."""

    model_config = ConfigDict(frozen=True)

    type: Optional[str] = Field(None, description="Free-form connection type")
    label: Optional[str] = Field(None, description="Display label")


class FlowNodeDraft(BaseModel):
    """A node as produced by the synthesis step, before it is trusted.

    Reference fields may hold a canonical id, a 1-based positional index,
    a correlation id, or garbage. Kind-dependent fields are not enforced
    here; that is the validator's job.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(..., min_length=1, description="Node identifier")
    kind: NodeKind = Field(
        ...,
        validation_alias=AliasChoices("kind", "type"),
        description="Structural role",
    )
    title: str = Field(..., min_length=1, description="Display title")
    description: str = Field("", description="Display description")

    next_on_success: Optional[str] = Field(None, description="Success reference")
    next_on_failure: Optional[str] = Field(None, description="Failure reference")
    end_status: Optional[EndStatus] = Field(None, description="End outcome")

    path_class: PathClass = Field(
        PathClass.MAIN,
        validation_alias=AliasChoices("path_class", "flow_category"),
        description="Layout lane hint",
    )
    correlation_id: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("correlation_id", "db_id"),
        description="External id echoed back unchanged",
    )
    subtype: Optional[str] = Field(None, description="Rich UI-facing node type")

    success_edge: Optional[EdgeHint] = Field(None, description="Hint for the success edge")
    failure_edge: Optional[EdgeHint] = Field(None, description="Hint for the failure edge")

    @model_validator(mode="before")
    @classmethod
    def reduce_subtype(cls, data):
        """Reduce rich UI subtypes (form, choice, end_error, ...) to a structural role."""
        if not isinstance(data, dict):
            return data
        raw_kind = data.get("kind", data.get("type"))
        if not isinstance(raw_kind, str):
            return data

        kind, implied_status = resolve_subtype(raw_kind)
        data = {k: v for k, v in data.items() if k not in ("kind", "type")}
        data["kind"] = kind
        if not data.get("subtype") and raw_kind.strip().lower() != kind.value:
            data["subtype"] = raw_kind.strip().lower()
        if implied_status and not data.get("end_status"):
            data["end_status"] = implied_status
        return data

    @field_validator("id", "title", mode="before")
    @classmethod
    def strip_required_text(cls, v):
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("next_on_success", "next_on_failure", "correlation_id", mode="before")
    @classmethod
    def coerce_reference(cls, v):
        """AI output often emits numbers, lists or objects for references.

        Everything is kept as a string so an unusable value reaches the
        normalizer and is cleared there instead of failing the batch.
        """
        if v is None or isinstance(v, bool):
            return None
        if isinstance(v, (int, float)):
            v = str(int(v)) if float(v).is_integer() else str(v)
        if not isinstance(v, str):
            v = str(v)
        v = v.strip()
        return v or None

    @field_validator("end_status", mode="before")
    @classmethod
    def normalize_end_status(cls, v):
        """Unknown outcomes are left unset for the repairer to decide."""
        if v is None or isinstance(v, EndStatus):
            return v
        key = str(v).strip().lower()
        if key in EndStatus._value2member_map_:
            return key
        if key:
            logger.warning("unknown_end_status", value=str(v))
        return None

    @field_validator("path_class", mode="before")
    @classmethod
    def normalize_path_class(cls, v):
        """Unknown lane hints fall back to the main lane."""
        if v is None or isinstance(v, PathClass):
            return v or PathClass.MAIN
        key = str(v).strip().lower()
        if key in PathClass._value2member_map_:
            return key
        logger.warning("unknown_path_class", value=str(v), fallback=PathClass.MAIN.value)
        return PathClass.MAIN

    @property
    def references(self) -> list[tuple[str, str]]:
        """(field, value) pairs for every reference that is set, success first."""
        refs = []
        if self.next_on_success:
            refs.append(("next_on_success", self.next_on_success))
        if self.next_on_failure:
            refs.append(("next_on_failure", self.next_on_failure))
        return refs

    @property
    def is_error_end(self) -> bool:
        return self.kind == NodeKind.END and self.end_status == EndStatus.ERROR

    @property
    def is_success_end(self) -> bool:
        return self.kind == NodeKind.END and self.end_status == EndStatus.SUCCESS


class _SymbolicBase(BaseModel):
    """Fields shared by every structural role."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Canonical identifier")
    title: str = Field(..., description="Display title")
    description: str = Field("", description="Display description")
    path_class: PathClass = Field(PathClass.MAIN, description="Layout lane hint")
    correlation_id: Optional[str] = Field(None, description="External id, echoed unchanged")
    subtype: Optional[str] = Field(None, description="Rich UI-facing node type")


class TriggerNode(_SymbolicBase):
    """Entry point of the flow."""

    kind: Literal["trigger"] = "trigger"
    next_on_success: Optional[str] = None
    success_edge: Optional[EdgeHint] = None


class ActionNode(_SymbolicBase):
    """A single step with one way forward."""

    kind: Literal["action"] = "action"
    next_on_success: Optional[str] = None
    success_edge: Optional[EdgeHint] = None


class SubflowNode(_SymbolicBase):
    """Reference to a nested flow, continuing on success."""

    kind: Literal["subflow"] = "subflow"
    next_on_success: Optional[str] = None
    success_edge: Optional[EdgeHint] = None


class ConditionNode(_SymbolicBase):
    """A decision point; the only role with two branches."""

    kind: Literal["condition"] = "condition"
    next_on_success: Optional[str] = None
    next_on_failure: Optional[str] = None
    success_edge: Optional[EdgeHint] = None
    failure_edge: Optional[EdgeHint] = None


class EndNode(_SymbolicBase):
    """Terminal node. Has no outgoing references by construction."""

    kind: Literal["end"] = "end"
    end_status: Optional[EndStatus] = None


SymbolicNode = Annotated[
    Union[TriggerNode, ActionNode, ConditionNode, EndNode, SubflowNode],
    Field(discriminator="kind"),
]


def to_symbolic(draft: FlowNodeDraft) -> Union[TriggerNode, ActionNode, ConditionNode, EndNode, SubflowNode]:
    """Convert a draft into the tagged variant for its structural role."""
    common = {
        "id": draft.id,
        "title": draft.title,
        "description": draft.description,
        "path_class": draft.path_class,
        "correlation_id": draft.correlation_id,
        "subtype": draft.subtype,
    }

    if draft.kind == NodeKind.END:
        return EndNode(**common, end_status=draft.end_status)

    if draft.kind == NodeKind.CONDITION:
        return ConditionNode(
            **common,
            next_on_success=draft.next_on_success,
            next_on_failure=draft.next_on_failure,
            success_edge=draft.success_edge,
            failure_edge=draft.failure_edge,
        )

    variant = {
        NodeKind.TRIGGER: TriggerNode,
        NodeKind.ACTION: ActionNode,
        NodeKind.SUBFLOW: SubflowNode,
    }[draft.kind]
    return variant(
        **common,
        next_on_success=draft.next_on_success,
        success_edge=draft.success_edge,
    )
