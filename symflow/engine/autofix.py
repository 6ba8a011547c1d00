"""Autofix - Bounded repair loop for structural errors.

The repairer applies one deterministic strategy per error code, then hands
the graph back to the validator. The loop is a small state machine:

    VALIDATING -> REPAIRING -> VALIDATING -> ... -> CONVERGED | FAILED

It stops after `max_iterations` repair passes, or as soon as a pass
changes nothing. A FAILED outcome still carries the best-effort graph,
the remaining errors and every fix that was applied.
"""
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional, Sequence

import structlog

from symflow.engine.validator import StructuralValidator
from symflow.models.findings import FindingCode, ValidationFinding, ValidationResult
from symflow.models.flow_graph import RepairStatus, UnresolvedReference
from symflow.models.flow_node import (
    EndStatus,
    FlowNodeDraft,
    NodeKind,
    PathClass,
)

logger = structlog.get_logger()

AUTO_TRIGGER_ID = "trigger_auto"
AUTO_SUCCESS_END_ID = "end_success_auto"
AUTO_ERROR_END_ID = "end_error_auto"


@dataclass
class RepairPass:
    """Result of a single repair pass."""

    nodes: list[FlowNodeDraft]
    fixes_applied: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.fixes_applied)


@dataclass
class AutofixOutcome:
    """Terminal state of the validate/repair loop."""

    status: RepairStatus
    nodes: list[FlowNodeDraft]
    validation: ValidationResult
    fixes_applied: list[str]
    iterations: int
    transitions: list[RepairStatus] = field(default_factory=list)

    @property
    def converged(self) -> bool:
        return self.status == RepairStatus.CONVERGED


class _WorkingGraph:
    """Mutable list of immutable drafts, local to one repair pass."""

    def __init__(self, nodes: Sequence[FlowNodeDraft]):
        self.nodes = list(nodes)
        self.fixes: list[str] = []

    @property
    def ids(self) -> set[str]:
        return {n.id for n in self.nodes}

    def find(self, node_id: Optional[str]) -> Optional[FlowNodeDraft]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def index_of(self, node_id: str) -> int:
        for i, node in enumerate(self.nodes):
            if node.id == node_id:
                return i
        return -1

    def replace(self, node: FlowNodeDraft, **update) -> FlowNodeDraft:
        new_node = node.model_copy(update=update)
        self.nodes[self.index_of(node.id)] = new_node
        return new_node

    def unique_id(self, base: str) -> str:
        taken = self.ids
        candidate = base
        suffix = 2
        while candidate in taken:
            candidate = f"{base}_{suffix}"
            suffix += 1
        return candidate

    def record(self, fix: str) -> None:
        self.fixes.append(fix)
        logger.info("autofix_fix_applied", fix=fix)

    def is_referenced(self, node_id: str) -> bool:
        return any(
            ref == node_id
            for node in self.nodes
            if node.id != node_id
            for _, ref in node.references
        )

    def first_success_end(self, exclude: Iterable[str] = ()) -> Optional[FlowNodeDraft]:
        excluded = set(exclude)
        for node in self.nodes:
            if node.is_success_end and node.id not in excluded:
                return node
        return None

    def next_in_sequence(
        self,
        node: FlowNodeDraft,
        exclude: Iterable[str] = (),
    ) -> Optional[str]:
        """Next node after `node` that can continue a flow.

        Skips triggers, error ends, the node itself and anything in
        `exclude`. Falls back to an existing success end.
        """
        excluded = set(exclude) | {node.id}
        for candidate in self.nodes[self.index_of(node.id) + 1:]:
            if candidate.id in excluded:
                continue
            if candidate.kind == NodeKind.TRIGGER or candidate.is_error_end:
                continue
            return candidate.id

        fallback = self.first_success_end(exclude=excluded)
        return fallback.id if fallback else None

    def add_success_end(self) -> FlowNodeDraft:
        end = FlowNodeDraft(
            id=self.unique_id(AUTO_SUCCESS_END_ID),
            kind=NodeKind.END,
            title="Done",
            end_status=EndStatus.SUCCESS,
        )
        self.nodes.append(end)
        return end

    def failure_target(self, for_node: FlowNodeDraft) -> str:
        """An existing error end, or a freshly synthesized one."""
        for candidate in self.nodes:
            if candidate.is_error_end:
                self.record(
                    f"Linked failure branch of '{for_node.id}' to existing error end '{candidate.id}'"
                )
                return candidate.id

        error_end = FlowNodeDraft(
            id=self.unique_id(AUTO_ERROR_END_ID),
            kind=NodeKind.END,
            title="Error",
            end_status=EndStatus.ERROR,
            path_class=PathClass.ERROR,
        )
        self.nodes.append(error_end)
        self.record(
            f"Added error end '{error_end.id}' for failure branch of '{for_node.id}'"
        )
        return error_end.id


class AutofixRepairer:
    """Applies repair strategies and re-validates, up to a fixed cap."""

    def __init__(self, max_iterations: int = 2, validator: Optional[StructuralValidator] = None):
        self.max_iterations = max_iterations
        self.validator = validator or StructuralValidator()

        # Fixed application order. Cheap local fixes first so later
        # strategies see terminals and triggers already settled.
        self._strategies: list[tuple[FindingCode, Callable[[_WorkingGraph, ValidationFinding], None]]] = [
            (FindingCode.END_HAS_OUTGOING, self._fix_end_has_outgoing),
            (FindingCode.END_NO_STATUS, self._fix_end_no_status),
            (FindingCode.NO_TRIGGER, self._fix_no_trigger),
            (FindingCode.MULTIPLE_TRIGGERS, self._fix_multiple_triggers),
            (FindingCode.NO_SUCCESS_END, self._fix_no_success_end),
            (FindingCode.INVALID_REF, self._fix_invalid_ref),
            (FindingCode.CONDITION_INCOMPLETE_SUCCESS, self._fix_condition_success),
            (FindingCode.CONDITION_INCOMPLETE_FAILURE, self._fix_condition_failure),
            (FindingCode.TRIGGER_NO_OUTPUT, self._fix_trigger_no_output),
            (FindingCode.CYCLE_DETECTED, self._fix_cycle),
        ]

    def run(
        self,
        nodes: Sequence[FlowNodeDraft],
        unresolved: Iterable[UnresolvedReference] = (),
    ) -> AutofixOutcome:
        """Run the validate/repair loop to a terminal state.

        Args:
            nodes: Normalized drafts
            unresolved: References cleared by the normalizer

        Returns:
            AutofixOutcome with status CONVERGED or FAILED
        """
        unresolved = list(unresolved)
        current = list(nodes)
        fixes: list[str] = []
        transitions: list[RepairStatus] = []
        iterations = 0
        state = RepairStatus.VALIDATING
        validation = ValidationResult()

        logger.info(
            "autofix_start",
            node_count=len(current),
            max_iterations=self.max_iterations,
        )

        while state not in (RepairStatus.CONVERGED, RepairStatus.FAILED):
            transitions.append(state)

            if state == RepairStatus.VALIDATING:
                validation = self.validator.validate(current, unresolved)
                if validation.is_valid:
                    state = RepairStatus.CONVERGED
                elif iterations >= self.max_iterations:
                    logger.warning(
                        "autofix_iterations_exhausted",
                        iterations=iterations,
                        remaining_errors=len(validation.errors),
                    )
                    state = RepairStatus.FAILED
                else:
                    state = RepairStatus.REPAIRING

            elif state == RepairStatus.REPAIRING:
                iterations += 1
                repair_pass = self.repair(current, validation.errors)
                fixes.extend(repair_pass.fixes_applied)
                logger.info(
                    "autofix_pass_complete",
                    iteration=iterations,
                    fixes=len(repair_pass.fixes_applied),
                )
                if not repair_pass.changed:
                    logger.warning(
                        "autofix_no_progress",
                        iteration=iterations,
                        remaining_errors=len(validation.errors),
                    )
                    state = RepairStatus.FAILED
                else:
                    current = repair_pass.nodes
                    state = RepairStatus.VALIDATING

        transitions.append(state)

        if state == RepairStatus.CONVERGED:
            logger.info("autofix_converged", iterations=iterations, fixes=len(fixes))
        else:
            logger.warning(
                "autofix_failed",
                iterations=iterations,
                remaining_codes=[c.value for c in validation.codes()],
            )

        return AutofixOutcome(
            status=state,
            nodes=current,
            validation=validation,
            fixes_applied=fixes,
            iterations=iterations,
            transitions=transitions,
        )

    def repair(
        self,
        nodes: Sequence[FlowNodeDraft],
        errors: Sequence[ValidationFinding],
    ) -> RepairPass:
        """Apply every applicable strategy for the given errors, once.

        Each strategy re-checks the current state of the graph, so a
        finding already resolved by an earlier strategy is skipped.
        """
        graph = _WorkingGraph(nodes)

        for code, strategy in self._strategies:
            for finding in errors:
                if finding.code == code:
                    strategy(graph, finding)

        return RepairPass(nodes=graph.nodes, fixes_applied=graph.fixes)

    # =========================================================================
    # Terminal nodes
    # =========================================================================

    def _fix_end_has_outgoing(self, graph: _WorkingGraph, finding: ValidationFinding) -> None:
        node = graph.find(finding.affected_node_id)
        if node is None or node.kind != NodeKind.END or not node.references:
            return
        graph.replace(
            node,
            next_on_success=None,
            next_on_failure=None,
            success_edge=None,
            failure_edge=None,
        )
        graph.record(f"Stripped outgoing references from end node '{node.id}'")

    def _fix_end_no_status(self, graph: _WorkingGraph, finding: ValidationFinding) -> None:
        node = graph.find(finding.affected_node_id)
        if node is None or node.kind != NodeKind.END or node.end_status is not None:
            return
        status = EndStatus.ERROR if graph.first_success_end() else EndStatus.SUCCESS
        graph.replace(node, end_status=status)
        graph.record(f"Set end status of '{node.id}' to {status.value}")

    # =========================================================================
    # Entry and exit
    # =========================================================================

    def _fix_no_trigger(self, graph: _WorkingGraph, finding: ValidationFinding) -> None:
        if any(n.kind == NodeKind.TRIGGER for n in graph.nodes):
            return

        first = graph.nodes[0] if graph.nodes else None
        if (
            first is not None
            and first.kind in (NodeKind.ACTION, NodeKind.SUBFLOW)
            and not graph.is_referenced(first.id)
        ):
            graph.replace(
                first,
                kind=NodeKind.TRIGGER,
                subtype=None,
                next_on_failure=None,
                failure_edge=None,
            )
            graph.record(f"Reclassified '{first.id}' as Trigger")
            return

        trigger = FlowNodeDraft(
            id=graph.unique_id(AUTO_TRIGGER_ID),
            kind=NodeKind.TRIGGER,
            title="Start",
            next_on_success=first.id if first else None,
        )
        graph.nodes.insert(0, trigger)
        if first:
            graph.record(f"Added trigger '{trigger.id}' before '{first.id}'")
        else:
            graph.record(f"Added trigger '{trigger.id}' to empty flow")

    def _fix_multiple_triggers(self, graph: _WorkingGraph, finding: ValidationFinding) -> None:
        triggers = [n for n in graph.nodes if n.kind == NodeKind.TRIGGER]
        for extra in triggers[1:]:
            graph.replace(extra, kind=NodeKind.ACTION)
            graph.record(f"Reclassified extra trigger '{extra.id}' as Action")

    def _fix_no_success_end(self, graph: _WorkingGraph, finding: ValidationFinding) -> None:
        if graph.first_success_end():
            return

        candidates = [n for n in graph.nodes if not n.is_error_end]
        last = candidates[-1] if candidates else None

        if last is not None and last.kind in (NodeKind.ACTION, NodeKind.SUBFLOW, NodeKind.END):
            graph.replace(
                last,
                kind=NodeKind.END,
                end_status=EndStatus.SUCCESS,
                next_on_success=None,
                next_on_failure=None,
                success_edge=None,
                failure_edge=None,
            )
            graph.record(f"Reclassified '{last.id}' as End (success)")
            return

        end = graph.add_success_end()

        if last is not None and last.next_on_success is None:
            graph.replace(last, next_on_success=end.id)
            graph.record(f"Added success end '{end.id}' after '{last.id}'")
        else:
            graph.record(f"Added success end '{end.id}'")

    # =========================================================================
    # References
    # =========================================================================

    def _fix_invalid_ref(self, graph: _WorkingGraph, finding: ValidationFinding) -> None:
        node = graph.find(finding.affected_node_id)
        ref_field = finding.field
        if node is None or node.kind == NodeKind.END or ref_field is None:
            return

        current = getattr(node, ref_field, None)
        if current is not None and current in graph.ids:
            return

        if ref_field == "next_on_failure":
            if node.kind == NodeKind.CONDITION:
                graph.replace(node, next_on_failure=graph.failure_target(node))
            else:
                graph.replace(node, next_on_failure=None)
                graph.record(f"Cleared dangling next_on_failure on '{node.id}'")
            return

        target = graph.next_in_sequence(node)
        graph.replace(node, next_on_success=target)
        if target:
            graph.record(
                f"Relinked '{node.id}' next_on_success to '{target}' "
                f"(was '{finding.reference}')"
            )
        elif current is not None:
            graph.record(f"Cleared dangling next_on_success on '{node.id}'")

    def _fix_condition_success(self, graph: _WorkingGraph, finding: ValidationFinding) -> None:
        node = graph.find(finding.affected_node_id)
        if node is None or node.kind != NodeKind.CONDITION or node.next_on_success:
            return
        target = graph.next_in_sequence(node, exclude=[node.next_on_failure] if node.next_on_failure else ())
        if target:
            graph.replace(node, next_on_success=target)
            graph.record(f"Linked success branch of '{node.id}' to '{target}'")
        else:
            end = graph.add_success_end()
            graph.replace(node, next_on_success=end.id)
            graph.record(f"Added success end '{end.id}' for success branch of '{node.id}'")

    def _fix_condition_failure(self, graph: _WorkingGraph, finding: ValidationFinding) -> None:
        node = graph.find(finding.affected_node_id)
        if node is None or node.kind != NodeKind.CONDITION or node.next_on_failure:
            return
        graph.replace(node, next_on_failure=graph.failure_target(node))

    def _fix_trigger_no_output(self, graph: _WorkingGraph, finding: ValidationFinding) -> None:
        node = graph.find(finding.affected_node_id)
        if node is None or node.kind != NodeKind.TRIGGER:
            return
        if node.next_on_success and node.next_on_success in graph.ids:
            return
        target = graph.next_in_sequence(node)
        if target:
            graph.replace(node, next_on_success=target)
            graph.record(f"Linked trigger '{node.id}' to '{target}'")

    def _fix_cycle(self, graph: _WorkingGraph, finding: ValidationFinding) -> None:
        """Clear the back edge and relink its source outside the cycle."""
        node = graph.find(finding.affected_node_id)
        ref_field = finding.field
        if node is None or ref_field is None:
            return
        if getattr(node, ref_field, None) != finding.reference:
            return

        cycle = " -> ".join(finding.path)

        if ref_field == "next_on_failure" and node.kind == NodeKind.CONDITION:
            target = graph.failure_target(node)
            graph.replace(node, next_on_failure=target)
            graph.record(f"Broke cycle {cycle} by relinking '{node.id}' next_on_failure to '{target}'")
            return

        target = graph.next_in_sequence(node, exclude=finding.path)
        graph.replace(node, **{ref_field: target})
        if target:
            graph.record(f"Broke cycle {cycle} by relinking '{node.id}' {ref_field} to '{target}'")
        else:
            graph.record(f"Broke cycle {cycle} by clearing '{node.id}' {ref_field}")


def run_autofix(
    nodes: Sequence[FlowNodeDraft],
    unresolved: Iterable[UnresolvedReference] = (),
    max_iterations: int = 2,
) -> AutofixOutcome:
    """Run the repair loop with a fresh repairer."""
    return AutofixRepairer(max_iterations=max_iterations).run(nodes, unresolved)
