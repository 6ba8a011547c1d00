"""Validator - Structural checks over a normalized node sequence.

Checks run in a fixed order and never short-circuit:
1. Trigger count
2. Success-end existence
3. Dangling references
4. Condition completeness
5. Terminal-node purity
6. Outgoing-edge presence
7. Cycle detection
8. Reachability from the trigger (warnings only)

The validator never raises. Everything it finds comes back as a
ValidationFinding so the repairer and the caller can act on it.
"""
from collections import deque
from typing import Iterable, Sequence

import structlog

from symflow.models.findings import (
    FindingCode,
    ValidationFinding,
    ValidationResult,
    error,
    warning,
)
from symflow.models.flow_graph import UnresolvedReference
from symflow.models.flow_node import FlowNodeDraft, NodeKind

logger = structlog.get_logger()

# DFS colours
_UNVISITED = 0
_IN_PROGRESS = 1
_DONE = 2


class StructuralValidator:
    """Exhaustive structural validator for flow graphs."""

    def validate(
        self,
        nodes: Sequence[FlowNodeDraft],
        unresolved: Iterable[UnresolvedReference] = (),
    ) -> ValidationResult:
        """Validate a node sequence.

        Args:
            nodes: Normalized drafts in sequence order
            unresolved: References the normalizer had to clear

        Returns:
            ValidationResult with errors and warnings in check order
        """
        logger.info("validator_start", node_count=len(nodes))

        by_id: dict[str, FlowNodeDraft] = {}
        for node in nodes:
            by_id.setdefault(node.id, node)

        errors: list[ValidationFinding] = []
        warnings: list[ValidationFinding] = []

        triggers = [n for n in nodes if n.kind == NodeKind.TRIGGER]
        errors.extend(self._check_trigger_count(triggers))
        errors.extend(self._check_success_end(nodes))
        errors.extend(self._check_references(nodes, by_id, list(unresolved)))
        errors.extend(self._check_conditions(nodes))
        errors.extend(self._check_terminals(nodes))

        trigger_errors, output_warnings = self._check_outputs(nodes, by_id)
        errors.extend(trigger_errors)
        warnings.extend(output_warnings)

        errors.extend(self._detect_cycles(nodes, by_id))

        if len(triggers) == 1:
            warnings.extend(self._check_reachability(nodes, by_id, triggers[0].id))

        result = ValidationResult(errors=errors, warnings=warnings)

        if result.is_valid:
            logger.info("validator_complete", warning_count=len(warnings))
        else:
            logger.info(
                "validator_found_errors",
                error_count=len(errors),
                warning_count=len(warnings),
                codes=[c.value for c in result.codes()],
            )
        return result

    def _check_trigger_count(self, triggers: list[FlowNodeDraft]) -> list[ValidationFinding]:
        if not triggers:
            return [error(FindingCode.NO_TRIGGER, "Flow has no trigger node")]
        if len(triggers) > 1:
            ids = ", ".join(t.id for t in triggers)
            return [error(
                FindingCode.MULTIPLE_TRIGGERS,
                f"Flow has {len(triggers)} trigger nodes: {ids}",
                triggers[1].id,
            )]
        return []

    def _check_success_end(self, nodes: Sequence[FlowNodeDraft]) -> list[ValidationFinding]:
        if any(n.is_success_end for n in nodes):
            return []
        return [error(FindingCode.NO_SUCCESS_END, "Flow has no end node with success status")]

    def _check_references(
        self,
        nodes: Sequence[FlowNodeDraft],
        by_id: dict[str, FlowNodeDraft],
        unresolved: list[UnresolvedReference],
    ) -> list[ValidationFinding]:
        """Report references to unknown ids, including ones already cleared."""
        findings = []
        for node in nodes:
            for ref_field, ref in node.references:
                if ref not in by_id:
                    findings.append(error(
                        FindingCode.INVALID_REF,
                        f"Node '{node.id}' {ref_field} points to unknown node '{ref}'",
                        node.id,
                        field=ref_field,
                        reference=ref,
                    ))

            for record in unresolved:
                if record.node_id != node.id or node.kind == NodeKind.END:
                    continue
                # Still dangling only if nothing has relinked the field since
                if getattr(node, record.field, None) is None:
                    findings.append(error(
                        FindingCode.INVALID_REF,
                        f"Node '{node.id}' {record.field} '{record.raw_value}' "
                        f"did not resolve to any node",
                        node.id,
                        field=record.field,
                        reference=record.raw_value,
                    ))
        return findings

    def _check_conditions(self, nodes: Sequence[FlowNodeDraft]) -> list[ValidationFinding]:
        findings = []
        for node in nodes:
            if node.kind != NodeKind.CONDITION:
                continue
            if not node.next_on_success:
                findings.append(error(
                    FindingCode.CONDITION_INCOMPLETE_SUCCESS,
                    f"Condition '{node.id}' has no success branch",
                    node.id,
                    field="next_on_success",
                ))
            if not node.next_on_failure:
                findings.append(error(
                    FindingCode.CONDITION_INCOMPLETE_FAILURE,
                    f"Condition '{node.id}' has no failure branch",
                    node.id,
                    field="next_on_failure",
                ))
        return findings

    def _check_terminals(self, nodes: Sequence[FlowNodeDraft]) -> list[ValidationFinding]:
        findings = []
        for node in nodes:
            if node.kind != NodeKind.END:
                continue
            if node.references:
                targets = ", ".join(ref for _, ref in node.references)
                findings.append(error(
                    FindingCode.END_HAS_OUTGOING,
                    f"End node '{node.id}' has outgoing references: {targets}",
                    node.id,
                ))
            if node.end_status is None:
                findings.append(error(
                    FindingCode.END_NO_STATUS,
                    f"End node '{node.id}' has no end status",
                    node.id,
                ))
        return findings

    def _check_outputs(
        self,
        nodes: Sequence[FlowNodeDraft],
        by_id: dict[str, FlowNodeDraft],
    ) -> tuple[list[ValidationFinding], list[ValidationFinding]]:
        errors = []
        warnings = []
        for node in nodes:
            if node.kind == NodeKind.END:
                continue
            if any(ref in by_id for _, ref in node.references):
                continue
            if node.kind == NodeKind.TRIGGER:
                errors.append(error(
                    FindingCode.TRIGGER_NO_OUTPUT,
                    f"Trigger '{node.id}' has no outgoing connection",
                    node.id,
                    field="next_on_success",
                ))
            else:
                warnings.append(warning(
                    FindingCode.NODE_NO_OUTPUT,
                    f"Node '{node.id}' has no outgoing connection",
                    node.id,
                ))
        return errors, warnings

    def _detect_cycles(
        self,
        nodes: Sequence[FlowNodeDraft],
        by_id: dict[str, FlowNodeDraft],
    ) -> list[ValidationFinding]:
        """Iterative three-colour DFS. One finding per back edge.

        Start nodes are taken in sequence order and successors are visited
        success first, so the reported paths are deterministic.
        """
        successors = {
            node_id: [(f, ref) for f, ref in node.references if ref in by_id]
            for node_id, node in by_id.items()
        }
        color = {node_id: _UNVISITED for node_id in by_id}
        findings = []

        for start in nodes:
            if color[start.id] != _UNVISITED:
                continue

            color[start.id] = _IN_PROGRESS
            path = [start.id]
            stack = [(start.id, iter(successors[start.id]))]

            while stack:
                node_id, children = stack[-1]
                descended = False

                for ref_field, target in children:
                    if color[target] == _IN_PROGRESS:
                        cycle = path[path.index(target):] + [target]
                        findings.append(error(
                            FindingCode.CYCLE_DETECTED,
                            f"Cycle detected: {' -> '.join(cycle)}",
                            node_id,
                            field=ref_field,
                            reference=target,
                            path=cycle,
                        ))
                    elif color[target] == _UNVISITED:
                        color[target] = _IN_PROGRESS
                        path.append(target)
                        stack.append((target, iter(successors[target])))
                        descended = True
                        break

                if not descended:
                    color[node_id] = _DONE
                    stack.pop()
                    path.pop()

        return findings

    def _check_reachability(
        self,
        nodes: Sequence[FlowNodeDraft],
        by_id: dict[str, FlowNodeDraft],
        trigger_id: str,
    ) -> list[ValidationFinding]:
        reachable = {trigger_id}
        queue = deque([trigger_id])
        while queue:
            current = queue.popleft()
            for _, ref in by_id[current].references:
                if ref in by_id and ref not in reachable:
                    reachable.add(ref)
                    queue.append(ref)

        return [
            warning(
                FindingCode.UNREACHABLE_NODE,
                f"Node '{node.id}' is not reachable from trigger '{trigger_id}'",
                node.id,
            )
            for node in nodes
            if node.id not in reachable
        ]


def validate_graph(
    nodes: Sequence[FlowNodeDraft],
    unresolved: Iterable[UnresolvedReference] = (),
) -> ValidationResult:
    """Validate a node sequence with a fresh validator."""
    return StructuralValidator().validate(nodes, unresolved)
