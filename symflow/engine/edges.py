"""Edge synthesis: turn success/failure references into connections."""
from typing import Optional, Sequence

import structlog

from symflow.models.flow_graph import Connection, ConnectionClassification
from symflow.models.flow_node import EdgeHint, NodeKind

logger = structlog.get_logger()

AFFIRMATIVE_LABEL = "Yes"
NEGATIVE_LABEL = "No"

CONNECTION_VOCABULARY: dict[ConnectionClassification, tuple[str, ...]] = {
    ConnectionClassification.SUCCESS: ("success", "yes", "true", "ok", "primary"),
    ConnectionClassification.ERROR: ("error", "failure", "fail", "fallback", "no", "false", "cancel"),
    ConnectionClassification.CONDITIONAL: ("condition", "conditional"),
    ConnectionClassification.DEFAULT: ("default", "secondary", "loop", "loopback", "retry"),
}

_TERM_LOOKUP = {
    term: classification
    for classification, terms in CONNECTION_VOCABULARY.items()
    for term in terms
}


def classify_connection_type(text: Optional[str]) -> Optional[ConnectionClassification]:
    """Match a connection type or label against the canonical vocabulary.

    Returns None for free text that is not in the vocabulary.
    """
    if not text:
        return None
    return _TERM_LOOKUP.get(text.strip().lower())


def _apply_hint(
    hint: Optional[EdgeHint],
    classification: ConnectionClassification,
    label: Optional[str],
) -> tuple[ConnectionClassification, Optional[str]]:
    if hint is None or not (hint.type or hint.label):
        return classification, label

    for text in (hint.type, hint.label):
        matched = classify_connection_type(text)
        if matched is not None:
            return matched, hint.label or label

    # Unmatched free text is display-only
    return ConnectionClassification.DEFAULT, hint.label or hint.type


def synthesize_connections(nodes: Sequence) -> list[Connection]:
    """Build the connection list for a node sequence.

    Args:
        nodes: Symbolic nodes (or drafts) in sequence order

    Returns:
        Connections in node order, success before failure per node
    """
    known = {node.id for node in nodes}
    connections: list[Connection] = []

    for node in nodes:
        is_condition = node.kind == NodeKind.CONDITION

        branches = [
            (
                "next_on_success",
                getattr(node, "next_on_success", None),
                getattr(node, "success_edge", None),
                ConnectionClassification.CONDITIONAL if is_condition else ConnectionClassification.SUCCESS,
                AFFIRMATIVE_LABEL if is_condition else None,
            ),
        ]
        if is_condition:
            branches.append((
                "next_on_failure",
                getattr(node, "next_on_failure", None),
                getattr(node, "failure_edge", None),
                ConnectionClassification.ERROR,
                NEGATIVE_LABEL,
            ))

        for source_field, target, hint, classification, label in branches:
            if not target:
                continue
            if target not in known:
                logger.warning(
                    "edge_target_missing",
                    source_id=node.id,
                    target_id=target,
                    field=source_field,
                )
                continue

            classification, label = _apply_hint(hint, classification, label)
            connections.append(Connection(
                id=f"edge_{len(connections) + 1}",
                source_id=node.id,
                target_id=target,
                classification=classification,
                label=label,
                source_field=source_field,
            ))

    logger.info("edges_synthesized", connection_count=len(connections))
    return connections
