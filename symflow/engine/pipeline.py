"""Flow graph pipeline - Runs every stage over one input batch.

The pipeline coordinates:
1. Ingest - Reject unparseable input
2. Normalizer - Canonical ids and resolved references
3. Validator + Autofix - Bounded validate/repair loop
4. Edge synthesis - Connections with classification and label
5. Layout - BFS positions
6. Metrics - Stats and integrity score for the report

Each call is independent; the engine holds configuration only.
"""
from typing import Any, Optional

import structlog

from symflow.engine.autofix import AutofixRepairer
from symflow.engine.config import EngineConfig
from symflow.engine.edges import synthesize_connections
from symflow.engine.ingest import parse_nodes
from symflow.engine.layout import LayoutAssigner
from symflow.engine.metrics import compute_stats, integrity_score
from symflow.engine.normalizer import NormalizationResult, ReferenceNormalizer
from symflow.engine.validator import StructuralValidator
from symflow.models.findings import ValidationResult
from symflow.models.flow_graph import FlowGraphReport, FlowGraphResult
from symflow.models.flow_node import to_symbolic

logger = structlog.get_logger()


class FlowGraphEngine:
    """Turns AI-synthesized node descriptors into a sound, positioned graph."""

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self.normalizer = ReferenceNormalizer(fuzzy_min_length=self.config.fuzzy_min_length)
        self.validator = StructuralValidator()
        self.repairer = AutofixRepairer(
            max_iterations=self.config.autofix_max_iterations,
            validator=self.validator,
        )
        self.layout = LayoutAssigner(self.config)

    def normalize(self, payload: Any) -> NormalizationResult:
        """Ingest and normalize without validating."""
        return self.normalizer.normalize(parse_nodes(payload))

    def validate(self, payload: Any) -> ValidationResult:
        """Ingest, normalize and validate, without repairing.

        Normalization warnings are reported ahead of the validator's own.

        Raises:
            MalformedInputError: If the payload is unparseable
        """
        normalization = self.normalize(payload)
        validation = self.validator.validate(normalization.nodes, normalization.unresolved)
        return ValidationResult(
            errors=validation.errors,
            warnings=normalization.warnings + validation.warnings,
        )

    def build(self, payload: Any) -> FlowGraphResult:
        """Run the full pipeline.

        Args:
            payload: Ordered sequence of node descriptors

        Returns:
            FlowGraphResult. A graph the repairer could not fix still comes
            back, with status FAILED and the remaining errors in the report.

        Raises:
            MalformedInputError: If the payload is unparseable
        """
        drafts = parse_nodes(payload)
        logger.info("pipeline_start", node_count=len(drafts))

        normalization = self.normalizer.normalize(drafts)
        outcome = self.repairer.run(normalization.nodes, normalization.unresolved)

        nodes = [to_symbolic(draft) for draft in outcome.nodes]
        connections = synthesize_connections(nodes)
        layout = self.layout.assign(nodes, connections)

        errors = outcome.validation.errors
        warnings = normalization.warnings + outcome.validation.warnings
        stats = compute_stats(nodes, connections, layout.placements)

        report = FlowGraphReport(
            status=outcome.status,
            errors=errors,
            warnings=warnings,
            fixes_applied=outcome.fixes_applied,
            iterations=outcome.iterations,
            resolutions=normalization.resolutions,
            stats=stats,
            score=integrity_score(errors, warnings, stats),
        )

        logger.info(
            "pipeline_complete",
            status=report.status.value,
            node_count=len(nodes),
            connection_count=len(connections),
            error_count=len(errors),
            warning_count=len(warnings),
            fixes=len(report.fixes_applied),
            score=report.score,
        )

        return FlowGraphResult(
            nodes=nodes,
            connections=connections,
            positions=layout.positions,
            placements=layout.placements,
            bounds=layout.bounds,
            report=report,
        )


def build_flow_graph(payload: Any, config: Optional[EngineConfig] = None) -> FlowGraphResult:
    """Build a flow graph with a one-off engine."""
    return FlowGraphEngine(config).build(payload)
