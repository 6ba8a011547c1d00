"""Normalizer - First stage of the flow graph pipeline.

Resolves the references produced by the synthesis step into canonical
node ids. A reference may be:
1. A canonical id (kept as is)
2. A 1-based positional index ("2" -> second node)
3. An alias: the node's original (pre-canonicalization) id or its correlation id
4. Something close enough to an id for a substring match (flagged)
5. Garbage (cleared, with a warning)

Node ids themselves are canonicalized to lowercase-with-underscores tokens
and de-duplicated so every later stage can trust them.
"""
import re
import unicodedata
from dataclasses import dataclass, field
from typing import Optional, Sequence

import structlog

from symflow.models.findings import FindingCode, ValidationFinding, warning
from symflow.models.flow_graph import ReferenceResolution, UnresolvedReference
from symflow.models.flow_node import FlowNodeDraft, NodeKind

logger = structlog.get_logger()

ID_PATTERN = re.compile(r"^[a-z0-9_]+$")
NUMERIC_REF = re.compile(r"^\d+$")
MAX_ID_LENGTH = 40

# Only conditions branch; a failure reference anywhere else is dropped
FAILURE_CAPABLE = {NodeKind.CONDITION, NodeKind.END}


def slugify(value: str, max_length: int = MAX_ID_LENGTH) -> str:
    """Reduce free text to a lowercase-with-underscores token."""
    normalized = unicodedata.normalize("NFKD", value)
    ascii_text = normalized.encode("ascii", "ignore").decode("ascii").lower()
    slug = re.sub(r"[^a-z0-9]+", "_", ascii_text).strip("_")
    return slug[:max_length].rstrip("_")


@dataclass
class NormalizationResult:
    """Output of the normalizer."""

    nodes: list[FlowNodeDraft]
    warnings: list[ValidationFinding] = field(default_factory=list)
    unresolved: list[UnresolvedReference] = field(default_factory=list)
    resolutions: list[ReferenceResolution] = field(default_factory=list)
    id_map: dict[str, str] = field(default_factory=dict)


class _ReferenceTable:
    """Lookup tables for a single normalization run."""

    def __init__(self, originals: Sequence[FlowNodeDraft], canonical_ids: list[str]):
        self.canonical_ids = canonical_ids
        self.known = set(canonical_ids)
        self.positional = {
            str(position): cid for position, cid in enumerate(canonical_ids, start=1)
        }
        self.aliases: dict[str, str] = {}
        for node, cid in zip(originals, canonical_ids):
            if node.id != cid and node.id not in self.known:
                self.aliases.setdefault(node.id, cid)
        for node, cid in zip(originals, canonical_ids):
            if node.correlation_id and node.correlation_id not in self.known:
                self.aliases.setdefault(node.correlation_id, cid)


class ReferenceNormalizer:
    """Resolves ambiguous, numeric and index-based references."""

    def __init__(self, fuzzy_min_length: int = 3):
        self.fuzzy_min_length = fuzzy_min_length

    def normalize(self, nodes: Sequence[FlowNodeDraft]) -> NormalizationResult:
        """Normalize ids and references of a node batch.

        Args:
            nodes: Drafts in input order

        Returns:
            NormalizationResult with canonical nodes, warnings and audit trail
        """
        logger.info("normalizer_start", node_count=len(nodes))

        result = NormalizationResult(nodes=[])
        canonical_ids = self._canonicalize_ids(nodes, result)
        table = _ReferenceTable(nodes, canonical_ids)

        for node, cid in zip(nodes, canonical_ids):
            update: dict = {}
            if cid != node.id:
                update["id"] = cid

            for ref_field, raw in node.references:
                if ref_field == "next_on_failure" and node.kind not in FAILURE_CAPABLE:
                    update[ref_field] = None
                    result.warnings.append(warning(
                        FindingCode.FAILURE_REF_DROPPED,
                        f"Node '{cid}' is a {node.kind.value} and cannot branch on failure; "
                        f"dropped next_on_failure '{raw}'",
                        cid,
                        field=ref_field,
                        reference=raw,
                    ))
                    result.resolutions.append(ReferenceResolution(
                        node_id=cid, field=ref_field, raw_value=raw, method="dropped",
                    ))
                    continue

                resolved, method, candidates = self._resolve(raw, cid, table)
                result.resolutions.append(ReferenceResolution(
                    node_id=cid,
                    field=ref_field,
                    raw_value=raw,
                    resolved_id=resolved,
                    method=method,
                ))

                if resolved is None:
                    update[ref_field] = None
                    result.unresolved.append(UnresolvedReference(
                        node_id=cid, field=ref_field, raw_value=raw,
                    ))
                    result.warnings.append(warning(
                        FindingCode.UNRESOLVED_REF,
                        f"Node '{cid}' {ref_field} '{raw}' does not match any node; cleared",
                        cid,
                        field=ref_field,
                        reference=raw,
                    ))
                    logger.warning(
                        "reference_unresolved",
                        node_id=cid,
                        field=ref_field,
                        raw=raw,
                    )
                    continue

                if resolved != raw:
                    update[ref_field] = resolved

                if method == "fuzzy":
                    note = f" (candidates: {', '.join(candidates)})" if len(candidates) > 1 else ""
                    result.warnings.append(warning(
                        FindingCode.REF_FUZZY_MATCH,
                        f"Node '{cid}' {ref_field} '{raw}' resolved by similarity to '{resolved}'{note}",
                        cid,
                        field=ref_field,
                        reference=raw,
                        candidates=candidates,
                    ))
                    logger.warning(
                        "reference_resolved_fuzzy",
                        node_id=cid,
                        field=ref_field,
                        raw=raw,
                        resolved=resolved,
                        candidate_count=len(candidates),
                    )
                elif method != "exact":
                    logger.info(
                        "reference_resolved",
                        node_id=cid,
                        field=ref_field,
                        raw=raw,
                        resolved=resolved,
                        method=method,
                    )

            result.nodes.append(node.model_copy(update=update) if update else node)

        result.id_map = {
            node.id: cid for node, cid in reversed(list(zip(nodes, canonical_ids)))
        }

        logger.info(
            "normalizer_complete",
            node_count=len(result.nodes),
            warning_count=len(result.warnings),
            unresolved_count=len(result.unresolved),
        )
        return result

    def _canonicalize_ids(
        self,
        nodes: Sequence[FlowNodeDraft],
        result: NormalizationResult,
    ) -> list[str]:
        """Assign every node a unique id matching ID_PATTERN.

        Valid ids are reserved first (first occurrence wins) so a rewritten
        id can never steal a name another node already carries.
        """
        canonical: list[Optional[str]] = [None] * len(nodes)
        taken: set[str] = set()

        for i, node in enumerate(nodes):
            if ID_PATTERN.match(node.id) and node.id not in taken:
                canonical[i] = node.id
                taken.add(node.id)

        for i, node in enumerate(nodes):
            if canonical[i] is not None:
                continue
            base = slugify(node.id) or slugify(node.title) or f"node_{i + 1}"
            candidate = base
            suffix = 2
            while candidate in taken:
                candidate = f"{base}_{suffix}"
                suffix += 1
            canonical[i] = candidate
            taken.add(candidate)

            result.warnings.append(warning(
                FindingCode.ID_CANONICALIZED,
                f"Node id '{node.id}' rewritten to '{candidate}'",
                candidate,
                reference=node.id,
            ))
            logger.info("node_id_canonicalized", original=node.id, canonical=candidate)

        return canonical

    def _resolve(
        self,
        raw: str,
        source_id: str,
        table: _ReferenceTable,
    ) -> tuple[Optional[str], str, list[str]]:
        """Resolve one reference. Returns (resolved id, method, fuzzy candidates)."""
        if raw in table.known:
            return raw, "exact", []

        if NUMERIC_REF.match(raw):
            if raw in table.positional:
                return table.positional[raw], "positional", []
            if raw in table.aliases:
                return table.aliases[raw], "alias", []
            return None, "unresolved", []

        if raw in table.aliases:
            return table.aliases[raw], "alias", []

        slug = slugify(raw)
        if slug in table.known:
            return slug, "alias", []

        if len(slug) < self.fuzzy_min_length:
            return None, "unresolved", []

        candidates = [
            cid for cid in table.canonical_ids
            if cid != source_id
            and len(cid) >= self.fuzzy_min_length
            and (slug in cid or cid in slug)
        ]
        if candidates:
            # Ties resolve to the first candidate in input order; all are reported
            return candidates[0], "fuzzy", candidates

        return None, "unresolved", []


def normalize_references(
    nodes: Sequence[FlowNodeDraft],
    fuzzy_min_length: int = 3,
) -> NormalizationResult:
    """Normalize a node batch with a fresh normalizer."""
    return ReferenceNormalizer(fuzzy_min_length=fuzzy_min_length).normalize(nodes)
