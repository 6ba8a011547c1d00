"""Ingest - Malformed-input gate in front of the pipeline.

Only truly unparseable input is rejected here: a payload that is not a
sequence, or a node missing id/kind/title. Broken references are the
normalizer's problem and never reject the batch.
"""
from collections.abc import Mapping
from typing import Any, Optional

import structlog
from pydantic import ValidationError

from symflow.models.flow_node import FlowNodeDraft

logger = structlog.get_logger()


class MalformedInputError(ValueError):
    """Input fails basic shape requirements and cannot enter the pipeline."""

    def __init__(self, message: str, index: Optional[int] = None, details: Optional[list] = None):
        super().__init__(message)
        self.index = index
        self.details = details or []

    def to_dict(self) -> dict:
        return {
            "message": str(self),
            "index": self.index,
            "details": self.details,
        }


def parse_nodes(payload: Any) -> list[FlowNodeDraft]:
    """Parse a raw node batch into drafts.

    Args:
        payload: Ordered sequence of node mappings (or drafts)

    Returns:
        Drafts in input order

    Raises:
        MalformedInputError: If the payload or any node is unparseable
    """
    if isinstance(payload, (str, bytes, Mapping)) or not isinstance(payload, (list, tuple)):
        raise MalformedInputError(
            f"Expected a sequence of nodes, got {type(payload).__name__}",
        )

    drafts = []
    for index, raw in enumerate(payload):
        if isinstance(raw, FlowNodeDraft):
            drafts.append(raw)
            continue

        if not isinstance(raw, Mapping):
            raise MalformedInputError(
                f"Node at position {index + 1} is {type(raw).__name__}, expected an object",
                index=index,
            )

        try:
            drafts.append(FlowNodeDraft.model_validate(dict(raw)))
        except ValidationError as e:
            details = [
                {
                    "loc": [str(part) for part in err["loc"]],
                    "msg": err["msg"],
                }
                for err in e.errors()
            ]
            logger.warning(
                "ingest_rejected_node",
                index=index,
                error_count=len(details),
            )
            raise MalformedInputError(
                f"Node at position {index + 1} is malformed: "
                + "; ".join(f"{'.'.join(d['loc']) or 'node'}: {d['msg']}" for d in details),
                index=index,
                details=details,
            ) from e

    logger.info("ingest_complete", node_count=len(drafts))
    return drafts
