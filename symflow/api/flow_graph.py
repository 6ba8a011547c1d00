"""Flow graph API endpoints - normalize, repair and lay out synthesized nodes."""
from typing import Any, Optional

import structlog
from fastapi import APIRouter, HTTPException
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from symflow.config import get_settings
from symflow.engine import EngineConfig, FlowGraphEngine, MalformedInputError
from symflow.utils.graph_printer import print_flow_graph

logger = structlog.get_logger()

router = APIRouter()


class FlowGraphRequest(BaseModel):
    """Request body for every flow graph endpoint."""

    nodes: list[Any] = Field(..., description="Ordered node descriptors from the synthesis step")
    config: Optional[EngineConfig] = Field(
        None,
        description="Engine parameters; service defaults apply when omitted",
    )


def _engine_for(request: FlowGraphRequest) -> FlowGraphEngine:
    return FlowGraphEngine(request.config or get_settings().engine_config())


def _reject(endpoint: str, e: MalformedInputError) -> HTTPException:
    logger.warning("flow_graph_malformed_input", endpoint=endpoint, index=e.index, error=str(e))
    return HTTPException(status_code=422, detail=e.to_dict())


@router.post("/flow-graph/build")
async def build_flow_graph(request: FlowGraphRequest) -> dict:
    """
    Build a structurally sound, positioned graph.

    Runs normalization, the bounded validate/repair loop, edge synthesis
    and layout. A graph that could not be repaired still returns 200 with
    status "failed" and the remaining errors in the report.
    """
    logger.info("flow_graph_build_request", node_count=len(request.nodes))

    try:
        result = _engine_for(request).build(request.nodes)
    except MalformedInputError as e:
        raise _reject("build", e)

    logger.info(
        "flow_graph_build_success",
        status=result.report.status.value,
        score=result.report.score,
    )
    return result.to_dict()


@router.post("/flow-graph/validate")
async def validate_flow_graph(request: FlowGraphRequest) -> dict:
    """Normalize and validate without repairing."""
    logger.info("flow_graph_validate_request", node_count=len(request.nodes))

    try:
        validation = _engine_for(request).validate(request.nodes)
    except MalformedInputError as e:
        raise _reject("validate", e)

    return validation.to_dict()


@router.post("/flow-graph/preview", response_class=PlainTextResponse)
async def preview_flow_graph(request: FlowGraphRequest) -> str:
    """Build the graph and return a plain-text rendering of it."""
    try:
        result = _engine_for(request).build(request.nodes)
    except MalformedInputError as e:
        raise _reject("preview", e)

    return print_flow_graph(result)
