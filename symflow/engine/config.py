"""Caller-supplied engine parameters.

The engine never reads the environment; the HTTP service builds an
EngineConfig from Settings and hands it over explicitly.
"""
from pydantic import BaseModel, ConfigDict, Field


class EngineConfig(BaseModel):
    """Layout and repair parameters with documented defaults."""

    model_config = ConfigDict(frozen=True)

    horizontal_spacing: int = Field(280, gt=0, description="Distance between BFS columns")
    vertical_spacing: int = Field(180, gt=0, description="Distance between stacked nodes in a lane")
    start_x: int = Field(100, description="X of the trigger column")
    start_y: int = Field(300, description="Y of the main lane")
    error_lane_offset: int = Field(180, ge=0, description="Error lane offset below the main lane")
    alternative_lane_offset: int = Field(
        -180,
        le=0,
        description="Alternative lane offset above the main lane",
    )
    autofix_max_iterations: int = Field(2, ge=1, le=10, description="Hard cap on repair passes")
    fuzzy_min_length: int = Field(
        3,
        ge=1,
        description="Shortest reference eligible for substring matching",
    )
