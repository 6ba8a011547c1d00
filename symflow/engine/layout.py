"""Layout - BFS column/lane placement.

Columns come from BFS depth from the trigger; lanes come from the kind of
connection that first reached a node:
- success/default keep the parent's lane
- error moves to the error lane (below main)
- a second conditional branch from the same node moves to the alternative
  lane (above main)
An explicit non-main path_class on the node overrides the derived lane.

Every (depth, lane) cell keeps an occupancy counter so nodes sharing a cell
stack vertically instead of overlapping. Nodes the BFS never reaches go to
an overflow lane below everything else, one row each.
"""
from collections import deque
from dataclasses import dataclass, field
from typing import Optional, Sequence

import structlog

from symflow.engine.config import EngineConfig
from symflow.models.flow_graph import (
    Connection,
    ConnectionClassification,
    Lane,
    LayoutBounds,
    NodePlacement,
    Position,
)
from symflow.models.flow_node import NodeKind, PathClass

logger = structlog.get_logger()

# Padding around the drawn extent, and the canvas used when there is nothing to draw
BOUNDS_PADDING_X = 400
BOUNDS_PADDING_Y = 300
EMPTY_CANVAS = LayoutBounds(width=800, height=600, center_x=400, center_y=300)


@dataclass
class LayoutResult:
    """Positions plus the discrete placement they were derived from."""

    positions: dict[str, Position] = field(default_factory=dict)
    placements: list[NodePlacement] = field(default_factory=list)
    bounds: LayoutBounds = field(default_factory=lambda: EMPTY_CANVAS)

    def placement_for(self, node_id: str) -> Optional[NodePlacement]:
        for placement in self.placements:
            if placement.node_id == node_id:
                return placement
        return None


class LayoutAssigner:
    """Deterministic BFS layout."""

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()

    def assign(self, nodes: Sequence, connections: Sequence[Connection]) -> LayoutResult:
        """Assign a position to every node.

        Args:
            nodes: Symbolic nodes (or drafts) in sequence order
            connections: Output of the edge synthesizer

        Returns:
            LayoutResult with positions keyed by node id in sequence order
        """
        if not nodes:
            return LayoutResult()

        by_id = {}
        for node in nodes:
            by_id.setdefault(node.id, node)

        outgoing: dict[str, list[Connection]] = {node_id: [] for node_id in by_id}
        for conn in connections:
            if conn.source_id in outgoing and conn.target_id in by_id:
                outgoing[conn.source_id].append(conn)

        root = next((n for n in nodes if n.kind == NodeKind.TRIGGER), nodes[0])

        depth: dict[str, int] = {root.id: 0}
        lane: dict[str, Lane] = {root.id: Lane.from_path_class(PathClass(root.path_class))}
        visit_order = [root.id]
        queue = deque([root.id])

        while queue:
            current = queue.popleft()
            conditional_seen = 0

            for conn in outgoing[current]:
                if conn.classification == ConnectionClassification.CONDITIONAL:
                    conditional_seen += 1
                if conn.target_id in depth:
                    continue

                if conn.classification == ConnectionClassification.ERROR:
                    target_lane = Lane.ERROR
                elif conn.classification == ConnectionClassification.CONDITIONAL and conditional_seen > 1:
                    target_lane = Lane.ALTERNATIVE
                else:
                    target_lane = lane[current]

                hint = PathClass(by_id[conn.target_id].path_class)
                if hint != PathClass.MAIN:
                    target_lane = Lane.from_path_class(hint)

                depth[conn.target_id] = depth[current] + 1
                lane[conn.target_id] = target_lane
                visit_order.append(conn.target_id)
                queue.append(conn.target_id)

        placements = self._place(visit_order, depth, lane)
        overflow = [node_id for node_id in by_id if node_id not in depth]
        positions = self._position(placements)

        if overflow:
            logger.warning("layout_overflow_nodes", node_ids=overflow)
            lowest = max((p.y for p in positions.values()), default=self.config.start_y)
            for k, node_id in enumerate(overflow):
                placement = NodePlacement(
                    node_id=node_id,
                    order_index=len(placements) + 1,
                    depth=None,
                    lane=Lane.OVERFLOW,
                    slot=k,
                )
                placements.append(placement)
                positions[node_id] = Position(
                    x=self.config.start_x,
                    y=lowest + self.config.vertical_spacing * (k + 1),
                )

        ordered = {node_id: positions[node_id] for node_id in by_id}

        logger.info(
            "layout_assigned",
            node_count=len(ordered),
            max_depth=max(depth.values()),
            overflow_count=len(overflow),
        )
        return LayoutResult(
            positions=ordered,
            placements=placements,
            bounds=calculate_bounds(ordered.values()),
        )

    def _place(
        self,
        visit_order: list[str],
        depth: dict[str, int],
        lane: dict[str, Lane],
    ) -> list[NodePlacement]:
        occupancy: dict[tuple[int, Lane], int] = {}
        placements = []
        for order_index, node_id in enumerate(visit_order, start=1):
            cell = (depth[node_id], lane[node_id])
            slot = occupancy.get(cell, 0)
            occupancy[cell] = slot + 1
            placements.append(NodePlacement(
                node_id=node_id,
                order_index=order_index,
                depth=depth[node_id],
                lane=lane[node_id],
                slot=slot,
            ))
        return placements

    def _position(self, placements: list[NodePlacement]) -> dict[str, Position]:
        cfg = self.config
        spacing = cfg.vertical_spacing

        main_rows: dict[int, int] = {}
        for p in placements:
            if p.lane == Lane.MAIN:
                main_rows[p.depth] = main_rows.get(p.depth, 0) + 1

        positions = {}
        for p in placements:
            x = cfg.start_x + p.depth * cfg.horizontal_spacing
            if p.lane == Lane.MAIN:
                y = cfg.start_y + p.slot * spacing
            elif p.lane == Lane.ERROR:
                # Error band starts below the deepest main row of this column
                base = max(
                    cfg.start_y + cfg.error_lane_offset,
                    cfg.start_y + main_rows.get(p.depth, 0) * spacing,
                )
                y = base + p.slot * spacing
            else:
                base = min(cfg.start_y + cfg.alternative_lane_offset, cfg.start_y - spacing)
                y = base - p.slot * spacing
            positions[p.node_id] = Position(x=x, y=y)
        return positions


def calculate_bounds(positions) -> LayoutBounds:
    """Overall extent of a set of positions, padded for display."""
    positions = list(positions)
    if not positions:
        return EMPTY_CANVAS

    min_x = min(p.x for p in positions)
    max_x = max(p.x for p in positions)
    min_y = min(p.y for p in positions)
    max_y = max(p.y for p in positions)

    return LayoutBounds(
        width=max_x - min_x + BOUNDS_PADDING_X,
        height=max_y - min_y + BOUNDS_PADDING_Y,
        center_x=(min_x + max_x) / 2,
        center_y=(min_y + max_y) / 2,
    )


def assign_layout(
    nodes: Sequence,
    connections: Sequence[Connection],
    config: Optional[EngineConfig] = None,
) -> LayoutResult:
    """Lay out a graph with a fresh assigner."""
    return LayoutAssigner(config).assign(nodes, connections)
