"""
Merge engine: positional graph + node registry -> full-fidelity snapshot.

For every positional node the registry is asked for its NodeData. Resolved
nodes carry the complete NodeData dump; unresolved nodes fall back to the
positional node as-is and are marked with a warning. The registry's live
connection map is copied verbatim. The registry is never written to.
"""

import copy
import logging
import time
from typing import Any, Iterable, List, Mapping, Optional, Union

from .errors import MergeError
from .models import (
    GraphNode, Edge, EnhancedNode, EnhancedMetadata, DataSource,
    MergeResult, MergeStats, MergeErrorRecord, ConnectionMap,
    FALLBACK_WARNING, utc_now, utc_now_iso,
)
from .registry import NodeStore

logger = logging.getLogger(__name__)

NodeLike = Union[GraphNode, Mapping[str, Any]]
EdgeLike = Union[Edge, Mapping[str, Any]]


def _as_graph_node(node: NodeLike) -> GraphNode:
    if isinstance(node, GraphNode):
        return node
    return GraphNode.model_validate(dict(node))


def _as_edge(edge: EdgeLike) -> Edge:
    if isinstance(edge, Edge):
        return edge
    return Edge.model_validate(dict(edge))


def snapshot_connections(registry: NodeStore) -> ConnectionMap:
    """Copy the registry's live connection map, stamping each entry with exportedAt."""
    exported_at = utc_now_iso()
    return {
        connection_id: {**copy.deepcopy(dict(connection)), "exportedAt": exported_at}
        for connection_id, connection in registry.connections.items()
    }


def merge_workflow(
    registry: NodeStore,
    nodes: Iterable[NodeLike],
    edges: Iterable[EdgeLike],
    default_data_version: str = "1.0.0",
    error_log: Optional[List[MergeErrorRecord]] = None,
) -> MergeResult:
    """
    Merge positional nodes with the registry's NodeData.

    Args:
        registry: Node registry to read from
        nodes: Positional nodes (GraphNode or raw mappings)
        edges: Positional edges, passed through unchanged
        default_data_version: dataVersion used when NodeData has no meta.version
        error_log: Receives a MERGE_ERROR record if the merge fails

    Returns:
        MergeResult with enhanced nodes, edges, connection map and stats

    Raises:
        MergeError: any failure while traversing; no partial result is returned
    """
    logger.debug("Starting data merge operation")
    start = time.perf_counter()
    enhanced_nodes: List[EnhancedNode] = []
    nodes_with_connections = 0
    total_connections = 0

    try:
        edge_list = [_as_edge(edge) for edge in edges]

        for positional in (_as_graph_node(node) for node in nodes):
            node_data = registry.get_node_data(positional.id)
            payload = positional.to_dict()

            if node_data is not None:
                connection_count = len(node_data.input.connections)
                if connection_count > 0:
                    nodes_with_connections += 1
                    total_connections += connection_count

                payload["data"] = node_data.to_dict()
                payload["enhancedMetadata"] = EnhancedMetadata(
                    source=DataSource.NODE_DATA_MANAGER,
                    has_connections=connection_count > 0,
                    connection_count=connection_count,
                    data_version=node_data.meta.version or default_data_version,
                )
                logger.debug(f"Enhanced node {positional.id} with {connection_count} connections")
            else:
                logger.warning(f"No NodeData found for {positional.id}, using positional data")
                payload["enhancedMetadata"] = EnhancedMetadata(
                    source=DataSource.REACT_FLOW,
                    has_connections=False,
                    connection_count=0,
                    warning=FALLBACK_WARNING,
                )

            enhanced_nodes.append(EnhancedNode.model_validate(payload))

        connection_map = snapshot_connections(registry)

        stats = MergeStats(
            total_nodes=len(enhanced_nodes),
            nodes_with_connections=nodes_with_connections,
            total_connections=total_connections,
            connections_map_size=len(connection_map),
            processing_time=(time.perf_counter() - start) * 1000,
            timestamp=utc_now(),
        )

    except Exception as e:
        logger.exception("Merge operation failed")
        if error_log is not None:
            error_log.append(MergeErrorRecord(message=str(e)))
        raise MergeError(str(e)) from e

    logger.info(
        f"Merge completed: {stats.total_nodes} nodes, "
        f"{stats.total_connections} connections on {stats.nodes_with_connections} nodes, "
        f"{stats.connections_map_size} live connections"
    )

    return MergeResult(
        nodes=enhanced_nodes,
        edges=edge_list,
        connection_map=connection_map,
        stats=stats,
        validation_errors=list(error_log) if error_log else [],
    )
