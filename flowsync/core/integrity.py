"""
Integrity validator for merge snapshots.

Checks a snapshot against the NodeData schema and connection invariants and
computes the data fidelity score. Errors are accumulated without aborting;
the function never raises and never mutates its input.

Policy:
- Nodes carrying registry data (or no provenance at all) must have a data
  object with the four mandatory sections, and every inbound connection
  must carry sourceNodeId and meta. Violations are errors.
- Fallback nodes (source reactFlow) are a degradation, not a schema
  violation: they lower the fidelity score and add a warning.
- A low fidelity score and missing provenance are warnings only.
"""

import logging
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError

from .models import (
    DataSource, EnhancedNode, MergeResult, WorkflowDocument, ValidationResult,
    NODE_DATA_SECTIONS,
)
from .topology import find_duplicate_node_ids

logger = logging.getLogger(__name__)

DEFAULT_FIDELITY_THRESHOLD = 80.0

Snapshot = Union[MergeResult, WorkflowDocument, Mapping[str, Any]]


def compute_fidelity_score(resolved: int, total: int) -> float:
    """Percentage of nodes resolved against the registry (0 for an empty graph)."""
    return (resolved / total) * 100 if total > 0 else 0.0


def validate_data_integrity(
    snapshot: Snapshot,
    fidelity_threshold: Optional[float] = None,
) -> ValidationResult:
    """
    Validate a merge result (or a persisted document with the same shape).

    Args:
        snapshot: MergeResult, WorkflowDocument or raw mapping with "nodes"
        fidelity_threshold: Score below which a warning is added (default 80)

    Returns:
        ValidationResult; isValid is False only for schema errors, malformed
        or duplicate nodes, or an internal failure
    """
    threshold = DEFAULT_FIDELITY_THRESHOLD if fidelity_threshold is None else fidelity_threshold
    validation = ValidationResult()
    stats = validation.stats

    try:
        if isinstance(snapshot, Mapping):
            raw_nodes = snapshot.get("nodes") or []
            if not isinstance(raw_nodes, list):
                raise TypeError(f"nodes must be a list, got {type(raw_nodes).__name__}")
        else:
            raw_nodes = snapshot.nodes

        nodes = []
        for raw in raw_nodes:
            if isinstance(raw, EnhancedNode):
                nodes.append(raw)
                continue
            try:
                nodes.append(EnhancedNode.model_validate(raw))
            except ValidationError as e:
                stats.nodes_validated += 1
                node_id = raw.get("id") if isinstance(raw, Mapping) else None
                validation.errors.append(f"Node {node_id}: Invalid node ({e.error_count()} field errors)")
                validation.is_valid = False

        for node_id in find_duplicate_node_ids(nodes):
            validation.errors.append(f"Duplicate node ID: {node_id}")
            validation.is_valid = False

        for node in nodes:
            stats.nodes_validated += 1
            meta = node.enhanced_metadata

            if meta is None:
                validation.warnings.append(f"Node {node.id}: Missing enhanced metadata")
            elif meta.source == DataSource.REACT_FLOW:
                validation.warnings.append(f"Node {node.id}: {meta.warning or 'Using fallback data'}")
                continue

            data = node.data
            if not isinstance(data, Mapping):
                validation.errors.append(f"Node {node.id}: Missing data object")
                validation.is_valid = False
                continue

            missing = [section for section in NODE_DATA_SECTIONS if not isinstance(data.get(section), Mapping)]
            if missing:
                validation.errors.append(
                    f"Node {node.id}: Invalid NodeData schema (missing {', '.join(missing)})"
                )
                validation.is_valid = False
                continue

            connections = data["input"].get("connections") or {}
            if not isinstance(connections, Mapping):
                validation.errors.append(f"Node {node.id}: Invalid connections section")
                validation.is_valid = False
                continue

            for connection_id, connection in connections.items():
                stats.connections_validated += 1
                if (
                    not isinstance(connection, Mapping)
                    or not connection.get("sourceNodeId")
                    or not connection.get("meta")
                ):
                    validation.errors.append(f"Node {node.id}: Invalid connection {connection_id}")
                    validation.is_valid = False

        resolved = sum(1 for node in nodes if node.is_resolved)
        stats.data_fidelity_score = compute_fidelity_score(resolved, len(raw_nodes))

        if stats.data_fidelity_score < threshold:
            validation.warnings.append(f"Low data fidelity score: {stats.data_fidelity_score:.1f}%")

        logger.debug(
            f"Data integrity validation completed: valid={validation.is_valid}, "
            f"{len(validation.errors)} errors, {len(validation.warnings)} warnings, "
            f"fidelity={stats.data_fidelity_score:.1f}%"
        )
        return validation

    except Exception as e:
        logger.exception("Validation failed")
        validation.is_valid = False
        validation.errors.append(f"Validation error: {e}")
        return validation
