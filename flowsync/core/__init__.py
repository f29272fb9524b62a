"""
flowsync.core - Workflow graph synchronization core

This package merges the positional graph with the live node registry into
full-fidelity snapshots, validates them, and restores them, without any
dependency on HTTP or other transports.

Main components:
- NodeRegistry: In-memory registry of NodeData and live connections
- merge / integrity / restore / split: The four synchronization engines
- WorkflowDataManager: Binds the engines to one registry
- WorkflowStore: JSON file document store for saved workflows
- Topology: NetworkX helpers for connectivity checks

Usage:
    from flowsync.core import NodeRegistry, WorkflowDataManager, create_node_data

    registry = NodeRegistry()
    registry.register_node("n1", create_node_data("input", label="Source"))

    manager = WorkflowDataManager(registry)
    snapshot = manager.merge(nodes, edges)
    validation = manager.validate(snapshot)
"""

# Data models
from .models import (
    # Constants
    ENHANCED_FORMAT_VERSION,
    LEGACY_FORMAT_VERSION,
    FALLBACK_WARNING,
    DataSource,

    # Positional graph
    Position,
    GraphNode,
    Edge,

    # Semantic graph
    ConnectionData,
    NodeData,
    InputNodeData,
    ProcessNodeData,
    OutputNodeData,
    parse_node_data,
    create_node_data,
    create_connection_data,

    # Snapshots and results
    EnhancedMetadata,
    EnhancedNode,
    MergeStats,
    MergeResult,
    ValidationResult,
    RestoreResult,
    SplitResult,

    # Persisted documents
    EnhancedWorkflowMetadata,
    WorkflowDocument,
    WorkflowRecord,

    utc_now,
)

# Errors
from .errors import (
    WorkflowSyncError,
    MergeError,
    RestoreError,
    IntegrityValidationError,
    WorkflowNotFoundError,
)

# Registry
from .registry import NodeStore, NodeRegistry, RegistryEvent, make_connection_id

# Engines
from .merge import merge_workflow
from .integrity import validate_data_integrity, compute_fidelity_score
from .restore import restore_registry_state, normalize_connection_map
from .split import split_workflow_data, extract_positional_node
from .data_manager import WorkflowDataManager

# Persistence
from .store import WorkflowStore

# Topology
from .topology import (
    build_graph,
    find_duplicate_node_ids,
    find_dangling_edges,
    extract_connected_workflow,
    find_connected_components,
    get_largest_connected_component,
    create_workflow_metadata,
    check_workflow_validity,
)

__all__ = [
    "ENHANCED_FORMAT_VERSION",
    "LEGACY_FORMAT_VERSION",
    "FALLBACK_WARNING",
    "DataSource",
    "Position",
    "GraphNode",
    "Edge",
    "ConnectionData",
    "NodeData",
    "InputNodeData",
    "ProcessNodeData",
    "OutputNodeData",
    "parse_node_data",
    "create_node_data",
    "create_connection_data",
    "EnhancedMetadata",
    "EnhancedNode",
    "MergeStats",
    "MergeResult",
    "ValidationResult",
    "RestoreResult",
    "SplitResult",
    "EnhancedWorkflowMetadata",
    "WorkflowDocument",
    "WorkflowRecord",
    "utc_now",

    "WorkflowSyncError",
    "MergeError",
    "RestoreError",
    "IntegrityValidationError",
    "WorkflowNotFoundError",

    "NodeStore",
    "NodeRegistry",
    "RegistryEvent",
    "make_connection_id",

    "merge_workflow",
    "validate_data_integrity",
    "compute_fidelity_score",
    "restore_registry_state",
    "normalize_connection_map",
    "split_workflow_data",
    "extract_positional_node",
    "WorkflowDataManager",

    "WorkflowStore",

    "build_graph",
    "find_duplicate_node_ids",
    "find_dangling_edges",
    "extract_connected_workflow",
    "find_connected_components",
    "get_largest_connected_component",
    "create_workflow_metadata",
    "check_workflow_validity",
]
