"""
Data models for workflow graph synchronization.

Two views of the same directed graph are modelled here:
- The positional graph (GraphNode, Edge): layout and identity only,
  owned by the rendering layer.
- The semantic graph (NodeData): per-node configuration, aggregated inputs,
  outputs and errors, owned by the node registry.

NodeData is a closed tagged union discriminated by ``meta.category``
(input / process / output). ``parse_node_data`` is the one place where raw
mappings become typed node data; the registry calls it on every write.

Snapshots (EnhancedNode, MergeResult, WorkflowDocument) carry node data as
plain JSON mappings, since they are what gets persisted and may come back
from disk in any shape. The integrity validator is what checks them.

All wire models accept snake_case or camelCase keys and dump camelCase.
"""

from enum import Enum
from typing import Optional, List, Dict, Any, Union, Literal, Mapping
from datetime import datetime, timezone
from pydantic import BaseModel, Field


ENHANCED_FORMAT_VERSION = "2.0.0"
LEGACY_FORMAT_VERSION = "1.0.0"

# Sections every NodeData must carry
NODE_DATA_SECTIONS = ("meta", "input", "output", "error")

FALLBACK_WARNING = "Missing NodeData - using fallback"

# Layout keys that are only emitted when present on the source node
OPTIONAL_LAYOUT_KEYS = ("dragging", "width", "height")

ConnectionMap = Dict[str, Dict[str, Any]]

# Connection maps read back from documents are not shape-checked
PersistedConnectionMap = Dict[str, Any]


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    """Current time as an ISO-8601 string, for stamps on open mappings."""
    return utc_now().isoformat()


class DataSource(str, Enum):
    """Where an enhanced node's data came from."""
    NODE_DATA_MANAGER = "nodeDataManager"
    REACT_FLOW = "reactFlow"


class WireModel(BaseModel):
    """Base for models that round-trip through the camelCase JSON document."""

    class Config:
        populate_by_name = True
        extra = "allow"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-safe dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


# ==================== Positional graph ====================

class Position(WireModel):
    x: float = 0.0
    y: float = 0.0


class GraphNode(WireModel):
    """A positional node as the rendering layer sees it."""
    id: str = Field(..., min_length=1)
    type: Optional[str] = None
    position: Position = Field(default_factory=Position)
    selected: bool = False
    data: Optional[Dict[str, Any]] = None
    dragging: Optional[bool] = None
    width: Optional[float] = None
    height: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        for key in OPTIONAL_LAYOUT_KEYS:
            if data.get(key) is None:
                data.pop(key, None)
        return data


class Edge(WireModel):
    """A positional edge. Extra keys (style, label, ...) are preserved."""
    id: str
    source: str
    target: str
    source_handle: Optional[str] = Field(None, alias="sourceHandle")
    target_handle: Optional[str] = Field(None, alias="targetHandle")

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        for key in ("sourceHandle", "targetHandle"):
            if data.get(key) is None:
                data.pop(key, None)
        return data


# ==================== Semantic graph (NodeData) ====================

class ConnectionMeta(WireModel):
    timestamp: datetime = Field(default_factory=utc_now)
    data_type: str = Field("object", alias="dataType")
    is_active: bool = Field(True, alias="isActive")
    last_processed: Optional[datetime] = Field(None, alias="lastProcessed")


class ConnectionData(WireModel):
    """An inbound connection as stored on the target node's input section."""
    source_node_id: str = Field(..., min_length=1, alias="sourceNodeId")
    source_handle: str = Field("default", alias="sourceHandle")
    target_handle: str = Field("default", alias="targetHandle")
    data: Any = None
    processed: Any = None
    meta: ConnectionMeta


class NodeMeta(WireModel):
    label: str = "Untitled Node"
    description: str = ""
    function: str = "Generic Function"
    emoji: str = "⚙️"
    version: str = "1.0.0"
    capabilities: List[str] = Field(default_factory=list)


class InputNodeMeta(NodeMeta):
    category: Literal["input"] = "input"


class ProcessNodeMeta(NodeMeta):
    category: Literal["process"] = "process"


class OutputNodeMeta(NodeMeta):
    category: Literal["output"] = "output"


class NodeInput(WireModel):
    config: Dict[str, Any] = Field(default_factory=dict)
    connections: Dict[str, ConnectionData] = Field(default_factory=dict)
    processed: Any = Field(default_factory=dict)


class OutputMeta(WireModel):
    timestamp: datetime = Field(default_factory=utc_now)
    status: str = "idle"
    processing_time: Optional[float] = Field(None, alias="processingTime")
    data_size: Optional[int] = Field(None, alias="dataSize")


class NodeOutput(WireModel):
    data: Any = Field(default_factory=dict)
    meta: OutputMeta = Field(default_factory=OutputMeta)


class NodeErrorState(WireModel):
    has_error: bool = Field(False, alias="hasError")
    errors: List[Dict[str, Any]] = Field(default_factory=list)


class BaseNodeData(WireModel):
    """Fields shared by every NodeData variant."""
    meta: NodeMeta
    input: NodeInput
    output: NodeOutput
    error: NodeErrorState
    plugin: Optional[Dict[str, Any]] = None

    @property
    def category(self) -> str:
        return self.meta.category

    @property
    def connection_count(self) -> int:
        return len(self.input.connections)


class InputNodeData(BaseNodeData):
    meta: InputNodeMeta


class ProcessNodeData(BaseNodeData):
    meta: ProcessNodeMeta


class OutputNodeData(BaseNodeData):
    meta: OutputNodeMeta


NodeData = Union[InputNodeData, ProcessNodeData, OutputNodeData]

NODE_DATA_VARIANTS = {
    "input": InputNodeData,
    "process": ProcessNodeData,
    "output": OutputNodeData,
}


def parse_node_data(raw: Union[Mapping[str, Any], BaseNodeData]) -> NodeData:
    """
    Convert a raw mapping into the matching NodeData variant.

    The variant is chosen by ``meta.category`` (default "process").
    Existing variants are returned unchanged.

    Raises:
        TypeError: raw is neither a mapping nor NodeData
        ValueError: unknown category
        pydantic.ValidationError: a mandatory section is missing or malformed
    """
    if isinstance(raw, BaseNodeData):
        return raw
    if not isinstance(raw, Mapping):
        raise TypeError(f"NodeData must be a mapping, got {type(raw).__name__}")

    meta = raw.get("meta")
    category = meta.get("category", "process") if isinstance(meta, Mapping) else "process"
    variant = NODE_DATA_VARIANTS.get(category)
    if variant is None:
        raise ValueError(f"Unknown node category: {category}")
    return variant.model_validate(dict(raw))


def create_connection_data(
    source_node_id: str,
    source_handle: str = "default",
    target_handle: str = "default",
    data: Any = None,
    processed: Any = None,
) -> ConnectionData:
    """Create the per-node record of a freshly established inbound connection."""
    now = utc_now()
    return ConnectionData(
        source_node_id=source_node_id,
        source_handle=source_handle,
        target_handle=target_handle,
        data=data,
        processed=processed,
        meta=ConnectionMeta(
            timestamp=now,
            data_type=type(data).__name__ if data is not None else "object",
            is_active=True,
            last_processed=now if processed is not None else None,
        ),
    )


def create_node_data(
    category: str = "process",
    label: str = "Untitled Node",
    plugin: Optional[Dict[str, Any]] = None,
    **meta: Any,
) -> NodeData:
    """Create fresh node state with every mandatory section populated."""
    return parse_node_data({
        "meta": {"label": label, "category": category, **meta},
        "input": {"config": {}, "connections": {}, "processed": {}},
        "output": {"data": {}, "meta": {"status": "idle"}},
        "error": {"hasError": False, "errors": []},
        "plugin": plugin,
    })


# ==================== Snapshot models ====================

class EnhancedMetadata(WireModel):
    """Provenance attached to each node of a merge snapshot."""
    last_sync: datetime = Field(default_factory=utc_now, alias="lastSync")
    source: DataSource
    has_connections: bool = Field(False, alias="hasConnections")
    connection_count: int = Field(0, ge=0, alias="connectionCount")
    data_version: Optional[str] = Field(None, alias="dataVersion")
    warning: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        for key in ("dataVersion", "warning"):
            if data.get(key) is None:
                data.pop(key, None)
        return data


class EnhancedNode(GraphNode):
    """A positional node merged with its NodeData plus provenance."""
    enhanced_metadata: Optional[EnhancedMetadata] = Field(None, alias="enhancedMetadata")

    @property
    def is_resolved(self) -> bool:
        """True when the node's data came from the registry."""
        return (
            self.data is not None
            and self.enhanced_metadata is not None
            and self.enhanced_metadata.source == DataSource.NODE_DATA_MANAGER
        )

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.enhanced_metadata is None:
            data.pop("enhancedMetadata", None)
        else:
            data["enhancedMetadata"] = self.enhanced_metadata.to_dict()
        return data


class MergeStats(WireModel):
    total_nodes: int = Field(0, alias="totalNodes")
    nodes_with_connections: int = Field(0, alias="nodesWithConnections")
    total_connections: int = Field(0, alias="totalConnections")
    connections_map_size: int = Field(0, alias="connectionsMapSize")
    processing_time: float = Field(0.0, alias="processingTime")  # milliseconds
    timestamp: datetime = Field(default_factory=utc_now)


class MergeErrorRecord(WireModel):
    type: Literal["MERGE_ERROR"] = "MERGE_ERROR"
    message: str
    timestamp: datetime = Field(default_factory=utc_now)


class MergeResult(WireModel):
    """Full-fidelity snapshot produced by one merge call."""
    nodes: List[EnhancedNode] = Field(default_factory=list)
    edges: List[Edge] = Field(default_factory=list)
    connection_map: ConnectionMap = Field(default_factory=dict, alias="connectionMap")
    stats: MergeStats = Field(default_factory=MergeStats)
    validation_errors: List[MergeErrorRecord] = Field(default_factory=list, alias="validationErrors")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
            "connectionMap": self.model_dump(mode="json", by_alias=True)["connectionMap"],
            "stats": self.stats.to_dict(),
            "validationErrors": [err.to_dict() for err in self.validation_errors],
        }


class ValidationStats(WireModel):
    nodes_validated: int = Field(0, alias="nodesValidated")
    connections_validated: int = Field(0, alias="connectionsValidated")
    data_fidelity_score: float = Field(0.0, alias="dataFidelityScore")


class ValidationResult(WireModel):
    is_valid: bool = Field(True, alias="isValid")
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    stats: ValidationStats = Field(default_factory=ValidationStats)


class RestoreStats(WireModel):
    restored_nodes: int = Field(0, alias="restoredNodes")
    restored_connections: int = Field(0, alias="restoredConnections")
    processing_time: float = Field(0.0, alias="processingTime")  # milliseconds
    timestamp: datetime = Field(default_factory=utc_now)


class RestoreResult(WireModel):
    success: bool = True
    stats: RestoreStats = Field(default_factory=RestoreStats)


class SplitResult(WireModel):
    """A snapshot decomposed into positional and semantic views."""
    nodes: List[GraphNode] = Field(default_factory=list)
    edges: List[Edge] = Field(default_factory=list)
    node_data_map: Dict[str, Dict[str, Any]] = Field(default_factory=dict, alias="nodeDataMap")
    connection_map: PersistedConnectionMap = Field(default_factory=dict, alias="connectionMap")
    stats: Optional[MergeStats] = None


# ==================== Persisted document ====================

class EnhancedWorkflowMetadata(WireModel):
    version: str = ENHANCED_FORMAT_VERSION
    saved_at: datetime = Field(default_factory=utc_now, alias="savedAt")
    data_fidelity: str = Field("complete", alias="dataFidelity")
    stats: Optional[MergeStats] = None
    validation: Optional[ValidationResult] = None


class WorkflowDocument(WireModel):
    """The graph part of a saved workflow."""
    nodes: List[EnhancedNode] = Field(default_factory=list)
    edges: List[Edge] = Field(default_factory=list)
    viewport: Optional[Dict[str, Any]] = None
    connection_map: Optional[PersistedConnectionMap] = Field(None, alias="connectionMap")
    enhanced_metadata: Optional[EnhancedWorkflowMetadata] = Field(None, alias="enhancedMetadata")

    def is_enhanced_format(self, version: str = ENHANCED_FORMAT_VERSION) -> bool:
        """True when the document carries enhanced metadata of the given format version."""
        return self.enhanced_metadata is not None and self.enhanced_metadata.version == version

    @property
    def is_enhanced(self) -> bool:
        return self.is_enhanced_format()

    @property
    def stats(self) -> Optional[MergeStats]:
        return self.enhanced_metadata.stats if self.enhanced_metadata else None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
        }
        if self.viewport is not None:
            data["viewport"] = self.viewport
        if self.connection_map is not None:
            data["connectionMap"] = self.model_dump(mode="json", by_alias=True)["connectionMap"]
        if self.enhanced_metadata is not None:
            data["enhancedMetadata"] = self.enhanced_metadata.to_dict()
        return data


class WorkflowRecord(WireModel):
    """A named, persisted workflow as kept by the document store."""
    id: Optional[str] = None
    name: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    created_at: datetime = Field(default_factory=utc_now, alias="createdAt")
    updated_at: datetime = Field(default_factory=utc_now, alias="updatedAt")
    version: str = LEGACY_FORMAT_VERSION
    metadata: Dict[str, Any] = Field(default_factory=dict)
    workflow: WorkflowDocument = Field(default_factory=WorkflowDocument)

    @property
    def is_enhanced(self) -> bool:
        return self.workflow.is_enhanced

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["workflow"] = self.workflow.to_dict()
        return data
