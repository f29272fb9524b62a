"""
WorkflowService - Save/load orchestration for workflow graphs.

This module ties the synchronization engines to the document store,
independent of the transport protocol (REST, in-process calls, ...).

Key design principles:
- Save path: merge -> validate -> persist
- Load path: read document -> restore -> split
- Save and load never interleave against the service's registry
- Consistent dict responses; failures are raised as WorkflowSyncError
  subclasses and mapped to transport errors by the caller
"""

import asyncio
import json
import logging
from typing import Any, Dict, Iterable, Optional, Union

from flowsync.config_loader import SyncSettings, get_sync_settings
from flowsync.core import (
    NodeStore, WorkflowDataManager, WorkflowStore,
    WorkflowDocument, WorkflowRecord, EnhancedWorkflowMetadata,
    IntegrityValidationError, WorkflowNotFoundError,
    create_workflow_metadata, extract_positional_node, find_dangling_edges, utc_now,
)
from flowsync.core.merge import NodeLike, EdgeLike

from .serializers import serialize_record, serialize_record_summaries, serialize_to_json

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 200


class WorkflowService:
    """
    Central service class for saving and loading workflows.

    Wraps one registry and one document store and provides:
    - Save with integrity validation
    - Enhanced and legacy load
    - Listing, search, delete
    - Import/export of single records
    - Statistics
    """

    def __init__(
        self,
        registry: NodeStore,
        store: WorkflowStore,
        settings: Optional[SyncSettings] = None,
    ):
        self._registry = registry
        self._store = store
        self._settings = settings or get_sync_settings()
        self._manager = WorkflowDataManager(registry, self._settings)
        self._lock = asyncio.Lock()

    @property
    def registry(self) -> NodeStore:
        return self._registry

    @property
    def store(self) -> WorkflowStore:
        return self._store

    @property
    def manager(self) -> WorkflowDataManager:
        return self._manager

    # ==================== Save / Load ====================

    async def save_workflow(
        self,
        name: str,
        description: str = "",
        nodes: Iterable[NodeLike] = (),
        edges: Iterable[EdgeLike] = (),
        viewport: Optional[Dict[str, Any]] = None,
        workflow_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Merge the current graph with the registry, validate it and persist it.

        Args:
            name: Workflow name (1-200 characters after stripping)
            description: Free text description
            nodes: Positional nodes
            edges: Positional edges
            viewport: Canvas viewport to store alongside the graph
            workflow_id: Existing id to overwrite; a new id is generated if omitted

        Returns:
            Dict with success, workflowId, stats and validation

        Raises:
            ValueError: invalid name
            MergeError: the merge failed
            IntegrityValidationError: the snapshot has schema errors, duplicate
                node IDs or edges to unknown nodes
        """
        name = (name or "").strip()
        if not name:
            raise ValueError("Workflow name is required")
        if len(name) > MAX_NAME_LENGTH:
            raise ValueError(f"Workflow name must be at most {MAX_NAME_LENGTH} characters")

        nodes = list(nodes)
        edges = list(edges)

        async with self._lock:
            merge_result = self._manager.merge(nodes, edges)
            validation = self._manager.validate(merge_result)
            for edge_id in find_dangling_edges(merge_result.nodes, merge_result.edges):
                validation.errors.append(f"Edge {edge_id}: References an unknown node")
                validation.is_valid = False
            if not validation.is_valid:
                logger.warning(f"Save of '{name}' blocked: {len(validation.errors)} integrity errors")
                raise IntegrityValidationError(validation)

            fidelity = "complete" if validation.stats.data_fidelity_score == 100 else "partial"
            document = WorkflowDocument(
                nodes=merge_result.nodes,
                edges=merge_result.edges,
                viewport=viewport,
                connection_map=merge_result.connection_map,
                enhanced_metadata=EnhancedWorkflowMetadata(
                    version=self._settings.enhanced_format_version,
                    data_fidelity=fidelity,
                    stats=merge_result.stats,
                    validation=validation,
                ),
            )

            existing = self._store.load_workflow(workflow_id) if workflow_id else None
            record = WorkflowRecord(
                id=workflow_id,
                name=name,
                description=description or "",
                created_at=existing.created_at if existing else utc_now(),
                version=self._settings.enhanced_format_version,
                metadata=create_workflow_metadata(merge_result.nodes, merge_result.edges),
                workflow=document,
            )
            saved_id = self._store.save_workflow(record)

        logger.info(f"Workflow '{name}' saved as {saved_id} ({fidelity} fidelity)")
        return {
            "success": True,
            "workflowId": saved_id,
            "stats": merge_result.stats.to_dict(),
            "validation": validation.to_dict(),
        }

    def _is_enhanced(self, record: WorkflowRecord) -> bool:
        return record.workflow.is_enhanced_format(self._settings.enhanced_format_version)

    async def load_workflow(self, workflow: Union[str, WorkflowRecord]) -> Dict[str, Any]:
        """
        Load a workflow into the registry and return the positional graph.

        Enhanced records reset and repopulate the registry, then split.
        Legacy records leave the registry untouched and return positional
        data only.

        Raises:
            WorkflowNotFoundError: unknown id
            RestoreError: the registry could not be repopulated (it is left empty)
        """
        record = self._get_record(workflow) if isinstance(workflow, str) else workflow
        document = record.workflow

        async with self._lock:
            if not self._is_enhanced(record):
                logger.info(f"Loading legacy workflow {record.id}: positional data only")
                return {
                    "success": True,
                    "mode": "legacy",
                    "workflowId": record.id,
                    "name": record.name,
                    "nodes": [extract_positional_node(node).to_dict() for node in document.nodes],
                    "edges": [edge.to_dict() for edge in document.edges],
                    "viewport": document.viewport,
                }

            restoration = await self._manager.restore(document.nodes, document.connection_map)
            split = self._manager.split(document)

        logger.info(
            f"Loaded workflow {record.id}: {restoration.stats.restored_nodes} nodes restored, "
            f"{len(split.nodes)} nodes on canvas"
        )
        return {
            "success": True,
            "mode": "enhanced",
            "workflowId": record.id,
            "name": record.name,
            "nodes": [node.to_dict() for node in split.nodes],
            "edges": [edge.to_dict() for edge in split.edges],
            "viewport": document.viewport,
            "nodeDataMap": split.node_data_map,
            "restoration": restoration.to_dict(),
        }

    # ==================== Workflow records ====================

    def _get_record(self, workflow_id: str) -> WorkflowRecord:
        record = self._store.load_workflow(workflow_id)
        if record is None:
            raise WorkflowNotFoundError(workflow_id)
        return record

    def get_workflow(self, workflow_id: str) -> Dict[str, Any]:
        """Full record by id. Raises WorkflowNotFoundError."""
        return serialize_record(self._get_record(workflow_id))

    def list_workflows(self, search: Optional[str] = None) -> Dict[str, Any]:
        """Record summaries, newest first, optionally filtered by name/description."""
        records = self._store.search_workflows(search)
        return {
            "workflows": serialize_record_summaries(records, self._settings.enhanced_format_version),
            "total": len(records),
        }

    def delete_workflow(self, workflow_id: str) -> Dict[str, Any]:
        if not self._store.delete_workflow(workflow_id):
            raise WorkflowNotFoundError(workflow_id)
        return {"success": True, "workflowId": workflow_id}

    def check_workflow_name_exists(self, name: str, exclude_id: Optional[str] = None) -> bool:
        return self._store.workflow_name_exists(name, exclude_id)

    # ==================== Import / Export ====================

    def export_workflow(self, workflow_id: str) -> str:
        """The record as an indented JSON string."""
        return json.dumps(serialize_record(self._get_record(workflow_id)), indent=2, ensure_ascii=False)

    def import_workflow(self, json_text: str) -> Dict[str, Any]:
        """
        Import a record exported by export_workflow under a fresh id.

        Raises:
            ValueError: not JSON, or not a record with a workflow.nodes list
        """
        try:
            data = json.loads(json_text)
        except (TypeError, json.JSONDecodeError) as e:
            raise ValueError(f"Invalid workflow file: {e}") from e

        workflow = data.get("workflow") if isinstance(data, dict) else None
        if not isinstance(workflow, dict) or not isinstance(workflow.get("nodes"), list):
            raise ValueError("Invalid workflow format: missing workflow.nodes")

        data = {**data, "id": None}
        data.setdefault("version", self._settings.legacy_format_version)
        try:
            record = WorkflowRecord.model_validate(data)
        except ValueError as e:
            raise ValueError(f"Invalid workflow format: {e}") from e

        workflow_id = self._store.save_workflow(record)
        logger.info(f"Imported workflow '{record.name}' as {workflow_id}")
        return {"success": True, "workflowId": workflow_id, "name": record.name}

    # ==================== Statistics ====================

    def get_stats(self) -> Dict[str, Any]:
        return serialize_to_json({
            "store": self._store.get_stats(),
            "registry": self._registry.get_stats() if hasattr(self._registry, "get_stats") else {},
            "lastMerge": self._manager.get_last_merge_stats(),
        })
