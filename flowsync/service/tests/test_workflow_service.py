"""
Unit tests for WorkflowService.

Tests save/load orchestration against a real registry and a temporary store.
"""

import asyncio
import json

import pytest

from flowsync.config_loader import SyncSettings
from flowsync.core import (
    NodeRegistry, WorkflowDocument, WorkflowRecord,
    IntegrityValidationError, MergeError, RestoreError, WorkflowNotFoundError,
    create_node_data,
)
from flowsync.service import WorkflowService


class CorruptNodeData:
    """NodeData stand-in whose dump is missing the error section."""

    def __init__(self, real):
        self._real = real
        self.input = real.input
        self.meta = real.meta

    def to_dict(self):
        data = self._real.to_dict()
        del data["error"]
        return data


class CorruptRegistry(NodeRegistry):
    def get_node_data(self, node_id):
        node_data = super().get_node_data(node_id)
        return CorruptNodeData(node_data) if node_data is not None else None


class FailingRegistry(NodeRegistry):
    def get_node_data(self, node_id):
        raise RuntimeError("lookup failed")


def _save(service, name="Pipeline", nodes=(), edges=(), **kwargs):
    return asyncio.run(service.save_workflow(name, nodes=nodes, edges=edges, **kwargs))


class TestSaveWorkflow:
    """Tests for the save path"""

    def test_save_returns_summary(self, service, canvas_nodes, canvas_edges):
        result = _save(service, nodes=canvas_nodes, edges=canvas_edges)

        assert result["success"] is True
        assert result["workflowId"].startswith("workflow_")
        assert result["stats"]["totalNodes"] == 3
        assert result["stats"]["totalConnections"] == 2
        assert result["validation"]["isValid"] is True

    def test_saved_document_is_enhanced(self, service, store, canvas_nodes, canvas_edges):
        workflow_id = _save(service, nodes=canvas_nodes, edges=canvas_edges, viewport={"x": 0, "y": 0, "zoom": 1})["workflowId"]
        record = store.load_workflow(workflow_id)

        assert record.is_enhanced is True
        assert record.version == "2.0.0"
        assert record.workflow.enhanced_metadata.data_fidelity == "complete"
        assert record.workflow.enhanced_metadata.validation.is_valid is True
        assert record.workflow.viewport == {"x": 0, "y": 0, "zoom": 1}
        assert len(record.workflow.connection_map) == 2
        assert record.metadata["nodeCount"] == 3
        assert record.metadata["nodeTypes"] == ["input", "output", "process"]

    def test_partial_fidelity(self, service, store, canvas_nodes):
        nodes = canvas_nodes + [{"id": "sticky-note", "type": "note"}]
        workflow_id = _save(service, nodes=nodes)["workflowId"]

        record = store.load_workflow(workflow_id)
        assert record.workflow.enhanced_metadata.data_fidelity == "partial"

    def test_name_is_stripped_and_required(self, service, store):
        workflow_id = _save(service, name="  Trimmed  ")["workflowId"]
        assert store.load_workflow(workflow_id).name == "Trimmed"

        with pytest.raises(ValueError):
            _save(service, name="   ")
        with pytest.raises(ValueError):
            _save(service, name="x" * 201)

    def test_overwrite_keeps_created_at(self, service, store, canvas_nodes):
        workflow_id = _save(service, nodes=canvas_nodes)["workflowId"]
        created_at = store.load_workflow(workflow_id).created_at

        _save(service, name="Renamed", nodes=canvas_nodes, workflow_id=workflow_id)

        record = store.load_workflow(workflow_id)
        assert record.name == "Renamed"
        assert record.created_at == created_at
        assert len(store.get_all_workflows()) == 1

    def test_schema_errors_block_save(self, store, canvas_nodes):
        """Test that a snapshot with schema errors is never persisted"""
        registry = CorruptRegistry()
        registry.register_node("reader-1", create_node_data("input"))
        service = WorkflowService(registry, store)

        with pytest.raises(IntegrityValidationError) as exc_info:
            _save(service, nodes=canvas_nodes)

        assert exc_info.value.validation.is_valid is False
        assert "missing error" in exc_info.value.validation.errors[0]
        assert store.get_all_workflows() == []

    def test_duplicate_node_ids_block_save(self, service, store, canvas_nodes, canvas_edges):
        nodes = canvas_nodes + [dict(canvas_nodes[0])]

        with pytest.raises(IntegrityValidationError) as exc_info:
            _save(service, nodes=nodes, edges=canvas_edges)

        assert "Duplicate node ID: reader-1" in exc_info.value.validation.errors
        assert store.get_all_workflows() == []

    def test_dangling_edges_block_save(self, service, store, canvas_nodes, canvas_edges):
        """Test that an edge to a node missing from the canvas is never persisted"""
        edges = canvas_edges + [{"id": "e3", "source": "writer-1", "target": "ghost"}]

        with pytest.raises(IntegrityValidationError) as exc_info:
            _save(service, nodes=canvas_nodes, edges=edges)

        validation = exc_info.value.validation
        assert validation.is_valid is False
        assert validation.errors == ["Edge e3: References an unknown node"]
        assert store.get_all_workflows() == []

    def test_merge_failure_propagates(self, store, canvas_nodes):
        service = WorkflowService(FailingRegistry(), store)

        with pytest.raises(MergeError):
            _save(service, nodes=canvas_nodes)

        assert service.get_stats()["lastMerge"]["hasErrors"] is True
        assert store.get_all_workflows() == []


class TestLoadWorkflow:
    """Tests for the load path"""

    def test_enhanced_load_restores_registry(self, service, registry, canvas_nodes, canvas_edges):
        original = {k: v.to_dict()["meta"] for k, v in registry.nodes.items()}
        workflow_id = _save(service, nodes=canvas_nodes, edges=canvas_edges)["workflowId"]

        registry.register_node("scratch", create_node_data())
        registry.unregister_node("writer-1")

        result = asyncio.run(service.load_workflow(workflow_id))

        assert result["success"] is True
        assert result["mode"] == "enhanced"
        assert set(registry.nodes) == {"reader-1", "transform-1", "writer-1"}
        assert {k: v.to_dict()["meta"] for k, v in registry.nodes.items()} == original
        assert len(registry.connections) == 2
        assert result["restoration"]["stats"]["restoredNodes"] == 3
        assert result["restoration"]["stats"]["restoredConnections"] == 2

    def test_enhanced_load_returns_positional_graph(self, service, canvas_nodes, canvas_edges):
        workflow_id = _save(service, nodes=canvas_nodes + [{"id": "note"}], edges=canvas_edges)["workflowId"]

        result = asyncio.run(service.load_workflow(workflow_id))

        assert [n["id"] for n in result["nodes"]] == ["reader-1", "transform-1", "writer-1", "note"]
        assert all("enhancedMetadata" not in n for n in result["nodes"])
        assert [e["id"] for e in result["edges"]] == ["e1", "e2"]
        assert set(result["nodeDataMap"]) == {"reader-1", "transform-1", "writer-1"}

    def test_legacy_load_leaves_registry_alone(self, service, registry, store):
        legacy = WorkflowRecord(
            name="Old",
            workflow=WorkflowDocument.model_validate({
                "nodes": [{"id": "old-1", "type": "input", "data": {"label": "Old"}}],
                "edges": [],
            }),
        )
        workflow_id = store.save_workflow(legacy)
        before = set(registry.nodes)

        result = asyncio.run(service.load_workflow(workflow_id))

        assert result["mode"] == "legacy"
        assert result["nodes"][0]["id"] == "old-1"
        assert result["nodes"][0]["data"] == {"label": "Old"}
        assert "nodeDataMap" not in result
        assert set(registry.nodes) == before

    def test_load_record_object(self, service, store, canvas_nodes):
        workflow_id = _save(service, nodes=canvas_nodes)["workflowId"]
        record = store.load_workflow(workflow_id)

        result = asyncio.run(service.load_workflow(record))
        assert result["workflowId"] == workflow_id

    def test_load_unknown_raises(self, service):
        with pytest.raises(WorkflowNotFoundError):
            asyncio.run(service.load_workflow("workflow_missing"))

    def test_restore_failure_empties_registry(self, service, registry, store):
        broken = WorkflowRecord(
            name="Broken",
            version="2.0.0",
            workflow=WorkflowDocument.model_validate({
                "nodes": [{
                    "id": "bad-1",
                    "data": {"meta": {}},
                    "enhancedMetadata": {"source": "nodeDataManager"},
                }],
                "edges": [],
                "enhancedMetadata": {"version": "2.0.0"},
            }),
        )
        workflow_id = store.save_workflow(broken)

        with pytest.raises(RestoreError):
            asyncio.run(service.load_workflow(workflow_id))

        assert registry.nodes == {}
        assert registry.connections == {}


class TestWorkflowRecords:
    """Tests for listing, deletion, import and export"""

    def test_list_and_search(self, service):
        _save(service, name="Sales Report", description="monthly")
        _save(service, name="Cleanup")

        assert service.list_workflows()["total"] == 2
        result = service.list_workflows("sales")
        assert result["total"] == 1
        summary = result["workflows"][0]
        assert summary["name"] == "Sales Report"
        assert summary["enhanced"] is True
        assert "workflow" not in summary

    def test_configured_format_version_is_the_enhanced_one(self, registry, store, canvas_nodes):
        """Test that listing and loading agree with the configured format version"""
        service = WorkflowService(registry, store, SyncSettings(enhanced_format_version="3.0.0"))
        workflow_id = _save(service, nodes=canvas_nodes)["workflowId"]
        old_id = store.save_workflow(WorkflowRecord(
            name="Older format",
            version="2.0.0",
            workflow=WorkflowDocument.model_validate({
                "nodes": [], "edges": [], "enhancedMetadata": {"version": "2.0.0"},
            }),
        ))

        summaries = {w["id"]: w for w in service.list_workflows()["workflows"]}

        assert summaries[workflow_id]["enhanced"] is True
        assert summaries[old_id]["enhanced"] is False
        assert asyncio.run(service.load_workflow(workflow_id))["mode"] == "enhanced"
        assert asyncio.run(service.load_workflow(old_id))["mode"] == "legacy"

    def test_get_workflow(self, service):
        workflow_id = _save(service)["workflowId"]
        assert service.get_workflow(workflow_id)["workflow"]["enhancedMetadata"]["version"] == "2.0.0"

        with pytest.raises(WorkflowNotFoundError):
            service.get_workflow("workflow_missing")

    def test_delete_workflow(self, service):
        workflow_id = _save(service)["workflowId"]

        assert service.delete_workflow(workflow_id)["success"] is True
        with pytest.raises(WorkflowNotFoundError):
            service.delete_workflow(workflow_id)

    def test_name_exists(self, service):
        workflow_id = _save(service, name="Pipeline")["workflowId"]

        assert service.check_workflow_name_exists("pipeline") is True
        assert service.check_workflow_name_exists("pipeline", exclude_id=workflow_id) is False

    def test_export_import(self, service, store, canvas_nodes, canvas_edges):
        workflow_id = _save(service, nodes=canvas_nodes, edges=canvas_edges)["workflowId"]
        exported = service.export_workflow(workflow_id)

        result = service.import_workflow(exported)

        assert result["success"] is True
        assert result["workflowId"] != workflow_id
        imported = store.load_workflow(result["workflowId"])
        assert imported.is_enhanced is True
        assert [n.id for n in imported.workflow.nodes] == ["reader-1", "transform-1", "writer-1"]

    def test_import_legacy_defaults_version(self, service, store):
        payload = json.dumps({"name": "Old", "workflow": {"nodes": [], "edges": []}})
        workflow_id = service.import_workflow(payload)["workflowId"]
        assert store.load_workflow(workflow_id).version == "1.0.0"

    @pytest.mark.parametrize("payload", [
        "{ not json",
        json.dumps(["a", "list"]),
        json.dumps({"name": "No workflow"}),
        json.dumps({"name": "Bad nodes", "workflow": {"nodes": "x"}}),
        json.dumps({"workflow": {"nodes": []}}),
    ])
    def test_import_rejects_invalid(self, service, payload):
        with pytest.raises(ValueError):
            service.import_workflow(payload)

    def test_get_stats(self, service, canvas_nodes, canvas_edges):
        _save(service, nodes=canvas_nodes, edges=canvas_edges)
        stats = service.get_stats()

        assert stats["store"]["totalWorkflows"] == 1
        assert stats["store"]["totalNodes"] == 3
        assert isinstance(stats["store"]["oldestWorkflow"], str)
        assert stats["registry"]["totalNodes"] == 3
        assert stats["lastMerge"]["totalNodes"] == 3
        assert stats["lastMerge"]["hasErrors"] is False
