"""
JSON serialization utilities for the workflow service.

Provides consistent serialization of workflow records and sync results for
API responses.
"""

import json
from datetime import datetime
from typing import Any, Dict, List

from flowsync.core.models import ENHANCED_FORMAT_VERSION, WorkflowRecord, WireModel


def json_serializer(obj: Any) -> Any:
    """
    Custom JSON serializer for objects not serializable by default.

    Handles:
    - datetime objects -> ISO format strings
    - wire models -> camelCase dicts
    """
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, WireModel):
        return obj.to_dict()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def serialize_to_json(data: Any) -> Any:
    """Serialize data to a JSON-safe dict/list structure."""
    return json.loads(json.dumps(data, default=json_serializer))


def serialize_record(record: WorkflowRecord) -> Dict[str, Any]:
    """Full record including the workflow document."""
    return record.to_dict()


def serialize_record_summary(
    record: WorkflowRecord,
    enhanced_version: str = ENHANCED_FORMAT_VERSION,
) -> Dict[str, Any]:
    """Record without the (potentially large) workflow document."""
    return {
        "id": record.id,
        "name": record.name,
        "description": record.description,
        "createdAt": record.created_at.isoformat(),
        "updatedAt": record.updated_at.isoformat(),
        "version": record.version,
        "metadata": serialize_to_json(record.metadata),
        "enhanced": record.workflow.is_enhanced_format(enhanced_version),
    }


def serialize_record_summaries(
    records: List[WorkflowRecord],
    enhanced_version: str = ENHANCED_FORMAT_VERSION,
) -> List[Dict[str, Any]]:
    return [serialize_record_summary(record, enhanced_version) for record in records]
