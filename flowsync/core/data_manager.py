"""
WorkflowDataManager - binds the synchronization engines to one registry.

Save path: merge -> validate -> persist.
Load path: read document -> restore -> split -> apply to positional setters.

The manager remembers the stats and errors of its last merge so they can be
reported after the fact.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from flowsync.config_loader import SyncSettings, get_sync_settings

from .integrity import validate_data_integrity, Snapshot
from .merge import merge_workflow, NodeLike, EdgeLike
from .models import MergeErrorRecord, MergeResult, MergeStats, RestoreResult, SplitResult, ValidationResult
from .registry import NodeStore
from .restore import restore_registry_state, RawConnectionMap
from .split import split_workflow_data

logger = logging.getLogger(__name__)


class WorkflowDataManager:
    """
    Merges, validates, restores and splits workflow snapshots for one registry.

    The registry is passed in explicitly; there is no module-level instance.
    """

    def __init__(self, registry: NodeStore, settings: Optional[SyncSettings] = None):
        self.registry = registry
        self.settings = settings or get_sync_settings()
        self.validation_errors: List[MergeErrorRecord] = []
        self.last_merge_stats: Optional[MergeStats] = None

    def merge(self, nodes: Iterable[NodeLike], edges: Iterable[EdgeLike]) -> MergeResult:
        """Merge positional nodes/edges with registry data. Raises MergeError."""
        self.validation_errors = []
        self.last_merge_stats = None
        result = merge_workflow(
            self.registry,
            nodes,
            edges,
            default_data_version=self.settings.default_data_version,
            error_log=self.validation_errors,
        )
        self.last_merge_stats = result.stats
        return result

    def validate(self, snapshot: Snapshot) -> ValidationResult:
        """Check a snapshot's integrity. Never raises."""
        return validate_data_integrity(snapshot, self.settings.fidelity_warning_threshold)

    async def restore(self, enhanced_nodes: Iterable[Any], connection_map: RawConnectionMap = None) -> RestoreResult:
        """Reset the registry and repopulate it. Raises RestoreError."""
        return await restore_registry_state(self.registry, enhanced_nodes, connection_map)

    def split(self, snapshot: Snapshot) -> SplitResult:
        return split_workflow_data(snapshot)

    def get_last_merge_stats(self) -> Dict[str, Any]:
        """Stats of the last merge plus whether it recorded errors."""
        stats = self.last_merge_stats.to_dict() if self.last_merge_stats else {}
        return {
            **stats,
            "hasErrors": len(self.validation_errors) > 0,
            "validationErrors": [err.to_dict() for err in self.validation_errors],
        }
