"""
flowsync - Graph snapshot synchronization for a visual node-graph workflow editor

Keeps the positional graph (layout used for rendering) and the semantic
graph held by a live node registry consistent across save and load.

Subpackages:
- flowsync.core: models, node registry, merge/validate/restore/split, document store
- flowsync.service: save/load orchestration and the REST router
"""

__version__ = "1.0.0"
