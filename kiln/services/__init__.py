"""
Kiln service layer

Resolution pipeline and collection persistence.
"""

from kiln.services.pipeline import ResolutionPipeline, Resolved, Failed, Outcome
from kiln.services.collection import CollectionStore, validate_name

__all__ = [
    "ResolutionPipeline",
    "Resolved",
    "Failed",
    "Outcome",
    "CollectionStore",
    "validate_name",
]
