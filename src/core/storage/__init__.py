"""
Object gateway: upload policy, key naming and tiered access.
"""

from .errors import (
    BackendError,
    GatewayError,
    InvalidExpiry,
    MissingContent,
    PolicyViolation,
    UnrecognizedFormat,
)
from .events import EventSink, GatewayEvent, LoggingEventSink, Outcome, RecordingEventSink
from .gateway import BucketNames, ObjectGateway, StorageBackend
from .models import (
    AccessGrant,
    ObjectMeta,
    ObjectRef,
    PutOptions,
    PutResult,
    SortOrder,
    SortSpec,
    StorageKey,
    Tier,
    UploadRequest,
    UploadResult,
    ValidatedRequest,
)
from .policy import TierPolicy, TierRules

__all__ = [
    "AccessGrant",
    "BackendError",
    "BucketNames",
    "EventSink",
    "GatewayError",
    "GatewayEvent",
    "InvalidExpiry",
    "LoggingEventSink",
    "MissingContent",
    "ObjectGateway",
    "ObjectMeta",
    "ObjectRef",
    "Outcome",
    "PolicyViolation",
    "PutOptions",
    "PutResult",
    "RecordingEventSink",
    "SortOrder",
    "SortSpec",
    "StorageBackend",
    "StorageKey",
    "Tier",
    "TierPolicy",
    "TierRules",
    "UnrecognizedFormat",
    "UploadRequest",
    "UploadResult",
    "ValidatedRequest",
]
