"""Allocate and release Kubernetes pods for the resalloc framework."""

from .errors import (
    AmbiguousTargetError,
    ClusterCommunicationError,
    PodFailedError,
    ResallocError,
    TimedOutError,
    ValidationError,
)
from .k8s import ClusterGateway, init_clients
from .models import AllocationResult, ReleaseResult, ResourceRequest
from .provision import AllocationState, ProvisioningController
from .reclaim import ReclamationResolver

__version__ = "1.0.5"

__all__ = [
    "AllocationResult",
    "AllocationState",
    "AmbiguousTargetError",
    "ClusterCommunicationError",
    "ClusterGateway",
    "PodFailedError",
    "ProvisioningController",
    "ReclamationResolver",
    "ReleaseResult",
    "ResallocError",
    "ResourceRequest",
    "TimedOutError",
    "ValidationError",
    "init_clients",
]
