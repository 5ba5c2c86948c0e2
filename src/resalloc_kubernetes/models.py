"""Allocation data models.

A request is built once per CLI invocation and never mutated. Results are
the only thing handed back to the caller; nothing is kept between runs.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from kubernetes import client

from .constants import DEFAULT_NAMESPACE, DEFAULT_TIMEOUT


@dataclass(frozen=True)
class VolumeSpec:
    """Additional persistent volume claimed alongside the pod."""

    size: str
    storage_class: str
    mount_path: str


@dataclass(frozen=True)
class SecretMount:
    """Secret key mounted into the container through a subPath."""

    mount_path: str
    secret_name: str
    sub_path: str


@dataclass(frozen=True)
class ResourceRequest:
    """Everything needed to render and wait for one pod."""

    image: str
    cpu: str
    memory: str
    node_selector: Dict[str, str] = field(default_factory=dict)
    privileged: bool = False
    labels: Dict[str, str] = field(default_factory=dict)
    volume: Optional[VolumeSpec] = None
    secret: Optional[SecretMount] = None
    timeout: int = DEFAULT_TIMEOUT
    namespace: str = DEFAULT_NAMESPACE


@dataclass
class Manifests:
    """Objects rendered for a single allocation attempt."""

    allocation_id: str
    pod: client.V1Pod
    claim: Optional[client.V1PersistentVolumeClaim] = None

    @property
    def pod_name(self) -> str:
        return self.pod.metadata.name


@dataclass(frozen=True)
class AllocationResult:
    """Handle returned to the caller for a ready pod."""

    address: str
    namespace: str
    allocation_id: str
    pod_name: str


@dataclass(frozen=True)
class ReleaseResult:
    """Outcome of a reclamation call."""

    address: str
    namespace: str
    pod_name: Optional[str] = None
    claim_names: List[str] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.pod_name is not None
