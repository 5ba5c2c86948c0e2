"""Pod allocation flow."""

import enum
import logging

from .constants import KIND_PVC
from .errors import PodFailedError, ResallocError, TimedOutError
from .k8s import pod_address, pod_failure_reason, pod_is_ready
from .models import AllocationResult
from .templates import build_manifests

logger = logging.getLogger(__name__)


class AllocationState(enum.Enum):
    BUILDING = "Building"
    SUBMITTING = "Submitting"
    WAITING = "Waiting"
    READY = "Ready"
    FAILED = "Failed"
    TIMED_OUT = "TimedOut"


def pod_settled(pod):
    """Whether the wait can stop: ready with an address, or failed."""
    if pod_failure_reason(pod) is not None:
        return True
    return pod_is_ready(pod) and bool(pod_address(pod))


class ProvisioningController:
    """Drives one allocation from manifest to reachable pod.

    The controller never deletes the pod after it was submitted. A failed or
    timed out pod stays in the cluster, labelled with its allocation id, so
    it can be inspected or released separately.
    """

    def __init__(self, gateway):
        self.gateway = gateway
        self.state = None
        self.manifests = None

    def _transition(self, state):
        logger.debug(f"Allocation state {self.state.value if self.state else None} -> {state.value}")
        self.state = state

    def allocate(self, request):
        """Create the pod and block until it is ready, failed or timed out."""
        self._transition(AllocationState.BUILDING)
        try:
            self.manifests = build_manifests(request)
        except ResallocError:
            self._transition(AllocationState.FAILED)
            raise

        self._transition(AllocationState.SUBMITTING)
        try:
            self._submit(request.namespace)
        except ResallocError:
            self._transition(AllocationState.FAILED)
            raise

        self._transition(AllocationState.WAITING)
        pod_name = self.manifests.pod_name
        logger.info(f"Waiting up to {request.timeout}s for pod {request.namespace}/{pod_name}")
        try:
            pod = self.gateway.wait_for(
                request.namespace, pod_name, pod_settled, request.timeout
            )
        except TimedOutError:
            self._transition(AllocationState.TIMED_OUT)
            logger.error(f"Pod {pod_name} not ready after {request.timeout}s, left in place")
            raise
        except ResallocError:
            self._transition(AllocationState.FAILED)
            raise

        reason = pod_failure_reason(pod)
        if reason is not None:
            self._transition(AllocationState.FAILED)
            logger.error(f"Pod {pod_name} failed: {reason}")
            raise PodFailedError(pod_name, reason)

        self._transition(AllocationState.READY)
        address = pod_address(pod)
        logger.info(f"Pod {pod_name} ready at {address}")
        return AllocationResult(
            address=address,
            namespace=request.namespace,
            allocation_id=self.manifests.allocation_id,
            pod_name=pod_name,
        )

    def _submit(self, namespace):
        """Create the claim first so the pod never waits on a missing volume."""
        claim = self.manifests.claim
        if claim is not None:
            self.gateway.create(claim)

        try:
            self.gateway.create(self.manifests.pod)
        except ResallocError:
            if claim is not None:
                self._rollback_claim(namespace, claim.metadata.name)
            raise

    def _rollback_claim(self, namespace, claim_name):
        try:
            self.gateway.delete(KIND_PVC, namespace, claim_name)
            logger.info(f"Removed claim {claim_name} after failed pod creation")
        except ResallocError as e:
            logger.warning(f"Could not remove claim {claim_name}: {e}")
