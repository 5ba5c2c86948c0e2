"""Pod release flow."""

import logging

from .constants import ALLOCATION_ID_LABEL, KIND_POD, KIND_PVC, MANAGED_BY_SELECTOR
from .errors import AmbiguousTargetError
from .k8s import pod_address
from .models import ReleaseResult

logger = logging.getLogger(__name__)


class ReclamationResolver:
    """Finds the pod owning an address and deletes it with its claim."""

    def __init__(self, gateway):
        self.gateway = gateway

    def find_pods(self, address, namespace):
        """Managed pods whose IP equals address exactly."""
        pods = self.gateway.list(
            KIND_POD,
            namespace,
            label_selector=MANAGED_BY_SELECTOR,
            field_selector=f"status.podIP={address}",
        )
        return [pod for pod in pods if pod_address(pod) == address]

    def release(self, address, namespace):
        """Delete the pod at address. Nothing matching is not an error."""
        logger.info(f"Starting to delete resource at {address} in {namespace}")
        matches = self.find_pods(address, namespace)

        if not matches:
            logger.info(f"No managed pod at {address}, nothing to delete")
            return ReleaseResult(address=address, namespace=namespace)

        if len(matches) > 1:
            raise AmbiguousTargetError(address, [p.metadata.name for p in matches])

        pod = matches[0]
        pod_name = pod.metadata.name
        self.gateway.delete(KIND_POD, namespace, pod_name)

        claim_names = []
        allocation_id = (pod.metadata.labels or {}).get(ALLOCATION_ID_LABEL)
        if allocation_id:
            selector = f"{MANAGED_BY_SELECTOR},{ALLOCATION_ID_LABEL}={allocation_id}"
            for claim in self.gateway.list(KIND_PVC, namespace, label_selector=selector):
                self.gateway.delete(KIND_PVC, namespace, claim.metadata.name)
                claim_names.append(claim.metadata.name)
        else:
            logger.warning(f"Pod {pod_name} has no {ALLOCATION_ID_LABEL} label, skipping claim lookup")

        return ReleaseResult(
            address=address,
            namespace=namespace,
            pod_name=pod_name,
            claim_names=claim_names,
        )
