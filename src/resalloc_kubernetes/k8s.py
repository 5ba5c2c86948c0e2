"""Kubernetes client helpers."""

import logging
import math
import time

from kubernetes import client, config, watch
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from .constants import (
    KIND_POD,
    KIND_PVC,
    PHASE_FAILED,
    PHASE_SUCCEEDED,
    TERMINAL_WAITING_REASONS,
)
from .errors import ClusterCommunicationError, PodFailedError, TimedOutError

logger = logging.getLogger(__name__)

# Extra client-side slack on top of the server-side watch timeout
WATCH_READ_SLACK = 5


def init_clients():
    """Load cluster credentials and return a CoreV1Api client."""
    try:
        config.load_incluster_config()
        logger.debug("Loaded in-cluster Kubernetes config")
    except config.ConfigException:
        try:
            config.load_kube_config()
            logger.debug("Loaded kubeconfig")
        except (config.ConfigException, OSError) as e:
            raise ClusterCommunicationError(f"unable to load Kubernetes config: {e}")

    return client.CoreV1Api()


def _communication_error(action, e):
    status = getattr(e, "status", None)
    reason = getattr(e, "reason", None) or e
    return ClusterCommunicationError(f"failed to {action}: {reason}", status=status)


def pod_is_ready(pod):
    """Whether the pod reports the Ready condition."""
    if pod.status is None:
        return False
    return any(
        c.type == "Ready" and c.status == "True"
        for c in (pod.status.conditions or [])
    )


def pod_address(pod):
    """Assigned pod IP, or an empty string."""
    if pod.status is None:
        return ""
    return pod.status.pod_ip or ""


def _get_container_state(container_status):
    """Get container state string."""
    state = container_status.state
    if state.waiting:
        return f"Waiting: {state.waiting.reason}"
    return f"Terminated: {state.terminated.reason} (exit code {state.terminated.exit_code})"


def pod_failure_reason(pod):
    """Describe a terminal failure, or None while the pod can still come up."""
    status = pod.status
    if status is None:
        return None

    if status.phase in (PHASE_FAILED, PHASE_SUCCEEDED):
        detail = status.reason or status.message or "no reason reported"
        return f"phase {status.phase}: {detail}"

    for cs in status.container_statuses or []:
        if cs.state is None:
            continue
        if cs.state.terminated is not None:
            detail = cs.state.terminated.message
        elif cs.state.waiting is not None and cs.state.waiting.reason in TERMINAL_WAITING_REASONS:
            detail = cs.state.waiting.message
        else:
            continue
        message = f"container {cs.name} {_get_container_state(cs)}"
        if detail:
            message = f"{message} ({detail})"
        return message

    return None


class ClusterGateway:
    """Namespaced create/get/list/delete/wait calls against the core API."""

    def __init__(self, v1):
        self.v1 = v1

    def create(self, body):
        """Create a pod or a persistent volume claim."""
        kind = body.kind
        namespace = body.metadata.namespace
        name = body.metadata.name
        try:
            if kind == KIND_POD:
                created = self.v1.create_namespaced_pod(namespace=namespace, body=body)
            elif kind == KIND_PVC:
                created = self.v1.create_namespaced_persistent_volume_claim(
                    namespace=namespace, body=body
                )
            else:
                raise ValueError(f"Unsupported kind: {kind}")
        except (ApiException, HTTPError) as e:
            raise _communication_error(f"create {kind} {namespace}/{name}", e)

        logger.info(f"{kind} {namespace}/{name} created")
        return created

    def get(self, kind, namespace, name):
        """Read one object, None if it does not exist."""
        try:
            if kind == KIND_POD:
                return self.v1.read_namespaced_pod(name=name, namespace=namespace)
            elif kind == KIND_PVC:
                return self.v1.read_namespaced_persistent_volume_claim(
                    name=name, namespace=namespace
                )
            raise ValueError(f"Unsupported kind: {kind}")
        except ApiException as e:
            if e.status == 404:
                return None
            raise _communication_error(f"get {kind} {namespace}/{name}", e)
        except HTTPError as e:
            raise _communication_error(f"get {kind} {namespace}/{name}", e)

    def list(self, kind, namespace, label_selector, field_selector=None):
        """List objects matching the selectors."""
        kwargs = {"namespace": namespace, "label_selector": label_selector}
        if field_selector:
            kwargs["field_selector"] = field_selector
        try:
            if kind == KIND_POD:
                response = self.v1.list_namespaced_pod(**kwargs)
            elif kind == KIND_PVC:
                response = self.v1.list_namespaced_persistent_volume_claim(**kwargs)
            else:
                raise ValueError(f"Unsupported kind: {kind}")
        except (ApiException, HTTPError) as e:
            raise _communication_error(f"list {kind} in {namespace}", e)
        return list(response.items or [])

    def delete(self, kind, namespace, name):
        """Delete one object. Returns False if it was already gone."""
        try:
            if kind == KIND_POD:
                self.v1.delete_namespaced_pod(name=name, namespace=namespace)
            elif kind == KIND_PVC:
                self.v1.delete_namespaced_persistent_volume_claim(
                    name=name, namespace=namespace
                )
            else:
                raise ValueError(f"Unsupported kind: {kind}")
        except ApiException as e:
            if e.status == 404:
                logger.info(f"{kind} {namespace}/{name} not found (already deleted)")
                return False
            raise _communication_error(f"delete {kind} {namespace}/{name}", e)
        except HTTPError as e:
            raise _communication_error(f"delete {kind} {namespace}/{name}", e)

        logger.info(f"{kind} {namespace}/{name} deleted")
        return True

    def wait_for(self, namespace, name, predicate, timeout):
        """Watch a pod until predicate(pod) holds or the timeout elapses.

        Only one watch stream is open at a time. When the server closes the
        stream early, a new one is opened for the remaining time.
        """
        deadline = time.monotonic() + timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise TimedOutError(name, timeout)

            w = watch.Watch()
            try:
                for event in w.stream(
                    self.v1.list_namespaced_pod,
                    namespace=namespace,
                    field_selector=f"metadata.name={name}",
                    timeout_seconds=max(1, math.ceil(remaining)),
                    _request_timeout=math.ceil(remaining) + WATCH_READ_SLACK,
                ):
                    event_type = event["type"]
                    if event_type == "ERROR":
                        raise ClusterCommunicationError(
                            f"watch on pod {namespace}/{name} failed: {event.get('raw_object')}"
                        )

                    pod = event["object"]
                    if event_type == "DELETED":
                        raise PodFailedError(name, "pod was deleted while waiting")

                    logger.debug(
                        f"Pod {name} event {event_type}: phase={pod.status.phase if pod.status else None}"
                    )
                    if predicate(pod):
                        return pod

                    if time.monotonic() >= deadline:
                        raise TimedOutError(name, timeout)
            except (ApiException, HTTPError) as e:
                raise _communication_error(f"watch pod {namespace}/{name}", e)
            finally:
                w.stop()
