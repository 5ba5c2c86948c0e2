"""Shared fixtures: an in-memory cluster behind the gateway interface."""

import pytest
from kubernetes import client

from resalloc_kubernetes.constants import (
    ALLOCATION_ID_LABEL,
    KIND_POD,
    KIND_PVC,
    MANAGED_BY_LABEL,
    MANAGED_BY_VALUE,
)
from resalloc_kubernetes.errors import ClusterCommunicationError, TimedOutError


def pod_status(ready=False, ip=None, phase="Pending", waiting_reason=None):
    """Build a V1PodStatus."""
    container_statuses = None
    if waiting_reason:
        container_statuses = [
            client.V1ContainerStatus(
                name="main",
                image="x:latest",
                image_id="",
                ready=False,
                restart_count=0,
                state=client.V1ContainerState(
                    waiting=client.V1ContainerStateWaiting(reason=waiting_reason)
                ),
            )
        ]
    return client.V1PodStatus(
        phase=phase,
        pod_ip=ip,
        conditions=[
            client.V1PodCondition(type="Ready", status="True" if ready else "False")
        ],
        container_statuses=container_statuses,
    )


def make_pod(name, ip=None, allocation_id=None, ready=True, namespace="default", managed=True):
    """Build a V1Pod as the cluster would report it."""
    labels = {}
    if managed:
        labels[MANAGED_BY_LABEL] = MANAGED_BY_VALUE
    if allocation_id:
        labels[ALLOCATION_ID_LABEL] = allocation_id
    return client.V1Pod(
        api_version="v1",
        kind="Pod",
        metadata=client.V1ObjectMeta(name=name, namespace=namespace, labels=labels),
        status=pod_status(ready=ready, ip=ip, phase="Running" if ready else "Pending"),
    )


def make_claim(name, allocation_id, namespace="default"):
    """Build a V1PersistentVolumeClaim carrying the managed labels."""
    return client.V1PersistentVolumeClaim(
        api_version="v1",
        kind="PersistentVolumeClaim",
        metadata=client.V1ObjectMeta(
            name=name,
            namespace=namespace,
            labels={
                MANAGED_BY_LABEL: MANAGED_BY_VALUE,
                ALLOCATION_ID_LABEL: allocation_id,
            },
        ),
    )


def _matches(labels, selector):
    for term in selector.split(","):
        key, _, value = term.partition("=")
        if (labels or {}).get(key) != value:
            return False
    return True


class FakeGateway:
    """Simulated cluster implementing the ClusterGateway calls.

    Pods created through it follow status_script, a list of
    (seconds_after_creation, V1PodStatus) entries. wait_for replays the
    script and times out at the first entry later than the timeout.
    """

    def __init__(self, status_script=None):
        self.objects = {KIND_POD: {}, KIND_PVC: {}}
        self.status_script = status_script or []
        self.calls = []
        self.fail_create = set()
        self.fail_delete = set()
        self.wait_error = None

    def add(self, obj):
        self.objects[obj.kind][(obj.metadata.namespace, obj.metadata.name)] = obj

    def count(self, method):
        return len([c for c in self.calls if c[0] == method])

    def create(self, body):
        self.calls.append(("create", body.kind, body.metadata.name))
        if body.kind in self.fail_create:
            raise ClusterCommunicationError(f"failed to create {body.kind}", status=500)
        self.add(body)
        return body

    def get(self, kind, namespace, name):
        self.calls.append(("get", kind, name))
        return self.objects[kind].get((namespace, name))

    def list(self, kind, namespace, label_selector, field_selector=None):
        self.calls.append(("list", kind, label_selector))
        return [
            obj
            for (ns, _), obj in self.objects[kind].items()
            if ns == namespace and _matches(obj.metadata.labels, label_selector)
        ]

    def delete(self, kind, namespace, name):
        self.calls.append(("delete", kind, name))
        if kind in self.fail_delete:
            raise ClusterCommunicationError(f"failed to delete {kind}", status=500)
        return self.objects[kind].pop((namespace, name), None) is not None

    def wait_for(self, namespace, name, predicate, timeout):
        self.calls.append(("wait_for", KIND_POD, name))
        if self.wait_error is not None:
            raise self.wait_error
        pod = self.objects[KIND_POD][(namespace, name)]
        for at, status in self.status_script:
            if at > timeout:
                break
            pod.status = status
            if predicate(pod):
                return pod
        raise TimedOutError(name, timeout)


@pytest.fixture
def gateway():
    return FakeGateway()
