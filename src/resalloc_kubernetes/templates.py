"""Kubernetes resource templates."""

import logging
import uuid

import yaml
from kubernetes import client

from .constants import (
    ALLOCATION_ID_LABEL,
    DEFAULT_NAMESPACE,
    DEFAULT_TIMEOUT,
    HAS_VOLUME_LABEL,
    MANAGED_BY_LABEL,
    MANAGED_BY_VALUE,
    NAME_PREFIX,
    RESERVED_LABELS,
)
from .errors import ValidationError
from .models import Manifests, ResourceRequest, SecretMount, VolumeSpec

logger = logging.getLogger(__name__)

PVC_VOLUME_NAME = "additional-volume"
SECRET_VOLUME_NAME = "secret-volume"


def new_allocation_id():
    """Generate a fresh correlation identifier."""
    return uuid.uuid4().hex


def parse_key_value_pairs(tokens, option="--label"):
    """Parse repeated KEY=VALUE tokens into a dict."""
    pairs = {}
    for token in tokens or []:
        key, sep, value = token.partition("=")
        if not sep or not key:
            raise ValidationError(
                f"invalid {option} value '{token}', expected KEY=VALUE"
            )
        pairs[key] = value
    return pairs


def parse_volume_spec(size=None, storage_class=None, mount_path=None):
    """Validate the additional volume option group.

    The three options only make sense together: none of them means no
    volume, any of them means all of them are required.
    """
    group = {
        "--additional-volume-size": size,
        "--additional-volume-class": storage_class,
        "--additional-volume-mount-path": mount_path,
    }
    given = [option for option, value in group.items() if value]
    if not given:
        return None
    missing = [option for option, value in group.items() if not value]
    if missing:
        raise ValidationError(
            f"{', '.join(given)} also requires {', '.join(missing)}"
        )
    return VolumeSpec(size=size, storage_class=storage_class, mount_path=mount_path)


def parse_secret_mount(value):
    """Parse a <mountPath>:<name>:<subPath> secret option."""
    if value is None:
        return None
    parts = value.split(":")
    if len(parts) != 3 or not all(parts):
        raise ValidationError(
            f"invalid --secret value '{value}', expected <mountPath>:<name>:<subPath>"
        )
    mount_path, secret_name, sub_path = parts
    return SecretMount(mount_path=mount_path, secret_name=secret_name, sub_path=sub_path)


def build_request(
    image,
    cpu,
    memory,
    node_selector=None,
    privileged=False,
    labels=None,
    volume_size=None,
    volume_class=None,
    volume_mount_path=None,
    secret=None,
    timeout=DEFAULT_TIMEOUT,
    namespace=DEFAULT_NAMESPACE,
):
    """Validate raw option values and assemble a ResourceRequest."""
    for option, value in (
        ("--image-tag", image),
        ("--cpu-resource", cpu),
        ("--memory-resource", memory),
    ):
        if not value:
            raise ValidationError(f"{option} must not be empty")
    if timeout is None or timeout <= 0:
        raise ValidationError(f"--timeout must be a positive number of seconds, got {timeout}")

    return ResourceRequest(
        image=image,
        cpu=cpu,
        memory=memory,
        node_selector=parse_key_value_pairs(node_selector, "--node-selector"),
        privileged=privileged,
        labels=parse_key_value_pairs(labels, "--additional-labels"),
        volume=parse_volume_spec(volume_size, volume_class, volume_mount_path),
        secret=parse_secret_mount(secret),
        timeout=timeout,
        namespace=namespace,
    )


def create_labels(allocation_id, has_volume, extra_labels=None):
    """Merge user labels under the reserved ones."""
    labels = {}
    for key, value in (extra_labels or {}).items():
        if key in RESERVED_LABELS:
            logger.warning(f"Ignoring additional label {key}={value}: reserved label")
            continue
        labels[key] = value
    labels[MANAGED_BY_LABEL] = MANAGED_BY_VALUE
    labels[ALLOCATION_ID_LABEL] = allocation_id
    labels[HAS_VOLUME_LABEL] = "true" if has_volume else "false"
    return labels


def create_pvc_manifest(pvc_name, namespace, volume, labels):
    """Create PVC manifest for the additional volume."""
    return client.V1PersistentVolumeClaim(
        api_version="v1",
        kind="PersistentVolumeClaim",
        metadata=client.V1ObjectMeta(
            name=pvc_name,
            namespace=namespace,
            labels=dict(labels),
        ),
        spec=client.V1PersistentVolumeClaimSpec(
            access_modes=["ReadWriteOnce"],
            storage_class_name=volume.storage_class,
            resources=client.V1VolumeResourceRequirements(
                requests={"storage": volume.size}
            ),
        ),
    )


def create_pod_manifest(pod_name, request, labels, pvc_name=None):
    """Create the allocation pod manifest."""
    volumes = []
    volume_mounts = []

    if request.secret is not None:
        volumes.append(
            client.V1Volume(
                name=SECRET_VOLUME_NAME,
                secret=client.V1SecretVolumeSource(
                    secret_name=request.secret.secret_name
                ),
            )
        )
        volume_mounts.append(
            client.V1VolumeMount(
                name=SECRET_VOLUME_NAME,
                mount_path=request.secret.mount_path,
                sub_path=request.secret.sub_path,
            )
        )

    if pvc_name is not None:
        volumes.append(
            client.V1Volume(
                name=PVC_VOLUME_NAME,
                persistent_volume_claim=client.V1PersistentVolumeClaimVolumeSource(
                    claim_name=pvc_name
                ),
            )
        )
        volume_mounts.append(
            client.V1VolumeMount(
                name=PVC_VOLUME_NAME,
                mount_path=request.volume.mount_path,
            )
        )

    # Requests equal limits, no burstable pods
    resources = {"cpu": request.cpu, "memory": request.memory}

    return client.V1Pod(
        api_version="v1",
        kind="Pod",
        metadata=client.V1ObjectMeta(
            name=pod_name,
            namespace=request.namespace,
            labels=dict(labels),
        ),
        spec=client.V1PodSpec(
            node_selector=dict(request.node_selector) or None,
            containers=[
                client.V1Container(
                    name=pod_name,
                    image=request.image,
                    image_pull_policy="IfNotPresent",
                    security_context=client.V1SecurityContext(
                        privileged=request.privileged,
                    ),
                    resources=client.V1ResourceRequirements(
                        requests=dict(resources),
                        limits=dict(resources),
                    ),
                    volume_mounts=volume_mounts or None,
                )
            ],
            volumes=volumes or None,
        ),
    )


def build_manifests(request, allocation_id=None):
    """Render the pod, and the claim when a volume is requested."""
    if allocation_id is None:
        allocation_id = new_allocation_id()

    pod_name = f"{NAME_PREFIX}-{allocation_id}"
    has_volume = request.volume is not None
    labels = create_labels(allocation_id, has_volume, request.labels)

    claim = None
    pvc_name = None
    if has_volume:
        pvc_name = f"{pod_name}-volume"
        claim = create_pvc_manifest(pvc_name, request.namespace, request.volume, labels)

    pod = create_pod_manifest(pod_name, request, labels, pvc_name)
    logger.debug(f"Rendered pod {pod_name} (volume: {has_volume})")
    return Manifests(allocation_id=allocation_id, pod=pod, claim=claim)


def render_manifests_yaml(manifests):
    """Render manifests as a multi-document YAML stream."""
    api_client = client.ApiClient()
    documents = []
    if manifests.claim is not None:
        documents.append(api_client.sanitize_for_serialization(manifests.claim))
    documents.append(api_client.sanitize_for_serialization(manifests.pod))
    return yaml.safe_dump_all(documents, explicit_start=True, sort_keys=True)
