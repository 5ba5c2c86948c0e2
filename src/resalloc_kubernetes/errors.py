"""Error types raised by allocation and reclamation."""


class ResallocError(Exception):
    """Base class for every error this tool reports."""


class ValidationError(ResallocError, ValueError):
    """Caller input is malformed or incomplete."""


class ClusterCommunicationError(ResallocError):
    """A request to the cluster could not be completed."""

    def __init__(self, message, status=None):
        super().__init__(message)
        self.status = status


class PodFailedError(ResallocError):
    """The cluster reported the pod entered a terminal non-ready state."""

    def __init__(self, pod_name, reason):
        super().__init__(f"pod {pod_name} failed: {reason}")
        self.pod_name = pod_name
        self.reason = reason


class TimedOutError(ResallocError):
    """Readiness was not observed within the configured window."""

    def __init__(self, pod_name, timeout):
        super().__init__(f"pod {pod_name} was not ready within {timeout}s")
        self.pod_name = pod_name
        self.timeout = timeout


class AmbiguousTargetError(ResallocError):
    """More than one managed pod reports the requested address."""

    def __init__(self, address, pod_names):
        names = ", ".join(pod_names)
        super().__init__(f"address {address} matches {len(pod_names)} pods: {names}")
        self.address = address
        self.pod_names = list(pod_names)
