"""Label, naming and phase constants."""

# Managed-by label, used to scope every lookup to objects this tool created
MANAGED_BY_LABEL = "app"
MANAGED_BY_VALUE = "resalloc-kubernetes"

# Correlation label tying a pod to its storage claim
ALLOCATION_ID_LABEL = "allocation-id"
HAS_VOLUME_LABEL = "has-volume"

RESERVED_LABELS = (MANAGED_BY_LABEL, ALLOCATION_ID_LABEL, HAS_VOLUME_LABEL)

MANAGED_BY_SELECTOR = f"{MANAGED_BY_LABEL}={MANAGED_BY_VALUE}"

# Object name prefix
NAME_PREFIX = "resalloc"

# Object kinds handled by the gateway
KIND_POD = "Pod"
KIND_PVC = "PersistentVolumeClaim"

# Pod phases
PHASE_SUCCEEDED = "Succeeded"
PHASE_FAILED = "Failed"

# Container waiting reasons the kubelet never recovers from on its own
TERMINAL_WAITING_REASONS = [
    "InvalidImageName",
    "CreateContainerConfigError",
    "ErrImageNeverPull",
]

# Defaults
DEFAULT_NAMESPACE = "default"
DEFAULT_TIMEOUT = 60
ADDRESS_ENV_VAR = "RESALLOC_NAME"
