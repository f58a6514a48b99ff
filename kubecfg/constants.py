"""
Shared module to hold constant values for the library
"""

# Third Party
# Annotation holding the manifest recorded by the previous successful apply,
# shared with kubectl and the openshift client
from openshift.dynamic.apply import LAST_APPLIED_CONFIG_ANNOTATION

# Label used to find objects that are candidates for pruning
DEFAULT_GC_TAG_LABEL = "kubecfg.io/garbage-collect-tag"

# Metadata fields which are always owned by the server and never compared
SERVER_OWNED_METADATA = [
    "resourceVersion",
    "generation",
    "managedFields",
    "uid",
    "creationTimestamp",
    "selfLink",
    "deletionTimestamp",
    "deletionGracePeriodSeconds",
]

# Top level fields which are always owned by the server
SERVER_OWNED_FIELDS = ["status"]

# Kinds which never live inside a namespace
CLUSTER_SCOPED_KINDS = frozenset(
    [
        "APIService",
        "ClusterIssuer",
        "ClusterRole",
        "ClusterRoleBinding",
        "CSIDriver",
        "CSINode",
        "CustomResourceDefinition",
        "IngressClass",
        "MutatingWebhookConfiguration",
        "Namespace",
        "Node",
        "PersistentVolume",
        "PodSecurityPolicy",
        "PriorityClass",
        "RuntimeClass",
        "StorageClass",
        "ValidatingWebhookConfiguration",
        "VolumeAttachment",
    ]
)

# Kind names with special meaning for ordering
NAMESPACE_KIND = "Namespace"
CRD_KIND = "CustomResourceDefinition"

# Delimiter used for nested dict keys
NESTED_DICT_DELIM = "."
