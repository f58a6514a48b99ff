"""
The transport is the abstraction in charge of interacting with the kubernetes
cluster to look up, create, patch, delete and list resources.
"""

# Local
from .base import TransportBase
from .dry_run_transport import DryRunTransport
from .openshift_transport import ClusterConfig, OpenshiftTransport
