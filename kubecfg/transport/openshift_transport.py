"""
This transport delegates cluster operations to the openshift DynamicClient. It
is the one that is used when kubecfg talks to a live cluster.
"""
# Standard
from contextlib import contextmanager
from dataclasses import dataclass
from typing import List, Optional
import threading

# Third Party
from kubernetes.client.rest import ApiException
from openshift.dynamic import DynamicClient
from openshift.dynamic.exceptions import (
    ConflictError,
    DynamicApiError,
    NotFoundError,
    ResourceNotFoundError,
    ResourceNotUniqueError,
)
from openshift.dynamic.resource import Resource
import kubernetes
import urllib3

# First Party
import alog

# Local
from ..exceptions import (
    ClusterError,
    PermanentTransportError,
    TransientTransportError,
    VersionConflictError,
)
from ..identity import Identity, identity
from .base import TransportBase

log = alog.use_channel("OSFTT")

# Namespace used for namespaced objects that don't name one
DEFAULT_NAMESPACE = "default"

# Field manager name recorded by the server for every write
FIELD_MANAGER = "kubecfg"

# HTTP statuses which are worth retrying
TRANSIENT_STATUSES = {408, 429, 500, 502, 503, 504}

JSON_PATCH_CONTENT_TYPE = "application/json-patch+json"


@dataclass(frozen=True)
class ClusterConfig:
    """Explicit description of how to reach the cluster. Nothing is read from
    process-global state beyond what the kubernetes client itself loads from the
    named kubeconfig.
    """

    server: Optional[str] = None
    kubeconfig: Optional[str] = None
    context: Optional[str] = None
    verify_ssl: bool = True

    @classmethod
    def from_config(cls, cluster_config) -> "ClusterConfig":
        """Build from the `cluster` section of the library config"""
        return cls(
            server=cluster_config.get("server"),
            kubeconfig=cluster_config.get("kubeconfig"),
            context=cluster_config.get("context"),
            verify_ssl=cluster_config.get("verify_ssl", True),
        )


class OpenshiftTransport(TransportBase):
    """This transport uses the openshift DynamicClient to interact with the
    cluster
    """

    def __init__(self, cluster_config: Optional[ClusterConfig] = None):
        """
        Args:
            cluster_config:  Optional[ClusterConfig]
                Where and how to connect. Defaults to the current kubeconfig
                context, or the in-cluster service account.
        """
        self.cluster_config = cluster_config or ClusterConfig()
        self._client = None
        self._client_lock = threading.Lock()

    @property
    def client(self) -> DynamicClient:
        """Lazy property access to the client

        Raises:
            ClusterError: no client can be constructed from the cluster config
        """
        with self._client_lock:
            if self._client is None:
                try:
                    self._client = self._setup_client()
                except (kubernetes.config.ConfigException, OSError) as err:
                    raise ClusterError(f"Unable to configure cluster client: {err}") from err
            return self._client

    ## Interface ###############################################################

    def get(self, identity: Identity) -> Optional[dict]:
        handle = self._get_resource_handle(identity.api_version, identity.kind)
        if handle is None:
            log.debug(
                "Kind [%s/%s] unknown to the server. [%s] cannot exist.",
                identity.api_version,
                identity.kind,
                identity.name,
            )
            return None
        namespace = self._namespace_for(handle, identity.namespace)
        with self._translate_errors(identity):
            try:
                return handle.get(name=identity.name, namespace=namespace).to_dict()
            except NotFoundError:
                log.debug2("No object [%s] found", identity)
                return None

    def create(self, manifest: dict) -> dict:
        obj_id = identity(manifest)
        handle = self._require_resource_handle(obj_id)
        namespace = self._namespace_for(handle, obj_id.namespace)
        log.debug2("Attempting to create [%s]", obj_id)
        with self._translate_errors(obj_id):
            return handle.create(
                body=manifest,
                namespace=namespace,
                field_manager=FIELD_MANAGER,
            ).to_dict()

    def patch(
        self,
        identity: Identity,
        operations: List[dict],
        resource_version: Optional[str] = None,
    ) -> dict:
        handle = self._require_resource_handle(identity)
        namespace = self._namespace_for(handle, identity.namespace)
        body = list(operations)
        if resource_version is not None:
            # A resourceVersion in the patched object is a precondition: the
            # server answers 409 if the object has moved on
            body.append(
                {
                    "op": "replace",
                    "path": "/metadata/resourceVersion",
                    "value": resource_version,
                }
            )
        log.debug2("Attempting to patch [%s] with %d operations", identity, len(body))
        with self._translate_errors(identity):
            return handle.patch(
                body=body,
                name=identity.name,
                namespace=namespace,
                content_type=JSON_PATCH_CONTENT_TYPE,
                field_manager=FIELD_MANAGER,
            ).to_dict()

    def delete(self, identity: Identity) -> bool:
        handle = self._get_resource_handle(identity.api_version, identity.kind)
        if handle is None:
            log.debug2("Kind of [%s] unknown to the server. Nothing to delete.", identity)
            return False
        namespace = self._namespace_for(handle, identity.namespace)
        log.debug2("Attempting to delete [%s]", identity)
        with self._translate_errors(identity):
            try:
                handle.delete(name=identity.name, namespace=namespace)
            except NotFoundError:
                log.debug2("[%s] already gone", identity)
                return False
        return True

    def list(
        self,
        api_version: str,
        kind: str,
        namespace: Optional[str] = None,
        label_selector: Optional[str] = None,
    ) -> List[dict]:
        handle = self._get_resource_handle(api_version, kind)
        if handle is None:
            return []
        with self._translate_errors(f"{api_version}/{kind}"):
            try:
                items = (
                    handle.get(namespace=namespace, label_selector=label_selector)
                    .to_dict()
                    .get("items", [])
                )
            except NotFoundError:
                return []
        # List responses omit the type fields on the items
        for item in items:
            item.setdefault("apiVersion", api_version)
            item.setdefault("kind", kind)
        return items

    ## Implementation Helpers ##################################################

    def _setup_client(self) -> DynamicClient:
        """Create a DynamicClient from the cluster config"""
        cluster_config = self.cluster_config

        # An explicit server (e.g. a kubectl proxy) bypasses kubeconfig auth
        if cluster_config.server and not (
            cluster_config.kubeconfig or cluster_config.context
        ):
            log.debug2("Connecting directly to %s", cluster_config.server)
            kube_config = kubernetes.client.Configuration()
            server = cluster_config.server
            if "://" not in server:
                server = f"http://{server}"
            kube_config.host = server
            kube_config.verify_ssl = cluster_config.verify_ssl
            return DynamicClient(kubernetes.client.ApiClient(kube_config))

        if cluster_config.kubeconfig or cluster_config.context:
            log.debug2(
                "Running with kubeconfig [%s] context [%s]",
                cluster_config.kubeconfig,
                cluster_config.context,
            )
            api_client = kubernetes.config.new_client_from_config(
                config_file=cluster_config.kubeconfig,
                context=cluster_config.context,
            )
        else:
            # Try in-cluster config
            try:
                log.debug2("Running with in-cluster config")
                kube_config = kubernetes.client.Configuration()
                kubernetes.config.load_incluster_config(
                    client_configuration=kube_config
                )
                api_client = kubernetes.client.ApiClient(kube_config)

            # Fall back to out-of-cluster config
            except kubernetes.config.ConfigException:
                log.debug2("Running with out-of-cluster config")
                api_client = kubernetes.config.new_client_from_config()

        if cluster_config.server:
            api_client.configuration.host = cluster_config.server
        return DynamicClient(api_client)

    def _get_resource_handle(self, api_version: str, kind: str) -> Optional[Resource]:
        """Get the openshift resource handle for a specified kind and api_version"""
        try:
            return self.client.resources.get(kind=kind, api_version=api_version)
        except (ResourceNotFoundError, ResourceNotUniqueError):
            log.debug(
                "No kind [%s/%s] found or multiple kinds matching request found",
                api_version,
                kind,
            )
        return None

    def _require_resource_handle(self, obj_id: Identity) -> Resource:
        """Get a resource handle for a write. A missing kind may only mean that
        the discovery cache predates a CRD created earlier in this run, so the
        cache is refreshed and the failure is reported as transient.
        """
        handle = self._get_resource_handle(obj_id.api_version, obj_id.kind)
        if handle is None:
            log.debug2("Invalidating discovery cache for [%s]", obj_id)
            self.client.resources.invalidate_cache()
            raise TransientTransportError(
                f"Kind {obj_id.api_version}/{obj_id.kind} not (yet) served"
            )
        return handle

    @staticmethod
    def _namespace_for(handle: Resource, namespace: Optional[str]) -> Optional[str]:
        """Namespaced kinds always need a namespace, cluster-scoped never do"""
        if handle.namespaced:
            return namespace or DEFAULT_NAMESPACE
        return None

    @staticmethod
    @contextmanager
    def _translate_errors(target):
        """Map client exceptions onto the transient/permanent taxonomy"""
        try:
            yield
        except ConflictError as err:
            raise VersionConflictError(
                f"Conflict on {target}: {_reason(err)}", status=409
            ) from err
        except (DynamicApiError, ApiException) as err:
            status = getattr(err, "status", None)
            if status in TRANSIENT_STATUSES:
                log.debug2("Transient API error on %s: %s", target, status)
                raise TransientTransportError(
                    f"Server error on {target}: {_reason(err)}", status=status
                ) from err
            raise PermanentTransportError(
                f"Request for {target} rejected: {_reason(err)}", status=status
            ) from err
        except urllib3.exceptions.HTTPError as err:
            log.debug2("Connection error on %s: %s", target, err)
            raise TransientTransportError(
                f"Connection error on {target}: {err}"
            ) from err


def _reason(err: Exception) -> str:
    """Best human readable reason for an API error"""
    return getattr(err, "summary", lambda: None)() or getattr(err, "reason", None) or str(err)
