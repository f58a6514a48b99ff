"""
The DryRunTransport implements the transport interface but never writes to a
cluster and instead holds the state of the cluster in a local map. With an
upstream transport, objects it does not know yet are read through from the
upstream, so a dry run sees the real cluster.

It emulates the server behaviors the engine relies on: resourceVersion
bookkeeping, optimistic concurrency, JSON patch semantics and (optionally)
server-side defaulting.
"""

# Standard
from datetime import datetime
from threading import RLock
from typing import Callable, Dict, List, Optional, Set
import copy
import itertools
import uuid

# Third Party
from jsonpatch import JsonPatch, JsonPatchException
from jsonpointer import JsonPointerException

# First Party
import alog

# Local
from ..exceptions import PermanentTransportError, VersionConflictError
from ..identity import Identity, identity
from .base import TransportBase

log = alog.use_channel("DRY-RUN")


class DryRunTransport(TransportBase):
    """
    Transport which doesn't actually talk to a cluster!
    """

    def __init__(
        self,
        resources: Optional[List[dict]] = None,
        defaulter: Optional[Callable[[dict], None]] = None,
        enforce_namespaces: bool = False,
        upstream: Optional[TransportBase] = None,
    ):
        """
        Args:
            resources:  Optional[List[dict]]
                Objects which are present in the cluster from the start
            defaulter:  Optional[Callable[[dict], None]]
                Called in place on every object the "server" stores to emulate
                server-side defaulting
            enforce_namespaces:  bool
                If true, creating a namespaced object fails unless its
                Namespace exists, like a real API server
            upstream:  Optional[TransportBase]
                Transport that unknown objects are read from. It is never
                written to.
        """
        self._cluster_content: Dict[Identity, dict] = {}
        self._lock = RLock()
        self._versions = itertools.count(1)
        self._defaulter = defaulter
        self.enforce_namespaces = enforce_namespaces
        self._upstream = upstream
        self._deleted: Set[Identity] = set()
        for resource in resources or []:
            self.set_object(resource)

    ## Interface ###############################################################

    def get(self, identity: Identity) -> Optional[dict]:
        log.debug2("DRY RUN get [%s]", identity)
        self._read_through(identity)
        with self._lock:
            content = self._cluster_content.get(identity)
            return copy.deepcopy(content) if content is not None else None

    def create(self, manifest: dict) -> dict:
        obj_id = identity(manifest)
        log.debug("DRY RUN create [%s]", obj_id)
        self._read_through(obj_id)
        if self.enforce_namespaces and obj_id.namespace:
            self._read_through(Identity("v1", "Namespace", None, obj_id.namespace))
        with self._lock:
            if obj_id in self._cluster_content:
                raise VersionConflictError(f"{obj_id} already exists", status=409)
            if (
                self.enforce_namespaces
                and obj_id.namespace
                and Identity("v1", "Namespace", None, obj_id.namespace)
                not in self._cluster_content
            ):
                raise PermanentTransportError(
                    f"namespaces \"{obj_id.namespace}\" not found", status=404
                )
            resource = copy.deepcopy(manifest)
            metadata = resource.setdefault("metadata", {})
            metadata["uid"] = str(uuid.uuid4())
            metadata["creationTimestamp"] = datetime.now().strftime(
                "%Y-%m-%dT%H:%M:%SZ"
            )
            metadata["generation"] = 1
            return self._store(obj_id, resource)

    def patch(
        self,
        identity: Identity,
        operations: List[dict],
        resource_version: Optional[str] = None,
    ) -> dict:
        log.debug("DRY RUN patch [%s] with %d operations", identity, len(operations))
        self._read_through(identity)
        with self._lock:
            current = self._cluster_content.get(identity)
            if current is None:
                raise PermanentTransportError(f"{identity} not found", status=404)
            current_version = current["metadata"].get("resourceVersion")
            if resource_version is not None and resource_version != current_version:
                log.debug2(
                    "DRY RUN resourceVersion mismatch %s != %s",
                    resource_version,
                    current_version,
                )
                raise VersionConflictError(
                    f"{identity} has been modified (resourceVersion "
                    f"{current_version}, expected {resource_version})",
                    status=409,
                )
            try:
                patched = JsonPatch(operations).apply(current)
            except (JsonPatchException, JsonPointerException) as err:
                raise PermanentTransportError(
                    f"Invalid patch for {identity}: {err}", status=422
                ) from err
            if patched.get("spec") != current.get("spec"):
                patched["metadata"]["generation"] = (
                    current["metadata"].get("generation", 1) + 1
                )
            return self._store(identity, patched)

    def delete(self, identity: Identity) -> bool:
        log.debug("DRY RUN delete [%s]", identity)
        self._read_through(identity)
        with self._lock:
            self._deleted.add(identity)
            return self._cluster_content.pop(identity, None) is not None

    def list(
        self,
        api_version: str,
        kind: str,
        namespace: Optional[str] = None,
        label_selector: Optional[str] = None,
    ) -> List[dict]:
        log.debug2("DRY RUN list [%s/%s] in [%s]", api_version, kind, namespace)
        if self._upstream is not None:
            for live in self._upstream.list(api_version, kind, namespace, label_selector):
                self._remember(live)
        with self._lock:
            return [
                copy.deepcopy(content)
                for obj_id, content in self._cluster_content.items()
                if obj_id.api_version == api_version
                and obj_id.kind == kind
                and (namespace is None or obj_id.namespace == namespace)
                and _match_selector(
                    content.get("metadata", {}).get("labels") or {}, label_selector
                )
            ]

    ## Helpers for Tests #######################################################

    def set_object(self, resource: dict) -> dict:
        """Put an object into the cluster directly, the way an external actor
        would. Server fields are filled in if missing.
        """
        resource = copy.deepcopy(resource)
        obj_id = identity(resource)
        with self._lock:
            metadata = resource.setdefault("metadata", {})
            metadata.setdefault("uid", str(uuid.uuid4()))
            metadata.setdefault("generation", 1)
            return self._store(obj_id, resource)

    def objects(self) -> List[dict]:
        """All objects currently in the cluster"""
        with self._lock:
            return [copy.deepcopy(obj) for obj in self._cluster_content.values()]

    ## Implementation ##########################################################

    def _read_through(self, obj_id: Identity):
        """Load an unknown object from the upstream. The upstream call is made
        without holding the lock.
        """
        if self._upstream is None:
            return
        with self._lock:
            if obj_id in self._cluster_content or obj_id in self._deleted:
                return
        live = self._upstream.get(obj_id)
        if live is not None:
            self._remember(live)

    def _remember(self, live: dict):
        """Keep an upstream object unless the local state already decided
        about its identity
        """
        obj_id = identity(live)
        with self._lock:
            if obj_id not in self._cluster_content and obj_id not in self._deleted:
                log.debug3("DRY RUN read [%s] from upstream", obj_id)
                self._cluster_content[obj_id] = copy.deepcopy(live)

    def _store(self, obj_id: Identity, resource: dict) -> dict:
        """Store an object with a fresh resourceVersion. Must hold the lock."""
        if self._defaulter:
            self._defaulter(resource)
        self._deleted.discard(obj_id)
        resource["metadata"]["resourceVersion"] = str(next(self._versions))
        self._cluster_content[obj_id] = resource
        return copy.deepcopy(resource)


def _match_selector(labels: dict, label_selector: Optional[str]) -> bool:
    """Match the equality-based subset of kubernetes label selectors:
    key=value, key==value, key!=value, key and !key, comma separated
    """
    if not label_selector:
        return True
    for selector in label_selector.split(","):
        selector = selector.strip()
        if not selector:
            continue
        if "!=" in selector:
            key, value = (part.strip() for part in selector.split("!=", 1))
            if labels.get(key) == value:
                return False
        elif "=" in selector:
            key, value = (part.strip() for part in selector.replace("==", "=").split("=", 1))
            if labels.get(key) != value:
                return False
        elif selector.startswith("!"):
            if selector[1:].strip() in labels:
                return False
        elif selector not in labels:
            return False
    return True
