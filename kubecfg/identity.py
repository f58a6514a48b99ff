"""
Helper object to represent the stable identity of a kubernetes object across
its desired, live and baseline views
"""
# Standard
from typing import NamedTuple, Optional

# Local
from .constants import CLUSTER_SCOPED_KINDS
from .exceptions import MissingIdentityField


class Identity(NamedTuple):
    """Immutable key of a single resource. A namespace of None means the
    resource is cluster-scoped.
    """

    api_version: str
    kind: str
    namespace: Optional[str]
    name: str

    @property
    def group(self) -> str:
        """The apiVersion group name without the version ("" for core)"""
        if "/" not in self.api_version:
            return ""
        return self.api_version.split("/")[0]

    def with_namespace(self, namespace: Optional[str]) -> "Identity":
        """Copy of this identity in another namespace"""
        return self._replace(namespace=namespace)

    def __str__(self):
        return "/".join(
            [self.api_version, self.kind, self.namespace or "", self.name]
        )


def identity(obj: dict) -> Identity:
    """Derive the identity of a manifest or live object

    Args:
        obj:  dict
            The dict representation of the object

    Returns:
        identity:  Identity
            The identity key of the object

    Raises:
        MissingIdentityField: if apiVersion, kind or metadata.name is missing
    """
    if not isinstance(obj, dict):
        raise MissingIdentityField("kind", f"Not a resource object: {obj!r}")
    kind = obj.get("kind")
    if not kind or not isinstance(kind, str):
        raise MissingIdentityField("kind")
    metadata = obj.get("metadata")
    if not isinstance(metadata, dict):
        metadata = {}
    name = metadata.get("name")
    if not name or not isinstance(name, str):
        raise MissingIdentityField("metadata.name", f"{kind} has no metadata.name")
    api_version = obj.get("apiVersion")
    if not api_version or not isinstance(api_version, str):
        raise MissingIdentityField("apiVersion", f"{kind}/{name} has no apiVersion")
    namespace = metadata.get("namespace") or None
    return Identity(api_version, kind, namespace, name)


def is_cluster_scoped(kind: str) -> bool:
    """Whether the given kind is known to never live in a namespace"""
    return kind in CLUSTER_SCOPED_KINDS
