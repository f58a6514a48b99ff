"""
The normalizer flattens the document tree produced by the templating
collaborator into a flat, ordered list of individual resource manifests
"""

# Standard
from typing import Any, Dict, List, Optional, Set
import copy

# First Party
import alog

# Local
from .exceptions import DuplicateIdentity, MalformedManifest
from .identity import Identity, identity, is_cluster_scoped

log = alog.use_channel("NRMLZ")

## Public ######################################################################


def normalize(
    tree: Any,
    default_namespace: Optional[str] = None,
    extra_labels: Optional[Dict[str, str]] = None,
) -> List[dict]:
    """Flatten a desired-state document tree into individual manifests

    The tree is walked depth-first and manifests are returned in the order in
    which they are first encountered. This order is the default apply order
    before priority reordering.

    Args:
        tree:  Any
            The document tree. Lists (at any depth), *List kinds with items and
            plain mappings whose values are all containers are flattened.
        default_namespace:  Optional[str]
            Namespace assigned to namespaced resources which do not declare one
        extra_labels:  Optional[Dict[str, str]]
            Labels added to every manifest, overriding labels of the same key

    Returns:
        manifests:  List[dict]
            Deep copies of each resource manifest

    Raises:
        MalformedManifest: a node is not resource-shaped where a resource is
            expected
        MissingIdentityField: a resource lacks kind, name or apiVersion
        DuplicateIdentity: two resources share an identity
    """
    manifests = []
    seen: Set[Identity] = set()
    for path, node in _walk(tree, ""):
        manifest = copy.deepcopy(node)
        if default_namespace and not is_cluster_scoped(manifest["kind"]):
            metadata = manifest.setdefault("metadata", {})
            if isinstance(metadata, dict) and not metadata.get("namespace"):
                log.debug3("Defaulting namespace of %s to %s", path, default_namespace)
                metadata["namespace"] = default_namespace
        if extra_labels:
            metadata = manifest.setdefault("metadata", {})
            if isinstance(metadata, dict):
                labels = metadata.get("labels")
                metadata["labels"] = {
                    **(labels if isinstance(labels, dict) else {}),
                    **extra_labels,
                }

        obj_id = identity(manifest)
        if obj_id in seen:
            raise DuplicateIdentity(obj_id)
        seen.add(obj_id)
        log.debug2("Found manifest [%s] at %s", obj_id, path or "<root>")
        manifests.append(manifest)

    log.debug("Normalized %d manifests", len(manifests))
    return manifests


## Implementation ##############################################################


def _walk(node: Any, path: str):
    """Explicit depth-first traversal yielding (path, resource) pairs"""
    # Each stack entry is (path, node). Children are pushed in reverse so that
    # they pop in document order.
    stack = [(path, node)]
    while stack:
        path, node = stack.pop()
        if node is None:
            continue
        if isinstance(node, list):
            stack.extend(
                (f"{path}[{i}]", child) for i, child in reversed(list(enumerate(node)))
            )
        elif isinstance(node, dict):
            if _is_list_kind(node):
                items = node.get("items") or []
                if not isinstance(items, list):
                    raise MalformedManifest(f"{path}.items", "List items must be a list")
                stack.extend(
                    (f"{path}.items[{i}]", child)
                    for i, child in reversed(list(enumerate(items)))
                )
            elif "kind" in node:
                if not isinstance(node["kind"], str):
                    raise MalformedManifest(
                        f"{path}.kind", f"kind must be a string at {path or '<root>'}"
                    )
                yield path, node
            elif _is_container(node):
                stack.extend(
                    (f"{path}.{key}" if path else key, child)
                    for key, child in reversed(list(node.items()))
                )
            else:
                raise MalformedManifest(path, f"No kind found at {path or '<root>'}")
        else:
            raise MalformedManifest(
                path, f"Expected a resource at {path or '<root>'}, got {type(node).__name__}"
            )


def _is_list_kind(node: dict) -> bool:
    """Detect v1.List and the typed *List kinds (ConfigMapList, ...)"""
    kind = node.get("kind")
    return isinstance(kind, str) and kind.endswith("List") and "items" in node


def _is_container(node: dict) -> bool:
    """A mapping with no resource fields whose values are all (possibly empty)
    containers of resources
    """
    if "apiVersion" in node or "metadata" in node:
        return False
    return all(
        value is None or isinstance(value, (dict, list)) for value in node.values()
    )
