"""
The Diff Engine computes what has to happen to one identity: a three-way merge
between the desired manifest, the live object and the baseline recorded in the
live object's last-applied annotation.

The engine is pure. It never mutates its inputs and never talks to the
cluster, so every case can be exercised by constructing the three inputs
directly.
"""

# Standard
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Tuple
import copy
import json

# Third Party
from jsonpointer import JsonPointer

# First Party
import alog

# Local
from .constants import (
    LAST_APPLIED_CONFIG_ANNOTATION,
    SERVER_OWNED_FIELDS,
    SERVER_OWNED_METADATA,
)
from .identity import Identity, identity
from .utils import strip_fields

log = alog.use_channel("DIFF")

# Sentinel for a field which is not present
_MISSING = object()

## Diff Result #################################################################


class DiffAction(Enum):
    CREATE = "create"
    NOOP = "noop"
    PATCH = "patch"
    DELETE = "delete"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class DiffResult:
    """Tagged result of diffing one identity

    Attributes:
        action:  DiffAction
            What has to happen
        identity:  Identity
            The object this result is about
        manifest:  Optional[dict]
            The desired manifest as it is sent to the server, carrying its
            own last-applied annotation. None for a DELETE.
        operations:  Tuple[dict, ...]
            RFC 6902 operations for a PATCH
        base_changed:  bool
            True when force-overwrite replaced fields that were modified
            outside of kubecfg since the last apply
        resource_version:  Optional[str]
            The live resourceVersion the result was computed against
        reason:  str
            Human readable reason for a CONFLICT
        conflicts:  Tuple[str, ...]
            JSON pointers of the conflicting fields
    """

    action: DiffAction
    identity: Identity
    manifest: Optional[dict] = None
    operations: Tuple[dict, ...] = ()
    base_changed: bool = False
    resource_version: Optional[str] = None
    reason: str = ""
    conflicts: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def create(cls, obj_id: Identity, manifest: dict) -> "DiffResult":
        return cls(DiffAction.CREATE, obj_id, manifest=manifest)

    @classmethod
    def noop(
        cls,
        obj_id: Identity,
        resource_version: Optional[str] = None,
        manifest: Optional[dict] = None,
    ) -> "DiffResult":
        return cls(
            DiffAction.NOOP, obj_id, manifest=manifest, resource_version=resource_version
        )

    @classmethod
    def patch(
        cls,
        obj_id: Identity,
        manifest: dict,
        operations: List[dict],
        base_changed: bool = False,
        resource_version: Optional[str] = None,
    ) -> "DiffResult":
        return cls(
            DiffAction.PATCH,
            obj_id,
            manifest=manifest,
            operations=tuple(operations),
            base_changed=base_changed,
            resource_version=resource_version,
        )

    @classmethod
    def delete(cls, obj_id: Identity, resource_version: Optional[str] = None) -> "DiffResult":
        return cls(DiffAction.DELETE, obj_id, resource_version=resource_version)

    @classmethod
    def conflict(
        cls,
        obj_id: Identity,
        reason: str,
        conflicts: Tuple[str, ...] = (),
        resource_version: Optional[str] = None,
        manifest: Optional[dict] = None,
    ) -> "DiffResult":
        return cls(
            DiffAction.CONFLICT,
            obj_id,
            manifest=manifest,
            reason=reason,
            conflicts=tuple(conflicts),
            resource_version=resource_version,
        )

    def __str__(self):
        return f"{self.action.value.title()}({self.identity})"


## Public ######################################################################


def diff(
    obj_id: Identity,
    manifest: Optional[dict],
    live: Optional[dict],
    force: bool = False,
) -> DiffResult:
    """Compute the diff result for one identity

    Args:
        obj_id:  Identity
            The identity both views belong to
        manifest:  Optional[dict]
            The desired manifest, or None if the object should not exist
        live:  Optional[dict]
            The live object, or None if it does not exist
        force:  bool
            If true, fields modified outside of kubecfg since the last apply
            are overwritten instead of producing a CONFLICT

    Returns:
        result:  DiffResult
            The tagged result
    """
    assert (
        manifest is not None or live is not None
    ), "Programming Error: diff called without manifest or live object"

    resource_version = (live or {}).get("metadata", {}).get("resourceVersion")
    if manifest is None:
        log.debug2("[%s] is not desired. Delete.", obj_id)
        return DiffResult.delete(obj_id, resource_version)

    applied = applied_manifest(manifest)
    if live is None:
        log.debug2("[%s] does not exist. Create.", obj_id)
        return DiffResult.create(obj_id, applied)

    baseline = baseline_of(live)
    if baseline and baseline == _without_annotation(applied):
        # The content recorded is already what we would record. Keep the live
        # annotation text so that formatting differences never cause a patch.
        applied = _with_annotation(applied, _annotation_of(live))

    walker = _ThreeWayWalker(force=force)
    walker.merge_dict(applied, baseline, live, [])

    if walker.conflicts and not force:
        reason = "Modified outside of kubecfg since the last apply: " + ", ".join(
            walker.conflicts
        )
        log.debug("[%s] conflict: %s", obj_id, reason)
        return DiffResult.conflict(
            obj_id, reason, walker.conflicts, resource_version, applied
        )

    if not walker.operations:
        log.debug2("[%s] is up to date", obj_id)
        return DiffResult.noop(obj_id, resource_version, applied)

    log.debug2("[%s] needs %d patch operations", obj_id, len(walker.operations))
    log.debug4("[%s] operations: %s", obj_id, walker.operations)
    return DiffResult.patch(
        obj_id,
        applied,
        walker.operations,
        base_changed=bool(walker.conflicts),
        resource_version=resource_version,
    )


def diff_object(
    manifest: Optional[dict],
    live: Optional[dict],
    force: bool = False,
) -> DiffResult:
    """Convenience wrapper deriving the identity from whichever view exists"""
    return diff(identity(manifest if manifest is not None else live), manifest, live, force)


def applied_manifest(manifest: dict) -> dict:
    """Build the manifest that is actually sent to the server: server-owned
    fields removed and the last-applied annotation set to the manifest itself

    Args:
        manifest:  dict
            The desired manifest

    Returns:
        applied:  dict
            A new manifest carrying its own baseline annotation
    """
    clean = _without_annotation(
        strip_fields(manifest, SERVER_OWNED_METADATA, SERVER_OWNED_FIELDS)
    )
    return _with_annotation(clean, _encode_baseline(clean))


def baseline_of(live: dict) -> dict:
    """Decode the baseline recorded on a live object. A missing or unreadable
    annotation is an empty baseline.
    """
    annotation = _annotation_of(live)
    if not annotation:
        return {}
    try:
        baseline = json.loads(annotation)
    except ValueError:
        log.warning("Ignoring unreadable %s annotation", LAST_APPLIED_CONFIG_ANNOTATION)
        return {}
    if not isinstance(baseline, dict):
        log.warning("Ignoring non-object %s annotation", LAST_APPLIED_CONFIG_ANNOTATION)
        return {}
    return baseline


## Implementation ##############################################################


class _ThreeWayWalker:
    """Walks desired, baseline and live trees in lockstep and collects the JSON
    patch operations and conflicting paths
    """

    def __init__(self, force: bool):
        self.force = force
        self.operations: List[dict] = []
        self.conflicts: List[str] = []

    def merge_dict(self, desired: dict, baseline: Any, live: dict, path: list):
        """Merge a desired mapping into a live mapping"""
        if not isinstance(baseline, dict):
            baseline = {}

        for key, desired_val in desired.items():
            self.merge_value(
                desired_val,
                baseline.get(key, _MISSING),
                live.get(key, _MISSING),
                path + [key],
            )

        # Fields the last apply set which are no longer desired
        for key, baseline_val in baseline.items():
            if key in desired:
                continue
            live_val = live.get(key, _MISSING)
            if live_val is _MISSING:
                continue
            if isinstance(baseline_val, dict) and isinstance(live_val, dict):
                # Only remove what kubecfg owned, keep fields added by others
                self.merge_dict({}, baseline_val, live_val, path + [key])
                continue
            if not _matches(live_val, baseline_val):
                self._conflict(path + [key])
            self.operations.append({"op": "remove", "path": _pointer(path + [key])})

    def merge_value(self, desired: Any, baseline: Any, live: Any, path: list):
        """Merge a single desired value into the live value at path"""
        if isinstance(desired, dict) and isinstance(live, dict):
            self.merge_dict(desired, baseline, live, path)
            return

        if (
            isinstance(desired, list)
            and isinstance(live, list)
            and len(desired) == len(live)
            and (
                not isinstance(baseline, list) or len(baseline) == len(desired)
            )
        ):
            for i, (desired_item, live_item) in enumerate(zip(desired, live)):
                baseline_item = (
                    baseline[i] if isinstance(baseline, list) else _MISSING
                )
                self.merge_value(desired_item, baseline_item, live_item, path + [i])
            return

        if _matches(live, desired):
            return

        # The baseline recorded this field and someone changed it since
        if baseline is not _MISSING and not _matches(live, baseline):
            self._conflict(path)

        if desired is None:
            self.operations.append({"op": "remove", "path": _pointer(path)})
        else:
            self.operations.append(
                {
                    "op": "add" if live is _MISSING else "replace",
                    "path": _pointer(path),
                    "value": copy.deepcopy(desired),
                }
            )

    def _conflict(self, path: list):
        pointer = _pointer(path)
        if self.force:
            log.debug2("Overwriting externally modified field %s", pointer)
        self.conflicts.append(pointer)


def _matches(live: Any, value: Any) -> bool:
    """Whether the live value satisfies the given value. Keys the server (or
    anyone else) added inside mappings don't matter.
    """
    if value is None:
        return live is _MISSING or live is None
    if live is _MISSING:
        return False
    if isinstance(value, dict):
        return isinstance(live, dict) and all(
            _matches(live.get(key, _MISSING), val) for key, val in value.items()
        )
    if isinstance(value, list):
        return (
            isinstance(live, list)
            and len(live) == len(value)
            and all(_matches(l_item, v_item) for l_item, v_item in zip(live, value))
        )
    # True == 1 in python, but not on the wire
    return live == value and isinstance(live, bool) == isinstance(value, bool)


def _pointer(path: list) -> str:
    return JsonPointer.from_parts(path).path


def _encode_baseline(manifest: dict) -> str:
    return json.dumps(manifest, sort_keys=True, separators=(",", ":"))


def _annotation_of(obj: dict) -> Optional[str]:
    annotations = (obj.get("metadata") or {}).get("annotations") or {}
    return annotations.get(LAST_APPLIED_CONFIG_ANNOTATION)


def _without_annotation(manifest: dict) -> dict:
    manifest = copy.deepcopy(manifest)
    annotations = manifest.get("metadata", {}).get("annotations")
    if isinstance(annotations, dict) and LAST_APPLIED_CONFIG_ANNOTATION in annotations:
        del annotations[LAST_APPLIED_CONFIG_ANNOTATION]
        if not annotations:
            del manifest["metadata"]["annotations"]
    return manifest


def _with_annotation(manifest: dict, annotation: str) -> dict:
    manifest = copy.deepcopy(manifest)
    manifest.setdefault("metadata", {}).setdefault("annotations", {})[
        LAST_APPLIED_CONFIG_ANNOTATION
    ] = annotation
    return manifest
