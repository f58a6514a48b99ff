"""
This library holds the readiness predicates used by the Wait Monitor. Each
predicate looks at the live state of one object and decides whether the change
applied to it has been observably rolled out.
"""

# Standard
from datetime import datetime, timezone
from typing import Callable, List, Optional

# Third Party
import dateutil.parser

# First Party
import alog

## Globals #####################################################################

log = alog.use_channel("READY")

DEFAULT_TIMESTAMP_KEY = "lastTransitionTime"
READY_CONDITION_KEY = "Ready"
COMPLETE_CONDITION_KEY = "Complete"
ESTABLISHED_CONDITION_KEY = "Established"

# Signature of a readiness predicate
READINESS_FUNCTION = Callable[[dict], bool]  # pylint: disable=invalid-name


## Main Functions ##############################################################


def is_ready(object_state: Optional[dict]) -> bool:
    """Run the readiness predicate for the kind of the given object

    Args:
        object_state:  Optional[dict]
            The live object, None if it does not exist

    Returns:
        ready:  bool
            True if the object exists and its kind's predicate holds
    """
    if not object_state:
        log.debug2("Object not found. Not ready.")
        return False
    kind = object_state.get("kind")
    ready_fn = readiness_function(kind)
    ready = ready_fn(object_state)
    log.debug3(
        "[%s/%s] ready: %s",
        kind,
        object_state.get("metadata", {}).get("name"),
        ready,
    )
    return ready


def readiness_function(kind: Optional[str]) -> READINESS_FUNCTION:
    """Look up the predicate for a kind. Kinds without one are ready as soon
    as they exist.
    """
    return _readiness_functions.get(kind, exists)


## Individual Resources ########################################################


def exists(object_state: dict) -> bool:
    """Anything that exists is ready"""
    return object_state is not None


def deployment_ready(object_state: dict) -> bool:
    """All replicas of the current generation are updated, ready and available"""
    if not _generation_observed(object_state):
        return False
    desired = _desired_replicas(object_state)
    obj_status = object_state.get("status") or {}
    if obj_status.get("updatedReplicas", 0) < desired:
        log.debug2("Deployment rollout pending: updated replicas below %d", desired)
        return False
    # Old replicas are still terminating
    if obj_status.get("replicas", 0) > obj_status.get("updatedReplicas", 0):
        log.debug2("Deployment rollout pending: old replicas remain")
        return False
    return (
        obj_status.get("readyReplicas", 0) >= desired
        and obj_status.get("availableReplicas", 0) >= desired
    )


def statefulset_ready(object_state: dict) -> bool:
    """Verify that all desired replicas of a StatefulSet are ready"""
    if not _generation_observed(object_state):
        return False
    obj_status = object_state.get("status") or {}
    return obj_status.get("readyReplicas", 0) >= _desired_replicas(object_state)


def replicaset_ready(object_state: dict) -> bool:
    """Verify that all desired replicas of a ReplicaSet are ready"""
    if not _generation_observed(object_state):
        return False
    obj_status = object_state.get("status") or {}
    return obj_status.get("readyReplicas", 0) >= _desired_replicas(object_state)


def daemonset_ready(object_state: dict) -> bool:
    """Every scheduled daemon pod is updated and ready"""
    if not _generation_observed(object_state):
        return False
    obj_status = object_state.get("status") or {}
    desired = obj_status.get("desiredNumberScheduled")
    if desired is None:
        log.debug2("No desiredNumberScheduled in daemonset status. Not ready.")
        return False
    return (
        obj_status.get("updatedNumberScheduled", 0) >= desired
        and obj_status.get("numberReady", 0) >= desired
    )


def job_ready(object_state: dict) -> bool:
    """Verify that a job has completed successfully"""
    # https://kubernetes.io/docs/reference/kubernetes-api/workload-resources/job-v1/#JobStatus
    return _verify_condition(object_state, COMPLETE_CONDITION_KEY, True)


def pod_ready(object_state: dict) -> bool:
    """Verify that a pod is ready"""
    return _verify_condition(object_state, READY_CONDITION_KEY, True)


def namespace_ready(object_state: dict) -> bool:
    return (object_state.get("status") or {}).get("phase") == "Active"


def pvc_ready(object_state: dict) -> bool:
    return (object_state.get("status") or {}).get("phase") == "Bound"


def crd_ready(object_state: dict) -> bool:
    """The CRD is served by the API server"""
    return _verify_condition(object_state, ESTABLISHED_CONDITION_KEY, True)


_readiness_functions = {
    "Deployment": deployment_ready,
    "StatefulSet": statefulset_ready,
    "ReplicaSet": replicaset_ready,
    "DaemonSet": daemonset_ready,
    "Job": job_ready,
    "Pod": pod_ready,
    "Namespace": namespace_ready,
    "PersistentVolumeClaim": pvc_ready,
    "CustomResourceDefinition": crd_ready,
}

## Helpers #####################################################################


def _desired_replicas(object_state: dict) -> int:
    replicas = (object_state.get("spec") or {}).get("replicas")
    return 1 if replicas is None else replicas


def _generation_observed(object_state: dict) -> bool:
    """The controller has seen the latest spec"""
    generation = object_state.get("metadata", {}).get("generation")
    observed = (object_state.get("status") or {}).get("observedGeneration")
    if generation is not None and (observed is None or observed < generation):
        log.debug2("Generation %s not yet observed (%s)", generation, observed)
        return False
    return True


def _verify_condition(
    object_state: dict,
    type_val: str,
    expected_status: bool,
    timestamp_key: str = DEFAULT_TIMESTAMP_KEY,
) -> bool:
    """Check that the latest condition of the given type has the expected
    status
    """
    conditions = _get_conditions(object_state, type_val)
    log.debug3("Found %d [%s] conditions", len(conditions), type_val)
    if not conditions:
        return False

    latest_cond = _sort_conditions_by_date(conditions, timestamp_key)[0]
    log.debug3("Latest '%s' condition: %s", type_val, latest_cond)
    return _check_status(latest_cond, expected_status)


def _get_conditions(object_state: dict, type_val: str) -> List[dict]:
    """Get the list of conditions from an object state"""
    return [
        cond
        for cond in (object_state.get("status") or {}).get("conditions") or []
        if cond.get("type") == type_val
    ]


def _parse_condition_timestamp(condition: dict, timestamp_key: str) -> datetime:
    """Parse the timestamp of a condition. Missing timestamps sort oldest."""
    timestamp = condition.get(timestamp_key)
    if isinstance(timestamp, str):
        timestamp = dateutil.parser.parse(timestamp)
    if isinstance(timestamp, datetime):
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return timestamp
    log.debug3("Found condition with no valid timestamp. Using epoch")
    return datetime.fromtimestamp(0, tz=timezone.utc)


def _sort_conditions_by_date(conditions: List[dict], timestamp_key: str) -> List[dict]:
    """Helper to parse datestamps and sort a list of conditions. The sort will
    put newest conditions first.
    """
    return sorted(
        conditions,
        key=lambda x: _parse_condition_timestamp(x, timestamp_key),
        reverse=True,
    )


def _check_status(condition: dict, expected_status: bool) -> bool:
    """Parse the various ways a 'status' may be represented in a condition"""
    obj_status = condition.get("status")
    if obj_status is None:
        return False
    if isinstance(obj_status, str):
        return obj_status.lower() == str(expected_status).lower()
    return bool(obj_status) == expected_status
