"""
The Apply Planner orders the diff results of one reconciliation pass into
priority tiers
"""

# Standard
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Mapping, NamedTuple, Optional, Tuple

# First Party
import aconfig
import alog

# Local
from . import config
from .constants import CRD_KIND, NAMESPACE_KIND
from .dag import Graph, Node
from .diff import DiffAction, DiffResult
from .exceptions import ConflictError, UnresolvableOrdering, assert_config
from .identity import Identity

log = alog.use_channel("PLAN")

## Priority Table ##############################################################

# Tier of kinds which everything else may live in or be an instance of
TIER_FOUNDATION = 0

# Tier of kinds which workloads reference
TIER_POD_DEPENDENCY = 1

# Tier of everything else
TIER_NORMAL = 2

KIND_PRIORITIES = {
    NAMESPACE_KIND: TIER_FOUNDATION,
    CRD_KIND: TIER_FOUNDATION,
    "PodSecurityPolicy": TIER_POD_DEPENDENCY,
    "PriorityClass": TIER_POD_DEPENDENCY,
    "StorageClass": TIER_POD_DEPENDENCY,
    "PersistentVolume": TIER_POD_DEPENDENCY,
    "PersistentVolumeClaim": TIER_POD_DEPENDENCY,
    "LimitRange": TIER_POD_DEPENDENCY,
    "ResourceQuota": TIER_POD_DEPENDENCY,
    "ServiceAccount": TIER_POD_DEPENDENCY,
    "Secret": TIER_POD_DEPENDENCY,
    "ConfigMap": TIER_POD_DEPENDENCY,
    "ClusterRole": TIER_POD_DEPENDENCY,
    "ClusterRoleBinding": TIER_POD_DEPENDENCY,
    "Role": TIER_POD_DEPENDENCY,
    "RoleBinding": TIER_POD_DEPENDENCY,
    "Service": TIER_POD_DEPENDENCY,
}


def kind_priority(kind: str) -> int:
    """The tier of a kind according to the priority table alone"""
    return KIND_PRIORITIES.get(kind, TIER_NORMAL)


## Plan ########################################################################


class PlanStep(NamedTuple):
    """One diff result placed in a tier

    Attributes:
        diff:  DiffResult
            What to do
        tier:  int
            Steps of a lower tier complete before any step of a higher tier
            starts
        prerequisites:  Tuple[Identity, ...]
            Identities created earlier in the plan (the Namespace or defining
            CRD) that must have been created for this step to make sense
    """

    diff: DiffResult
    tier: int
    prerequisites: Tuple[Identity, ...] = ()

    @property
    def identity(self) -> Identity:
        return self.diff.identity

    @property
    def action(self) -> DiffAction:
        return self.diff.action


class ApplyPlan:
    """Ordered, immutable sequence of plan steps"""

    def __init__(self, steps: Iterable[PlanStep] = ()):
        self._steps = tuple(steps)

    @property
    def steps(self) -> Tuple[PlanStep, ...]:
        return self._steps

    @property
    def conflicts(self) -> List[DiffResult]:
        """The diff results which are in conflict"""
        return [
            step.diff for step in self._steps if step.action == DiffAction.CONFLICT
        ]

    def raise_for_conflicts(self):
        """Raise a ConflictError for the first conflicting step, if any"""
        conflicts = self.conflicts
        if conflicts:
            first = conflicts[0]
            raise ConflictError(
                f"{len(conflicts)} object(s) in conflict. First: {first.identity}: "
                + first.reason,
                identity=first.identity,
                path=first.conflicts[0] if first.conflicts else None,
            )

    def tiers(self) -> List[Tuple[int, List[PlanStep]]]:
        """The steps grouped by tier, in execution order"""
        grouped: List[Tuple[int, List[PlanStep]]] = []
        for step in self._steps:
            if not grouped or grouped[-1][0] != step.tier:
                grouped.append((step.tier, []))
            grouped[-1][1].append(step)
        return grouped

    def changes(self) -> List[PlanStep]:
        """The steps that would touch the cluster"""
        return [
            step
            for step in self._steps
            if step.action in (DiffAction.CREATE, DiffAction.PATCH, DiffAction.DELETE)
        ]

    def __iter__(self) -> Iterator[PlanStep]:
        return iter(self._steps)

    def __len__(self):
        return len(self._steps)

    def __getitem__(self, index):
        return self._steps[index]

    def __str__(self):
        return "[" + ", ".join(str(step.diff) for step in self._steps) + "]"


@dataclass(frozen=True)
class PlanOptions:
    """Options that change the ordering

    Attributes:
        dependencies:  Mapping[str, List[str]]
            Kind -> kinds it must be applied after
    """

    dependencies: Mapping[str, List[str]] = field(default_factory=dict)

    @classmethod
    def from_config(cls, ordering_config: Optional[aconfig.Config] = None) -> "PlanOptions":
        """Build from the `ordering` section of the library config"""
        if ordering_config is None:
            ordering_config = config.ordering
        dependencies = (ordering_config or {}).get("dependencies") or {}
        assert_config(
            isinstance(dependencies, dict),
            "ordering.dependencies must map kinds to lists of kinds",
        )
        parsed = {}
        for kind, deps in dependencies.items():
            if isinstance(deps, str):
                deps = [deps]
            assert_config(
                isinstance(deps, list) and all(isinstance(dep, str) for dep in deps),
                f"ordering.dependencies.{kind} must be a list of kinds",
            )
            parsed[kind] = list(deps)
        return cls(dependencies=parsed)


## Public ######################################################################


def plan(diffs: Iterable[DiffResult], options: Optional[PlanOptions] = None) -> ApplyPlan:
    """Order the diff results of one pass into an ApplyPlan

    Args:
        diffs:  Iterable[DiffResult]
            The results in normalizer order. Delete results are expected after
            the desired ones.
        options:  Optional[PlanOptions]
            Ordering options. Defaults to the library config.

    Returns:
        apply_plan:  ApplyPlan
            The ordered plan

    Raises:
        UnresolvableOrdering: the configured kind dependencies contain a cycle
    """
    diffs = list(diffs)
    options = options or PlanOptions.from_config()

    crd_definitions = _crd_definitions(diffs)
    ranks = kind_ranks(
        {diff_result.identity.kind for diff_result in diffs},
        options.dependencies,
    )
    apply_ranks: Dict[Identity, int] = {}

    # First pass: ranks from the table and configured dependencies
    for diff_result in diffs:
        if diff_result.action == DiffAction.DELETE:
            continue
        obj_id = diff_result.identity
        apply_ranks[obj_id] = ranks[obj_id.kind]

    # Second pass: custom resources follow the CRD that defines them and
    # namespaced objects follow their Namespace
    for diff_result in diffs:
        obj_id = diff_result.identity
        if obj_id not in apply_ranks:
            continue
        for prereq_id in (
            crd_definitions.get((obj_id.group, obj_id.kind)),
            _namespace_identity(obj_id),
        ):
            if prereq_id in apply_ranks:
                apply_ranks[obj_id] = max(
                    apply_ranks[obj_id], apply_ranks[prereq_id] + 1
                )

    created = {
        diff_result.identity: diff_result
        for diff_result in diffs
        if diff_result.action == DiffAction.CREATE
    }
    max_rank = max(apply_ranks.values(), default=TIER_NORMAL)
    max_delete_rank = max(
        [max_rank]
        + [
            ranks[diff_result.identity.kind]
            for diff_result in diffs
            if diff_result.action == DiffAction.DELETE
        ]
    )

    apply_steps = []
    delete_steps = []
    for position, diff_result in enumerate(diffs):
        obj_id = diff_result.identity
        if diff_result.action == DiffAction.DELETE:
            # Reverse priority after all apply tiers
            rank = ranks[obj_id.kind]
            tier = max_rank + 1 + (max_delete_rank - rank)
            delete_steps.append((tier, position, PlanStep(diff_result, tier)))
            continue

        prerequisites = []
        if obj_id.namespace:
            ns_id = _namespace_identity(obj_id)
            if ns_id in created:
                prerequisites.append(ns_id)
        crd_id = crd_definitions.get((obj_id.group, obj_id.kind))
        if crd_id is not None and crd_id in created:
            prerequisites.append(crd_id)

        tier = apply_ranks[obj_id]
        apply_steps.append(
            (tier, position, PlanStep(diff_result, tier, tuple(prerequisites)))
        )

    # Stable: ties keep normalizer order
    steps = [step for _, _, step in sorted(apply_steps, key=lambda s: s[:2])]
    steps += [step for _, _, step in sorted(delete_steps, key=lambda s: s[:2])]
    apply_plan = ApplyPlan(steps)
    log.debug("Planned %d steps in %d tiers", len(apply_plan), len(apply_plan.tiers()))
    log.debug2("Plan: %s", apply_plan)
    return apply_plan


def kind_ranks(kinds: Iterable[str], dependencies: Mapping[str, List[str]]) -> Dict[str, int]:
    """Compute the tier of every kind from the priority table raised by the
    configured dependencies: a kind is always ranked after the kinds it
    depends on

    Args:
        kinds:  Iterable[str]
            The kinds to rank
        dependencies:  Mapping[str, List[str]]
            Kind -> kinds it must follow

    Returns:
        ranks:  Dict[str, int]
            Kind -> tier for every requested kind

    Raises:
        UnresolvableOrdering: the dependencies contain a cycle
    """
    graph = Graph()
    all_kinds = set(kinds)
    for kind, deps in dependencies.items():
        all_kinds.add(kind)
        all_kinds.update(deps)
    for kind in sorted(all_kinds):
        graph.add_node(Node(kind))
    for kind, deps in dependencies.items():
        for dep in deps:
            try:
                graph.add_node_dependency(graph.get_node(kind), graph.get_node(dep))
            except ValueError as err:
                raise UnresolvableOrdering(
                    f"Cyclic kind ordering involving {kind} and {dep}"
                ) from err

    # Topology puts every kind after the kinds it depends on
    ranks = {}
    for node in graph.topology():
        kind = node.get_name()
        ranks[kind] = max(
            [kind_priority(kind)] + [ranks[dep.get_name()] + 1 for dep in node.get_children()]
        )
    log.debug3("Kind ranks: %s", ranks)
    return ranks


## Implementation ##############################################################


def _crd_definitions(diffs: List[DiffResult]) -> Dict[Tuple[str, str], Identity]:
    """Map (group, kind) -> identity of the CRD in the pass that defines it"""
    definitions = {}
    for diff_result in diffs:
        if diff_result.identity.kind != CRD_KIND or diff_result.manifest is None:
            continue
        spec = diff_result.manifest.get("spec") or {}
        group = spec.get("group")
        kind = (spec.get("names") or {}).get("kind")
        if group and kind:
            definitions[(group, kind)] = diff_result.identity
    return definitions


def _namespace_identity(obj_id: Identity) -> Optional[Identity]:
    """The identity of the Namespace an object lives in"""
    if not obj_id.namespace:
        return None
    return Identity("v1", NAMESPACE_KIND, None, obj_id.namespace)
