"""
Tests for the apply planner
"""

# Third Party
import pytest

# First Party
import aconfig

# Local
from kubecfg.diff import DiffAction, DiffResult
from kubecfg.exceptions import ConfigError, ConflictError, UnresolvableOrdering
from kubecfg.identity import identity
from kubecfg.planner import (
    TIER_FOUNDATION,
    TIER_NORMAL,
    TIER_POD_DEPENDENCY,
    PlanOptions,
    kind_priority,
    kind_ranks,
    plan,
)
from kubecfg.test_helpers.helpers import (
    make_configmap,
    make_crd,
    make_custom_resource,
    make_deployment,
    make_namespace,
)

## Helpers #####################################################################

NO_OPTIONS = PlanOptions()


def create(manifest):
    return DiffResult.create(identity(manifest), manifest)


def noop(manifest):
    return DiffResult.noop(identity(manifest), "1", manifest)


def delete(manifest):
    return DiffResult.delete(identity(manifest), "1")


def kinds(apply_plan):
    return [step.identity.kind for step in apply_plan]


## Tests #######################################################################


def test_kind_priority_table():
    assert kind_priority("Namespace") == TIER_FOUNDATION
    assert kind_priority("CustomResourceDefinition") == TIER_FOUNDATION
    assert kind_priority("ConfigMap") == TIER_POD_DEPENDENCY
    assert kind_priority("ServiceAccount") == TIER_POD_DEPENDENCY
    assert kind_priority("Deployment") == TIER_NORMAL
    assert kind_priority("Widget") == TIER_NORMAL


def test_plan_squid_scenario():
    """The namespace is created before the deployment that lives in it"""
    deployment = make_deployment("proxy", namespace="squid")
    namespace = make_namespace("squid")
    apply_plan = plan([create(deployment), create(namespace)], NO_OPTIONS)
    assert str(apply_plan) == (
        "[Create(v1/Namespace//squid), Create(apps/v1/Deployment/squid/proxy)]"
    )
    assert apply_plan[1].prerequisites == (identity(namespace),)
    assert apply_plan[0].tier < apply_plan[1].tier


def test_plan_priority_order_with_stable_ties():
    """Kinds are ordered by tier, ties keep the normalizer order"""
    diffs = [
        create(make_deployment("b")),
        create(make_configmap("z")),
        create(make_deployment("a")),
        create(make_configmap("y")),
        create(make_namespace("test")),
    ]
    apply_plan = plan(diffs, NO_OPTIONS)
    assert [step.identity.name for step in apply_plan] == ["test", "z", "y", "b", "a"]
    tiers = apply_plan.tiers()
    assert [len(steps) for _, steps in tiers] == [1, 2, 2]


def test_plan_no_prerequisite_for_existing_namespace():
    """A namespace which already exists is not a prerequisite"""
    apply_plan = plan(
        [noop(make_namespace("test")), create(make_configmap())], NO_OPTIONS
    )
    assert apply_plan[1].prerequisites == ()


def test_plan_custom_resource_follows_crd():
    """Instances come after the CRD that defines their kind"""
    crd = make_crd()
    widget = make_custom_resource()
    apply_plan = plan([create(widget), create(crd)], NO_OPTIONS)
    assert kinds(apply_plan) == ["CustomResourceDefinition", "Widget"]
    assert identity(crd) in apply_plan[1].prerequisites

    # Another group's Widget is not an instance of this CRD
    other = make_custom_resource(group="other.com")
    apply_plan = plan([create(other), create(crd)], NO_OPTIONS)
    assert apply_plan[1].prerequisites == ()


def test_plan_deletes_last_in_reverse_priority():
    """Deletes follow every apply, workloads before what they depend on"""
    diffs = [
        create(make_configmap("new")),
        delete(make_namespace("old")),
        delete(make_configmap("old")),
        delete(make_deployment("old")),
    ]
    apply_plan = plan(diffs, NO_OPTIONS)
    assert [step.action for step in apply_plan] == [
        DiffAction.CREATE,
        DiffAction.DELETE,
        DiffAction.DELETE,
        DiffAction.DELETE,
    ]
    assert kinds(apply_plan)[1:] == ["Deployment", "ConfigMap", "Namespace"]
    tiers = [step.tier for step in apply_plan]
    assert tiers == sorted(tiers)
    assert len(set(tiers[1:])) == 3


def test_plan_configured_dependencies():
    """A configured dependency pushes a kind after the kinds it needs"""
    options = PlanOptions(dependencies={"ConfigMap": ["Deployment"]})
    apply_plan = plan(
        [create(make_configmap()), create(make_deployment())], options
    )
    assert kinds(apply_plan) == ["Deployment", "ConfigMap"]


def test_plan_cyclic_dependencies():
    options = PlanOptions(
        dependencies={"ConfigMap": ["Deployment"], "Deployment": ["ConfigMap"]}
    )
    with pytest.raises(UnresolvableOrdering):
        plan([create(make_configmap())], options)


def test_kind_ranks_chain():
    ranks = kind_ranks(["A", "B", "C"], {"C": ["B"], "B": ["A"]})
    assert ranks["A"] < ranks["B"] < ranks["C"]


def test_plan_options_from_config():
    options = PlanOptions.from_config(
        aconfig.Config(
            {"dependencies": {"Deployment": "Secret", "Job": ["Deployment"]}},
            override_env_vars=False,
        )
    )
    assert options.dependencies == {"Deployment": ["Secret"], "Job": ["Deployment"]}
    assert PlanOptions.from_config().dependencies == {}


def test_plan_options_invalid_config():
    with pytest.raises(ConfigError):
        PlanOptions.from_config(
            aconfig.Config({"dependencies": {"Job": [1]}}, override_env_vars=False)
        )


def test_plan_surfaces_conflicts():
    """Conflicts stay in the plan and the caller decides"""
    cfg = make_configmap()
    conflict = DiffResult.conflict(identity(cfg), "changed", ["/data/key"])
    apply_plan = plan([conflict, create(make_deployment())], NO_OPTIONS)
    assert len(apply_plan) == 2
    assert apply_plan.conflicts == [conflict]
    assert [step.identity.kind for step in apply_plan.changes()] == ["Deployment"]
    with pytest.raises(ConflictError) as exc_info:
        apply_plan.raise_for_conflicts()
    assert exc_info.value.identity == identity(cfg)
    assert exc_info.value.path == "/data/key"


def test_plan_empty():
    apply_plan = plan([], NO_OPTIONS)
    assert len(apply_plan) == 0
    assert apply_plan.tiers() == []
    apply_plan.raise_for_conflicts()
