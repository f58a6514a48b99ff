"""
Tests for the DryRunTransport
"""

# Third Party
import pytest

# Local
from kubecfg.exceptions import PermanentTransportError, VersionConflictError
from kubecfg.identity import Identity, identity
from kubecfg.test_helpers.helpers import (
    TEST_NAMESPACE,
    make_configmap,
    make_deployment,
    make_namespace,
)
from kubecfg.transport import DryRunTransport
from kubecfg.transport.dry_run_transport import _match_selector

CONFIG_ID = Identity("v1", "ConfigMap", TEST_NAMESPACE, "config")

## Basic Operations ############################################################


def test_get_missing():
    assert DryRunTransport().get(CONFIG_ID) is None


def test_create_and_get():
    """Created objects get server fields and read back as copies"""
    transport = DryRunTransport()
    created = transport.create(make_configmap())
    metadata = created["metadata"]
    assert metadata["uid"]
    assert metadata["resourceVersion"] == "1"
    assert metadata["generation"] == 1
    assert metadata["creationTimestamp"]

    fetched = transport.get(CONFIG_ID)
    assert fetched == created
    fetched["data"]["key"] = "changed"
    assert transport.get(CONFIG_ID)["data"]["key"] == "value"


def test_create_existing_conflicts():
    transport = DryRunTransport(resources=[make_configmap()])
    with pytest.raises(VersionConflictError):
        transport.create(make_configmap())


def test_create_enforces_namespaces():
    """Namespaced objects need their Namespace when enforcing"""
    transport = DryRunTransport(enforce_namespaces=True)
    with pytest.raises(PermanentTransportError) as exc_info:
        transport.create(make_configmap())
    assert exc_info.value.status == 404

    transport.create(make_namespace())
    transport.create(make_configmap())
    assert transport.get(CONFIG_ID) is not None


def test_patch():
    """Patches bump the resourceVersion and, for spec changes, the generation"""
    transport = DryRunTransport(resources=[make_deployment()])
    deploy_id = identity(make_deployment())
    before = transport.get(deploy_id)

    patched = transport.patch(
        deploy_id,
        [{"op": "replace", "path": "/spec/replicas", "value": 3}],
        resource_version=before["metadata"]["resourceVersion"],
    )
    assert patched["spec"]["replicas"] == 3
    assert patched["metadata"]["generation"] == 2
    assert int(patched["metadata"]["resourceVersion"]) > int(
        before["metadata"]["resourceVersion"]
    )

    # Metadata only changes leave the generation alone
    patched = transport.patch(
        deploy_id, [{"op": "add", "path": "/metadata/labels", "value": {"a": "b"}}]
    )
    assert patched["metadata"]["generation"] == 2


def test_patch_stale_resource_version():
    transport = DryRunTransport(resources=[make_configmap()])
    with pytest.raises(VersionConflictError):
        transport.patch(
            CONFIG_ID,
            [{"op": "replace", "path": "/data/key", "value": "new"}],
            resource_version="not-it",
        )
    assert transport.get(CONFIG_ID)["data"]["key"] == "value"


def test_patch_missing_object():
    with pytest.raises(PermanentTransportError):
        DryRunTransport().patch(CONFIG_ID, [])


def test_patch_invalid_operations():
    """A patch which cannot apply is rejected like a validation error"""
    transport = DryRunTransport(resources=[make_configmap()])
    with pytest.raises(PermanentTransportError) as exc_info:
        transport.patch(CONFIG_ID, [{"op": "remove", "path": "/data/missing"}])
    assert exc_info.value.status == 422


def test_delete():
    transport = DryRunTransport(resources=[make_configmap()])
    assert transport.delete(CONFIG_ID)
    assert transport.get(CONFIG_ID) is None
    assert not transport.delete(CONFIG_ID)


def test_defaulter():
    """The defaulter runs on every stored object"""

    def defaulter(obj):
        obj.setdefault("data", {}).setdefault("defaulted", "yes")

    transport = DryRunTransport(defaulter=defaulter)
    transport.create(make_configmap())
    assert transport.get(CONFIG_ID)["data"] == {"key": "value", "defaulted": "yes"}


def test_list():
    """Objects are listed by kind, namespace and label selector"""
    transport = DryRunTransport(
        resources=[
            make_configmap("a", labels={"tier": "web"}),
            make_configmap("b", labels={"tier": "db"}),
            make_configmap("c", namespace="other"),
            make_deployment(),
        ]
    )
    names = lambda objs: sorted(obj["metadata"]["name"] for obj in objs)
    assert names(transport.list("v1", "ConfigMap")) == ["a", "b", "c"]
    assert names(transport.list("v1", "ConfigMap", namespace=TEST_NAMESPACE)) == [
        "a",
        "b",
    ]
    assert names(transport.list("v1", "ConfigMap", label_selector="tier=web")) == [
        "a"
    ]
    assert names(transport.list("apps/v1", "Deployment")) == ["proxy"]
    assert transport.list("v1", "Secret") == []


def test_objects():
    transport = DryRunTransport(resources=[make_configmap(), make_namespace()])
    assert sorted(obj["kind"] for obj in transport.objects()) == [
        "ConfigMap",
        "Namespace",
    ]


## Upstream Read Through #######################################################


@pytest.fixture
def upstream():
    return DryRunTransport(resources=[make_namespace(), make_configmap()])


def test_upstream_read_through(upstream):
    """Unknown objects are read from the upstream"""
    transport = DryRunTransport(upstream=upstream)
    assert transport.get(CONFIG_ID)["data"] == {"key": "value"}


def test_upstream_never_written(upstream):
    """Writes stay local to the dry run"""
    transport = DryRunTransport(upstream=upstream)
    live = transport.get(CONFIG_ID)
    transport.patch(
        CONFIG_ID,
        [{"op": "replace", "path": "/data/key", "value": "new"}],
        resource_version=live["metadata"]["resourceVersion"],
    )
    transport.create(make_configmap("fresh"))
    assert transport.get(CONFIG_ID)["data"]["key"] == "new"
    assert upstream.get(CONFIG_ID)["data"]["key"] == "value"
    assert upstream.get(Identity("v1", "ConfigMap", TEST_NAMESPACE, "fresh")) is None


def test_upstream_create_existing_conflicts(upstream):
    transport = DryRunTransport(upstream=upstream)
    with pytest.raises(VersionConflictError):
        transport.create(make_configmap())


def test_upstream_namespace_enforcement(upstream):
    """Namespaces known to the upstream satisfy the namespace check"""
    transport = DryRunTransport(upstream=upstream, enforce_namespaces=True)
    transport.create(make_configmap("fresh"))


def test_upstream_delete_sticks(upstream):
    """A locally deleted object is not read through again"""
    transport = DryRunTransport(upstream=upstream)
    assert transport.delete(CONFIG_ID)
    assert transport.get(CONFIG_ID) is None
    assert transport.list("v1", "ConfigMap") == []
    assert upstream.get(CONFIG_ID) is not None

    # Re-creating it locally works
    transport.create(make_configmap())
    assert transport.get(CONFIG_ID) is not None


def test_upstream_list(upstream):
    """Listing merges the upstream objects with the local ones"""
    transport = DryRunTransport(upstream=upstream)
    transport.create(make_configmap("fresh"))
    assert sorted(
        obj["metadata"]["name"] for obj in transport.list("v1", "ConfigMap")
    ) == ["config", "fresh"]


## Selectors ###################################################################


@pytest.mark.parametrize(
    ["selector", "matches"],
    [
        (None, True),
        ("", True),
        ("app=squid", True),
        ("app==squid", True),
        ("app=other", False),
        ("app!=other", True),
        ("app!=squid", False),
        ("tier", True),
        ("missing", False),
        ("!missing", True),
        ("!tier", False),
        ("app=squid, tier", True),
        ("app=squid,tier=db", False),
    ],
)
def test_match_selector(selector, matches):
    labels = {"app": "squid", "tier": "web"}
    assert _match_selector(labels, selector) is matches
