"""
Tests for the identity of objects
"""

# Third Party
import pytest

# Local
from kubecfg.exceptions import InputError, MissingIdentityField
from kubecfg.identity import Identity, identity, is_cluster_scoped
from kubecfg.test_helpers.helpers import make_deployment, make_namespace


def test_identity_of_namespaced_object():
    """The four parts are read from the manifest"""
    assert identity(make_deployment(name="proxy", namespace="squid")) == Identity(
        "apps/v1", "Deployment", "squid", "proxy"
    )


def test_identity_of_cluster_scoped_object():
    """No namespace means None, never an empty string"""
    assert identity(make_namespace("squid")) == Identity(
        "v1", "Namespace", None, "squid"
    )
    obj = make_namespace("squid")
    obj["metadata"]["namespace"] = ""
    assert identity(obj).namespace is None


def test_identity_of_live_object_ignores_server_fields():
    """Live objects carry server fields which are not part of the identity"""
    live = make_deployment()
    live["metadata"].update(uid="1234", resourceVersion="7")
    live["status"] = {"replicas": 1}
    assert identity(live) == identity(make_deployment())


@pytest.mark.parametrize(
    ["obj", "field"],
    [
        ({"apiVersion": "v1", "metadata": {"name": "x"}}, "kind"),
        ({"apiVersion": "v1", "kind": "ConfigMap", "metadata": {}}, "metadata.name"),
        ({"apiVersion": "v1", "kind": "ConfigMap"}, "metadata.name"),
        ({"kind": "ConfigMap", "metadata": {"name": "x"}}, "apiVersion"),
        ("not a resource", "kind"),
    ],
)
def test_identity_missing_field(obj, field):
    """Missing identity fields raise an input error naming the field"""
    with pytest.raises(MissingIdentityField) as exc_info:
        identity(obj)
    assert exc_info.value.field == field
    assert isinstance(exc_info.value, InputError)
    assert exc_info.value.is_fatal_error


def test_identity_accessors():
    """The group is split out of the apiVersion"""
    obj_id = Identity("apps/v1", "Deployment", "squid", "proxy")
    assert obj_id.group == "apps"
    assert Identity("v1", "ConfigMap", "x", "y").group == ""
    assert str(obj_id) == "apps/v1/Deployment/squid/proxy"
    assert str(Identity("v1", "Namespace", None, "squid")) == "v1/Namespace//squid"
    assert obj_id.with_namespace("other").namespace == "other"


def test_identity_is_hashable():
    """Identities are usable as dict keys"""
    first = Identity("v1", "ConfigMap", "a", "x")
    second = Identity("v1", "ConfigMap", "a", "x")
    assert {first: 1}[second] == 1


def test_is_cluster_scoped():
    assert is_cluster_scoped("Namespace")
    assert is_cluster_scoped("CustomResourceDefinition")
    assert not is_cluster_scoped("Deployment")
