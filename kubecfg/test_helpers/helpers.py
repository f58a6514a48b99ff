"""
This module holds common helper functions for making testing easy
"""

# Standard
from contextlib import contextmanager
from typing import List, Optional
from unittest import mock
import copy
import inspect
import os

# First Party
import alog

# Local
from kubecfg.config import library_config as config_detail_dict
from kubecfg.transport import DryRunTransport

log = alog.use_channel("TEST")


def configure_logging():
    alog.configure(
        os.environ.get("LOG_LEVEL", "off"),
        os.environ.get("LOG_FILTERS", ""),
        formatter="json"
        if os.environ.get("LOG_JSON", "").lower() == "true"
        else "pretty",
        thread_id=os.environ.get("LOG_THREAD_ID", "").lower() == "true",
    )


configure_logging()

TEST_NAMESPACE = "test"
SOME_OTHER_NAMESPACE = "somewhere"


@contextmanager
def library_config(**config_overrides):
    """This context manager sets library config values temporarily and reverts
    them on completion
    """
    # Override the configs and hang onto the old values
    old_vals = {}
    for key, val in config_overrides.items():
        if key in config_detail_dict:
            old_vals[key] = config_detail_dict[key]
        config_detail_dict[key] = val

    # Yield to the context
    try:
        yield

    # Revert to the old values
    finally:
        for key in config_overrides:
            if key in old_vals:
                config_detail_dict[key] = old_vals[key]
            else:
                del config_detail_dict[key]


## Failure Injection ###########################################################


def get_failable_method(fail_flag, method, failure_return=False):
    log.debug4(
        "Setting up failable mock of [%s] with fail flag: %s", str(method), fail_flag
    )

    def failable_method(*args, **kwargs):
        log.debug4(
            "Running failable mock of [%s] with fail flag: %s", str(method), fail_flag
        )
        if isinstance(fail_flag, Exception) or (
            inspect.isclass(fail_flag) and issubclass(fail_flag, Exception)
        ):
            log.debug4("Raising in failable mock")
            raise fail_flag
        elif callable(fail_flag):
            log.debug4("Calling callable fail flag")
            res = fail_flag(*args, **kwargs)
            if res is not None:
                return res
        elif fail_flag == "assert":
            log.debug4("Asserting in failable mock")
            raise AssertionError(f"You told me to fail {method}!")
        elif fail_flag:
            log.debug4("Returning %s", failure_return)
            return failure_return
        log.debug4("Passing through (%s, **%s)", args, kwargs)
        res = method(*args, **kwargs)
        log.debug4("Passthrough res: %s", res)
        return res

    return failable_method


class FailOnce:
    """Helper callable that will fail once on the N'th call"""

    def __init__(self, fail_val, fail_number=1):
        self.call_count = 0
        self.fail_number = fail_number
        self.fail_val = fail_val

    def __call__(self, *_, **__):
        self.call_count += 1
        if self.call_count == self.fail_number:
            log.debug("Failing on call %d with %s", self.call_count, self.fail_val)
            if isinstance(self.fail_val, type) and issubclass(self.fail_val, Exception):
                raise self.fail_val("Raising!")
            if isinstance(self.fail_val, Exception):
                raise self.fail_val
            return self.fail_val
        log.debug("Not failing on call %d", self.call_count)
        return


class FailTimes(FailOnce):
    """Helper callable that fails on the first N calls"""

    def __init__(self, fail_val, times=1):
        super().__init__(fail_val)
        self.times = times

    def __call__(self, *_, **__):
        self.call_count += 1
        if self.call_count <= self.times:
            log.debug("Failing on call %d with %s", self.call_count, self.fail_val)
            raise self.fail_val
        return


class MockTransport(DryRunTransport):
    """The MockTransport wraps a standard DryRunTransport and adds
    configuration options to simulate failures in each of its operations.
    Every operation is a mock.Mock, so tests can inspect the calls.
    """

    def __init__(
        self,
        get_fail=False,
        create_fail=False,
        patch_fail=False,
        delete_fail=False,
        list_fail=False,
        resources: Optional[List[dict]] = None,
        auto_enable=True,
        **kwargs,
    ):
        """The fail flags take an exception (raised on every call), a
        callable (called with the operation's arguments, e.g. a FailOnce) or
        "assert"
        """
        super().__init__(resources, **kwargs)
        self.get_fail = get_fail
        self.create_fail = create_fail
        self.patch_fail = patch_fail
        self.delete_fail = delete_fail
        self.list_fail = list_fail

        # If auto-enabling, turn the mocks on now
        if auto_enable:
            self.enable_mocks()

    #######################
    ## Helpers for Tests ##
    #######################

    def enable_mocks(self):
        """Turn the mocks on"""
        self.get = mock.Mock(
            side_effect=get_failable_method(self.get_fail, super().get, None)
        )
        self.create = mock.Mock(
            side_effect=get_failable_method(self.create_fail, super().create)
        )
        self.patch = mock.Mock(
            side_effect=get_failable_method(self.patch_fail, super().patch)
        )
        self.delete = mock.Mock(
            side_effect=get_failable_method(self.delete_fail, super().delete)
        )
        self.list = mock.Mock(
            side_effect=get_failable_method(self.list_fail, super().list, [])
        )

    def get_obj(self, kind, name, namespace=None, api_version="v1"):
        """Look up an object without going through the mocks"""
        with self._lock:
            for obj_id, content in self._cluster_content.items():
                if (
                    obj_id.kind == kind
                    and obj_id.name == name
                    and obj_id.namespace == namespace
                    and obj_id.api_version == api_version
                ):
                    return copy.deepcopy(content)
        return None

    def has_obj(self, *args, **kwargs):
        return self.get_obj(*args, **kwargs) is not None


## Manifest Factories ##########################################################


def make_namespace(name=TEST_NAMESPACE, **metadata):
    metadata["name"] = name
    return {"apiVersion": "v1", "kind": "Namespace", "metadata": metadata}


def make_configmap(name="config", namespace=TEST_NAMESPACE, data=None, **metadata):
    metadata.update(name=name, namespace=namespace)
    return {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": metadata,
        "data": data if data is not None else {"key": "value"},
    }


def make_deployment(
    name="proxy",
    namespace=TEST_NAMESPACE,
    image="squid:v1",
    replicas=1,
    **metadata,
):
    metadata.update(name=name, namespace=namespace)
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": metadata,
        "spec": {
            "replicas": replicas,
            "selector": {"matchLabels": {"app": name}},
            "template": {
                "metadata": {"labels": {"app": name}},
                "spec": {"containers": [{"name": name, "image": image}]},
            },
        },
    }


def make_crd(group="foo.bar.com", kind="Widget", plural="widgets"):
    return {
        "apiVersion": "apiextensions.k8s.io/v1",
        "kind": "CustomResourceDefinition",
        "metadata": {"name": f"{plural}.{group}"},
        "spec": {
            "group": group,
            "names": {"kind": kind, "plural": plural},
            "scope": "Namespaced",
            "versions": [{"name": "v1", "served": True, "storage": True}],
        },
    }


def make_custom_resource(
    name="widget", namespace=TEST_NAMESPACE, group="foo.bar.com", kind="Widget"
):
    return {
        "apiVersion": f"{group}/v1",
        "kind": kind,
        "metadata": {"name": name, "namespace": namespace},
        "spec": {"size": 1},
    }
