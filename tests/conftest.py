"""
Shared test config
"""
# Standard
from unittest import mock

# Third Party
import pytest

# Local
from kubecfg.test_helpers.helpers import configure_logging, library_config

configure_logging()


@pytest.fixture(autouse=True)
def no_local_kubeconfig():
    """This fixture makes sure the tests run as if KUBECONFIG is not exported in
    the environment, even if it is
    """
    with mock.patch(
        "kubernetes.config.new_client_from_config", side_effect=RuntimeError
    ):
        yield


@pytest.fixture(autouse=True)
def fast_retries():
    """Retries and polls back off for no time at all unless a test says
    otherwise
    """
    with library_config(
        retry_backoff_base_seconds=0,
        retry_backoff_max_seconds=0,
        wait_poll_interval_seconds=0.01,
    ):
        yield
