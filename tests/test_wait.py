"""
Tests for the wait monitor
"""

# Standard
import threading

# Local
from kubecfg.exceptions import TransientTransportError
from kubecfg.fetcher import LiveStateFetcher
from kubecfg.identity import identity
from kubecfg.report import Readiness
from kubecfg.test_helpers.helpers import FailOnce, MockTransport, make_namespace
from kubecfg.wait import WaitMonitor, deadline_in


class FakeClock:
    """Clock which moves forward by a fixed step on every reading"""

    def __init__(self, step=1.0):
        self.now = 0.0
        self.step = step

    def __call__(self):
        self.now += self.step
        return self.now


def active_namespace(name="squid"):
    return dict(make_namespace(name), status={"phase": "Active"})


def test_wait_ready_immediately():
    transport = MockTransport(resources=[active_namespace()])
    monitor = WaitMonitor(LiveStateFetcher(transport), poll_interval=0)
    result = monitor.wait_ready(identity(active_namespace()), deadline_in(5))
    assert result.readiness == Readiness.READY


def test_wait_becomes_ready():
    """The object turns ready between polls"""
    namespace = make_namespace("squid")
    transport = MockTransport(resources=[namespace])
    polls = []

    def flip(*_, **__):
        polls.append(1)
        if len(polls) == 3:
            transport.set_object(active_namespace())

    transport.get.side_effect = _call_before(flip, transport.get.side_effect)
    monitor = WaitMonitor(LiveStateFetcher(transport), poll_interval=0)
    result = monitor.wait_ready(identity(namespace), deadline_in(5))
    assert result.readiness == Readiness.READY
    assert len(polls) == 3


def test_wait_timeout_reports_reason():
    clock = FakeClock()
    namespace = make_namespace("squid")
    transport = MockTransport(resources=[namespace])
    monitor = WaitMonitor(LiveStateFetcher(transport), poll_interval=0, clock=clock)
    result = monitor.wait_ready(identity(namespace), deadline=3)
    assert result.readiness == Readiness.TIMED_OUT
    assert result.reason == "Not ready"


def test_wait_missing_object():
    clock = FakeClock()
    monitor = WaitMonitor(
        LiveStateFetcher(MockTransport()), poll_interval=0, clock=clock
    )
    result = monitor.wait_ready(identity(make_namespace("gone")), deadline=2)
    assert result.readiness == Readiness.TIMED_OUT
    assert result.reason == "Not found"


def test_wait_survives_transport_errors():
    transport = MockTransport(
        resources=[active_namespace()],
        get_fail=FailOnce(TransientTransportError("flaky")),
    )
    monitor = WaitMonitor(LiveStateFetcher(transport), poll_interval=0)
    result = monitor.wait_ready(identity(active_namespace()), deadline_in(5))
    assert result.readiness == Readiness.READY
    assert transport.get.call_count == 2


def test_wait_cancelled():
    cancel_event = threading.Event()
    cancel_event.set()
    monitor = WaitMonitor(LiveStateFetcher(MockTransport()), poll_interval=10)
    result = monitor.wait_ready(
        identity(make_namespace()), deadline_in(60), cancel_event
    )
    assert result.readiness == Readiness.CANCELLED


def test_wait_all_shared_deadline():
    ready = active_namespace("ready")
    pending = make_namespace("pending")
    transport = MockTransport(resources=[ready, pending])
    monitor = WaitMonitor(LiveStateFetcher(transport), poll_interval=0.01)
    results = monitor.wait_all(
        [identity(ready), identity(pending)], deadline_in(0.2)
    )
    assert list(results) == [identity(ready), identity(pending)]
    assert results[identity(ready)].readiness == Readiness.READY
    assert results[identity(pending)].readiness == Readiness.TIMED_OUT


def test_wait_all_unexpected_error():
    transport = MockTransport(get_fail=RuntimeError("boom"))
    monitor = WaitMonitor(LiveStateFetcher(transport), poll_interval=0)
    obj_id = identity(make_namespace())
    results = monitor.wait_all([obj_id], deadline_in(1))
    assert results[obj_id].readiness == Readiness.ERROR
    assert "boom" in results[obj_id].reason


def test_wait_all_empty():
    assert WaitMonitor(LiveStateFetcher(MockTransport())).wait_all([], 0) == {}


def _call_before(before, func):
    def wrapped(*args, **kwargs):
        before(*args, **kwargs)
        return func(*args, **kwargs)

    return wrapped
