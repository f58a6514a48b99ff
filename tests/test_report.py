"""
Tests for the execution report
"""

# Standard
from concurrent.futures import ThreadPoolExecutor

# Local
from kubecfg.identity import Identity
from kubecfg.report import ExecutionReport, Outcome, Readiness

NS = Identity("v1", "Namespace", None, "squid")
DEPLOY = Identity("apps/v1", "Deployment", "squid", "proxy")
CFG = Identity("v1", "ConfigMap", "squid", "cfg")


def test_report_plan_order():
    """Entries are listed in plan order whatever the recording order"""
    report = ExecutionReport([NS, DEPLOY])
    report.record(DEPLOY, Outcome.PATCHED, attempts=1)
    report.record(NS, Outcome.NOOP)
    report.record(CFG, Outcome.CREATED)
    assert [entry.identity for entry in report] == [NS, DEPLOY, CFG]
    assert len(report) == 3
    assert str(report).startswith("NoOp(v1/Namespace//squid)")


def test_report_failed():
    report = ExecutionReport([NS, DEPLOY])
    report.record(NS, Outcome.CREATED)
    report.record(DEPLOY, Outcome.SKIPPED_DEPENDENCY, "ns")
    assert not report.failed()
    report.record(DEPLOY, Outcome.CONFLICT, "changed")
    assert report.failed()
    report.record(DEPLOY, Outcome.FAILED, "nope")
    assert report.failed()
    assert report.outcome(DEPLOY) == Outcome.FAILED
    assert report.by_outcome(Outcome.CREATED)[0].identity == NS


def test_report_summary():
    report = ExecutionReport()
    report.record(NS, Outcome.CREATED)
    report.record(DEPLOY, Outcome.CREATED)
    report.record(CFG, Outcome.FAILED, "boom")
    assert report.summary() == {"Created": 2, "Failed": 1}


def test_report_readiness():
    report = ExecutionReport([NS, DEPLOY])
    report.record(NS, Outcome.CREATED)
    report.record(DEPLOY, Outcome.PATCHED)
    assert report.all_ready()
    report.record_readiness(NS, Readiness.READY)
    report.record_readiness(DEPLOY, Readiness.TIMED_OUT, "Not ready")
    assert not report.all_ready()
    assert report.get(DEPLOY).readiness_reason == "Not ready"

    # Re-recording the outcome keeps the readiness
    report.record(DEPLOY, Outcome.PATCHED, attempts=2)
    assert report.get(DEPLOY).readiness == Readiness.TIMED_OUT


def test_report_to_list():
    report = ExecutionReport([NS, DEPLOY])
    report.record(NS, Outcome.CREATED, attempts=1)
    report.record(DEPLOY, Outcome.PATCHED, attempts=2, base_changed=True)
    report.record_readiness(DEPLOY, Readiness.TIMED_OUT, "Not ready")
    assert report.to_list() == [
        {
            "apiVersion": "v1",
            "kind": "Namespace",
            "namespace": None,
            "name": "squid",
            "outcome": "Created",
            "attempts": 1,
        },
        {
            "apiVersion": "apps/v1",
            "kind": "Deployment",
            "namespace": "squid",
            "name": "proxy",
            "outcome": "Patched",
            "attempts": 2,
            "baseChanged": True,
            "readiness": "TimedOut",
            "readinessReason": "Not ready",
        },
    ]


def test_report_concurrent_recording():
    identities = [Identity("v1", "ConfigMap", "ns", f"cfg-{i}") for i in range(100)]
    report = ExecutionReport(identities)
    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda obj_id: report.record(obj_id, Outcome.CREATED), identities))
    assert [entry.identity for entry in report] == identities


def test_outcome_succeeded():
    assert Outcome.NOOP.succeeded
    assert Outcome.DELETED.succeeded
    assert not Outcome.SKIPPED_DEPENDENCY.succeeded
    assert not Outcome.CANCELLED.succeeded
