"""
Tests for the custom json log formatter
"""

# Standard
import json
import logging

# Local
from kubecfg.identity import Identity
from kubecfg.log_format import KubecfgJsonFormatter


def make_record(**extra):
    record = logging.LogRecord(
        name="EXCTR",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="Applied %s",
        args=("thing",),
        exc_info=None,
    )
    for key, val in extra.items():
        setattr(record, key, val)
    return record


def test_formatter_adds_identity_fields():
    """Records carrying an identity get its fields in the json"""
    formatter = KubecfgJsonFormatter(reconciliation_id="abc123")
    obj_id = Identity("apps/v1", "Deployment", "squid", "proxy")
    entry = json.loads(formatter.format(make_record(identity=obj_id)))
    assert entry["reconciliationId"] == "abc123"
    assert entry["kind"] == "Deployment"
    assert entry["apiVersion"] == "apps/v1"
    assert entry["namespace"] == "squid"
    assert entry["resourceName"] == "proxy"
    assert entry["message"] == "Applied thing"


def test_formatter_without_identity():
    """Plain records are formatted without resource fields"""
    formatter = KubecfgJsonFormatter()
    entry = json.loads(formatter.format(make_record()))
    assert "kind" not in entry
    assert "reconciliationId" not in entry
    assert entry["message"] == "Applied thing"
