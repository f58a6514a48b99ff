"""
Package exports
"""

# Local
from . import config
from .diff import DiffAction, DiffResult, diff
from .exceptions import (
    ClusterError,
    ConfigError,
    InputError,
    KubecfgError,
    KubecfgFatalError,
    assert_config,
    assert_input,
)
from .identity import Identity, identity
from .normalize import normalize
from .planner import ApplyPlan, PlanOptions, plan
from .reconcile import ReconcileOptions, Reconciler
from .report import ExecutionReport, Outcome, Readiness
from .transport import ClusterConfig, DryRunTransport, OpenshiftTransport
