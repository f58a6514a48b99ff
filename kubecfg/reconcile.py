"""
The Reconciler wires the engine together: normalize the desired document tree,
snapshot the live state, diff, plan, execute and optionally wait
"""

# Standard
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
import base64
import threading
import time
import uuid

# First Party
import alog

# Local
from . import config
from .constants import NAMESPACE_KIND
from .dag import NonThreadPoolExecutor
from .diff import DiffResult, diff
from .exceptions import (
    ClusterError,
    PermanentTransportError,
    TransientTransportError,
    assert_config,
)
from .executor import ApplyExecutor
from .fetcher import LiveStateFetcher
from .identity import Identity, identity
from .normalize import normalize
from .planner import ApplyPlan, PlanOptions, plan
from .report import ExecutionReport, Outcome
from .transport import TransportBase
from .wait import WaitMonitor, deadline_in

log = alog.use_channel("RECON")

# Namespace namespaced objects land in when neither the manifest nor the
# command line names one
DEFAULT_NAMESPACE = "default"


@dataclass(frozen=True)
class ReconcileOptions:
    """Options of one reconciliation pass

    Attributes:
        namespace:  Optional[str]
            Namespace for namespaced objects that don't declare one
        force:  bool
            Overwrite fields modified outside of kubecfg instead of reporting
            a conflict
        prune:  bool
            Delete live objects carrying the garbage-collect tag that are no
            longer desired. Requires gc_tag.
        gc_tag:  Optional[str]
            Tag value set on every applied object
        allow_create:  bool
            Create objects that don't exist yet
        allow_patch:  bool
            Patch objects that already exist
        wait:  bool
            Wait for applied objects to become ready
        wait_timeout:  Optional[float]
            Seconds to wait (config.wait_timeout_seconds)
    """

    namespace: Optional[str] = None
    force: bool = False
    prune: bool = False
    gc_tag: Optional[str] = None
    allow_create: bool = True
    allow_patch: bool = True
    wait: bool = False
    wait_timeout: Optional[float] = None


class Reconciler:
    """Runs reconciliation passes of desired document trees against one
    cluster
    """

    def __init__(
        self,
        transport: TransportBase,
        options: Optional[ReconcileOptions] = None,
        plan_options: Optional[PlanOptions] = None,
        reconciliation_id: Optional[str] = None,
        poll_time: float = 0.01,
    ):
        """
        Args:
            transport:  TransportBase
                The transport to the cluster
            options:  Optional[ReconcileOptions]
                Options of the passes run by this reconciler
            plan_options:  Optional[PlanOptions]
                Ordering options (default: from the library config)
            reconciliation_id:  Optional[str]
                Id used to correlate the logs of this reconciler
            poll_time:  float
                How often the executor checks for finished steps
        """
        self.transport = transport
        self.options = options or ReconcileOptions()
        self.plan_options = plan_options
        self.reconciliation_id = reconciliation_id or self.generate_id()
        self.fetcher = LiveStateFetcher(transport)
        self.poll_time = poll_time
        assert_config(
            not self.options.prune or bool(self.options.gc_tag),
            "Pruning requires a garbage-collect tag",
        )

    @classmethod
    def generate_id(cls) -> str:
        """Generates a unique human readable id for a reconciliation

        Returns:
            id: str
                A unique base32 encoded id
        """
        base32_str = base64.b32encode(uuid.uuid4().bytes).decode("utf-8")
        reconcile_id = base32_str[:22]
        log.debug("Generated reconcile id: %s", reconcile_id)
        return reconcile_id

    ## Public ##################################################################

    def desired_manifests(self, tree: Any) -> List[dict]:
        """Normalize a document tree into the desired manifests of this pass,
        tagged for garbage collection when a tag is set
        """
        gc_labels = None
        if self.options.gc_tag:
            gc_labels = {config.gc_tag_label: self.options.gc_tag}
        return normalize(
            tree, self.options.namespace or DEFAULT_NAMESPACE, extra_labels=gc_labels
        )

    def diff(self, tree: Any) -> List[DiffResult]:
        """Diff every desired manifest against its live object. With pruning,
        live objects carrying the tag which are no longer desired get DELETE
        results after the desired ones.

        Returns:
            results:  List[DiffResult]
                One result per identity, in normalizer order
        """
        return [result for result, _ in self.diff_with_live(tree)]

    def diff_with_live(self, tree: Any) -> List[Tuple[DiffResult, Optional[dict]]]:
        """Like diff, but each result is paired with the live object it was
        computed against
        """
        manifests = self.desired_manifests(tree)
        identities = [identity(manifest) for manifest in manifests]
        with alog.ContextTimer(log.debug, "Fetched %d objects: ", len(identities)):
            live_objects = self._snapshot(identities)
        pairs = [
            (
                diff(obj_id, manifest, live_objects[obj_id], force=self.options.force),
                live_objects[obj_id],
            )
            for obj_id, manifest in zip(identities, manifests)
        ]
        if self.options.prune:
            pairs.extend(self._prune_diffs(manifests, set(identities)))
        return pairs

    def plan(self, tree: Any) -> ApplyPlan:
        """Compute the ApplyPlan for a document tree without executing it"""
        with alog.ContextTimer(log.debug, "Planned in: "):
            return plan(self.diff(tree), self.plan_options)

    def apply(
        self,
        tree: Any,
        cancel_event: Optional[threading.Event] = None,
    ) -> ExecutionReport:
        """Run a full reconciliation pass: plan, execute and optionally wait

        Args:
            tree:  Any
                The desired document tree
            cancel_event:  Optional[threading.Event]
                Cancels the execution and the waits once set

        Returns:
            report:  ExecutionReport
                The outcome of every identity of the plan
        """
        log.info("Starting reconciliation [%s]", self.reconciliation_id)
        apply_plan = self.plan(tree)
        report = self._executor().execute(apply_plan, cancel_event)
        if self.options.wait:
            self.wait(report, cancel_event)
        log.info(
            "Reconciliation [%s] finished: %s",
            self.reconciliation_id,
            report.summary(),
        )
        return report

    def delete(
        self,
        tree: Any,
        cancel_event: Optional[threading.Event] = None,
    ) -> ExecutionReport:
        """Delete every object of the desired set that exists

        Returns:
            report:  ExecutionReport
                Deleted or NoOp (already absent) per identity
        """
        manifests = self.desired_manifests(tree)
        identities = [identity(manifest) for manifest in manifests]
        live_objects = self._snapshot(identities)
        results = []
        for obj_id in identities:
            live = live_objects[obj_id]
            if live is None:
                results.append(DiffResult.noop(obj_id))
            else:
                results.append(diff(obj_id, None, live))
        apply_plan = plan(results, self.plan_options)
        return self._executor().execute(apply_plan, cancel_event)

    def wait(
        self,
        report: ExecutionReport,
        cancel_event: Optional[threading.Event] = None,
    ):
        """Wait for every created, patched or unchanged object of the report
        and attach the readiness to its entry
        """
        timeout = (
            config.wait_timeout_seconds
            if self.options.wait_timeout is None
            else self.options.wait_timeout
        )
        waited = [
            entry.identity
            for entry in report
            if entry.outcome in (Outcome.CREATED, Outcome.PATCHED, Outcome.NOOP)
        ]
        monitor = WaitMonitor(self.fetcher)
        results = monitor.wait_all(waited, deadline_in(timeout), cancel_event)
        for obj_id, result in results.items():
            report.record_readiness(obj_id, result.readiness, result.reason)

    ## Implementation ##########################################################

    def _executor(self) -> ApplyExecutor:
        return ApplyExecutor(
            self.transport,
            fetcher=self.fetcher,
            force=self.options.force,
            allow_create=self.options.allow_create,
            allow_patch=self.options.allow_patch,
            poll_time=self.poll_time,
        )

    def _snapshot(self, identities: List[Identity]) -> Dict[Identity, Optional[dict]]:
        """Fetch the live state of every identity, concurrently"""
        threads = config.worker_threads
        pool_type = NonThreadPoolExecutor if threads == 0 else ThreadPoolExecutor
        with pool_type(max_workers=threads or None) as pool:
            return dict(zip(identities, pool.map(self._fetch, identities)))

    def _fetch(self, obj_id: Identity) -> Optional[dict]:
        """Fetch one object, retrying transient errors"""
        attempt = 0
        while True:
            try:
                return self.fetcher.fetch(obj_id)
            except TransientTransportError as err:
                if attempt >= config.apply_retries:
                    raise ClusterError(
                        f"Unable to read {obj_id} after {attempt + 1} attempts: {err}"
                    ) from err
                delay = min(
                    config.retry_backoff_base_seconds * (2**attempt),
                    config.retry_backoff_max_seconds,
                )
                log.debug2("Retrying read of [%s] in %.2fs: %s", obj_id, delay, err)
                time.sleep(delay)
                attempt += 1
            except PermanentTransportError as err:
                raise ClusterError(f"Unable to read {obj_id}: {err}") from err

    def _prune_diffs(
        self, manifests: List[dict], desired: set
    ) -> List[Tuple[DiffResult, dict]]:
        """DELETE results for tagged live objects that are no longer desired"""
        kinds = []
        for manifest in manifests:
            kind = (manifest["apiVersion"], manifest["kind"])
            if kind not in kinds:
                kinds.append(kind)
        for configured in config.prune_kinds:
            api_version, _, kind_name = configured.rpartition("/")
            assert_config(
                bool(api_version and kind_name),
                f"Invalid prune_kinds entry {configured!r}, expected <apiVersion>/<kind>",
            )
            if (api_version, kind_name) not in kinds:
                kinds.append((api_version, kind_name))
        selector = f"{config.gc_tag_label}={self.options.gc_tag}"
        try:
            candidates = self.fetcher.list_pruning_candidates(kinds, selector)
        except (TransientTransportError, PermanentTransportError) as err:
            raise ClusterError(f"Unable to list pruning candidates: {err}") from err

        results = []
        for live in candidates:
            obj_id = identity(live)
            if obj_id in desired:
                continue
            # Never garbage collect the namespaces of the desired objects
            if obj_id.kind == NAMESPACE_KIND and any(
                other.namespace == obj_id.name for other in desired
            ):
                continue
            log.debug("Pruning [%s]", obj_id)
            results.append((diff(obj_id, None, live), live))
        return results
