"""
The Apply Executor carries out an ApplyPlan against the cluster, tier by tier
"""

# Standard
from functools import partial
from typing import Optional
import threading

# First Party
import alog

# Local
from . import config
from .dag import Graph, Node, Runner
from .diff import DiffAction, DiffResult, diff
from .exceptions import (
    DependencySkipped,
    KubecfgError,
    PermanentTransportError,
    TransientTransportError,
    VersionConflictError,
)
from .fetcher import LiveStateFetcher
from .planner import ApplyPlan, PlanStep
from .report import ExecutionReport, Outcome
from .transport import TransportBase

log = alog.use_channel("EXCTR")


class ApplyExecutor:
    """The ApplyExecutor runs each step of a plan on a bounded worker pool.
    Tiers are separated by gate nodes so that a tier only starts once every
    step of the previous tier has finished.
    """

    def __init__(
        self,
        transport: TransportBase,
        fetcher: Optional[LiveStateFetcher] = None,
        retries: Optional[int] = None,
        backoff_base: Optional[float] = None,
        backoff_max: Optional[float] = None,
        worker_threads: Optional[int] = None,
        force: bool = False,
        allow_create: bool = True,
        allow_patch: bool = True,
        poll_time: float = 0.01,
    ):
        """
        Args:
            transport:  TransportBase
                The transport to write through
            fetcher:  Optional[LiveStateFetcher]
                Fetcher used to re-read objects after a version conflict.
                Defaults to one over the same transport.
            retries:  Optional[int]
                Number of retries of a transient failure (config.apply_retries)
            backoff_base:  Optional[float]
                First retry delay in seconds
                (config.retry_backoff_base_seconds)
            backoff_max:  Optional[float]
                Cap of the retry delay (config.retry_backoff_max_seconds)
            worker_threads:  Optional[int]
                Size of the worker pool, 0 to run serially
                (config.worker_threads)
            force:  bool
                Re-diffs after a version conflict overwrite conflicting fields
            allow_create:  bool
                If false, CREATE steps are not carried out and fail
            allow_patch:  bool
                If false, PATCH steps leave the existing object alone
            poll_time:  float
                How often the runner checks for finished steps
        """
        self.transport = transport
        self.fetcher = fetcher or LiveStateFetcher(transport)
        self.retries = config.apply_retries if retries is None else retries
        self.backoff_base = (
            config.retry_backoff_base_seconds if backoff_base is None else backoff_base
        )
        self.backoff_max = (
            config.retry_backoff_max_seconds if backoff_max is None else backoff_max
        )
        self.worker_threads = (
            config.worker_threads if worker_threads is None else worker_threads
        )
        self.force = force
        self.allow_create = allow_create
        self.allow_patch = allow_patch
        self.poll_time = poll_time

        # Set when a step hit a fatal error. Steps not yet started are
        # cancelled and the error is raised once in-flight steps are done.
        self._halt = threading.Event()
        self._fatal_error = None

    ## Public ##################################################################

    def execute(
        self,
        apply_plan: ApplyPlan,
        cancel_event: Optional[threading.Event] = None,
    ) -> ExecutionReport:
        """Execute every step of the plan

        Args:
            apply_plan:  ApplyPlan
                The ordered plan
            cancel_event:  Optional[threading.Event]
                Once set, no further steps are started. Steps in flight finish
                and the rest are reported CANCELLED.

        Returns:
            report:  ExecutionReport
                One entry per identity of the plan

        Raises:
            KubecfgError: a fatal error (e.g. the cluster client cannot be
                constructed) stopped the run
        """
        self._halt.clear()
        self._fatal_error = None
        cancel_event = cancel_event or threading.Event()
        report = ExecutionReport(step.identity for step in apply_plan)

        graph = Graph()
        previous_gate = None
        for tier, steps in apply_plan.tiers():
            tier_nodes = []
            for step in steps:
                node = graph.add_node(
                    Node(
                        str(step.identity),
                        partial(self._run_step, step, report, cancel_event),
                    )
                )
                if previous_gate is not None:
                    graph.add_node_dependency(node, previous_gate)
                tier_nodes.append(node)
            gate = graph.add_node(Node(f"__tier-{tier}__"))
            for node in tier_nodes:
                graph.add_node_dependency(gate, node)
            previous_gate = gate

        with alog.ContextTimer(log.debug, "Executed %d steps in: ", len(apply_plan)):
            Runner(
                name="apply",
                threads=self.worker_threads,
                graph=graph,
                poll_time=self.poll_time,
                cancel_event=cancel_event,
            ).run()

        for step in apply_plan:
            if report.get(step.identity) is None:
                report.record(step.identity, Outcome.CANCELLED, "Cancelled before start")

        if self._fatal_error is not None:
            raise self._fatal_error
        log.debug("Execution summary: %s", report.summary())
        return report

    ## Implementation ##########################################################

    def _run_step(
        self,
        step: PlanStep,
        report: ExecutionReport,
        cancel_event: threading.Event,
    ):
        """Runner node function for a single step. It never raises: every
        outcome ends up in the report.
        """
        obj_id = step.identity
        try:
            self._run_step_checked(step, report, cancel_event)
        except KubecfgError as err:
            report.record(obj_id, Outcome.FAILED, str(err))
            if err.is_fatal_error:
                log.error("Fatal error applying [%s]: %s", obj_id, err)
                self._fatal_error = self._fatal_error or err
                self._halt.set()
        except Exception as err:  # pylint: disable=broad-except
            log.warning(
                "Unexpected error applying [%s]: %s",
                obj_id,
                err,
                exc_info=True,
                extra={"identity": obj_id},
            )
            report.record(obj_id, Outcome.FAILED, f"Unexpected error: {err}")

    def _run_step_checked(
        self,
        step: PlanStep,
        report: ExecutionReport,
        cancel_event: threading.Event,
    ):
        obj_id = step.identity
        if cancel_event.is_set() or self._halt.is_set():
            report.record(obj_id, Outcome.CANCELLED, "Cancelled before start")
            return

        diff_result = step.diff
        if diff_result.action == DiffAction.CONFLICT:
            report.record(obj_id, Outcome.CONFLICT, diff_result.reason)
            return

        # A prerequisite which turned out to exist already (AlreadyExists
        # re-diffed into a patch or noop) is as good as created
        for prereq_id in step.prerequisites:
            prereq_outcome = report.outcome(prereq_id)
            if prereq_outcome is None or not prereq_outcome.succeeded:
                skipped = DependencySkipped(f"{prereq_id} was not applied")
                report.record(obj_id, Outcome.SKIPPED_DEPENDENCY, str(skipped))
                return

        if diff_result.action == DiffAction.NOOP:
            report.record(obj_id, Outcome.NOOP)
            return
        if diff_result.action == DiffAction.CREATE and not self.allow_create:
            report.record(
                obj_id, Outcome.FAILED, "Object does not exist and creating is disabled"
            )
            return
        if diff_result.action == DiffAction.PATCH and not self.allow_patch:
            report.record(obj_id, Outcome.NOOP, "Object exists and was left unchanged")
            return

        self._apply_with_retries(diff_result, report, cancel_event)

    def _apply_with_retries(
        self,
        diff_result: DiffResult,
        report: ExecutionReport,
        cancel_event: threading.Event,
    ):
        """Apply one diff result, retrying transient errors with exponential
        backoff. A version conflict re-fetches the object and re-diffs before
        the next attempt.
        """
        obj_id = diff_result.identity
        current = diff_result
        refresh = False
        last_error = None
        attempts = 0
        while attempts <= self.retries:
            if attempts:
                delay = self._backoff(attempts - 1)
                log.debug2(
                    "Retrying [%s] in %.2fs after: %s", obj_id, delay, last_error
                )
                if cancel_event.wait(delay):
                    report.record(
                        obj_id,
                        Outcome.CANCELLED,
                        f"Cancelled while retrying after: {last_error}",
                        attempts=attempts,
                    )
                    return
            attempts += 1
            try:
                if refresh:
                    current = self._rediff(current)
                    refresh = False
                    if current.action == DiffAction.CONFLICT:
                        report.record(
                            obj_id, Outcome.CONFLICT, current.reason, attempts=attempts
                        )
                        return
                    if current.action == DiffAction.NOOP:
                        report.record(obj_id, Outcome.NOOP, attempts=attempts)
                        return
                outcome = self._apply_once(current)
            except VersionConflictError as err:
                log.debug2("Version conflict on [%s]: %s", obj_id, err)
                last_error = err
                refresh = True
            except TransientTransportError as err:
                log.debug2("Transient error on [%s]: %s", obj_id, err)
                last_error = err
            except PermanentTransportError as err:
                report.record(obj_id, Outcome.FAILED, str(err), attempts=attempts)
                return
            else:
                log.debug(
                    "%s [%s] after %d attempt(s)",
                    outcome.value,
                    obj_id,
                    attempts,
                    extra={"identity": obj_id},
                )
                report.record(
                    obj_id,
                    outcome,
                    attempts=attempts,
                    base_changed=current.base_changed,
                )
                return

        report.record(
            obj_id,
            Outcome.FAILED,
            f"Gave up after {attempts} attempts: {last_error}",
            attempts=attempts,
        )

    def _apply_once(self, diff_result: DiffResult) -> Outcome:
        """Send a single write for the diff result"""
        obj_id = diff_result.identity
        if diff_result.action == DiffAction.CREATE:
            self.transport.create(diff_result.manifest)
            return Outcome.CREATED
        if diff_result.action == DiffAction.PATCH:
            self.transport.patch(
                obj_id, list(diff_result.operations), diff_result.resource_version
            )
            return Outcome.PATCHED
        if diff_result.action == DiffAction.DELETE:
            if self.transport.delete(obj_id):
                return Outcome.DELETED
            log.debug2("[%s] was already gone", obj_id)
            return Outcome.NOOP
        return Outcome.NOOP

    def _rediff(self, diff_result: DiffResult) -> DiffResult:
        """Compute a fresh diff result against the current live object"""
        obj_id = diff_result.identity
        live = self.fetcher.fetch(obj_id)
        if diff_result.action == DiffAction.DELETE:
            if live is None:
                return DiffResult.noop(obj_id)
            return DiffResult.delete(
                obj_id, live.get("metadata", {}).get("resourceVersion")
            )
        fresh = diff(obj_id, diff_result.manifest, live, force=self.force)
        log.debug3("Re-diffed [%s]: %s", obj_id, fresh)
        return fresh

    def _backoff(self, attempt: int) -> float:
        """Exponential backoff delay for the given (zero based) retry"""
        return min(self.backoff_base * (2**attempt), self.backoff_max)
