import threading
import time

from fakes import FakeInventory, FakeResolver, make_workload
from versions_exporter.inventory import Container
from versions_exporter.metrics import MetricsRegistry
from versions_exporter.reconciler import IDLE, RECONCILING, Reconciler, reconcile
from versions_exporter.records import VersionRecord
from versions_exporter.settings import Settings

ANNOTATION = "versions-exporter/githubRepo"


def _inventory():
    return FakeInventory(
        deployments=[
            make_workload("web", image="myrepo/app:1.2.3", annotations={ANNOTATION: "octocat/Hello-World"}),
            make_workload(
                "jobs",
                containers=[Container("worker", "img:4.5.6")],
                annotations={"versions-exporter/worker": "octocat/Hello-World"},
            ),
        ],
        daemonsets=[make_workload("agent", kind="daemonset", image="agent:0.9", annotations={ANNOTATION: "acme/agent"})],
    )


def test_reconcile_builds_records_in_scan_order():
    resolver = FakeResolver({"octocat/Hello-World": "v2.0.0", "acme/agent": "1.0"})
    records = reconcile(_inventory(), resolver, ANNOTATION)
    assert records == [
        VersionRecord("web", "1.2.3", "v2.0.0"),
        VersionRecord("worker", "4.5.6", "v2.0.0"),
        VersionRecord("agent", "0.9", "1.0"),
    ]


def test_failed_resolution_keeps_record_with_empty_latest():
    resolver = FakeResolver({"octocat/Hello-World": "v2.0.0"})
    records = reconcile(_inventory(), resolver, ANNOTATION)
    assert records[-1] == VersionRecord("agent", "0.9", "")
    assert len(records) == 3


def test_every_record_is_resolved_without_memoization():
    resolver = FakeResolver({"octocat/Hello-World": "v2.0.0"})
    reconcile(_inventory(), resolver, ANNOTATION)
    assert resolver.calls == ["octocat/Hello-World", "octocat/Hello-World", "acme/agent"]


def test_memoization_resolves_each_project_once_per_cycle():
    resolver = FakeResolver({"octocat/Hello-World": "v2.0.0"})
    plain = reconcile(_inventory(), FakeResolver({"octocat/Hello-World": "v2.0.0"}), ANNOTATION)
    memo = reconcile(_inventory(), resolver, ANNOTATION, memoize=True)
    assert memo == plain
    assert resolver.calls == ["octocat/Hello-World", "acme/agent"]

    reconcile(_inventory(), resolver, ANNOTATION, memoize=True)
    assert resolver.calls.count("octocat/Hello-World") == 2


def test_duplicate_application_names_are_kept():
    inv = FakeInventory(
        deployments=[make_workload("web", namespace=ns, annotations={ANNOTATION: "acme/web"}) for ns in ("a", "b")]
    )
    records = reconcile(inv, FakeResolver({"acme/web": "v1"}), ANNOTATION)
    assert [r.application_name for r in records] == ["web", "web"]


def test_reconcile_is_idempotent():
    resolver = FakeResolver({"octocat/Hello-World": "v2.0.0", "acme/agent": "1.0"})
    inv = _inventory()
    assert reconcile(inv, resolver, ANNOTATION) == reconcile(inv, resolver, ANNOTATION)


def _reconciler(inventory, resolver, **kw):
    metrics = MetricsRegistry()
    gauge = metrics.application_info()
    settings = Settings(**kw)
    return Reconciler(inventory, resolver, gauge, settings, on_list_error=metrics.record_scan_error), metrics


def test_run_once_publishes():
    rec, metrics = _reconciler(_inventory(), FakeResolver({"acme/agent": "1.0"}))
    assert rec.run_once() is True
    assert rec.cycles == 1
    assert rec.state == IDLE
    labels = {s[0]["application_name"] for s in rec.gauge.samples()}
    assert labels == {"web", "worker", "agent"}


def test_removed_annotation_disappears_on_next_cycle():
    inv = _inventory()
    rec, _ = _reconciler(inv, FakeResolver())
    rec.run_once()
    inv.workloads["daemonsets"] = [make_workload("agent", kind="daemonset", image="agent:0.9")]
    rec.run_once()
    names = {s[0]["application_name"] for s in rec.gauge.samples()}
    assert names == {"web", "worker"}


def test_listing_failure_is_counted_and_cycle_completes():
    inv = _inventory()
    inv.workloads["pods"] = RuntimeError("forbidden")
    rec, metrics = _reconciler(inv, FakeResolver())
    assert rec.run_once() is True
    assert metrics.registry.get_sample_value("versions_exporter_scan_errors_total", {"kind": "pods"}) == 1


class _BrokenResolver:
    def resolve(self, project):
        raise RuntimeError("unexpected")


def test_failing_cycle_does_not_raise_or_publish():
    rec, _ = _reconciler(_inventory(), FakeResolver({"acme/agent": "1.0"}))
    rec.run_once()
    before = rec.gauge.samples()

    rec.resolver = _BrokenResolver()
    assert rec.run_once() is False
    assert rec.state == IDLE
    assert rec.cycles == 1
    assert rec.gauge.samples() == before


def test_loop_keeps_running_after_failures():
    rec, _ = _reconciler(FakeInventory(), _BrokenResolver(), refresh_interval="10ms")
    rec.inventory = _inventory()
    rec.start()
    time.sleep(0.1)
    rec.resolver = FakeResolver()
    deadline = time.time() + 2
    while rec.cycles == 0 and time.time() < deadline:
        time.sleep(0.01)
    rec.stop(timeout_s=1)
    assert rec.cycles >= 1


def test_configured_kinds_are_respected():
    rec, _ = _reconciler(_inventory(), FakeResolver(), workload_kinds=("daemonsets",))
    rec.run_once()
    assert [s[0]["application_name"] for s in rec.gauge.samples()] == ["agent"]


class _BlockingResolver:
    def __init__(self):
        self.entered = threading.Event()
        self.release = threading.Event()

    def resolve(self, project):
        self.entered.set()
        assert self.release.wait(5)
        return "v1"


def test_state_is_reconciling_during_a_cycle():
    resolver = _BlockingResolver()
    rec, _ = _reconciler(_inventory(), resolver)
    worker = threading.Thread(target=rec.run_once)
    worker.start()
    assert resolver.entered.wait(5)
    assert rec.state == RECONCILING
    resolver.release.set()
    worker.join(5)
    assert rec.state == IDLE
    assert rec.cycles == 1


def test_restart_while_stopped_cycle_is_still_running():
    resolver = _BlockingResolver()
    rec, _ = _reconciler(_inventory(), resolver)
    rec.start()
    assert resolver.entered.wait(5)
    rec.stop()

    starter = threading.Thread(target=rec.start)
    starter.start()
    resolver.release.set()
    starter.join(5)
    assert not starter.is_alive()

    deadline = time.time() + 5
    while rec.cycles < 2 and time.time() < deadline:
        time.sleep(0.01)
    assert rec.cycles == 2
    assert rec._thr.is_alive()
    rec.stop()
