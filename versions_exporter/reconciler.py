from __future__ import annotations

import logging
import time
from threading import Event, Lock, Thread
from typing import Any, Callable, Iterable

from .metrics import LabeledGauge, publish
from .records import VersionRecord
from .scanner import scan
from .settings import SUPPORTED_KINDS, Settings

logger = logging.getLogger(__name__)

IDLE = "idle"
RECONCILING = "reconciling"


def reconcile(
    inventory: Any,
    resolver: Any,
    annotation_name: str,
    kinds: Iterable[str] = SUPPORTED_KINDS,
    memoize: bool = False,
    on_list_error: Callable[[str, Exception], None] | None = None,
) -> list[VersionRecord]:
    """Build this cycle's version records from scratch, in scan order.

    Records sharing an application name are kept as they are.
    """
    found = scan(inventory, annotation_name, kinds=kinds, on_list_error=on_list_error)
    latest_by_project: dict[str, str] = {}
    records: list[VersionRecord] = []
    for d in found:
        if memoize and d.upstream_project in latest_by_project:
            latest = latest_by_project[d.upstream_project]
        else:
            latest = resolver.resolve(d.upstream_project)
            latest_by_project[d.upstream_project] = latest
        records.append(VersionRecord(d.application_name, d.current_version, latest))
    return records


class Reconciler:
    """Runs a reconciliation cycle every refresh interval on a background thread."""

    def __init__(
        self,
        inventory: Any,
        resolver: Any,
        gauge: LabeledGauge,
        settings: Settings,
        on_list_error: Callable[[str, Exception], None] | None = None,
    ):
        self.inventory = inventory
        self.resolver = resolver
        self.gauge = gauge
        self.settings = settings
        self.interval_s = settings.refresh_interval_s
        self.on_list_error = on_list_error
        self.state = IDLE
        self.cycles = 0
        self._cycle_lock = Lock()
        self._stop = Event()
        self._thr: Thread | None = None

    def start(self) -> None:
        if self._thr and self._thr.is_alive():
            if not self._stop.is_set():
                return
            # a stopped loop may still be finishing its cycle
            self._thr.join()
        self._stop.clear()
        self._thr = Thread(target=self._loop, name="reconciler", daemon=True)
        self._thr.start()

    def stop(self, timeout_s: float | None = None) -> None:
        self._stop.set()
        if self._thr and timeout_s is not None:
            self._thr.join(timeout_s)

    def _loop(self) -> None:
        logger.info("Reconciler started, refresh interval %ss", self.interval_s)
        while not self._stop.is_set():
            self.run_once()
            logger.info("Next iteration in %ss", self.interval_s)
            self._stop.wait(self.interval_s)

    def run_once(self) -> bool:
        """One scan -> resolve -> publish pass. Errors are logged, never raised."""
        with self._cycle_lock:
            self.state = RECONCILING
            start = time.time()
            try:
                records = reconcile(
                    self.inventory,
                    self.resolver,
                    self.settings.annotation_name,
                    kinds=self.settings.workload_kinds,
                    memoize=self.settings.memoize_lookups,
                    on_list_error=self.on_list_error,
                )
                publish(self.gauge, records)
            except Exception:
                logger.exception("Reconciliation cycle failed")
                return False
            finally:
                self.state = IDLE
            self.cycles += 1
            logger.info("Published %d records in %.2fs", len(records), time.time() - start)
            return True
