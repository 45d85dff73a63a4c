from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Sequence

import structlog
from pydantic import ValidationError

from .cache import StoreLocationCache
from .cooldown import CooldownTracker
from .dispatcher import NotificationDispatcher
from .geofence import evaluate
from .models import GeofenceSite, PositionSample, ProximityEvent

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class NotifyCommand:
    event: ProximityEvent
    sample: PositionSample


@dataclass
class BatchPlan:
    commands: list[NotifyCommand] = field(default_factory=list)
    events: int = 0
    suppressed: set[str] = field(default_factory=set)


@dataclass
class TaskReport:
    received: int = 0
    accepted: int = 0
    skipped: int = 0
    events: int = 0
    notified: int = 0
    suppressed: int = 0
    failed: int = 0
    error: str | None = None


def parse_samples(locations: Iterable[Any]) -> tuple[list[PositionSample], int]:
    """Validate raw platform samples; malformed ones are dropped and counted."""
    samples: list[PositionSample] = []
    skipped = 0
    for i, raw in enumerate(locations):
        try:
            samples.append(PositionSample.model_validate(raw))
        except ValidationError as e:
            skipped += 1
            logger.warning("position_sample_skipped", index=i, errors=e.error_count())
    return samples, skipped


def plan_batch(
    samples: Sequence[PositionSample],
    sites: Sequence[GeofenceSite],
    should_notify: Callable[[str], bool],
) -> BatchPlan:
    """
    Decide which notifications a batch calls for, without performing any.

    Samples are evaluated in delivery order. A site gets at most one command
    per batch, and only when should_notify(site_id) allows it.
    """
    plan = BatchPlan()
    planned: set[str] = set()
    for sample in samples:
        for event in evaluate(sample, sites):
            plan.events += 1
            sid = event.site.id
            if sid in planned or sid in plan.suppressed:
                continue
            if not should_notify(sid):
                logger.info("cooldown_active", site_id=sid)
                plan.suppressed.add(sid)
                continue
            planned.add(sid)
            plan.commands.append(NotifyCommand(event=event, sample=sample))
    return plan


class BackgroundLocationTask:
    """
    What the platform calls with each batch of location updates.

    Runs untended: every failure is logged and reported, nothing escapes.
    The next scheduled batch is the retry.
    """

    def __init__(
        self,
        cache: StoreLocationCache,
        tracker: CooldownTracker,
        dispatcher: NotificationDispatcher,
        record_cooldown_on_failure: bool = False,
    ):
        self.cache = cache
        self.tracker = tracker
        self.dispatcher = dispatcher
        self.record_cooldown_on_failure = record_cooldown_on_failure

    def handle(self, locations: Iterable[Any] | None, error: str | None = None) -> TaskReport:
        report = TaskReport()
        if error:
            logger.error("background_location_error", error=error)
            report.error = error
            return report
        try:
            self._run(list(locations or []), report)
        except Exception as e:
            logger.exception("geofence_check_failed")
            report.error = f"{type(e).__name__}: {e}"
        return report

    __call__ = handle

    def _run(self, locations: list[Any], report: TaskReport) -> None:
        report.received = len(locations)
        samples, report.skipped = parse_samples(locations)
        report.accepted = len(samples)
        if not samples:
            return
        latest = samples[-1]
        logger.info(
            "background_location_update",
            lat=round(latest.latitude, 4),
            lon=round(latest.longitude, 4),
            timestamp=latest.timestamp.isoformat(),
        )

        sites = self.cache.load_all()
        if not sites:
            logger.info("no_sites_cached")
            return
        logger.debug("checking_sites", sites=len(sites))

        now = self.tracker.clock()
        plan = plan_batch(samples, sites, lambda sid: self.tracker.should_notify(sid, now))
        report.events = plan.events
        report.suppressed = len(plan.suppressed)

        for cmd in plan.commands:
            sid = cmd.event.site.id
            ok = self.dispatcher.dispatch(cmd.event)
            if ok:
                report.notified += 1
            else:
                report.failed += 1
            if ok or self.record_cooldown_on_failure:
                try:
                    self.tracker.record_notification(sid, now)
                except Exception:
                    logger.exception("cooldown_record_failed", site_id=sid)
