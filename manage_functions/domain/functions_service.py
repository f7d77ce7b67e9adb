# /manage_functions/domain/functions_service.py
from __future__ import annotations

import logging
import time
from collections.abc import Callable

from manage_functions.adapters.system.logging_cfg import configure_logger
from manage_functions.config import settings
from manage_functions.domain import host_membership
from manage_functions.domain.hosts import EMPTY_SPEC, parse_hosts
from manage_functions.domain.recurrence import DEFAULT_MAX_STEPS, next_occurrence, parse_recurrence
from manage_functions.domain.regexp import regexp_matches
from manage_functions.domain.severity import severity_matches
from manage_functions.ports.meta_store import MetaStorePort

LOG = logging.getLogger("functions_service")
configure_logger(settings.LOG_LEVEL)

MAX_HOSTS_META = "max_hosts"
DEFAULT_MAX_HOSTS = 4095


class ManageFunctions:
    """Null-aware entry points behind the database-callable functions.

    Each method applies the null policy of its function, then hands plain
    values to the domain. The host cap is read from the meta store once per
    host call and passed down explicitly.
    """

    def __init__(
        self,
        meta_store: MetaStorePort,
        *,
        default_timezone: str = "UTC",
        horizon_years: int = 100,
        max_steps: int = DEFAULT_MAX_STEPS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.meta_store = meta_store
        self.default_timezone = default_timezone
        self.horizon_years = horizon_years
        self.max_steps = max_steps
        self.clock = clock

    # --- config ---

    def _max_hosts(self) -> int:
        raw = self.meta_store.get(MAX_HOSTS_META)
        if raw is None:
            return DEFAULT_MAX_HOSTS
        try:
            value = int(str(raw).strip())
        except ValueError:
            value = -1
        if value < 0:
            LOG.warning("meta.max_hosts.invalid", extra={"extra": {"value": raw}})
            return DEFAULT_MAX_HOSTS
        return value

    # --- functions ---

    def hosts_contains(self, hosts: str | None, find_host: str | None) -> bool:
        if hosts is None or find_host is None:
            return False
        spec = parse_hosts(hosts)
        return host_membership.contains(spec, EMPTY_SPEC, find_host, self._max_hosts())

    def max_hosts(self, hosts: str | None, exclude: str | None = None) -> int:
        if hosts is None:
            return 0
        spec = parse_hosts(hosts)
        excluded = parse_hosts(exclude)
        count = host_membership.count_up_to(spec, excluded, self._max_hosts())
        LOG.info("hosts.counted", extra={"extra": {"tokens": len(spec), "count": count}})
        return count

    @staticmethod
    def severity_matches_ov(observed: float | None, threshold: float | None = None) -> bool:
        if observed is None:
            return False
        return severity_matches(observed, threshold)

    def next_time_ical(
        self,
        ical: str | None,
        zone: str | None = None,
        periods_offset: int = 0,
    ) -> int | None:
        if ical is None:
            return None
        pattern = parse_recurrence(ical, zone or self.default_timezone)
        return next_occurrence(
            pattern,
            self.clock(),
            periods_offset,
            horizon_years=self.horizon_years,
            max_steps=self.max_steps,
        )

    @staticmethod
    def regexp(string: str | None, pattern: str | None) -> bool:
        if string is None or pattern is None:
            return False
        return regexp_matches(string, pattern)
