# /manage_functions/domain/host_membership.py
from __future__ import annotations

import logging
from collections.abc import Iterator

from manage_functions.domain.hosts import (
    HostSpecification,
    HostToken,
    Hostname,
    IPAddress,
    parse_candidate,
)

LOG = logging.getLogger("domain.host_membership")

Span = tuple[int, int]
Host = tuple[int, int] | str  # (ip version, address value) or hostname


def contains(
    spec: HostSpecification,
    exclude: HostSpecification,
    candidate: str,
    cap: int,
) -> bool:
    """True if ``candidate`` matches a token of ``spec`` and none of ``exclude``.

    Ranges and blocks are tested numerically, never expanded. Hostname tokens
    only match a hostname candidate (case-insensitive), nothing is resolved.
    Blocks cover their usable hosts only (see ``CidrBlock.bounds``), so the
    network and IPv4 broadcast addresses of a block are not contained.
    """
    _check_cap(cap)
    if cap == 0:
        return False
    target = parse_candidate(candidate)
    if target is None:
        LOG.debug("hosts.contains.bad_candidate", extra={"extra": {"candidate": candidate}})
        return False
    return _matches_any(spec, target) and not _matches_any(exclude, target)


def count_up_to(spec: HostSpecification, exclude: HostSpecification, cap: int) -> int:
    """Count distinct hosts of ``spec`` not in ``exclude``, stopping at ``cap``.

    Hosts are enumerated lazily in token order. Excluded spans are cut out of
    each token before enumeration and the dedup set never holds more than
    ``cap`` entries, so a ``/0`` block costs at most ``cap`` steps.
    """
    _check_cap(cap)
    if cap == 0:
        return 0

    holes = _merged_spans(exclude)
    excluded_names = {t.name for t in exclude if isinstance(t, Hostname)}
    seen: set[Host] = set()
    for host in _enumerate_hosts(spec, holes, excluded_names):
        seen.add(host)
        if len(seen) >= cap:
            LOG.info("hosts.count.capped", extra={"extra": {"cap": cap}})
            return cap
    return len(seen)


# ==== helpers ====


def _check_cap(cap: int) -> None:
    if cap < 0:
        raise ValueError(f"host cap must be non-negative, got {cap}")


def _matches_any(spec: HostSpecification, target: IPAddress | str) -> bool:
    return any(_matches(token, target) for token in spec)


def _matches(token: HostToken, target: IPAddress | str) -> bool:
    if isinstance(token, Hostname):
        return isinstance(target, str) and token.name == target
    if isinstance(target, str):
        return False
    version, first, last = token.bounds()
    return target.version == version and first <= int(target) <= last


def _enumerate_hosts(
    spec: HostSpecification,
    holes: dict[int, list[Span]],
    excluded_names: set[str],
) -> Iterator[Host]:
    for token in spec:
        if isinstance(token, Hostname):
            if token.name not in excluded_names:
                yield token.name
            continue
        version, first, last = token.bounds()
        for lo, hi in _subtract(first, last, holes.get(version, [])):
            for value in range(lo, hi + 1):
                yield version, value


def _merged_spans(spec: HostSpecification) -> dict[int, list[Span]]:
    """Address spans of ``spec`` per ip version, sorted and merged."""
    by_version: dict[int, list[Span]] = {}
    for token in spec:
        bounds = token.bounds()
        if bounds is None:
            continue
        version, first, last = bounds
        by_version.setdefault(version, []).append((first, last))

    merged: dict[int, list[Span]] = {}
    for version, spans in by_version.items():
        out: list[Span] = []
        for lo, hi in sorted(spans):
            if out and lo <= out[-1][1] + 1:
                out[-1] = (out[-1][0], max(out[-1][1], hi))
            else:
                out.append((lo, hi))
        merged[version] = out
    return merged


def _subtract(first: int, last: int, holes: list[Span]) -> Iterator[Span]:
    # holes are sorted and disjoint
    cursor = first
    for lo, hi in holes:
        if hi < cursor:
            continue
        if lo > last:
            break
        if lo > cursor:
            yield cursor, lo - 1
        cursor = hi + 1
        if cursor > last:
            return
    yield cursor, last
