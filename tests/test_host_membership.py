# tests/test_host_membership.py
from __future__ import annotations

import pytest

from manage_functions.domain.host_membership import contains, count_up_to
from manage_functions.domain.hosts import EMPTY_SPEC, parse_hosts


def test_range_contains_and_count() -> None:
    spec = parse_hosts("10.0.0.1-10.0.0.5")
    assert contains(spec, parse_hosts(""), "10.0.0.3", 4095) is True
    assert contains(spec, EMPTY_SPEC, "10.0.0.6", 4095) is False
    assert count_up_to(spec, EMPTY_SPEC, 4095) == 5


def test_full_ipv4_block_is_capped() -> None:
    assert count_up_to(parse_hosts("0.0.0.0/0"), EMPTY_SPEC, 10) == 10


def test_full_ipv6_block_is_capped() -> None:
    assert count_up_to(parse_hosts("::/0"), EMPTY_SPEC, 7) == 7


@pytest.mark.parametrize(
    "text",
    ["0.0.0.0/0", "::/0", "10.0.0.1-10.0.0.9, a.example, fe80::1-ff", "10.0.0.0/8, 10.1.0.0/16"],
)
def test_spec_excludes_itself(text: str) -> None:
    spec = parse_hosts(text)
    assert count_up_to(spec, spec, 4095) == 0


def test_overlapping_tokens_counted_once() -> None:
    spec = parse_hosts("10.0.0.1-10.0.0.5, 10.0.0.3-10.0.0.8, 10.0.0.4")
    assert count_up_to(spec, EMPTY_SPEC, 4095) == 8


def test_exclude_cuts_out_of_block() -> None:
    spec = parse_hosts("10.0.0.0/24")  # 254 usable hosts
    exclude = parse_hosts("10.0.0.10-10.0.0.19, 10.0.0.200")
    assert count_up_to(spec, exclude, 4095) == 243


def test_exclude_in_contains() -> None:
    spec = parse_hosts("10.0.0.0/24")
    exclude = parse_hosts("10.0.0.7")
    assert contains(spec, exclude, "10.0.0.7", 4095) is False
    assert contains(spec, exclude, "10.0.0.8", 4095) is True


def test_hostnames_case_insensitive_and_unresolved() -> None:
    spec = parse_hosts("a.example, A.EXAMPLE, b.example")
    assert count_up_to(spec, EMPTY_SPEC, 4095) == 2
    assert count_up_to(spec, parse_hosts("B.Example"), 4095) == 1
    assert contains(parse_hosts("scanner.local"), EMPTY_SPEC, "SCANNER.local", 4095) is True
    assert contains(parse_hosts("scanner.local"), EMPTY_SPEC, "10.0.0.1", 4095) is False
    assert contains(parse_hosts("10.0.0.0/24"), EMPTY_SPEC, "scanner.local", 4095) is False


def test_cidr_usable_host_bounds() -> None:
    block = parse_hosts("10.0.0.0/24")
    assert contains(block, EMPTY_SPEC, "10.0.0.0", 4095) is False
    assert contains(block, EMPTY_SPEC, "10.0.0.255", 4095) is False
    assert contains(block, EMPTY_SPEC, "10.0.0.1", 4095) is True
    assert contains(parse_hosts("2001:db8::/64"), EMPTY_SPEC, "2001:db8::", 4095) is False
    assert count_up_to(parse_hosts("10.0.0.0/30"), EMPTY_SPEC, 4095) == 2
    assert count_up_to(parse_hosts("10.0.0.0/31"), EMPTY_SPEC, 4095) == 2
    assert count_up_to(parse_hosts("10.0.0.9/32"), EMPTY_SPEC, 4095) == 1


def test_large_block_membership_without_expansion() -> None:
    assert contains(parse_hosts("0.0.0.0/0"), EMPTY_SPEC, "203.0.113.9", 4095) is True
    assert contains(parse_hosts("2001:db8::/32"), EMPTY_SPEC, "2001:db8::42", 4095) is True
    assert contains(parse_hosts("2001:db8::/32"), EMPTY_SPEC, "10.0.0.1", 4095) is False


def test_zero_cap() -> None:
    spec = parse_hosts("10.0.0.1-10.0.0.5")
    assert count_up_to(spec, EMPTY_SPEC, 0) == 0
    assert contains(spec, EMPTY_SPEC, "10.0.0.1", 0) is False


def test_cap_boundaries() -> None:
    spec = parse_hosts("10.0.0.1-10.0.0.5")
    assert count_up_to(spec, EMPTY_SPEC, 5) == 5
    assert count_up_to(spec, EMPTY_SPEC, 3) == 3


def test_negative_cap_rejected() -> None:
    with pytest.raises(ValueError):
        count_up_to(EMPTY_SPEC, EMPTY_SPEC, -1)


def test_bad_candidate_matches_nothing() -> None:
    assert contains(parse_hosts("0.0.0.0/0"), EMPTY_SPEC, "not a host!", 4095) is False
