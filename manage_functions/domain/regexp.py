# /manage_functions/domain/regexp.py
from __future__ import annotations

import logging
import re

LOG = logging.getLogger("domain.regexp")


def regexp_matches(string: str, pattern: str) -> bool:
    """Unanchored search; a pattern that does not compile matches nothing."""
    try:
        return re.search(pattern, string) is not None
    except re.error as e:
        LOG.warning("regexp.invalid", extra={"extra": {"pattern": pattern, "error": str(e)}})
        return False
