"""Names for entries created by moving a block out of another entry."""

import re
import uuid

from sqlalchemy.orm import Session

from timeledger.db.repositories.entry import TimeEntryRepository

_COPY_SUFFIX_RE = re.compile(r"(?:^| )\((\d+)\)$")
_NUMBER_RE = re.compile(r"\((\d+)\)")


def strip_copy_suffix(description: str) -> str:
    """Remove a trailing " (N)" so repeated moves don't nest suffixes."""
    return _COPY_SUFFIX_RE.sub("", description.strip())


def _suffix_number(description: str, base: str) -> int | None:
    prefix = f"{base} " if base else ""
    if not description.startswith(prefix):
        return None
    match = _NUMBER_RE.fullmatch(description[len(prefix) :])
    if not match:
        return None
    return int(match.group(1))


def next_copy_name(session: Session, user_id: uuid.UUID, description: str) -> str:
    """
    Next free "<base> (N)" among the user's active entries.

    An entry named exactly <base> counts as the baseline (0); siblings named
    "<base> (k)" raise the floor to k. Given "Foo", "Foo (1)" and "Foo (3)"
    the result is "Foo (4)".
    """
    base = strip_copy_suffix(description)
    highest = 0
    for sibling in TimeEntryRepository(session).sibling_descriptions(user_id, base):
        number = _suffix_number(sibling, base)
        if number is not None and number > highest:
            highest = number
    return f"{base} ({highest + 1})" if base else f"({highest + 1})"
