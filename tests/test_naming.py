"""
Tests for copy naming of moved blocks.
"""

import uuid

from timeledger.ledger.naming import next_copy_name, strip_copy_suffix
from timeledger.models.db import TimeEntry


def add_entries(session, user_id, *descriptions, active=True):
    for description in descriptions:
        session.add(
            TimeEntry(
                id=uuid.uuid4(),
                user_id=user_id,
                description=description,
                is_active=active,
            )
        )
    session.flush()


class TestStripCopySuffix:
    """Tests for suffix stripping."""

    def test_strips_trailing_number(self):
        assert strip_copy_suffix("Foo (3)") == "Foo"

    def test_keeps_inner_parentheses(self):
        assert strip_copy_suffix("Call (client) notes") == "Call (client) notes"

    def test_non_numeric_suffix_kept(self):
        assert strip_copy_suffix("Foo (draft)") == "Foo (draft)"

    def test_suffix_needs_leading_space(self):
        assert strip_copy_suffix("Foo(3)") == "Foo(3)"
        assert strip_copy_suffix("(3)") == ""


class TestNextCopyName:
    """Tests for next_copy_name."""

    def test_first_copy(self, db_session, sample_user):
        """With only the base present the first copy is (1)."""
        add_entries(db_session, sample_user.id, "Foo")

        assert next_copy_name(db_session, sample_user.id, "Foo") == "Foo (1)"

    def test_takes_highest_suffix(self, db_session, sample_user):
        """Foo, Foo (1), Foo (3) -> Foo (4)."""
        add_entries(db_session, sample_user.id, "Foo", "Foo (1)", "Foo (3)")

        assert next_copy_name(db_session, sample_user.id, "Foo") == "Foo (4)"

    def test_moving_a_copy_does_not_nest(self, db_session, sample_user):
        """Moving out of "Foo (1)" yields "Foo (2)", not "Foo (1) (1)"."""
        add_entries(db_session, sample_user.id, "Foo", "Foo (1)")

        assert next_copy_name(db_session, sample_user.id, "Foo (1)") == "Foo (2)"

    def test_ignores_other_users_and_deleted_entries(
        self, db_session, sample_user, other_user
    ):
        """Only the owner's active entries count."""
        add_entries(db_session, sample_user.id, "Foo")
        add_entries(db_session, other_user.id, "Foo (7)")
        add_entries(db_session, sample_user.id, "Foo (5)", active=False)

        assert next_copy_name(db_session, sample_user.id, "Foo") == "Foo (1)"

    def test_similar_prefixes_do_not_count(self, db_session, sample_user):
        """"Foobar (9)" is not a sibling of "Foo"."""
        add_entries(db_session, sample_user.id, "Foo", "Foobar (9)", "Foo (x)")

        assert next_copy_name(db_session, sample_user.id, "Foo") == "Foo (1)"

    def test_unspaced_suffix_is_its_own_base(self, db_session, sample_user):
        """"Foo(3)" is not a copy of "Foo"; moving out of it starts at (1)."""
        add_entries(db_session, sample_user.id, "Foo", "Foo (2)", "Foo(3)")

        assert next_copy_name(db_session, sample_user.id, "Foo") == "Foo (3)"
        assert next_copy_name(db_session, sample_user.id, "Foo(3)") == "Foo(3) (1)"

    def test_like_wildcards_are_literal(self, db_session, sample_user):
        """Percent and underscore in the base match only themselves."""
        add_entries(db_session, sample_user.id, "100% done (2)", "100X done (8)")

        assert (
            next_copy_name(db_session, sample_user.id, "100% done")
            == "100% done (3)"
        )

    def test_empty_description(self, db_session, sample_user):
        """An empty base produces a bare "(N)"."""
        add_entries(db_session, sample_user.id, "", "(1)")

        assert next_copy_name(db_session, sample_user.id, "") == "(2)"
