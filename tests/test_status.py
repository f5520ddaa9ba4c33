"""
Tests for fuzzy status matching.

Run with: python -m pytest tests/test_status.py -v
"""

from cu.status import match_status

STATUSES = ["to do", "in progress", "code review", "done"]


class TestMatchStatus:
    """Tests for match_status."""

    def test_exact_match_case_insensitive(self):
        """Test exact matches ignore case and return the canonical name."""
        assert match_status("IN PROGRESS", STATUSES) == "in progress"

    def test_prefix_match(self):
        """Test a prefix resolves to the full status."""
        assert match_status("prog", ["to do", "progress check", "in progress"]) == "progress check"
        assert match_status("code", STATUSES) == "code review"

    def test_substring_match(self):
        """Test substring matching when nothing starts with the query."""
        assert match_status("review", STATUSES) == "code review"

    def test_exact_beats_prefix(self):
        """Test the exact tier wins over an earlier prefix candidate."""
        assert match_status("done", ["done later", "done"]) == "done"

    def test_prefix_beats_substring(self):
        """Test the prefix tier wins over an earlier substring candidate."""
        assert match_status("rev", ["code review", "review"]) == "review"

    def test_first_in_order_wins_ties(self):
        """Test ties inside a tier go to the first status given."""
        assert match_status("in", ["in review", "in progress"]) == "in review"

    def test_no_match(self):
        """Test an unknown status returns None."""
        assert match_status("shipped", STATUSES) is None

    def test_empty_query(self):
        """Test an empty query never matches."""
        assert match_status("", STATUSES) is None

    def test_empty_statuses(self):
        """Test matching against no statuses."""
        assert match_status("done", []) is None

    def test_exact_beats_earlier_longer_names(self):
        """Test an exact name wins over names that merely start with it."""
        assert match_status("open", ["open source", "opened", "open"]) == "open"
