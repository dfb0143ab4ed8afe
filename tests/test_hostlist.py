"""Unit tests for hostlist expansion.

Run with: pytest tests/test_hostlist.py -v
"""

import logging

from clusterbar.hostlist import expand_hostlist, expand_node_field, split_node_groups


# =============================================================================
# Test: expand_hostlist
# =============================================================================

class TestExpandHostlist:
    """Tests for single-group expansion."""

    def test_ranges_and_singles(self):
        """Test a mix of ranges and single indices."""
        assert expand_hostlist("node[1-3,5]") == ["node01", "node02", "node03", "node05"]

    def test_plain_name_with_index_is_padded(self):
        """Test that a bare trailing index gets two-digit padding."""
        assert expand_hostlist("node7") == ["node07"]

    def test_three_digit_indices_keep_width(self):
        """Test that indices >= 100 are not truncated."""
        assert expand_hostlist("a[100-101]") == ["a100", "a101"]

    def test_original_width_is_not_preserved(self):
        """Test that zero-padded notation is re-rendered at two digits."""
        assert expand_hostlist("n[007-008]") == ["n07", "n08"]

    def test_plain_name_without_index(self):
        """Test that a name without digits is returned unchanged."""
        assert expand_hostlist("login") == ["login"]

    def test_suffix_after_brackets(self):
        """Test that text after the bracket is kept."""
        assert expand_hostlist("node[1-2]-ib") == ["node01-ib", "node02-ib"]

    def test_malformed_subrange_is_skipped(self, caplog):
        """Test that a bad subrange is skipped and the rest still expands."""
        with caplog.at_level(logging.WARNING):
            names = expand_hostlist("node[1-2,x-4,6]")

        assert names == ["node01", "node02", "node06"]
        assert "x-4" in caplog.text

    def test_reversed_range_is_empty(self):
        """Test that an A > B range yields nothing rather than failing."""
        assert expand_hostlist("node[5-3,7]") == ["node07"]

    def test_unclosed_bracket_is_skipped(self, caplog):
        """Test that a group with an unbalanced bracket expands to nothing."""
        with caplog.at_level(logging.WARNING):
            names = expand_hostlist("node[1-3")

        assert names == []
        assert "node[1-3" in caplog.text

    def test_empty_token(self):
        """Test that an empty token expands to nothing."""
        assert expand_hostlist("") == []


# =============================================================================
# Test: node field splitting
# =============================================================================

class TestNodeField:
    """Tests for multi-group node fields."""

    def test_split_respects_brackets(self):
        """Test that commas inside brackets do not split groups."""
        assert split_node_groups("a[1-2,4],b7,c") == ["a[1-2,4]", "b7", "c"]

    def test_expand_multiple_groups(self):
        """Test that every group is expanded in order."""
        assert expand_node_field("gpu[1-2],cpu3") == ["gpu01", "gpu02", "cpu03"]
