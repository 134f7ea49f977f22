"""Tests for accessibility snapshot parsing."""

import pytest

from theme_qa.snapshot.model import ElementRef, parse_snapshot


class TestParseSnapshot:
    def test_parses_role_name_and_ref(self):
        snap = parse_snapshot('- button "Select" [ref=e12] [cursor=pointer]\n')
        node = snap.nodes[0]
        assert node.role == "button"
        assert node.name == "Select"
        assert node.ref == "e12"
        assert node.attributes == {"cursor": "pointer"}

    def test_builds_tree_from_indentation(self, listing_snapshot):
        main = listing_snapshot.roots[0]
        assert main.role == "main"
        table = main.children[0]
        assert table.role == "table"
        assert [c.role for c in table.children] == ["row", "row", "row"]
        assert table.parent is main

    def test_keeps_document_order_indices(self, listing_snapshot):
        assert [n.index for n in listing_snapshot.nodes] == list(range(len(listing_snapshot)))

    def test_lines_without_role_become_text_nodes(self, listing_snapshot):
        url_lines = [n for n in listing_snapshot if n.role is None]
        assert len(url_lines) == 1
        assert url_lines[0].text == "/url: /s/pages/edit/42"
        assert url_lines[0].ref is None

    def test_inline_text_after_colon(self):
        snap = parse_snapshot('- paragraph [ref=e3]: Delete the landing page?\n')
        assert snap.nodes[0].text == "Delete the landing page?"

    def test_empty_name(self):
        snap = parse_snapshot('- button "" [ref=e8]\n')
        assert snap.nodes[0].name == ""
        assert snap.nodes[0].ref == "e8"

    def test_escaped_quotes_in_name(self):
        snap = parse_snapshot('- heading "The \\"Logan\\" theme" [ref=e2]\n')
        assert snap.nodes[0].name == 'The "Logan" theme'

    def test_escaped_backslash_in_name(self):
        snap = parse_snapshot('- button "a\\\\b" [ref=e1]\n- button "c\\\\\\"d" [ref=e2]\n')
        assert snap.nodes[0].name == "a\\b"
        assert snap.nodes[1].name == 'c\\"d'

    def test_invalid_ref_token_is_ignored(self):
        snap = parse_snapshot('- button "Go" [ref=xyz]\n')
        assert snap.nodes[0].ref is None

    def test_duplicate_refs_rejected(self):
        text = '- button "A" [ref=e1]\n- button "B" [ref=e1]\n'
        with pytest.raises(ValueError, match="Duplicate ref"):
            parse_snapshot(text)

    def test_blank_lines_skipped(self):
        snap = parse_snapshot('\n- main [ref=e1]\n\n  - button "Go" [ref=e2]\n')
        assert len(snap) == 2
        assert snap.nodes[1].parent is snap.nodes[0]


class TestElementRef:
    def test_element_ref_carries_snapshot_identity(self, listing_snapshot):
        node = listing_snapshot.node_for_ref("e18")
        ref = listing_snapshot.element_ref(node)
        assert ref == ElementRef(ref="e18", role="link", name="Delete", page_name="admin", snapshot_id=1)

    def test_element_ref_requires_a_ref(self, listing_snapshot):
        text_node = next(n for n in listing_snapshot if n.ref is None)
        with pytest.raises(ValueError):
            listing_snapshot.element_ref(text_node)

    def test_str(self):
        ref = ElementRef(ref="e4", role="button", name="Select")
        assert str(ref) == 'button "Select" [ref=e4]'
