"""Unit tests for the pagination view."""

import pytest

from manager.pagination import PaginationView


@pytest.fixture
def view(sample_nodes):
    return PaginationView(sample_nodes, page_size=10)


@pytest.mark.unit
class TestPaginationView:
    def test_page_count(self, view):
        assert view.page_count == 3

    def test_empty_document(self):
        view = PaginationView([], page_size=10)

        assert view.page_count == 0
        assert view.current_nodes() == []
        assert view.to_page(1) is False

    def test_pages_hold_batch_nodes(self, view):
        assert [n.pos for n in view.page(0)] == list(range(1, 11))
        assert [n.pos for n in view.page(2)] == list(range(21, 26))
        assert view.page(3) == []

    def test_page_of_sparse_buffer(self, view, sample_nodes):
        buffer = [None] * len(sample_nodes)
        buffer[12] = sample_nodes[12]

        assert view.page(0, buffer) == []
        page = view.page(1, buffer)
        assert len(page) == 10
        assert page[2] is sample_nodes[12]
        assert page.count(None) == 9

    @pytest.mark.parametrize(
        "delta,expected_ok,expected_page",
        [(1, True, 1), (2, True, 2), (3, False, 0), (-1, False, 0)],
    )
    def test_to_page(self, view, delta, expected_ok, expected_page):
        assert view.to_page(delta) is expected_ok
        assert view.current_page == expected_page

    def test_go_to(self, view):
        assert view.go_to(2) is True
        assert [n.pos for n in view.current_nodes()] == list(range(21, 26))
        assert view.describe() == "3 / 3"
        assert view.go_to(5) is False
        assert view.current_page == 2

    def test_slot_range(self, view):
        assert view.slot_range(1) == range(10, 20)
        assert view.slot_range(2) == range(20, 25)

    def test_rejects_invalid_page_size(self, sample_nodes):
        with pytest.raises(ValueError):
            PaginationView(sample_nodes, page_size=0)
