"""Page-by-page view over a document's nodes."""

from typing import List, Optional, Sequence

from common.subtitle_parser import DEFAULT_PAGE_SIZE, Node, page_count, select_page


class PaginationView:
    """
    Tracks which page of a document the user is looking at.

    A page holds the same nodes as the batch with the same index, so
    "translate this page" and batch ``n`` of a whole-file run cover the same
    captions.
    """

    def __init__(self, nodes: Sequence[Node], page_size: int = DEFAULT_PAGE_SIZE):
        if page_size < 1:
            raise ValueError(f"page_size must be at least 1, got {page_size}")
        self.nodes = nodes
        self.page_size = page_size
        self.current_page = 0

    @property
    def page_count(self) -> int:
        return page_count(len(self.nodes), self.page_size)

    def page(
        self, page_index: int, nodes: Optional[Sequence[Optional[Node]]] = None
    ) -> List[Optional[Node]]:
        """
        Nodes on ``page_index``.

        ``nodes`` selects from another sequence laid out like the document,
        such as the translated buffer.
        """
        source = self.nodes if nodes is None else nodes
        return select_page(source, page_index, self.page_size)

    def current_nodes(
        self, nodes: Optional[Sequence[Optional[Node]]] = None
    ) -> List[Optional[Node]]:
        return self.page(self.current_page, nodes)

    def to_page(self, delta: int) -> bool:
        """Move by ``delta`` pages; stays put and returns False out of range."""
        new_page = self.current_page + delta
        if new_page < 0 or new_page >= self.page_count:
            return False
        self.current_page = new_page
        return True

    def go_to(self, page_index: int) -> bool:
        """Jump to ``page_index``; returns False if it doesn't exist."""
        return self.to_page(page_index - self.current_page)

    def slot_range(self, page_index: int) -> range:
        """Document indexes covered by ``page_index``."""
        start = page_index * self.page_size
        return range(start, min(start + self.page_size, len(self.nodes)))

    def describe(self) -> str:
        """Position label, e.g. ``1 / 12``."""
        return f"{self.current_page + 1} / {self.page_count}"
