"""Transaction filter pipeline for the statement (ledger) view."""

from collections.abc import Iterable
from dataclasses import dataclass, field

from .filters import FiltersState, TransactionFilter
from .models import Category, Transaction


DEFAULT_PAGE_SIZE = 5
ELLIPSIS = "..."


def _matches_type(tx: Transaction, wanted: TransactionFilter) -> bool:
    if wanted == TransactionFilter.ALL:
        return True
    return tx.type.value.lower() == wanted.value


def _matches_search(tx: Transaction, search: str, category_names: dict[str, str]) -> bool:
    """Case-insensitive substring match on description or category name."""
    needle = search.strip().lower()
    if not needle:
        return True
    if needle in tx.description.lower():
        return True
    name = category_names.get(tx.category_id or "")
    return name is not None and needle in name.lower()


def filter_transactions(
    transactions: Iterable[Transaction],
    categories: Iterable[Category],
    filters: FiltersState,
) -> list[Transaction]:
    """Apply the global filters: date range, member, type and search text.

    Status is not checked here; the ledger lists pending entries too.
    """
    category_names = {c.id: c.name for c in categories}
    result = []
    for tx in transactions:
        if tx.date not in filters.date_range:
            continue
        if filters.selected_member is not None and tx.member_id != filters.selected_member:
            continue
        if not _matches_type(tx, filters.transaction_type):
            continue
        if filters.search_text and not _matches_search(tx, filters.search_text, category_names):
            continue
        result.append(tx)
    return result


def page_numbers(current_page: int, total_pages: int) -> list[int | str]:
    """Page strip: all pages up to 7, otherwise first, neighbours, last and gaps.

    >>> page_numbers(5, 10)
    [1, '...', 4, 5, 6, '...', 10]
    """
    if total_pages <= 7:
        return list(range(1, total_pages + 1))

    pages: list[int | str] = [1]
    if current_page > 3:
        pages.append(ELLIPSIS)

    start = max(2, current_page - 1)
    end = min(total_pages - 1, current_page + 1)
    for page in range(start, end + 1):
        if page not in pages:
            pages.append(page)

    if current_page < total_pages - 2:
        pages.append(ELLIPSIS)
    if total_pages not in pages:
        pages.append(total_pages)
    return pages


@dataclass
class LedgerPage:
    items: list[Transaction]
    page: int
    total_pages: int
    total_items: int
    start_index: int
    end_index: int
    page_numbers: list[int | str] = field(default_factory=list)


class LedgerView:
    """Local ledger state: a type filter and search on top of the global filters.

    Any change to the local type, the local search or the global filters sends
    the view back to page 1.
    """

    def __init__(self, page_size: int = DEFAULT_PAGE_SIZE):
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        self.page_size = page_size
        self.type_filter = TransactionFilter.ALL
        self.search = ""
        self.page = 1
        self._last_filters: FiltersState | None = None

    def set_type_filter(self, value: TransactionFilter | str) -> None:
        value = TransactionFilter(str(getattr(value, "value", value)).lower())
        if value != self.type_filter:
            self.type_filter = value
            self.page = 1

    def set_search(self, text: str | None) -> None:
        text = text or ""
        if text != self.search:
            self.search = text
            self.page = 1

    def go_to(self, page: int) -> None:
        self.page = max(1, page)

    def render(
        self,
        transactions: Iterable[Transaction],
        categories: Iterable[Category],
        filters: FiltersState,
    ) -> LedgerPage:
        """Filter, sort newest first and cut out the current page."""
        if self._last_filters is not None and filters != self._last_filters:
            self.page = 1
        self._last_filters = filters

        categories = list(categories)
        category_names = {c.id: c.name for c in categories}
        rows = [
            tx
            for tx in filter_transactions(transactions, categories, filters)
            if _matches_type(tx, self.type_filter)
            and _matches_search(tx, self.search, category_names)
        ]
        rows.sort(key=lambda tx: tx.date, reverse=True)

        total_items = len(rows)
        total_pages = max(1, -(-total_items // self.page_size))
        self.page = min(self.page, total_pages)
        start_index = (self.page - 1) * self.page_size
        end_index = min(start_index + self.page_size, total_items)

        return LedgerPage(
            items=rows[start_index:end_index],
            page=self.page,
            total_pages=total_pages,
            total_items=total_items,
            start_index=start_index,
            end_index=end_index,
            page_numbers=page_numbers(self.page, total_pages),
        )
