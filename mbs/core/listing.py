"""
Search / sort / paginate helpers shared by the table endpoints.

Rows are plain dicts (serializer output). Tables are store-scoped and small,
so shaping happens in memory after the queryset is evaluated.
"""
import math
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from django.conf import settings

from .exceptions import ValidationFailed

ASC = 'asc'
DESC = 'desc'
ALL_FIELDS = 'all'
MAX_VISIBLE_PAGES = 5
MAX_PAGE_SIZE = 100


def search_rows(rows, keyword, fields, field=ALL_FIELDS):
    """Case-insensitive substring match over ``fields`` (or the one selected field)"""
    keyword = (keyword or '').strip().lower()
    if not keyword:
        return list(rows)

    targets = list(fields) if field in (None, '', ALL_FIELDS) else [field]
    matched = []
    for row in rows:
        for name in targets:
            value = row.get(name)
            if value is not None and keyword in str(value).lower():
                matched.append(row)
                break
    return matched


def toggle_sort(current, key):
    """
    Next (key, direction) when a column header is clicked.

    ``current`` is the active (key, direction) pair or None. Clicking the
    column that is already ascending flips it to descending; anything else
    starts ascending.
    """
    if current and current[0] == key and current[1] == ASC:
        return key, DESC
    return key, ASC


def _is_number(value):
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def _column_kind(values):
    present = [value for value in values if value is not None and value != '']
    if any(isinstance(value, (date, datetime)) for value in present):
        return 'date'
    if present and all(_is_number(value) for value in present):
        return 'number'
    return 'text'


def _as_timestamp(value):
    if isinstance(value, datetime):
        return value.timestamp()
    return datetime(value.year, value.month, value.day).timestamp()


def sort_rows(rows, key, direction=ASC):
    """Stable sort of ``rows`` by ``key``; None sorts as the empty value"""
    rows = list(rows)
    kind = _column_kind([row.get(key) for row in rows])

    def sort_key(row):
        value = row.get(key)
        if kind == 'text':
            return '' if value is None else str(value)
        if value is None or value == '':
            return (0, 0)
        if kind == 'date':
            if not isinstance(value, (date, datetime)):
                return (0, 0)
            return (1, _as_timestamp(value))
        return (1, value)

    return sorted(rows, key=sort_key, reverse=direction == DESC)


@dataclass
class Page:
    rows: list
    number: int
    per_page: int
    total_items: int
    total_pages: int
    start: int
    end: int

    @property
    def has_next(self):
        return self.number < self.total_pages

    @property
    def has_previous(self):
        return self.number > 1


def clamp_page(page, total_pages):
    return min(max(page, 1), max(total_pages, 1))


def paginate(rows, page=1, per_page=None, pad=False, blank_row=None):
    """
    Slice ``rows`` into the requested page.

    The page number is clamped into 1..total_pages. With ``pad`` the page is
    filled up to ``per_page`` entries with blank rows so tables keep a fixed
    height.
    """
    rows = list(rows)
    per_page = per_page or settings.MBS_PAGE_SIZE
    total_items = len(rows)
    total_pages = max(1, math.ceil(total_items / per_page))
    number = clamp_page(page, total_pages)
    start = (number - 1) * per_page
    end = min(start + per_page, total_items)
    page_rows = rows[start:end]

    if pad and len(page_rows) < per_page:
        if blank_row is None:
            blank_row = {name: None for name in rows[0]} if rows else {}
        page_rows.extend(dict(blank_row) for _ in range(per_page - len(page_rows)))

    return Page(
        rows=page_rows,
        number=number,
        per_page=per_page,
        total_items=total_items,
        total_pages=total_pages,
        start=start,
        end=end,
    )


def page_window(current, total_pages, max_visible=MAX_VISIBLE_PAGES):
    """Page numbers shown in the pager, at most ``max_visible`` around ``current``"""
    if total_pages <= max_visible:
        return list(range(1, total_pages + 1))
    half = max_visible // 2
    if current <= half + 1:
        return list(range(1, max_visible + 1))
    if current >= total_pages - half:
        return list(range(total_pages - max_visible + 1, total_pages + 1))
    return list(range(current - half, current + half + 1))


def items_info(start, end, total):
    if total == 0:
        return '0件'
    return f'{start + 1}-{end} / {total}件'


def _int_param(value, default):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass
class TableQuery:
    """Search, sort and paging options parsed from query parameters"""
    search_fields: tuple
    sort_fields: tuple
    search: str = ''
    field: str = ALL_FIELDS
    sort: str = None
    direction: str = ASC
    page: int = 1
    page_size: int = None
    pad: bool = False
    columns: tuple = ()

    @classmethod
    def from_request(cls, request, search_fields, sort_fields=None, default_sort=None, default_direction=ASC,
                     columns=None):
        params = request.query_params
        sort_fields = tuple(sort_fields or search_fields)

        field = params.get('field', ALL_FIELDS) or ALL_FIELDS
        if field != ALL_FIELDS and field not in search_fields:
            raise ValidationFailed(f"Cannot search by '{field}'")

        sort = params.get('sort', None) or default_sort
        if sort and sort not in sort_fields:
            raise ValidationFailed(f"Cannot sort by '{sort}'")

        direction = params.get('direction', None) or default_direction
        if direction not in (ASC, DESC):
            direction = ASC

        page_size = _int_param(params.get('page_size', None), settings.MBS_PAGE_SIZE)
        page_size = min(max(page_size, 1), MAX_PAGE_SIZE)

        return cls(
            search_fields=tuple(search_fields),
            sort_fields=sort_fields,
            search=params.get('search', '') or '',
            field=field,
            sort=sort,
            direction=direction,
            page=_int_param(params.get('page', None), 1),
            page_size=page_size,
            pad=params.get('pad', '').lower() in ('1', 'true', 'yes'),
            columns=tuple(columns or dict.fromkeys(tuple(search_fields) + sort_fields)),
        )

    def filter_and_sort(self, rows):
        rows = search_rows(rows, self.search, self.search_fields, self.field)
        if self.sort:
            rows = sort_rows(rows, self.sort, self.direction)
        return rows

    def blank_row(self):
        """Padding row with every column of the table set to None"""
        if not self.columns:
            return None
        return {name: None for name in self.columns}

    def to_payload(self, rows):
        rows = self.filter_and_sort(rows)
        page = paginate(rows, self.page, self.page_size, pad=self.pad, blank_row=self.blank_row())
        current = (self.sort, self.direction) if self.sort else None
        return {
            'results': page.rows,
            'count': page.total_items,
            'next': page.number + 1 if page.has_next else None,
            'previous': page.number - 1 if page.has_previous else None,
            'page': page.number,
            'page_size': page.per_page,
            'total_pages': page.total_pages,
            'pages': page_window(page.number, page.total_pages),
            'items_info': items_info(page.start, page.end, page.total_items),
            'sort': {'key': self.sort, 'direction': self.direction} if self.sort else None,
            'sort_toggles': {key: toggle_sort(current, key)[1] for key in self.sort_fields},
        }
