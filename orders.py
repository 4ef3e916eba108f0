"""
orders.py
---------
Order record shape and the helpers that shape fetched rows for display:
status filters, status-priority sorting, delivery-date parsing, search,
pagination and metric tallies.
"""

import calendar
import math
import re
from datetime import date

ORDER_FIELDS = [
    "party_name",
    "location",
    "model",
    "type",
    "tyre",
    "motor",
    "battery",
    "customization",
    "order_date",
    "delivery_date",
    "status",
    "remarks",
    "email",
    "phoneno",
]
REQUIRED_FIELDS = ["party_name", "location", "model", "type", "tyre", "motor", "status"]
OPTIONAL_FIELDS = [
    "battery",
    "customization",
    "order_date",
    "delivery_date",
    "remarks",
    "email",
    "phoneno",
]
SEARCH_FIELDS = ["party_name", "location", "model", "type", "status", "remarks"]

STATUSES = ["Priority", "In Production", "Stock", "Delivered", "No Progress"]
ORDER_TYPES = ["Classic", "Premium"]

# Sort precedence; anything else ranks after these
STATUS_ORDER = ["Priority", "In Production", "No Progress"]

FILTERS = {
    "active": {"title": "Active Orders", "statuses": ("Priority", "In Production", "No Progress")},
    "stock": {"title": "Stock Orders", "statuses": ("Stock",)},
    "delivered": {"title": "Delivered Orders", "statuses": ("Delivered",)},
}
DEFAULT_FILTER = "active"

MONTH_ABBRS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
MONTHS = {abbr.lower(): index for index, abbr in enumerate(MONTH_ABBRS, start=1)}

NUMERIC_DATE_RE = re.compile(r"^(\d{1,2})-(\d{1,2})-(\d{4})$")
TEXT_DATE_RE = re.compile(r"^(\d{1,2})-([A-Za-z]{3})-(\d{2})$")
TEXT_DATE_SEARCH_RE = re.compile(r"(?<!\d)(\d{1,2})-([A-Za-z]{3})-(\d{2})(?!\d)")
ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})")

ROW_CLASSES = {
    "Priority": "row-priority",
    "In Production": "row-production",
    "Stock": "row-stock",
    "Delivered": "row-delivered",
    "No Progress": "row-stalled",
}
BADGE_CLASSES = {
    "Priority": "badge-priority",
    "In Production": "badge-production",
    "Stock": "badge-stock",
    "Delivered": "badge-delivered",
    "No Progress": "badge-stalled",
}


def expand_year(two_digit: int) -> int:
    # 00-49 => 2000-2049, 50-99 => 1950-1999
    return two_digit + (2000 if two_digit < 50 else 1900)


def _safe_date(year: int, month: int, day: int):
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_delivery_date(delivery_date) -> float:
    """Return UTC epoch seconds for a delivery date string.

    Accepts ``D-M-YYYY`` (``15-11-2025``) and ``D-MMM-YY`` (``15-Nov-25``).
    Missing or unparseable values sort as infinitely late.
    """
    if not delivery_date:
        return math.inf
    value = str(delivery_date).strip()

    match = NUMERIC_DATE_RE.match(value)
    if match:
        day, month, year = (int(part) for part in match.groups())
        parsed = _safe_date(year, month, day) if day and month and year else None
    else:
        match = TEXT_DATE_RE.match(value)
        if not match:
            return math.inf
        day_raw, month_raw, year_raw = match.groups()
        month = MONTHS.get(month_raw.lower())
        if month is None:
            return math.inf
        parsed = _safe_date(expand_year(int(year_raw)), month, int(day_raw))

    if parsed is None:
        return math.inf
    return float(calendar.timegm(parsed.timetuple()))


def parse_iso_date(value):
    if not value:
        return None
    match = ISO_DATE_RE.match(str(value).strip())
    if not match:
        return None
    year, month, day = (int(part) for part in match.groups())
    return _safe_date(year, month, day)


def convert_from_date_input(date_input) -> str:
    """``2025-09-05`` -> ``5-Sep-25``."""
    parsed = parse_iso_date(date_input)
    if parsed is None:
        return ""
    return f"{parsed.day}-{MONTH_ABBRS[parsed.month - 1]}-{parsed.strftime('%y')}"


def convert_to_date_input(delivery_date) -> str:
    """``5-Sep-25`` or ``5-9-2025`` -> ``2025-09-05`` for a date input's value."""
    if not delivery_date:
        return ""
    value = str(delivery_date).strip()
    match = NUMERIC_DATE_RE.match(value)
    if match:
        day, month, year = (int(part) for part in match.groups())
        parsed = _safe_date(year, month, day) if day and month and year else None
        return parsed.isoformat() if parsed else ""
    match = TEXT_DATE_SEARCH_RE.search(value)
    if not match:
        return ""
    day_raw, month_raw, year_raw = match.groups()
    month = MONTHS.get(month_raw.lower())
    if month is None:
        return ""
    parsed = _safe_date(expand_year(int(year_raw)), month, int(day_raw))
    return parsed.isoformat() if parsed else ""


def resolve_delivery_date(date_input, stored_text) -> str:
    """Delivery text to save from an edit form.

    The stored text is kept unless the date input differs from the value it
    was pre-filled with.
    """
    date_input = (date_input or "").strip()
    stored_text = (stored_text or "").strip()
    if date_input == convert_to_date_input(stored_text):
        return stored_text
    if not date_input:
        return ""
    return convert_from_date_input(date_input) or date_input


def format_order_date(order_date) -> str:
    if not order_date:
        return "-"
    parsed = parse_iso_date(order_date)
    if parsed is None:
        return str(order_date)
    return f"{parsed.day:02d} {MONTH_ABBRS[parsed.month - 1]} {parsed.strftime('%y')}"


def format_motor(motor) -> str:
    if not motor:
        return "-"
    text = str(motor).strip()
    if text.lower().endswith("w"):
        return text
    return f"{text}W"


def status_rank(status) -> int:
    if status in STATUS_ORDER:
        return STATUS_ORDER.index(status)
    return len(STATUS_ORDER)


def order_sort_key(order):
    return (status_rank(order.get("status")), parse_delivery_date(order.get("delivery_date")))


def sort_orders(orders):
    return sorted(orders, key=order_sort_key)


def normalize_filter(filter_name) -> str:
    return filter_name if filter_name in FILTERS else DEFAULT_FILTER


def filter_orders(orders, filter_name):
    statuses = FILTERS[normalize_filter(filter_name)]["statuses"]
    return [order for order in orders if order.get("status") in statuses]


def search_orders(orders, query):
    query = (query or "").strip().lower()
    if not query:
        return list(orders)
    matches = []
    for order in orders:
        for field in SEARCH_FIELDS:
            value = order.get(field)
            if value and query in str(value).lower():
                matches.append(order)
                break
    return matches


def select_orders(orders, filter_name, query=""):
    """Filter, search and sort in the order the order tables show them."""
    return sort_orders(search_orders(filter_orders(orders, filter_name), query))


def paginate(items, page, per_page: int = 10):
    total = len(items)
    total_pages = math.ceil(total / per_page) if per_page > 0 else 0
    try:
        page = int(page)
    except (TypeError, ValueError):
        page = 1
    page = max(1, min(page, total_pages or 1))
    start_index = (page - 1) * per_page
    end_index = start_index + per_page
    return {
        "items": items[start_index:end_index],
        "page": page,
        "per_page": per_page,
        "total": total,
        "total_pages": total_pages,
        "start": start_index + 1 if total else 0,
        "end": min(end_index, total),
        "has_prev": page > 1,
        "has_next": page < total_pages,
        "pages": list(range(1, total_pages + 1)),
    }


def compute_metrics(orders):
    statuses = [order.get("status") for order in orders]
    return {
        "total": len(orders),
        "priority": statuses.count("Priority"),
        "in_production": statuses.count("In Production"),
        "stock": statuses.count("Stock"),
        "delivered": statuses.count("Delivered"),
        "locations": len({order.get("location") for order in orders}),
    }


def row_class(status) -> str:
    return ROW_CLASSES.get(status, "row-unknown")


def status_badge(status) -> str:
    return BADGE_CLASSES.get(status, "badge-unknown")


def type_badge(order_type) -> str:
    return "type-premium" if order_type == "Premium" else "type-classic"


def build_order_payload(form):
    """Normalize submitted order fields into a store payload.

    ``delivery_date`` arrives from a date input and is stored as
    ``D-Mon-YY``. Edit forms also send ``delivery_date_stored``, the text
    the row held when the form was rendered. Raises ``ValueError`` listing
    missing required fields.
    """
    payload = {}
    for field in ORDER_FIELDS:
        value = (form.get(field) or "").strip()
        if field == "delivery_date" and "delivery_date_stored" in form:
            value = resolve_delivery_date(value, form.get("delivery_date_stored"))
        elif field == "delivery_date" and value:
            value = convert_from_date_input(value) or value
        if field == "order_date" and value:
            parsed = parse_iso_date(value)
            value = parsed.isoformat() if parsed else ""
        if field in OPTIONAL_FIELDS and not value:
            value = None
        payload[field] = value
    if not payload["type"]:
        payload["type"] = ORDER_TYPES[0]

    missing = [field for field in REQUIRED_FIELDS if not payload.get(field)]
    if missing:
        labels = ", ".join(field.replace("_", " ") for field in missing)
        raise ValueError(f"Missing required fields: {labels}.")
    if payload["status"] not in STATUSES:
        raise ValueError(f"Unknown status: {payload['status']}.")
    return payload
