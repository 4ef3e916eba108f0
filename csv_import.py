"""
csv_import.py
-------------
Turns an uploaded CSV file into order payloads for a single batch insert.
"""

import csv
import io
import logging
import re
from datetime import date

from orders import ORDER_FIELDS, MONTHS, expand_year, parse_iso_date

logger = logging.getLogger(__name__)

CSV_COLUMNS = [
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
]
# email and phoneno are accepted but not part of the documented layout
ACCEPTED_COLUMNS = set(ORDER_FIELDS)
TEXT_COLUMNS = {"party_name", "location", "model", "type", "tyre", "motor"}
ROW_REQUIRED = ("party_name", "location", "model")

CSV_EXAMPLE = """party_name,location,model,type,tyre,motor,battery,customization,order_date,delivery_date,status,remarks
Airforce,Jodhpur,2s+cargo,Classic,145-80-12,2000,Lion-105ah,NA,2025-08-22,11-Sep-25,,
EPIC,Jankia,8S,Premium,165-60-12,3000W,Lithium,Water bottle holder,2025-09-05,,,
Aditya motors,Bangalore,6s+A/F,Premium,165-60-12,2000,Lion-105ah,NA,,Hold,,Hold for now"""

SLASH_DATE_RE = re.compile(r"^(\d{4})/(\d{1,2})/(\d{1,2})$")
NUMERIC_DATE_RE = re.compile(r"^(\d{1,2})-(\d{1,2})-(\d{4})$")
TEXT_DATE_RE = re.compile(r"^(\d{1,2})-([A-Za-z]{3})-(\d{2,4})$")


class CSVImportError(Exception):
    """Raised when an uploaded file yields no importable orders."""


def normalize_order_date(value):
    """Coerce the order_date cell to ISO, or None when it can't be read."""
    value = (value or "").strip()
    if not value or value.upper() == "NA":
        return None
    parsed = parse_iso_date(value)
    if parsed:
        return parsed.isoformat()
    try:
        match = SLASH_DATE_RE.match(value)
        if match:
            year, month, day = (int(part) for part in match.groups())
            return date(year, month, day).isoformat()
        match = NUMERIC_DATE_RE.match(value)
        if match:
            day, month, year = (int(part) for part in match.groups())
            return date(year, month, day).isoformat()
        match = TEXT_DATE_RE.match(value)
        if match:
            day_raw, month_raw, year_raw = match.groups()
            month = MONTHS.get(month_raw.lower())
            if month is None:
                return None
            year = int(year_raw) if len(year_raw) == 4 else expand_year(int(year_raw))
            return date(year, month, int(day_raw)).isoformat()
    except ValueError:
        return None
    return None


def parse_row(headers, values):
    order = {}
    for index, header in enumerate(headers):
        if header not in ACCEPTED_COLUMNS:
            continue
        value = values[index].strip() if index < len(values) else ""
        if header == "order_date":
            order[header] = normalize_order_date(value)
        elif header in TEXT_COLUMNS:
            order[header] = value
        else:
            order[header] = value or None
    return order


def parse_orders_csv(text: str):
    rows = [row for row in csv.reader(io.StringIO(text)) if any(cell.strip() for cell in row)]
    if len(rows) < 2:
        raise CSVImportError("CSV file is empty or invalid")

    headers = [header.strip().lower() for header in rows[0]]
    orders = []
    skipped = 0
    for values in rows[1:]:
        order = parse_row(headers, values)
        if all(order.get(field) for field in ROW_REQUIRED):
            orders.append(order)
        else:
            skipped += 1
    if skipped:
        logger.info("Skipped %d CSV rows missing party_name, location or model", skipped)
    if not orders:
        raise CSVImportError("No valid orders found in CSV file")
    return orders


def decode_upload(raw: bytes) -> str:
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        return raw.decode("latin-1")
