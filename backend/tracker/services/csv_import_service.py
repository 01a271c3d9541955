"""
CSV import service for spreadsheet exports of past sessions.

Rows look like::

    Instance (Blake Tracking)	When	Location	City	State	Vessel	Strain	Quantity	...
    1	10/17/22 11:39 AM	Home	Austin	TX	Classic Bubbler	Gelato	medium	...

Tabs or commas separate the columns. Each data row is imported on its own;
a bad row is reported as ``Row <n>: <reason>`` (``n`` counts data rows
from 1) and the import moves on.
"""
import csv
import io
import logging
import re
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tracker.core.exceptions import TrackerError
from tracker.schemas.imports import CSVValidationResult
from tracker.schemas.quantity import FLOWER_SIZES, QuantityType
from tracker.schemas.session import BatchResult, SessionCreate
from tracker.services.quantity_service import (
    VESSEL_CATEGORIES,
    encode_quantity,
    get_quantity_config,
    migrate_legacy_quantity,
)
from tracker.services.session_service import create_session

logger = logging.getLogger(__name__)

PREVIEW_ROWS = 3

# Normalized header names (lower case, single spaces)
INSTANCE_PREFIX = "instance"
REQUIRED_COLUMNS = ("when", "location", "vessel", "strain", "quantity")

VESSEL_MAPPING = {
    "Classic Bubbler": "Bong",
    "Pen_Cyrus Mortazavi": "Pen",
    "Vape Pen": "Pen",
    "Edibles": "Edible",
}

ACCESSORY_MAPPING = {
    "Bowl_Rounded": "Glass Screen",
    "N/A": "N/A",
    "None": "N/A",
}

WHEN_FORMATS = (
    "%m/%d/%y %I:%M %p",
    "%m/%d/%Y %I:%M %p",
    "%m/%d/%y %H:%M",
    "%m/%d/%Y %H:%M",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%dT%H:%M",
)

HITS_PATTERN = re.compile(r"^hits_(\d+(?:\.\d+)?)$", re.IGNORECASE)
TRUE_VALUES = {"y", "yes", "true", "1"}
FALSE_VALUES = {"n", "no", "false", "0"}


class CSVFormatError(TrackerError):
    """The CSV as a whole cannot be imported (empty, bad header)."""

    pass


def detect_separator(header_line: str) -> str:
    """Tab or comma, whichever the header uses more; tabs win ties."""
    if header_line.count(",") > header_line.count("\t"):
        return ","
    return "\t"


def normalize_header(header: str) -> str:
    return " ".join(header.split()).lower()


def read_rows(csv_content: str) -> Tuple[List[str], List[List[str]]]:
    """
    Split CSV text into normalized headers and raw data rows.
    
    Raises:
        CSVFormatError: if there is no data row or a required column is missing
    """
    text = (csv_content or "").strip()
    lines = text.splitlines()
    if len(lines) < 2:
        raise CSVFormatError("CSV must have at least a header row and one data row")
    
    reader = csv.reader(io.StringIO(text), delimiter=detect_separator(lines[0]))
    rows = [row for row in reader if any(cell.strip() for cell in row)]
    headers = [normalize_header(header) for header in rows[0]]
    
    missing = []
    if not any(header.startswith(INSTANCE_PREFIX) for header in headers):
        missing.append("Instance")
    missing.extend(column.title() for column in REQUIRED_COLUMNS if column not in headers)
    if missing:
        raise CSVFormatError(f"Missing required columns: {', '.join(missing)}")
    
    return headers, rows[1:]


def parse_when(value: str) -> Tuple[str, str]:
    """
    Parse a timestamp cell into ``(YYYY-MM-DD, HH:MM)``.
    
    Raises:
        ValueError: if no known format matches
    """
    text = " ".join((value or "").split())
    for fmt in WHEN_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        return parsed.strftime("%Y-%m-%d"), parsed.strftime("%H:%M")
    raise ValueError(f"Unparseable timestamp '{value}'")


def parse_bool(value: Optional[str]) -> Optional[bool]:
    """Y/Yes/true style flags; blank cells give None."""
    text = (value or "").strip().lower()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    return None


def parse_float(value: Optional[str]) -> Optional[float]:
    text = (value or "").strip().rstrip("%")
    try:
        return float(text) if text else None
    except ValueError:
        return None


def map_vessel_category(vessel: str) -> str:
    if vessel in VESSEL_MAPPING:
        return VESSEL_MAPPING[vessel]
    if vessel in VESSEL_CATEGORIES:
        return vessel
    return "Other"


def parse_quantity(value: str, vessel_category: str):
    """
    Turn a quantity cell into a typed quantity for the vessel.
    
    Accepts a bowl size word, ``Hits_<n>``, or a plain number. Numbers on
    bowl-size vessels are read as a position on the size scale. Anything
    else counts as 1.
    """
    text = (value or "").strip()
    config = get_quantity_config(vessel_category)
    
    if config["type"] == QuantityType.SIZE_CATEGORY and text.lower() in FLOWER_SIZES:
        return encode_quantity(vessel_category, text)
    
    hits = HITS_PATTERN.match(text)
    if hits:
        amount = float(hits.group(1))
    else:
        amount = parse_float(text)
        if amount is None:
            amount = 1.0
    
    if config["type"] == QuantityType.SIZE_CATEGORY:
        return migrate_legacy_quantity(vessel_category, amount)
    return encode_quantity(vessel_category, amount)


def build_location(row: Dict[str, str]) -> str:
    """``Location, City, State``, leaving out blanks and a city equal to the place."""
    place = row.get("location", "").strip()
    city = row.get("city", "").strip()
    state = row.get("state", "").strip()
    parts = [place]
    if city and city != place:
        parts.append(city)
    if state:
        parts.append(state)
    return ", ".join(part for part in parts if part)


def convert_row(row: Dict[str, str]) -> SessionCreate:
    """
    Convert one CSV row (keyed by normalized header) into a session draft.
    
    Raises:
        ValueError: if the timestamp or quantity cannot be read
    """
    date, time = parse_when(row.get("when", ""))
    
    raw_vessel = row.get("vessel", "").strip()
    vessel_category = map_vessel_category(raw_vessel)
    
    who_with = ["Solo"]
    if parse_bool(row.get("alone?")) is False and row.get("people"):
        who_with = row["people"]
    
    accessory = row.get("accessory used", "").strip()
    accessory = ACCESSORY_MAPPING.get(accessory, accessory) or "N/A"
    
    return SessionCreate(
        date=date,
        time=time,
        location=build_location(row),
        who_with=who_with,
        vessel_category=vessel_category,
        vessel=raw_vessel,
        accessory_used=accessory,
        my_vessel=parse_bool(row.get("your vessel")),
        my_substance=parse_bool(row.get("your substance")),
        strain_name=row.get("strain", "").strip() or "Unknown",
        strain_type=row.get("type", "").strip() or None,
        thc_percentage=parse_float(row.get("thc %")),
        purchased_legally=parse_bool(row.get("legal product_purchased?")),
        state_purchased=row.get("state purchased?", "").strip() or None,
        tobacco=row.get("tobacco", "").strip() or None,
        kief=parse_bool(row.get("kief")),
        concentrate=parse_bool(row.get("concentrate")),
        # The spreadsheet spells this column "Lavendar"
        lavender=parse_bool(row.get("lavendar", row.get("lavender"))),
        comments=row.get("comments", "").strip() or None,
        quantity=parse_quantity(row.get("quantity", ""), vessel_category),
    )


def iter_drafts(headers: List[str], rows: List[List[str]]):
    """Yield ``(row_number, draft, error)`` for each data row."""
    for row_number, values in enumerate(rows, start=1):
        if len(values) != len(headers):
            yield row_number, None, f"expected {len(headers)} columns, found {len(values)}"
            continue
        row = {header: value.strip() for header, value in zip(headers, values)}
        try:
            yield row_number, convert_row(row), None
        except ValueError as e:
            yield row_number, None, str(e)


def validate_csv(csv_content: str) -> CSVValidationResult:
    """Check the header and preview the first parsed rows without writing."""
    try:
        headers, rows = read_rows(csv_content)
    except CSVFormatError as e:
        return CSVValidationResult(valid=False, errors=[str(e)])
    
    errors: List[str] = []
    preview: List[SessionCreate] = []
    for row_number, draft, error in iter_drafts(headers, rows[:PREVIEW_ROWS]):
        if error:
            errors.append(f"Row {row_number}: {error}")
        else:
            preview.append(draft)
    
    return CSVValidationResult(valid=not errors, errors=errors, preview=preview)


def import_csv_sessions(db: Session, csv_content: str) -> BatchResult:
    """Import every data row; rows that fail are reported and skipped."""
    try:
        headers, rows = read_rows(csv_content)
    except CSVFormatError as e:
        return BatchResult(success=False, imported=0, total=0, errors=[str(e)])
    
    imported = 0
    errors: List[str] = []
    for row_number, draft, error in iter_drafts(headers, rows):
        if error is None:
            try:
                create_session(db, draft)
                imported += 1
                continue
            except TrackerError as e:
                db.rollback()
                error = getattr(e, "message", str(e))
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Database error importing CSV row {row_number}: {e}")
                error = "database error"
        errors.append(f"Row {row_number}: {error}")
    
    logger.info(f"CSV import: {imported} of {len(rows)} rows imported")
    if not imported and not errors:
        errors.append("No valid sessions found in CSV")
    return BatchResult(success=imported > 0, imported=imported, total=len(rows), errors=errors)
