"""
Catalog import pipeline: spreadsheet export bytes -> Product records.

Responsibilities:
- encoding resolution (strict UTF-8, then lossy GB18030)
- line/field splitting with double-quote awareness
- fuzzy header -> canonical field mapping
- per-cell cleanup with defaults for anything missing or malformed

Only a missing header or missing data rows aborts an import. Everything else
degrades to a default and is recorded in the report.
"""

from __future__ import annotations

import codecs
import logging
import re
import time
from typing import Dict, List, Optional, Sequence

from charset_normalizer import from_bytes

from .errors import FormatError
from .models import EncodingReport, ImportReport, ImportResult, Product, ReportItem
from .rules import (
    BOM,
    DEFAULT_CATEGORY,
    DEFAULT_NAME,
    DEFAULT_UNIT,
    FALLBACK_ENCODING,
    HEADER_KEYWORDS,
    PRICE_FIELDS,
    SKU_PLACEHOLDER,
    SOURCE_ENCODING,
    TEXT_FIELDS,
)

logger = logging.getLogger(__name__)

NOT_FOUND = -1

_LINE_SPLIT = re.compile(r"\r?\n")
_NON_NUMERIC = re.compile(r"[^0-9.]")
_LEADING_NUMBER = re.compile(r"[0-9]+(?:\.[0-9]*)?|\.[0-9]+")


def _replace_with_euro(exc: UnicodeDecodeError) -> tuple[str, int]:
    # A lone 0x80 is the euro sign in GBK-family files; anything else undecodable is U+FFFD.
    if exc.object[exc.start] == 0x80:
        return "\u20ac", exc.start + 1
    return "\ufffd", exc.end


codecs.register_error("giftset-euro", _replace_with_euro)

_TEXT_DEFAULTS = {
    "name": DEFAULT_NAME,
    "unit": DEFAULT_UNIT,
    "category": DEFAULT_CATEGORY,
    "spec": "",
    "image": "",
}


def _decode(raw: bytes) -> tuple[str, str, bool]:
    try:
        return raw.decode(SOURCE_ENCODING), SOURCE_ENCODING, False
    except UnicodeDecodeError:
        # Lossy on purpose: GB18030 with replacement never raises.
        return raw.decode(FALLBACK_ENCODING, errors="giftset-euro"), FALLBACK_ENCODING, True


def decode_bytes(raw: bytes) -> str:
    """Decode as strict UTF-8, falling back to GB18030 (GBK superset) for legacy office exports."""
    text, _, _ = _decode(raw)
    return text


def detect_encoding(raw: bytes) -> Optional[str]:
    """Best-effort guess for the report only; the decode rule above is fixed."""
    match = from_bytes(raw).best()
    if match is None:
        return None
    return match.encoding


def parse_line(line: str) -> List[str]:
    """
    Split one line on commas that sit outside double quotes.

    Every quote toggles the quoted state, so "" does not produce a literal
    quote character.
    """
    fields: List[str] = []
    current: List[str] = []
    in_quotes = False

    for char in line:
        if char == '"':
            in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            fields.append("".join(current).strip())
            current = []
        else:
            current.append(char)

    fields.append("".join(current).strip())
    return fields


def parse_rows(text: str) -> List[List[str]]:
    if text.startswith(BOM):
        text = text[len(BOM):]

    lines = [line for line in _LINE_SPLIT.split(text) if line.strip() != ""]
    if len(lines) < 2:
        raise FormatError(f"expected a header and at least one data row, got {len(lines)} line(s)")

    return [parse_line(line) for line in lines]


def map_fields(
    header: Sequence[str],
    keywords: Dict[str, Sequence[str]] = HEADER_KEYWORDS,
) -> Dict[str, int]:
    """
    For each canonical field, the index of the leftmost header cell containing
    any of its keywords (case-insensitive), or -1.
    """
    lowered = [cell.lower() for cell in header]
    mapping: Dict[str, int] = {}

    for field, candidates in keywords.items():
        mapping[field] = NOT_FOUND
        for idx, cell in enumerate(lowered):
            if any(keyword in cell for keyword in candidates):
                mapping[field] = idx
                break

    return mapping


def clean_number(value: Optional[str]) -> float:
    """
    Keep digits and dots only, then read the leading decimal number.

    "¥12.50" -> 12.5, "1,200元" -> 1200.0, "N/A" -> 0.0.
    """
    if not value:
        return 0.0
    match = _LEADING_NUMBER.match(_NON_NUMERIC.sub("", value))
    if match is None:
        return 0.0
    return float(match.group())


def _cell(cols: Sequence[str], idx: int) -> str:
    if idx < len(cols):
        return cols[idx].strip()
    return ""


def normalize_records(
    rows: Sequence[Sequence[str]],
    mapping: Dict[str, int],
    *,
    batch_stamp: Optional[int] = None,
    warnings: Optional[List[ReportItem]] = None,
) -> List[Product]:
    """
    Build one Product per data row.

    `rows` excludes the header. Ids combine the batch timestamp (ms) with the
    row index so a batch never collides with itself.
    """
    stamp = batch_stamp if batch_stamp is not None else int(time.time() * 1000)
    products: List[Product] = []

    for i, cols in enumerate(rows):
        record: Dict[str, object] = {"id": f"{stamp}-{i}", "manufacturer": ""}

        for field in TEXT_FIELDS:
            idx = mapping.get(field, NOT_FOUND)
            if idx != NOT_FOUND:
                record[field] = _cell(cols, idx)
            elif field == "sku":
                record[field] = SKU_PLACEHOLDER.format(index=i)
            else:
                record[field] = _TEXT_DEFAULTS[field]

        for field in PRICE_FIELDS:
            idx = mapping.get(field, NOT_FOUND)
            if idx == NOT_FOUND:
                record[field] = 0.0
                continue

            raw = _cell(cols, idx)
            number = clean_number(raw)
            if raw and warnings is not None and _LEADING_NUMBER.search(raw) is None:
                warnings.append(ReportItem(
                    row=i + 2,
                    column=field,
                    issue="numeric_parse_failure",
                    value=raw,
                    action="set_to_0",
                ))
            record[field] = number

        products.append(Product(**record))

    return products


def import_csv_bytes(raw: bytes, *, batch_stamp: Optional[int] = None) -> ImportResult:
    """
    Full pipeline. Raises FormatError when there is nothing to import;
    every other problem ends up as a report warning.
    """
    text, decode_used, decode_fallback = _decode(raw)
    if decode_fallback:
        logger.warning("input is not valid UTF-8, decoded as %s", decode_used)

    rows = parse_rows(text)
    header, data = rows[0], rows[1:]

    mapping = map_fields(header)
    warnings: List[ReportItem] = []
    for field in (*TEXT_FIELDS, *PRICE_FIELDS):
        if mapping[field] == NOT_FOUND:
            warnings.append(ReportItem(
                column=field,
                issue="field_not_found",
                action="default",
            ))

    products = normalize_records(data, mapping, batch_stamp=batch_stamp, warnings=warnings)

    report = ImportReport(
        rows=len(products),
        encoding=EncodingReport(
            detected=detect_encoding(raw),
            decode_used=decode_used,
            decode_fallback=decode_fallback,
        ),
        mapping=mapping,
        warnings=warnings,
    )
    logger.info(
        "parsed %d product row(s), %d warning(s), unmapped: %s",
        len(products),
        len(warnings),
        [f for f, idx in mapping.items() if idx == NOT_FOUND],
    )
    return ImportResult(products=products, report=report)
