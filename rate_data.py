import logging
import os
import re
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

logger = logging.getLogger(__name__)

PINCODE_FILE_TOKEN = 'pincode'
URGENT_FILE_TOKEN = 'urgent'
SUPPORTED_SUFFIXES = ('.xlsx', '.xlsm', '.csv')

# Logical field -> accepted headers, most specific first.
PINCODE_ALIASES = {
    'pincode': ['pincode', 'pin code', 'pin', 'postal code', 'zip'],
    'area_name': ['area', 'area name', 'areaname', 'location', 'city'],
}
# Every present column is kept; per row the first non-blank one wins.
REGION_ALIASES = ['category', 'region', 'destination', 'zone', 'state']

URGENT_ALIASES = {
    'destination': ['destination', 'dest', 'category', 'region', 'zone'],
    'min_grams': ['ming', 'min (g)', 'min', 'min weight', 'from (g)'],
    'max_grams': ['maxg', 'max (g)', 'max', 'max weight', 'to (g)'],
    'min_kg': ['min (kg)', 'minkg'],
    'max_kg': ['max (kg)', 'maxkg'],
    'price': ['price', 'rate', 'amount', 'charge'],
    'first_250': ['0 – 250 Gms', '0-250', '0-250 g', 'upto 250 gms', 'first 250 gms'],
    'first_500': ['250 – 500 Gms', '250-500', '250-500 g', 'upto 500 gms', 'first 500 gms'],
    'addl_500': ['Every ADDL 500 Gms', 'addl 500 gms', 'additional 500 gms',
                 'every additional 500 gms', 'addl 500'],
}


def compact_header(text):
    """Lower-case and drop everything but letters and digits."""
    return re.sub(r'[^a-z0-9]+', '', str(text or '').lower())


def resolve_columns(columns, aliases):
    """Map each logical field to the first header matching one of its aliases."""
    by_compact = {}
    for col in columns:
        by_compact.setdefault(compact_header(col), col)
    resolved = {}
    for logical, candidates in aliases.items():
        for candidate in candidates:
            col = by_compact.get(compact_header(candidate))
            if col is not None:
                resolved[logical] = col
                break
    return resolved


def present_columns(columns, candidates):
    """Headers matching any of ``candidates``, in candidate order."""
    found = []
    for candidate in candidates:
        col = resolve_columns(columns, {candidate: [candidate]}).get(candidate)
        if col is not None and col not in found:
            found.append(col)
    return found


def parse_number(value):
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return None if pd.isna(value) else float(value)
    text = str(value).strip().replace(',', '')
    text = re.sub(r'^(rs\.?|inr|₹)\s*', '', text, flags=re.IGNORECASE)
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def normalize_pincode(value):
    text = str(value if value is not None else '').strip()
    if re.fullmatch(r'\d+\.0+', text):
        text = text.split('.', 1)[0]
    return text


@dataclass
class PincodeRecord:
    pincode: str
    area_name: str = ''
    region: str = ''
    cells: List[str] = field(default_factory=list)


@dataclass
class UrgentRecord:
    destination: str = ''
    min_grams: Optional[float] = None
    max_grams: Optional[float] = None
    price: Optional[float] = None
    first_250: Optional[float] = None
    first_500: Optional[float] = None
    addl_500: Optional[float] = None


def read_table(path):
    """Read the first sheet of a workbook (or a CSV) as header + string cells."""
    path = Path(path)
    if path.suffix.lower() == '.csv':
        df = pd.read_csv(path, dtype=str)
    else:
        df = pd.read_excel(path, sheet_name=0, dtype=str)
    df.columns = [str(c).strip() if c is not None else '' for c in df.columns]
    return df.fillna('')


def build_pincode_records(df):
    columns = resolve_columns(df.columns, PINCODE_ALIASES)
    region_columns = present_columns(df.columns, REGION_ALIASES)
    records = []
    for row in df.to_dict(orient='records'):
        region = next((str(row[c]).strip() for c in region_columns if str(row[c]).strip()), '')
        records.append(PincodeRecord(
            pincode=normalize_pincode(row[columns['pincode']]) if 'pincode' in columns else '',
            area_name=str(row[columns['area_name']]).strip() if 'area_name' in columns else '',
            region=region,
            cells=[normalize_pincode(v) for v in row.values()],
        ))
    columns['region'] = region_columns
    return records, columns


def build_urgent_records(df):
    columns = resolve_columns(df.columns, URGENT_ALIASES)

    def _value(row, logical, scale=1):
        col = columns.get(logical)
        if col is None:
            return None
        number = parse_number(row[col])
        return None if number is None else number * scale

    records = []
    for row in df.to_dict(orient='records'):
        min_grams = _value(row, 'min_grams')
        max_grams = _value(row, 'max_grams')
        if min_grams is None and max_grams is None:
            min_grams = _value(row, 'min_kg', 1000)
            max_grams = _value(row, 'max_kg', 1000)
        records.append(UrgentRecord(
            destination=str(row[columns['destination']]).strip() if 'destination' in columns else '',
            min_grams=min_grams,
            max_grams=max_grams,
            price=_value(row, 'price'),
            first_250=_value(row, 'first_250'),
            first_500=_value(row, 'first_500'),
            addl_500=_value(row, 'addl_500'),
        ))
    return records, columns


def find_data_file(data_dir, token):
    for name in sorted(os.listdir(data_dir)):
        if name.startswith('~$'):
            continue
        if token in name.lower() and Path(name).suffix.lower() in SUPPORTED_SUFFIXES:
            return Path(data_dir) / name
    return None


def unsupported_data_files(data_dir):
    """Files named like a rate table but with a suffix that is not read."""
    tokens = (PINCODE_FILE_TOKEN, URGENT_FILE_TOKEN)
    return [
        name for name in sorted(os.listdir(data_dir))
        if not name.startswith('~$')
        and any(token in name.lower() for token in tokens)
        and Path(name).suffix.lower() not in SUPPORTED_SUFFIXES
    ]


class RateDataProvider:
    """Pincode and urgent-rate tables, loaded on first use and kept for the process.

    A missing data directory, an unmatched file or an unreadable workbook
    leaves both tables unavailable for good; there is no reload.
    """

    def __init__(self, data_dir):
        self.data_dir = Path(data_dir)
        self.pincodes: Optional[List[PincodeRecord]] = None
        self.urgent: Optional[List[UrgentRecord]] = None
        self.files: Dict[str, Optional[str]] = {'pincode': None, 'urgent': None}
        self.columns: Dict[str, Dict] = {'pincode': {}, 'urgent': {}}
        self._loaded = False
        self._lock = threading.Lock()

    @property
    def available(self):
        return self.pincodes is not None and self.urgent is not None

    def ensure_loaded(self):
        if self._loaded:
            return
        with self._lock:
            if self._loaded:
                return
            self._load()
            self._loaded = True

    def _load(self):
        if not self.data_dir.is_dir():
            logger.warning("Rate data directory %s does not exist", self.data_dir)
            return

        pincode_path = find_data_file(self.data_dir, PINCODE_FILE_TOKEN)
        urgent_path = find_data_file(self.data_dir, URGENT_FILE_TOKEN)
        if pincode_path is None or urgent_path is None:
            logger.warning(
                "Rate data files missing in %s (pincode=%s, urgent=%s); skipped unsupported files: %s; "
                "supported suffixes: %s",
                self.data_dir, pincode_path, urgent_path,
                unsupported_data_files(self.data_dir) or 'none', ', '.join(SUPPORTED_SUFFIXES)
            )
            return

        try:
            pincodes, pincode_columns = build_pincode_records(read_table(pincode_path))
            urgent, urgent_columns = build_urgent_records(read_table(urgent_path))
        except Exception:
            logger.exception("Failed to read rate data from %s", self.data_dir)
            return

        self.files = {'pincode': pincode_path.name, 'urgent': urgent_path.name}
        self.columns = {'pincode': pincode_columns, 'urgent': urgent_columns}
        self.pincodes = pincodes
        self.urgent = urgent
        logger.info(
            "Loaded %d pincode rows from %s (columns %s) and %d urgent rows from %s (columns %s)",
            len(pincodes), pincode_path.name, pincode_columns,
            len(urgent), urgent_path.name, urgent_columns
        )
        if 'pincode' not in pincode_columns:
            logger.warning("No pincode column in %s; matching pincodes against every cell", pincode_path.name)

    def find_pincode(self, pincode):
        if not self.pincodes:
            return None
        target = normalize_pincode(pincode)
        if not target:
            return None
        if 'pincode' in self.columns['pincode']:
            return next((r for r in self.pincodes if r.pincode == target), None)
        return next((r for r in self.pincodes if target in r.cells), None)

    def describe(self):
        self.ensure_loaded()
        return {
            'data_dir': str(self.data_dir),
            'available': self.available,
            'files': dict(self.files),
            'rows': {
                'pincode': len(self.pincodes) if self.pincodes is not None else 0,
                'urgent': len(self.urgent) if self.urgent is not None else 0,
            },
            'columns': self.columns,
        }
