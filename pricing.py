import logging
import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Optional

logger = logging.getLogger(__name__)


class QuoteError(Exception):
    """Base error for a quote that cannot be produced."""
    status_code = 500

    def __init__(self, msg):
        super().__init__(msg)
        self.msg = msg


class ValidationError(QuoteError):
    status_code = 400


class NotFoundError(QuoteError):
    status_code = 404


class ConfigurationError(QuoteError):
    status_code = 500


class UnsupportedOptionError(QuoteError):
    status_code = 400


class PriceCategory(str, Enum):
    """Canonical price regions of the rate card."""
    LOCAL = "Local"
    STATE_REGION = "StateRegion"
    METRO_TIER1 = "MetroTier1"
    METRO_TIER2 = "MetroTier2"
    REST_OF_INDIA = "RestOfIndia"

    @property
    def label(self) -> str:
        return CATEGORY_LABELS[self]

    @property
    def match_token(self) -> str:
        """First word of the label, as it appears in urgent destination names."""
        first_word = self.label.split(' ')[0]
        return re.sub(r'[^a-z0-9]', '', first_word.lower())


CATEGORY_LABELS = {
    PriceCategory.LOCAL: 'Local (HYD)',
    PriceCategory.STATE_REGION: 'AP / Telangana',
    PriceCategory.METRO_TIER1: 'Metro City Mum, Del, Kol',
    PriceCategory.METRO_TIER2: 'Che, Blr',
    PriceCategory.REST_OF_INDIA: 'Rest of India',
}

# Checked in order; the first category with a matching marker wins.
CATEGORY_MARKERS = [
    (PriceCategory.LOCAL, ('hyd', 'local')),
    (PriceCategory.STATE_REGION, ('ap', 'telangana')),
    (PriceCategory.METRO_TIER1, ('mum', 'del', 'kol', 'metro')),
    (PriceCategory.METRO_TIER2, ('che', 'blr', 'bangalore', 'chen')),
]

NORMAL_UNDER_5KG = {
    PriceCategory.LOCAL: {'first250': 80, 'first500': 110, 'addl500': 60},
    PriceCategory.STATE_REGION: {'first250': 120, 'first500': 150, 'addl500': 70},
    PriceCategory.METRO_TIER1: {'first250': 180, 'first500': 200, 'addl500': 140},
    PriceCategory.METRO_TIER2: {'first250': 150, 'first500': 180, 'addl500': 110},
    PriceCategory.REST_OF_INDIA: {'first250': 200, 'first500': 240, 'addl500': 160},
}

# Per kg; None means the mode is not offered for that category.
NORMAL_PER_KG = {
    PriceCategory.LOCAL: {'surface': 70, 'air': None},
    PriceCategory.STATE_REGION: {'surface': 80, 'air': None},
    PriceCategory.METRO_TIER1: {'surface': 120, 'air': 200},
    PriceCategory.METRO_TIER2: {'surface': 110, 'air': 150},
    PriceCategory.REST_OF_INDIA: {'surface': 150, 'air': 250},
}

PER_KG_THRESHOLD_GRAMS = 5000
TRANSPORT_MODES = ('surface', 'air')
SERVICE_TYPES = ('normal', 'urgent')


def normalize_category(raw_category) -> PriceCategory:
    text = str(raw_category or '').lower()
    for category, markers in CATEGORY_MARKERS:
        if any(marker in text for marker in markers):
            return category
    return PriceCategory.REST_OF_INDIA


def to_grams(weight_kg) -> int:
    # Half-up: 0.0005 kg is 1 g.
    return int(math.floor(float(weight_kg) * 1000 + 0.5))


def parse_weight_kg(value) -> float:
    """Weight in kg as a positive float whose gram value is finite."""
    if isinstance(value, bool):
        raise ValidationError("weightKg must be a number")
    try:
        weight = float(value)
    except (TypeError, ValueError):
        raise ValidationError("weightKg must be a number")
    if not math.isfinite(weight) or weight <= 0:
        raise ValidationError("weightKg must be a finite number greater than zero")
    if not math.isfinite(weight * 1000):
        raise ValidationError("weightKg is too large")
    return weight


def ceil_div(a, b) -> int:
    return int(math.ceil(a / b))


def _clean_price(value):
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def _banded_price(weight_grams, first_250, first_500, addl_500):
    if weight_grams <= 250:
        return first_250
    if weight_grams <= 500:
        return first_500
    extra_units = ceil_div(weight_grams - 500, 500)
    return first_500 + extra_units * addl_500


def normalize_transport_mode(transport_mode) -> Optional[str]:
    if transport_mode is None:
        return None
    mode = str(transport_mode).strip().lower()
    if not mode:
        return None
    if mode not in TRANSPORT_MODES:
        raise ValidationError(f"Unknown transport mode: {transport_mode}")
    return mode


def calc_normal_price(category: PriceCategory, weight_grams: int, transport_mode: Optional[str] = None,
                      under_5kg_rates: Optional[Dict] = None, per_kg_rates: Optional[Dict] = None):
    """Price a normal-service shipment.

    Below 5 kg the banded table applies: a flat price up to 250 g, a flat
    price up to 500 g, then every started 500 g adds the increment rate.
    From 5 kg the weight is rounded up to whole kilograms and multiplied by
    the per-kg rate of the transport mode (surface when not given).
    """
    under_5kg_rates = NORMAL_UNDER_5KG if under_5kg_rates is None else under_5kg_rates
    per_kg_rates = NORMAL_PER_KG if per_kg_rates is None else per_kg_rates

    if weight_grams < PER_KG_THRESHOLD_GRAMS:
        band = under_5kg_rates.get(category)
        if not band:
            raise UnsupportedOptionError("Category not supported for <5kg")
        return _banded_price(weight_grams, band['first250'], band['first500'], band['addl500'])

    rates = per_kg_rates.get(category)
    if not rates:
        raise UnsupportedOptionError("Category not supported for >=5kg")
    mode = normalize_transport_mode(transport_mode) or 'surface'
    rate = rates.get(mode)
    if rate is None:
        label = category.label if isinstance(category, PriceCategory) else category
        raise UnsupportedOptionError(f"Transport mode {mode} not available for {label}")
    return ceil_div(weight_grams, 1000) * rate


def _destination_matches(destination, category: PriceCategory) -> bool:
    dest = str(destination or '').lower()
    return bool(dest) and category.match_token in dest


def _range_match_price(category, weight_grams, records):
    for record in records:
        if not _destination_matches(record.destination, category):
            continue
        if record.min_grams is None or record.max_grams is None:
            continue
        if record.min_grams <= weight_grams <= record.max_grams and record.price is not None:
            return record.price
    return None


def _band_column_price(category, weight_grams, records):
    by_destination = {}
    for record in records:
        dest = str(record.destination or '').strip()
        if not dest:
            continue
        by_destination.setdefault(dest, []).append(record)

    match_key = next((k for k in by_destination if _destination_matches(k, category)), None)
    if match_key is None:
        return None
    row = by_destination[match_key][0]
    if weight_grams <= 250 and row.first_250 is not None:
        return row.first_250
    if 250 < weight_grams <= 500 and row.first_500 is not None:
        return row.first_500
    if weight_grams > 500 and row.addl_500 is not None:
        return _banded_price(weight_grams, None, row.first_500 or 0, row.addl_500)
    return None


def resolve_urgent_price(category: PriceCategory, weight_grams: int, records: Iterable):
    """Find the urgent price for a category, or None when nothing fits.

    Explicit min/max weight rows are tried first; named weight-band columns
    are the fallback.
    """
    records = list(records or [])
    price = _range_match_price(category, weight_grams, records)
    if price is None:
        price = _band_column_price(category, weight_grams, records)
        if price is not None:
            logger.debug("Urgent price for %s at %dg taken from band columns", category.value, weight_grams)
    return _clean_price(price)


@dataclass
class QuoteResult:
    area_name: str
    category: PriceCategory
    service_type: str
    price: float
    weight_grams: int
    transport_mode: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            'ok': True,
            'areaName': self.area_name,
            'category': self.category.value,
            'categoryLabel': self.category.label,
            'serviceType': self.service_type,
            'price': self.price,
            'weightGrams': self.weight_grams,
            'transportMode': self.transport_mode,
        }


def require_rate_data(provider):
    provider.ensure_loaded()
    if not provider.available:
        raise ConfigurationError(
            "Required Excel files not found in data directory. Place Pincode and urgent files there."
        )


def quote_shipment(provider, pincode, weight_kg, service_type, transport_mode=None) -> QuoteResult:
    """Resolve a full quote against the reference data held by ``provider``."""
    require_rate_data(provider)

    service = str(service_type or '').strip().lower()
    if service not in SERVICE_TYPES:
        raise ValidationError(f"Unknown service type: {service_type}")
    mode = normalize_transport_mode(transport_mode)
    weight_grams = to_grams(parse_weight_kg(weight_kg))

    record = provider.find_pincode(pincode)
    if record is None:
        raise NotFoundError("Pincode not found in pincode file")
    if not record.region:
        raise ConfigurationError(
            "Category not found for this pincode in excel file. Ensure a Category/Region column exists."
        )
    category = normalize_category(record.region)

    if service == 'normal':
        price = calc_normal_price(category, weight_grams, mode)
        effective_mode = (mode or 'surface') if weight_grams >= PER_KG_THRESHOLD_GRAMS else None
        return QuoteResult(record.area_name, category, 'Normal', price, weight_grams, effective_mode)

    price = resolve_urgent_price(category, weight_grams, provider.urgent)
    if price is None:
        raise NotFoundError("Urgent price not available for this weight/category.")
    return QuoteResult(record.area_name, category, 'Urgent', price, weight_grams)
