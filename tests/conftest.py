import pytest
import pandas as pd

from rate_data import RateDataProvider

PINCODE_ROWS = [
    {'Pincode': 500001, 'Area Name': 'Abids', 'Category': 'Hyderabad Local'},
    {'Pincode': 400001, 'Area Name': 'Fort', 'Category': 'Mumbai Metro'},
    {'Pincode': 600001, 'Area Name': 'Parrys', 'Category': 'Chennai'},
    {'Pincode': 999999, 'Area Name': 'Nowhere', 'Category': ''},
]

# One range-style row and one band-style row in the same sheet.
URGENT_ROWS = [
    {'Destination': 'Local', 'MinG': 0, 'MaxG': 250, 'Price': 90,
     '0 – 250 Gms': None, '250 – 500 Gms': None, 'Every ADDL 500 Gms': None},
    {'Destination': 'Metro', 'MinG': None, 'MaxG': None, 'Price': None,
     '0 – 250 Gms': 150, '250 – 500 Gms': 200, 'Every ADDL 500 Gms': 100},
]


def write_sheet(path, rows):
    pd.DataFrame(rows).to_excel(path, index=False)
    return path


@pytest.fixture
def data_dir(tmp_path):
    """A data directory holding a pincode workbook and an urgent workbook."""
    write_sheet(tmp_path / 'Pincode List.xlsx', PINCODE_ROWS)
    write_sheet(tmp_path / 'Urgent Rates.xlsx', URGENT_ROWS)
    return tmp_path


@pytest.fixture
def provider(data_dir):
    return RateDataProvider(data_dir)


@pytest.fixture
def urgent_rows():
    return [dict(row) for row in URGENT_ROWS]


@pytest.fixture
def sheet_writer():
    return write_sheet
