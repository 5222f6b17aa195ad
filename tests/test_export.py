"""
tests/test_export.py — Chord sheet Excel export.
"""

import pytest
import os
import tempfile

import openpyxl

from app import create_app
from database import init_db, seed_defaults, get_crops, add_planting, update_bed_overlays
from models import Role
from utils.export import generate_chord_sheet, generate_chord_sheets, XLSX_MIMETYPE


@pytest.fixture
def app_context():
    """Create a test app context with isolated database."""
    db_fd, db_path = tempfile.mkstemp()

    app = create_app({
        'TESTING': True,
        'DATABASE': db_path,
        'SECRET_KEY': 'dev-key-for-testing',
        'WTF_CSRF_ENABLED': False,
    })

    with app.app_context():
        init_db()
        seed_defaults()
        yield app

    os.close(db_fd)
    os.unlink(db_path)


@pytest.fixture
def planted_bed(app_context):
    """Bed 5 (Solar) with a Root, a 3rd and both overlays."""
    ids = {c.name: c.id for c in get_crops()}
    add_planting(5, ids['corn'], Role.ROOT, 277)
    add_planting(5, ids['pole_bean'], Role.THIRD, 1108)
    update_bed_overlays(5, 'Wine Cap', ids['golden_fennel'])
    return 5


def test_empty_bed_has_nothing_to_export(app_context):
    assert generate_chord_sheet(5) == (None, None)
    assert generate_chord_sheets() == (None, None)


def test_unknown_bed(app_context):
    assert generate_chord_sheet(999) == (None, None)


def test_single_bed_sheet(planted_bed):
    buffer, filename = generate_chord_sheet(planted_bed)
    assert filename == 'chord_sheet_bed_05.xlsx'

    wb = openpyxl.load_workbook(buffer)
    ws = wb.active
    assert ws.title == 'Bed 05 Solar'
    assert [c.value for c in ws[1]] == ['Interval', 'Crop', 'Frequency', 'Category', 'Instrument', 'Plants']
    assert ws['A2'].value == 'Root (Lead)'
    assert ws['B2'].value == 'Corn'
    assert ws['C2'].value == '528Hz'
    assert ws['F2'].value == 277
    assert ws['A3'].value == '3rd (Triad)'
    assert ws['A4'].value == '11th (Fungal Network)'
    assert ws['B4'].value == 'Wine Cap'
    assert ws['A5'].value == '13th (Aerial Signal)'
    assert ws['B5'].value == 'Golden Fennel'

    summary = {ws.cell(row=r, column=1).value: ws.cell(row=r, column=2).value
               for r in range(7, ws.max_row + 1)}
    assert summary['Zone'] == 'Solar (528Hz)'
    assert summary['Voicing'] == 'Triad (67%)'
    assert summary['Water'] == '90% of normal'


def test_all_beds_workbook(planted_bed):
    ids = {c.name: c.id for c in get_crops()}
    add_planting(1, ids['beta_vulgaris'], Role.ROOT, 1039)

    buffer, filename = generate_chord_sheets()
    assert filename == 'chord_sheets_all_beds.xlsx'
    wb = openpyxl.load_workbook(buffer)
    assert wb.sheetnames == ['Bed 01 Root', 'Bed 05 Solar']


def test_export_routes(app_context, planted_bed):
    client = app_context.test_client()

    rv = client.get('/export/chord-sheet/5')
    assert rv.status_code == 200
    assert rv.mimetype == XLSX_MIMETYPE

    assert client.get('/export/chord-sheet/6').status_code == 404
    assert client.get('/export/chord-sheets').status_code == 200
