"""
utils/export.py — Chord sheet Excel export using openpyxl.

Generates .xlsx files with one sheet per bed and a styled header row.
Columns: Interval, Crop, Frequency, Category, Instrument, Plants.
Below the intervals, a short summary block (voicing, water, brix).
"""

from io import BytesIO
from openpyxl.styles import Font, PatternFill, Alignment, Border, Side

from database import get_beds, get_bed, get_crops, get_bed_plantings
from models import Role
from utils.voicing import bed_effects


# Interval colors for the first column
ROLE_FILLS = {
    Role.ROOT: PatternFill(start_color='6D4C41', end_color='6D4C41', fill_type='solid'),
    Role.THIRD: PatternFill(start_color='4CAF50', end_color='4CAF50', fill_type='solid'),
    Role.FIFTH: PatternFill(start_color='FFB300', end_color='FFB300', fill_type='solid'),
    Role.SEVENTH: PatternFill(start_color='D32F2F', end_color='D32F2F', fill_type='solid'),
    Role.INOCULANT: PatternFill(start_color='00897B', end_color='00897B', fill_type='solid'),
    Role.AERIAL: PatternFill(start_color='7B1FA2', end_color='7B1FA2', fill_type='solid'),
}

HEADER_FONT = Font(name='Calibri', bold=True, color='FFFFFF', size=11)
HEADER_FILL = PatternFill(start_color='1565C0', end_color='1565C0', fill_type='solid')
HEADER_ALIGNMENT = Alignment(horizontal='center', vertical='center', wrap_text=True)
HEADER_BORDER = Border(
    bottom=Side(style='thin', color='0D47A1'),
    right=Side(style='thin', color='E2E8F0'),
)
CELL_BORDER = Border(
    bottom=Side(style='thin', color='E2E8F0'),
    right=Side(style='thin', color='E2E8F0'),
)

COLUMNS = ['Interval', 'Crop', 'Frequency', 'Category', 'Instrument', 'Plants']

XLSX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'


def sheet_title(bed):
    return f"Bed {bed.bed_number:02d} {bed.zone_name}"[:31]


def chord_rows(bed, plantings, crops_by_id):
    """Interval rows for one bed: ground plantings, then the two overlays."""
    rows = []
    for planting in plantings:
        crop = crops_by_id.get(planting.crop_id)
        rows.append((
            planting.role,
            crop.display_name if crop else '',
            f"{crop.frequency_hz}Hz" if crop and crop.frequency_hz else '',
            crop.category if crop else '',
            (crop.instrument_type or '') if crop else '',
            planting.plant_count,
        ))

    if bed.has_inoculant:
        rows.append((Role.INOCULANT, bed.inoculant_type, '', 'fungus', '', ''))

    aerial = crops_by_id.get(bed.aerial_crop_id)
    if aerial:
        rows.append((
            Role.AERIAL,
            aerial.display_name,
            f"{aerial.frequency_hz}Hz" if aerial.frequency_hz else '',
            aerial.category,
            aerial.instrument_type or '',
            '',
        ))
    return rows


def _build_sheet(ws, bed, plantings, crops_by_id):
    """Populate a worksheet with one bed's chord and styled header."""
    for col_idx, col_name in enumerate(COLUMNS, 1):
        cell = ws.cell(row=1, column=col_idx, value=col_name)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = HEADER_ALIGNMENT
        cell.border = HEADER_BORDER

    row_idx = 2
    for role, *values in chord_rows(bed, plantings, crops_by_id):
        role_cell = ws.cell(row=row_idx, column=1, value=role.value)
        role_cell.border = CELL_BORDER
        role_cell.fill = ROLE_FILLS[role]
        role_cell.font = Font(color='FFFFFF', bold=True)

        for col_idx, value in enumerate(values, 2):
            ws.cell(row=row_idx, column=col_idx, value=value).border = CELL_BORDER
        row_idx += 1

    effects = bed_effects(bed, plantings)
    score = effects['score']
    summary = [
        ('Zone', f"{bed.zone_name} ({bed.frequency_hz}Hz)"),
        ('Voicing', f"{score['label']} ({score['percentage']}%)"),
        ('Water', f"{round(effects['water_multiplier'] * 100)}% of normal"),
        ('Brix', bed.internal_brix if bed.internal_brix is not None else ''),
        ('Projected Brix', effects['projected_brix'] or ''),
        ('Signal', effects['signal']['label']),
    ]
    row_idx += 1
    for label, value in summary:
        ws.cell(row=row_idx, column=1, value=label).font = Font(bold=True)
        ws.cell(row=row_idx, column=2, value=value)
        row_idx += 1

    ws.column_dimensions['A'].width = 22
    ws.column_dimensions['B'].width = 28
    ws.column_dimensions['C'].width = 12
    ws.column_dimensions['D'].width = 12
    ws.column_dimensions['E'].width = 18
    ws.column_dimensions['F'].width = 10

    ws.freeze_panes = 'A2'


def _save(wb):
    buffer = BytesIO()
    wb.save(buffer)
    buffer.seek(0)
    return buffer


def generate_chord_sheet(bed_id):
    """Generate an Excel workbook for a single bed.

    Returns:
        (BytesIO buffer, filename) on success, (None, None) when the bed
        is unknown or has nothing planted.
    """
    import openpyxl

    bed = get_bed(bed_id)
    if not bed:
        return None, None

    plantings = get_bed_plantings(bed_id)
    if not plantings and not bed.has_inoculant and not bed.has_aerial:
        return None, None

    crops_by_id = {c.id: c for c in get_crops()}

    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = sheet_title(bed)
    _build_sheet(ws, bed, plantings, crops_by_id)

    return _save(wb), f"chord_sheet_bed_{bed.bed_number:02d}.xlsx"


def generate_chord_sheets():
    """Generate a workbook with one sheet per bed that has a chord.

    Returns:
        (BytesIO buffer, filename) on success, (None, None) on failure.
    """
    import openpyxl

    beds = get_beds()
    if not beds:
        return None, None

    crops_by_id = {c.id: c for c in get_crops()}

    wb = openpyxl.Workbook()
    wb.remove(wb.active)

    sheets_created = 0
    for bed in beds:
        plantings = get_bed_plantings(bed.id)
        if not plantings and not bed.has_inoculant and not bed.has_aerial:
            continue

        ws = wb.create_sheet(title=sheet_title(bed))
        _build_sheet(ws, bed, plantings, crops_by_id)
        sheets_created += 1

    if sheets_created == 0:
        return None, None

    return _save(wb), "chord_sheets_all_beds.xlsx"
