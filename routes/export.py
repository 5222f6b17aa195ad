"""
routes/export.py — Chord sheet Excel downloads.

Provides:
- GET /export/chord-sheet/<bed_id>   — Download one bed's chord sheet
- GET /export/chord-sheets           — Download all planted beds, one sheet each
"""

from flask import Blueprint, jsonify, send_file

from utils.export import generate_chord_sheet, generate_chord_sheets, XLSX_MIMETYPE

export_bp = Blueprint('export', __name__, url_prefix='/export')


@export_bp.route('/chord-sheet/<int:bed_id>')
def export_chord_sheet(bed_id):
    """Export a single bed's chord as Excel."""
    buffer, filename = generate_chord_sheet(bed_id)
    if not buffer:
        return jsonify({'error': "Nothing to export for this bed."}), 404

    return send_file(
        buffer,
        as_attachment=True,
        download_name=filename,
        mimetype=XLSX_MIMETYPE
    )


@export_bp.route('/chord-sheets')
def export_chord_sheets():
    """Export every bed with a chord as a multi-sheet workbook."""
    buffer, filename = generate_chord_sheets()
    if not buffer:
        return jsonify({'error': "Nothing to export yet."}), 404

    return send_file(
        buffer,
        as_attachment=True,
        download_name=filename,
        mimetype=XLSX_MIMETYPE
    )
