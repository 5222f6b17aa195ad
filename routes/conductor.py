"""
routes/conductor.py — Bed planning JSON API (the conductor screen).

Provides:
- GET  /conductor/csrf-token                            — CSRF token for JSON clients
- GET  /conductor/zones                                 — Zone mix settings + recommendations
- GET  /conductor/beds                                  — All beds with voicing scores
- GET  /conductor/beds/<bed_id>                         — Bed detail, plantings, derived effects
- GET  /conductor/beds/<bed_id>/candidates/<role>       — Candidate pool for a role
- POST /conductor/beds/<bed_id>/check                   — Conflict check for a crop/role
- POST /conductor/beds/<bed_id>/generate                — Propose a full chord (no writes)
- POST /conductor/beds/<bed_id>/plantings               — Commit a crop to a ground role
- POST /conductor/beds/<bed_id>/plantings/<id>/delete   — Remove a planting
- POST /conductor/beds/<bed_id>/overlays                — Set inoculant / aerial overlays
- POST /conductor/beds/<bed_id>/brix                    — Record a brix reading
- POST /conductor/beds/<bed_id>/dimensions              — Change bed length/width

Every decision (conflicts, scores, effects) comes from conductor_engine and
utils/voicing; this module only loads, gates and persists.
"""

from flask import Blueprint, request, jsonify, current_app
from flask_wtf.csrf import generate_csrf

from conductor_engine import (
    candidates_for_role, check_conflict, check_conflicts, generate_chord,
    calculate_plant_count
)
from database import (
    get_beds, get_bed, get_crops, get_crop, get_bed_plantings, add_planting,
    remove_planting, update_bed_overlays, update_bed_brix, update_bed_dimensions
)
from models import Role, GROUND_ROLES, OVERLAY_ROLES
from utils.validators import (
    validate_role, validate_id, parse_flag, validate_brix, validate_dimension,
    validate_inoculant
)
from utils.voicing import bed_effects, vitality_status
from zones import (
    MASTER_MIX_SETTINGS, INOCULANT_OPTIONS, get_zone_recommendation,
    is_recommended_inoculant, is_recommended_aerial
)

conductor_bp = Blueprint('conductor', __name__, url_prefix='/conductor')

ASSIGNABLE_ROLES = GROUND_ROLES + OVERLAY_ROLES


# ========================================
# Helpers
# ========================================

def _payload():
    """Request body as a dict: JSON first, form fields otherwise."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


def _error(message, status=400, **extra):
    body = {'error': message}
    body.update(extra)
    return jsonify(body), status


def _committed_crops(bed, plantings, crops_by_id, include_aerial=True):
    """Crops already in the bed: planted ground roles plus the aerial overlay."""
    committed = [crops_by_id[p.crop_id] for p in plantings if p.crop_id in crops_by_id]
    if include_aerial and bed.aerial_crop_id in crops_by_id:
        committed.append(crops_by_id[bed.aerial_crop_id])
    return committed


def _planting_dict(planting, crops_by_id):
    crop = crops_by_id.get(planting.crop_id)
    return {
        'id': planting.id,
        'role': planting.role.value,
        'role_key': planting.role.key,
        'crop': crop.to_dict() if crop else None,
        'plant_count': planting.plant_count,
        'planted_at': planting.planted_at,
    }


def _bed_summary(bed, plantings):
    return {
        'id': bed.id,
        'bed_number': bed.bed_number,
        'zone_name': bed.zone_name,
        'frequency_hz': bed.frequency_hz,
        'inoculant_type': bed.inoculant_type,
        'aerial_crop_id': bed.aerial_crop_id,
        'internal_brix': bed.internal_brix,
        'bed_length_ft': bed.bed_length_ft,
        'bed_width_ft': bed.bed_width_ft,
        **bed_effects(bed, plantings),
    }


def _gate(verdicts, override):
    """
    Decide whether a set of verdicts lets a write through.

    Errors always refuse. Warnings refuse unless the caller confirmed
    with override mode.
    """
    if any(v.blocks for v in verdicts):
        return False, False
    if verdicts and not override:
        return False, True
    return True, False


# ========================================
# Zones
# ========================================

@conductor_bp.route('/csrf-token')
def csrf_token():
    """Token for the X-CSRFToken header on POSTs."""
    return jsonify({'csrf_token': generate_csrf()})


@conductor_bp.route('/zones')
def zones():
    """Zone metadata: Master Mix settings and 11th/13th recommendations."""
    result = []
    for setting in MASTER_MIX_SETTINGS:
        rec = get_zone_recommendation(setting.frequency_hz)
        result.append({
            **setting.to_dict(),
            'recommendation': rec.to_dict() if rec else None,
        })
    return jsonify({'zones': result, 'inoculant_options': INOCULANT_OPTIONS})


# ========================================
# Beds
# ========================================

@conductor_bp.route('/beds')
def list_beds():
    """All beds, each with its current voicing score and effects."""
    beds = get_beds()
    return jsonify([_bed_summary(bed, get_bed_plantings(bed.id)) for bed in beds])


@conductor_bp.route('/beds/<int:bed_id>')
def bed_detail(bed_id):
    """Single bed with plantings, overlays and derived effects."""
    bed = get_bed(bed_id)
    if not bed:
        return _error("Bed not found.", 404)

    plantings = get_bed_plantings(bed_id)
    crops_by_id = {c.id: c for c in get_crops()}
    aerial = crops_by_id.get(bed.aerial_crop_id)

    detail = _bed_summary(bed, plantings)
    detail.update({
        'notes': bed.notes,
        'plantings': [_planting_dict(p, crops_by_id) for p in plantings],
        'aerial_crop': aerial.to_dict() if aerial else None,
        'inoculant_recommended': is_recommended_inoculant(bed.frequency_hz, bed.inoculant_type),
        'aerial_recommended': is_recommended_aerial(
            bed.frequency_hz, aerial.display_name if aerial else None),
    })
    return jsonify(detail)


@conductor_bp.route('/beds/<int:bed_id>/candidates/<role>')
def bed_candidates(bed_id, role):
    """Candidate pool for one role, each annotated with its conflict verdict."""
    bed = get_bed(bed_id)
    if not bed:
        return _error("Bed not found.", 404)

    parsed_role, error = validate_role(role, allowed=ASSIGNABLE_ROLES)
    if error:
        return _error(error)

    catalog = get_crops()
    crops_by_id = {c.id: c for c in catalog}
    plantings = get_bed_plantings(bed_id)
    committed = _committed_crops(bed, plantings, crops_by_id)

    candidates = []
    for crop in candidates_for_role(catalog, bed.frequency_hz, parsed_role):
        verdict = check_conflict(crop, bed.frequency_hz, parsed_role, committed=committed)
        candidates.append({
            'crop': crop.to_dict(),
            'plant_count': calculate_plant_count(
                crop.spacing_inches, bed.bed_length_ft, bed.bed_width_ft),
            'verdict': verdict.to_dict(),
        })

    return jsonify({'role': parsed_role.value, 'candidates': candidates})


@conductor_bp.route('/beds/<int:bed_id>/check', methods=['POST'])
def bed_check(bed_id):
    """Conflict check for a crop in a role, without committing anything."""
    bed = get_bed(bed_id)
    if not bed:
        return _error("Bed not found.", 404)

    data = _payload()
    crop_id, error = validate_id(data.get('crop_id'), 'crop_id')
    if error:
        return _error(error)
    role, error = validate_role(data.get('role'), allowed=ASSIGNABLE_ROLES)
    if error:
        return _error(error)
    override = parse_flag(data.get('override'))

    crop = get_crop(crop_id)
    if not crop:
        return _error("Crop not found.", 404)

    crops_by_id = {c.id: c for c in get_crops()}
    committed = _committed_crops(bed, get_bed_plantings(bed_id), crops_by_id)

    verdict = check_conflict(crop, bed.frequency_hz, role, override, committed)
    conflicts = check_conflicts(crop, bed.frequency_hz, role, override, committed)
    return jsonify({
        'verdict': verdict.to_dict(),
        'conflicts': [v.to_dict() for v in conflicts],
    })


@conductor_bp.route('/beds/<int:bed_id>/generate', methods=['POST'])
def bed_generate(bed_id):
    """Propose a chord for the bed. Uses the committed Root unless one is given."""
    bed = get_bed(bed_id)
    if not bed:
        return _error("Bed not found.", 404)

    data = _payload()
    catalog = get_crops()
    crops_by_id = {c.id: c for c in catalog}

    root_crop = None
    if data.get('root_crop_id') not in (None, ''):
        root_id, error = validate_id(data.get('root_crop_id'), 'root_crop_id')
        if error:
            return _error(error)
        root_crop = crops_by_id.get(root_id)
        if not root_crop:
            return _error("Crop not found.", 404)
    else:
        for planting in get_bed_plantings(bed_id):
            if planting.role == Role.ROOT:
                root_crop = crops_by_id.get(planting.crop_id)

    chord = generate_chord(
        catalog, bed.frequency_hz, root_crop, bed.bed_length_ft, bed.bed_width_ft)
    if chord is None:
        return jsonify({'chord': None, 'message': "Choose a Root crop before generating a chord."})

    return jsonify({'chord': chord.to_dict()})


# ========================================
# Plantings
# ========================================

@conductor_bp.route('/beds/<int:bed_id>/plantings', methods=['POST'])
def bed_add_planting(bed_id):
    """Commit a crop to a ground role after the conflict gate."""
    bed = get_bed(bed_id)
    if not bed:
        return _error("Bed not found.", 404)

    data = _payload()
    crop_id, error = validate_id(data.get('crop_id'), 'crop_id')
    if error:
        return _error(error)
    role, error = validate_role(data.get('role'), allowed=GROUND_ROLES)
    if error:
        return _error(error)
    override = parse_flag(data.get('override'))

    crop = get_crop(crop_id)
    if not crop:
        return _error("Crop not found.", 404)

    plantings = get_bed_plantings(bed_id)
    if any(p.role == role for p in plantings):
        return _error(f"The {role.value} role is already filled in this bed.", 409)

    crops_by_id = {c.id: c for c in get_crops()}
    committed = _committed_crops(bed, plantings, crops_by_id)
    verdicts = check_conflicts(crop, bed.frequency_hz, role, override, committed)

    accepted, requires_override = _gate(verdicts, override)
    if not accepted:
        current_app.logger.info(
            "Refused %s as %s in bed %s: %s",
            crop.name, role.value, bed.bed_number, [v.kind.value for v in verdicts])
        return _error(
            "Conflict detected.", 409,
            requires_override=requires_override,
            verdicts=[v.to_dict() for v in verdicts],
        )

    plant_count = calculate_plant_count(crop.spacing_inches, bed.bed_length_ft, bed.bed_width_ft)
    planting_id, error = add_planting(bed_id, crop_id, role, plant_count)
    if error:
        return _error(error, 409)

    current_app.logger.info(
        "Planted %s x%d as %s in bed %s", crop.name, plant_count, role.value, bed.bed_number)
    return jsonify({
        'planting_id': planting_id,
        'plant_count': plant_count,
        'verdicts': [v.to_dict() for v in verdicts],
    }), 201


@conductor_bp.route('/beds/<int:bed_id>/plantings/<int:planting_id>/delete', methods=['POST'])
def bed_remove_planting(bed_id, planting_id):
    """Remove a planting. Removing and re-adding is the only way to swap a crop."""
    if not remove_planting(bed_id, planting_id):
        return _error("Planting not found.", 404)
    return jsonify({'removed': planting_id})


# ========================================
# Overlays and measurements
# ========================================

@conductor_bp.route('/beds/<int:bed_id>/overlays', methods=['POST'])
def bed_overlays(bed_id):
    """Set the 11th (inoculant) and/or 13th (aerial crop) overlay.

    Keys left out of the body keep their current value; an explicit
    null/empty value clears the overlay.
    """
    bed = get_bed(bed_id)
    if not bed:
        return _error("Bed not found.", 404)

    data = _payload()
    override = parse_flag(data.get('override'))

    inoculant_type = bed.inoculant_type
    if 'inoculant_type' in data:
        inoculant_type, error = validate_inoculant(data.get('inoculant_type'))
        if error:
            return _error(error)

    aerial_crop_id = bed.aerial_crop_id
    verdicts = []
    if 'aerial_crop_id' in data:
        raw = data.get('aerial_crop_id')
        if raw in (None, ''):
            aerial_crop_id = None
        else:
            aerial_crop_id, error = validate_id(raw, 'aerial_crop_id')
            if error:
                return _error(error)
            crop = get_crop(aerial_crop_id)
            if not crop:
                return _error("Crop not found.", 404)

            crops_by_id = {c.id: c for c in get_crops()}
            committed = _committed_crops(
                bed, get_bed_plantings(bed_id), crops_by_id, include_aerial=False)
            verdicts = check_conflicts(crop, bed.frequency_hz, Role.AERIAL, override, committed)
            accepted, requires_override = _gate(verdicts, override)
            if not accepted:
                return _error(
                    "Conflict detected.", 409,
                    requires_override=requires_override,
                    verdicts=[v.to_dict() for v in verdicts],
                )

    if not update_bed_overlays(bed_id, inoculant_type, aerial_crop_id):
        return _error("Could not update overlays.", 500)

    return jsonify({
        'inoculant_type': inoculant_type,
        'aerial_crop_id': aerial_crop_id,
        'verdicts': [v.to_dict() for v in verdicts],
    })


@conductor_bp.route('/beds/<int:bed_id>/brix', methods=['POST'])
def bed_brix(bed_id):
    """Record (or clear) the bed's measured brix; vitality follows from it."""
    bed = get_bed(bed_id)
    if not bed:
        return _error("Bed not found.", 404)

    brix, error = validate_brix(_payload().get('brix'))
    if error:
        return _error(error)

    status = vitality_status(brix)
    if not update_bed_brix(bed_id, brix, status):
        return _error("Could not update brix.", 500)
    return jsonify({'internal_brix': brix, 'vitality_status': status})


@conductor_bp.route('/beds/<int:bed_id>/dimensions', methods=['POST'])
def bed_dimensions(bed_id):
    """Change bed length/width. Existing plantings keep their stored counts."""
    bed = get_bed(bed_id)
    if not bed:
        return _error("Bed not found.", 404)

    data = _payload()
    length_ft, error = validate_dimension(data.get('length_ft'), 'Length')
    if error:
        return _error(error)
    width_ft, error = validate_dimension(data.get('width_ft'), 'Width')
    if error:
        return _error(error)

    if not update_bed_dimensions(bed_id, length_ft, width_ft):
        return _error("Could not update dimensions.", 500)
    return jsonify({'bed_length_ft': length_ft, 'bed_width_ft': width_ft})
