"""
conductor_engine.py — Role assignment and conflict detection for garden beds.

This module implements:
- Role resolution: filtering the crop catalog into per-interval candidate pools
- Conflict detection: classifying a candidate crop against the crops already
  committed to a bed, one verdict per check
- Chord generation: proposing a full voicing (3rd, 5th, 7th, 11th, 13th)
  around a caller-chosen Root in one deterministic pass
- Plant counts: hexagonal-packing density from crop spacing and bed size

Algorithm details:
- Conflict priority (first match wins):
    frequency > nutritional > structural > pathological > vibrational
- Frequency mismatch is an error (blocking) unless override mode is on,
  in which case it is downgraded to a warning. Overlay roles are
  zone-agnostic and skip the frequency check.
- Pairwise dimensions compare namespaced conflict tags:
    nutrient:<x>  shared heavy-feeding demand    → nutritional
    structure:<x> shared canopy/root architecture → structural
                  (two tree-category crops always collide)
    pest:<x>      shared pest/disease exposure   → pathological
- Generation order: 3rd → 5th → 7th → 11th (inoculant) → 13th (aerial)
- Selection per role: conflict-free candidates first, then the first
  non-blocking warning candidate; catalog order breaks ties
- Plant count: (L_in * W_in) / (spacing² * 0.866), rounded down, minimum 1

Nothing in here touches the database. Callers pass catalog snapshots and
committed crops in, and persist whatever they accept themselves.
"""

import logging
import math

from models import (
    Role, ConflictKind, Severity, ConflictVerdict, ChordAssignment,
    ChordSlot, OverlaySlot, GROUND_ROLES, OVERLAY_ROLES, parse_role
)
from zones import (
    get_master_mix_setting, get_zone_recommendation, resolve_inoculant_type
)

logger = logging.getLogger(__name__)


DEFAULT_BED_LENGTH_FT = 60
DEFAULT_BED_WIDTH_FT = 4

# Hexagonal packing: each plant occupies spacing² * sin(60°)
HEX_PACKING_FACTOR = 0.866

# 13th interval is scattered canopy, 1 plant per ~100 sq ft
AERIAL_PLANT_COUNT = 2

MIN_PLANT_COUNT = 1

# Categories admitted to an overlay role regardless of frequency
OVERLAY_CATEGORIES = {
    Role.INOCULANT: frozenset({'fungus'}),
    Role.AERIAL: frozenset({'tree', 'perennial'}),
}

# Categories that compete for canopy when doubled up
CANOPY_CATEGORIES = frozenset({'tree'})

CHORD_ORDER = (Role.THIRD, Role.FIFTH, Role.SEVENTH)
OVERLAY_ORDER = (Role.INOCULANT, Role.AERIAL)


def round_half_up(value):
    """Round to the nearest integer, .5 going up (not banker's rounding)."""
    return int(math.floor(value + 0.5))


def _crop_name(crop):
    if crop is None:
        return "Unknown crop"
    return getattr(crop, 'common_name', None) or getattr(crop, 'name', None) or "Unknown crop"


def _crop_key(crop):
    """Identity used for 'same crop' checks: catalog id, else the object itself."""
    crop_id = getattr(crop, 'id', None)
    return ('id', crop_id) if crop_id is not None else ('obj', id(crop))


def _tags(crop, dimension):
    try:
        return crop.tags_for(dimension)
    except AttributeError:
        return frozenset()


def _category(crop):
    category = getattr(crop, 'category', None)
    return category.lower() if isinstance(category, str) else ''


# ========================================
# Role Resolver
# ========================================

def candidates_for_role(catalog, frequency_hz, role):
    """
    Filter the catalog down to the crops that may fill a role in a bed.

    Ground roles require an exact match on both frequency and preferred
    role. Overlay roles also accept overlay-eligible crops and crops of
    an overlay category (trees/perennials for the aerial canopy, fungi
    for the inoculant network) from any zone. The inoculant pool never
    takes tree/perennial crops on category alone; canopy crops reach it
    only when marked overlay-eligible.

    Args:
        catalog: iterable of Crop records, in catalog order
        frequency_hz: the bed's target frequency
        role: Role (or its label/key)

    Returns:
        list of Crop, catalog order preserved. Empty when nothing fits.
    """
    role = parse_role(role)
    if role is None or role == Role.OVERLAY:
        return []

    candidates = []
    for crop in catalog or ():
        if crop is None:
            continue
        preferred = parse_role(getattr(crop, 'preferred_role', None))
        crop_frequency = getattr(crop, 'frequency_hz', None)

        if preferred is None and role in GROUND_ROLES:
            logger.debug("Skipping %s: no preferred role", _crop_name(crop))
            continue

        if crop_frequency is not None and crop_frequency == frequency_hz and preferred == role:
            candidates.append(crop)
            continue

        if role in OVERLAY_ROLES:
            if preferred == Role.OVERLAY or _category(crop) in OVERLAY_CATEGORIES[role]:
                candidates.append(crop)

    return candidates


# ========================================
# Conflict Detector
# ========================================

def _nutritional_overlap(candidate, other):
    return _tags(candidate, 'nutrient') & _tags(other, 'nutrient')


def _structural_overlap(candidate, other):
    shared = set(_tags(candidate, 'structure') & _tags(other, 'structure'))
    if _category(candidate) in CANOPY_CATEGORIES and _category(other) in CANOPY_CATEGORIES:
        shared.add('canopy')
    return frozenset(shared)


def _pathological_overlap(candidate, other):
    return _tags(candidate, 'pest') & _tags(other, 'pest')


# Pairwise dimensions in priority order
PAIRWISE_CHECKS = (
    (ConflictKind.NUTRITIONAL, _nutritional_overlap,
     'both draw heavily on {tags}'),
    (ConflictKind.STRUCTURAL, _structural_overlap,
     'compete for the same {tags} space'),
    (ConflictKind.PATHOLOGICAL, _pathological_overlap,
     'share susceptibility to {tags}'),
)


def _role_matches(preferred, role):
    if preferred == role:
        return True
    return preferred == Role.OVERLAY and role in OVERLAY_ROLES


def check_conflict(candidate, frequency_hz, role, override_mode=False, committed=()):
    """
    Classify a candidate crop for a role in a bed.

    Only one verdict is returned: the first conflict found in priority
    order. Use check_conflicts() for the per-crop breakdown.

    Args:
        candidate: Crop being considered
        frequency_hz: the bed's target frequency
        role: target Role (or its label/key)
        override_mode: caller-supplied flag that downgrades a frequency
            mismatch from error to warning
        committed: Crops already in the bed (or earlier in a generation pass)

    Returns:
        ConflictVerdict. kind == NONE when the crop fits cleanly.
    """
    role = parse_role(role)
    name = _crop_name(candidate)

    # A missing crop blocks regardless of role or override mode
    if candidate is None:
        return ConflictVerdict(
            blocks=True,
            severity=Severity.ERROR,
            kind=ConflictKind.FREQUENCY,
            message="No crop supplied.",
        )

    # Step 1: frequency gate (the candidate must be tuned to the bed)
    if role not in OVERLAY_ROLES:
        crop_frequency = getattr(candidate, 'frequency_hz', None)
        if crop_frequency is None or crop_frequency != frequency_hz:
            severity = Severity.WARNING if override_mode else Severity.ERROR
            heard = f"{crop_frequency}Hz" if crop_frequency is not None else "no frequency"
            label = role.value if role else "role"
            return ConflictVerdict(
                blocks=severity == Severity.ERROR,
                severity=severity,
                kind=ConflictKind.FREQUENCY,
                message=(
                    f'"{name}" ({heard}) is out of tune with this bed '
                    f'({frequency_hz}Hz). This {label} may cause harmonic interference.'
                ),
            )

    # Steps 2-4: pairwise dimensions against every committed crop
    candidate_key = _crop_key(candidate)
    others = [c for c in committed or () if c is not None and _crop_key(c) != candidate_key]
    for kind, overlap, template in PAIRWISE_CHECKS:
        for other in others:
            shared = overlap(candidate, other)
            if shared:
                detail = template.format(tags=', '.join(sorted(shared)))
                return ConflictVerdict(
                    blocks=False,
                    severity=Severity.WARNING,
                    kind=kind,
                    message=f'"{name}" and "{_crop_name(other)}" {detail}.',
                    against_crop_id=getattr(other, 'id', None),
                )

    # Step 5: force-fit into a role the crop was not bred for
    preferred = parse_role(getattr(candidate, 'preferred_role', None))
    if role is not None and not _role_matches(preferred, role):
        designed = preferred.value if preferred else "no role"
        return ConflictVerdict(
            blocks=False,
            severity=Severity.WARNING,
            kind=ConflictKind.VIBRATIONAL,
            message=f'"{name}" is voiced for {designed}, not {role.value}.',
        )

    return ConflictVerdict.clear()


def check_conflicts(candidate, frequency_hz, role, override_mode=False, committed=()):
    """
    Exhaustive pairwise check: one verdict per committed crop.

    Returns only the verdicts that report a conflict. With nothing
    committed, the candidate is still checked on its own (frequency and
    role fit).
    """
    others = [c for c in committed or () if c is not None]
    if not others:
        verdict = check_conflict(candidate, frequency_hz, role, override_mode)
        return [verdict] if verdict.is_conflict else []

    verdicts = []
    for other in others:
        verdict = check_conflict(candidate, frequency_hz, role, override_mode, committed=[other])
        if verdict.is_conflict:
            verdicts.append(verdict)
    return verdicts


# ========================================
# Chord Generator
# ========================================

def calculate_plant_count(spacing_inches, bed_length_ft=DEFAULT_BED_LENGTH_FT,
                          bed_width_ft=DEFAULT_BED_WIDTH_FT):
    """
    Number of plants a role gets in a bed, using hexagonal spacing.

    Partial plants are dropped (the count is rounded down). A selected
    crop always gets at least one plant, including when its spacing is
    missing or unusable. Unusable bed dimensions fall back to the
    default 60 x 4 ft bed.
    """
    try:
        spacing = float(spacing_inches)
    except (TypeError, ValueError):
        return MIN_PLANT_COUNT
    if not math.isfinite(spacing) or spacing <= 0:
        return MIN_PLANT_COUNT

    try:
        length_ft = float(bed_length_ft)
        width_ft = float(bed_width_ft)
    except (TypeError, ValueError):
        length_ft, width_ft = DEFAULT_BED_LENGTH_FT, DEFAULT_BED_WIDTH_FT
    if not (math.isfinite(length_ft) and math.isfinite(width_ft)):
        length_ft, width_ft = DEFAULT_BED_LENGTH_FT, DEFAULT_BED_WIDTH_FT

    count = (length_ft * 12 * width_ft * 12) / (spacing * spacing * HEX_PACKING_FACTOR)
    if not math.isfinite(count):
        return MIN_PLANT_COUNT
    return max(MIN_PLANT_COUNT, int(math.floor(count)))


def _select_candidate(catalog, frequency_hz, role, placed, used_keys):
    """
    Pick the crop for one role in a generation pass.

    Returns (crop, verdict) or (None, None) when nothing survives.
    """
    fallback = None
    for crop in candidates_for_role(catalog, frequency_hz, role):
        if _crop_key(crop) in used_keys:
            continue
        verdict = check_conflict(crop, frequency_hz, role, override_mode=False, committed=placed)
        if verdict.blocks:
            continue
        if not verdict.is_conflict:
            return crop, verdict
        if fallback is None:
            fallback = (crop, verdict)

    return fallback if fallback else (None, None)


def generate_chord(catalog, frequency_hz, root_crop,
                   bed_length_ft=DEFAULT_BED_LENGTH_FT, bed_width_ft=DEFAULT_BED_WIDTH_FT):
    """
    Propose a complete voicing for a bed around a chosen Root.

    Steps per role (3rd, 5th, 7th, then 11th and 13th overlays):
    1. Candidate pool from candidates_for_role()
    2. Skip crops already placed earlier in this pass
    3. Skip candidates whose verdict against the placed crops blocks
    4. Take the first conflict-free candidate, else the first warned one
    5. Leave the role empty when nothing survives

    The inoculant overlay falls back to the zone's recommended fungus
    when the catalog has no usable fungal partner.

    Args:
        catalog: list of Crop in catalog order
        frequency_hz: the bed's target frequency
        root_crop: the caller's Root choice; the engine never invents one
        bed_length_ft, bed_width_ft: bed dimensions for plant counts

    Returns:
        ChordAssignment, or None when no Root was given.
    """
    if root_crop is None:
        return None

    catalog = list(catalog or ())
    mix_setting = get_master_mix_setting(frequency_hz)
    chord = ChordAssignment(
        frequency_hz=frequency_hz,
        zone_name=mix_setting.zone_name if mix_setting else 'Unknown',
        mix_setting=mix_setting,
    )

    chord.slots[Role.ROOT] = ChordSlot(
        crop=root_crop,
        plant_count=calculate_plant_count(
            getattr(root_crop, 'spacing_inches', None), bed_length_ft, bed_width_ft),
    )
    placed = [root_crop]
    used_keys = {_crop_key(root_crop)}

    for role in CHORD_ORDER:
        crop, verdict = _select_candidate(catalog, frequency_hz, role, placed, used_keys)
        if crop is None:
            logger.debug("No candidate for %s at %sHz", role.value, frequency_hz)
            continue
        chord.slots[role] = ChordSlot(
            crop=crop,
            plant_count=calculate_plant_count(
                getattr(crop, 'spacing_inches', None), bed_length_ft, bed_width_ft),
        )
        if verdict.is_conflict:
            chord.warnings.append(verdict)
        placed.append(crop)
        used_keys.add(_crop_key(crop))

    for role in OVERLAY_ORDER:
        crop, verdict = _select_candidate(catalog, frequency_hz, role, placed, used_keys)
        if crop is not None:
            if verdict.is_conflict:
                chord.warnings.append(verdict)
            placed.append(crop)
            used_keys.add(_crop_key(crop))

        if role == Role.INOCULANT:
            chord.inoculant = _inoculant_slot(crop, frequency_hz)
        elif crop is not None:
            chord.aerial = OverlaySlot(
                name=_crop_name(crop),
                detail='Aerial Signal',
                crop=crop,
                plant_count=AERIAL_PLANT_COUNT,
            )

    chord.voicing_density = sum(slot.plant_count for slot in chord.slots.values())
    return chord


def _inoculant_slot(crop, frequency_hz):
    if crop is not None:
        return OverlaySlot(
            name=_crop_name(crop),
            detail='Fungal Network',
            crop=crop,
            inoculant_type=resolve_inoculant_type(getattr(crop, 'name', None)),
        )

    rec = get_zone_recommendation(frequency_hz)
    if rec is None:
        return None
    return OverlaySlot(
        name=rec.eleventh.name,
        detail=rec.eleventh.description,
        inoculant_type=resolve_inoculant_type(rec.eleventh.name),
    )
