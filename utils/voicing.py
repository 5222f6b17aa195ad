"""
utils/voicing.py — Voicing complexity score and derived bed effects.

Provides:
- score_voicing: complexity level + completion percentage from filled slots
- score_bed: the same, counted from a bed and its committed plantings
- water_reduction_multiplier: 10% water cut when the fungal network is active
- projected_yield: +15% brix projection when the 5th (Stabilizer) is filled
- vitality_status / signal_strength: brix reading classifications

All functions are pure; they take values the caller already holds.
"""

from conductor_engine import round_half_up
from models import Role, VoicingScore, GROUND_ROLES, parse_role


TOTAL_SLOTS = 6  # 4 ground roles + 2 overlays

# Ground-role count -> (level, label)
VOICING_LEVELS = {
    0: ('root-only', 'Building...'),
    1: ('root', 'Root'),
    2: ('triad', 'Triad'),
    3: ('seventh', '7th Chord'),
    4: ('seventh', 'Complete 7th'),
}
MASTER_CONDUCTOR_LABEL = 'Jazz 13th'

WATER_REDUCTION = 0.90
NO_REDUCTION = 1.0

FIFTH_YIELD_BONUS = 1.15

THRIVING_BRIX = 15

# (minimum brix, label, bars), highest first
SIGNAL_BANDS = (
    (18, 'HIGH FIDELITY', 5),
    (15, 'In Tune+', 4),
    (12, 'In Tune', 3),
)


def _clamp(value, low, high):
    try:
        value = int(value)
    except (TypeError, ValueError):
        return low
    return max(low, min(high, value))


def score_voicing(ground_roles_filled, overlays_filled):
    """
    Classify how complete a bed's chord is.

    The level comes from the ground roles alone; overlays only move the
    percentage. Every one of the six slots is worth the same share.

    Args:
        ground_roles_filled: number of ground roles filled (0-4)
        overlays_filled: number of overlays filled (0-2)

    Returns:
        VoicingScore
    """
    ground = _clamp(ground_roles_filled, 0, len(GROUND_ROLES))
    overlays = _clamp(overlays_filled, 0, TOTAL_SLOTS - len(GROUND_ROLES))

    percentage = round_half_up((ground + overlays) / TOTAL_SLOTS * 100)
    is_master = percentage == 100

    level, label = VOICING_LEVELS[ground]
    if is_master:
        label = MASTER_CONDUCTOR_LABEL

    return VoicingScore(
        level=level,
        label=label,
        percentage=percentage,
        is_master_conductor=is_master,
    )


def filled_roles(plantings):
    """Set of ground roles present among a bed's plantings."""
    roles = set()
    for planting in plantings or ():
        role = parse_role(getattr(planting, 'role', None))
        if role in GROUND_ROLES:
            roles.add(role)
    return roles


def score_bed(bed, plantings):
    """Voicing score for a persisted bed and its plantings."""
    overlays = int(bool(bed.has_inoculant)) + int(bool(bed.has_aerial))
    return score_voicing(len(filled_roles(plantings)), overlays)


def water_reduction_multiplier(has_inoculant_overlay, root_filled=True):
    """
    Share of the normal water requirement the bed still needs.

    The fungal network cuts water use by 10% once a Root is in the
    ground. The inoculant type does not matter and the cut never stacks.
    """
    if has_inoculant_overlay and root_filled:
        return WATER_REDUCTION
    return NO_REDUCTION


def projected_yield(base_measured_yield, has_fifth_role_filled):
    """
    Brix projection for a bed.

    Returns 0 when there is no measured reading to project from.
    """
    if not base_measured_yield:
        return 0
    if has_fifth_role_filled:
        return round_half_up(base_measured_yield * FIFTH_YIELD_BONUS)
    return base_measured_yield


def vitality_status(brix):
    if brix is None:
        return 'pending'
    return 'thriving' if brix >= THRIVING_BRIX else 'needs_attention'


def signal_strength(brix):
    """Broadcast-style label for a brix reading: {'label', 'bars'}."""
    if brix is None:
        return {'label': 'No Reading', 'bars': 0}
    for minimum, label, bars in SIGNAL_BANDS:
        if brix >= minimum:
            return {'label': label, 'bars': bars}
    return {'label': 'DISSONANT', 'bars': 1}


def bed_effects(bed, plantings):
    """Score plus derived effects for one bed, ready for JSON."""
    roles = filled_roles(plantings)
    score = score_bed(bed, plantings)
    return {
        'score': score.to_dict(),
        'filled_roles': [role.key for role in GROUND_ROLES if role in roles],
        'water_multiplier': water_reduction_multiplier(bed.has_inoculant, Role.ROOT in roles),
        'projected_brix': projected_yield(bed.internal_brix, Role.FIFTH in roles),
        'vitality_status': vitality_status(bed.internal_brix),
        'signal': signal_strength(bed.internal_brix),
    }
