"""
zones.py — Frequency zone metadata for the garden bed conductor.

Read-only lookups keyed by a bed's target frequency:
- Master Mix settings (soil mix focus and primary mineral per zone)
- Jazz voicing recommendations (11th fungal partner, 13th aerial crop)
- Inoculant types accepted for the 11th overlay

Nothing here is computed from beds or plantings; the chord generator
only reads these tables when it labels a proposal.
"""

import re
import unicodedata
from dataclasses import dataclass
from typing import Optional, List


ZONE_FREQUENCIES = (396, 417, 528, 639, 741, 852, 963)

# Chromatic note letter per zone
NOTE_MAP = {396: 'C', 417: 'D', 528: 'E', 639: 'F', 741: 'G', 852: 'A', 963: 'B'}

INOCULANT_OPTIONS = [
    'Mycorrhizae',
    'Red Reishi',
    "Lion's Mane",
    'Wine Cap',
    'Oyster Mushrooms',
    'Turkey Tail',
    'Purple Spore Woodear',
    'White Ghost Fungus',
]


@dataclass(frozen=True)
class MasterMixSetting:
    frequency_hz: int
    zone_name: str
    mix_focus: str
    primary_mineral: str
    harmony_type: str

    def to_dict(self):
        return {
            'frequency_hz': self.frequency_hz,
            'zone_name': self.zone_name,
            'mix_focus': self.mix_focus,
            'primary_mineral': self.primary_mineral,
            'harmony_type': self.harmony_type,
            'note': NOTE_MAP.get(self.frequency_hz),
        }


@dataclass(frozen=True)
class OverlayRecommendation:
    name: str
    description: str


@dataclass(frozen=True)
class ZoneRecommendation:
    frequency_hz: int
    zone_name: str
    eleventh: OverlayRecommendation
    thirteenth: OverlayRecommendation
    rationale: str

    def to_dict(self):
        return {
            'frequency_hz': self.frequency_hz,
            'zone_name': self.zone_name,
            'eleventh': {'name': self.eleventh.name, 'description': self.eleventh.description},
            'thirteenth': {'name': self.thirteenth.name, 'description': self.thirteenth.description},
            'rationale': self.rationale,
        }


MASTER_MIX_SETTINGS: List[MasterMixSetting] = [
    MasterMixSetting(396, 'Root', 'High Phosphorus/Anchor', 'P', 'Foundation'),
    MasterMixSetting(417, 'Flow', 'High Humates/Flow', 'H/C', 'Movement'),
    MasterMixSetting(528, 'Solar', 'High Nitrogen/Alchemy', 'N', 'Transformation'),
    MasterMixSetting(639, 'Heart', 'High Calcium/Harmony', 'Ca', 'Integration'),
    MasterMixSetting(741, 'Voice', 'High Potassium/Expression', 'K', 'Vibration'),
    MasterMixSetting(852, 'Vision', 'High Silica/Clarity', 'Si', 'Perception'),
    MasterMixSetting(963, 'Shield', 'High Sulfur/Protection', 'S', 'Guardian'),
]

ZONE_RECOMMENDATIONS: List[ZoneRecommendation] = [
    ZoneRecommendation(
        396, 'Root',
        OverlayRecommendation('Red Reishi', 'Inoculated Logs'),
        OverlayRecommendation('Tall Red Amaranth', 'Aerial Signal'),
        'Reishi grounds the soil; Amaranth signals the birds.',
    ),
    ZoneRecommendation(
        417, 'Flow',
        OverlayRecommendation("Lion's Mane", 'Shaded Gaps'),
        OverlayRecommendation('Orange Mexican Sunflower', 'Aerial Signal'),
        'Fungi for brain flow; Flowers for butterfly flow.',
    ),
    ZoneRecommendation(
        528, 'Solar',
        OverlayRecommendation('Wine Cap', 'In the Mulch'),
        OverlayRecommendation('Golden Fennel', 'Aerial Signal'),
        'Wine caps build soil carbon; Fennel attracts predatory wasps.',
    ),
    ZoneRecommendation(
        639, 'Heart',
        OverlayRecommendation('Oyster Mushrooms', 'Vertical Stacks'),
        OverlayRecommendation('Dill (Mammoth Long Island)', 'Aerial Signal'),
        "Mushrooms process fiber; Dill provides the 'Heart' canopy.",
    ),
    ZoneRecommendation(
        741, 'Voice',
        OverlayRecommendation('Turkey Tail', 'Wood Borders'),
        OverlayRecommendation("Bachelor's Buttons", 'Aerial Signal'),
        "Turkey Tail clears the 'Signal'; Flowers attract blue bees.",
    ),
    ZoneRecommendation(
        852, 'Vision',
        OverlayRecommendation('Purple Spore Woodear', 'Wood Borders'),
        OverlayRecommendation('Purple Verbena Bonariensis', 'Aerial Signal'),
        "Woodear for 'Vision' texture; Verbena floats on high stems.",
    ),
    ZoneRecommendation(
        963, 'Shield',
        OverlayRecommendation('White Ghost Fungus', 'Sacred Logs'),
        OverlayRecommendation('White Moonflower', 'Aerial Signal'),
        "The 'Source' connection; Moonflower blooms at the 'Star Signal'.",
    ),
]


def normalize_name(name: str) -> str:
    """
    Normalize a crop or fungus name for loose matching.

    Lowercase, strip accents, turn punctuation into spaces and collapse
    whitespace: "Lion's-Mane " -> "lion s mane".
    """
    if not name:
        return ""

    result = name.lower().strip()
    result = unicodedata.normalize('NFD', result)
    result = ''.join(c for c in result if unicodedata.category(c) != 'Mn')
    result = re.sub(r"[-_.,;:'\"()]+", ' ', result)
    result = re.sub(r'\s+', ' ', result)
    return result.strip()


def get_master_mix_setting(frequency_hz) -> Optional[MasterMixSetting]:
    """Master Mix setting for a zone, or None for an unknown frequency."""
    for setting in MASTER_MIX_SETTINGS:
        if setting.frequency_hz == frequency_hz:
            return setting
    return None


def get_zone_recommendation(frequency_hz) -> Optional[ZoneRecommendation]:
    for rec in ZONE_RECOMMENDATIONS:
        if rec.frequency_hz == frequency_hz:
            return rec
    return None


def resolve_inoculant_type(name: Optional[str]) -> Optional[str]:
    """Map a free-form fungus name onto one of INOCULANT_OPTIONS.

    Exact (normalized) matches win; otherwise the first option sharing a
    significant word. Unrecognized fungi fall back to 'Mycorrhizae'.
    """
    normalized = normalize_name(name)
    if not normalized:
        return None

    for option in INOCULANT_OPTIONS:
        if normalize_name(option) == normalized:
            return option

    words = {w for w in normalized.split(' ') if len(w) > 3}
    for option in INOCULANT_OPTIONS:
        option_words = {w for w in normalize_name(option).split(' ') if len(w) > 3}
        if words & option_words:
            return option

    return 'Mycorrhizae'


def is_recommended_inoculant(frequency_hz, inoculant_name: Optional[str]) -> bool:
    """True when the inoculant matches the zone's recommended 11th."""
    if not inoculant_name:
        return False
    rec = get_zone_recommendation(frequency_hz)
    if not rec:
        return False
    rec_name = normalize_name(rec.eleventh.name)
    candidate = normalize_name(inoculant_name)
    first_word = rec_name.split(' ')[0]
    return candidate in rec_name or first_word in candidate


def is_recommended_aerial(frequency_hz, aerial_crop_name: Optional[str]) -> bool:
    """True when the aerial crop shares a significant word with the zone's 13th."""
    if not aerial_crop_name:
        return False
    rec = get_zone_recommendation(frequency_hz)
    if not rec:
        return False
    crop_name = normalize_name(aerial_crop_name)
    return any(
        len(word) > 3 and word in crop_name
        for word in normalize_name(rec.thirteenth.name).split(' ')
    )
