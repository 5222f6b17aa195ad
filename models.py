"""
models.py — Python dataclasses for the garden bed conductor.

Maps to the SQLite tables defined in database.py (crops, garden_beds,
bed_plantings) plus the transient results produced by conductor_engine.py
(conflict verdicts, chord proposals, voicing scores).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple, Dict, Any


class Role(str, Enum):
    """Chord interval a crop can occupy in a bed."""
    ROOT = 'Root (Lead)'
    THIRD = '3rd (Triad)'
    FIFTH = '5th (Stabilizer)'
    SEVENTH = '7th (Signal)'
    INOCULANT = '11th (Fungal Network)'
    AERIAL = '13th (Aerial Signal)'
    # Preferred-role marker only: the crop may fill either overlay
    OVERLAY = 'Overlay'

    @property
    def key(self) -> str:
        return ROLE_KEYS_BY_ROLE[self]


GROUND_ROLES = (Role.ROOT, Role.THIRD, Role.FIFTH, Role.SEVENTH)
OVERLAY_ROLES = (Role.INOCULANT, Role.AERIAL)

ROLES_BY_KEY = {
    'root': Role.ROOT,
    'third': Role.THIRD,
    'fifth': Role.FIFTH,
    'seventh': Role.SEVENTH,
    'inoculant': Role.INOCULANT,
    'aerial': Role.AERIAL,
    'overlay': Role.OVERLAY,
}
ROLE_KEYS_BY_ROLE = {role: key for key, role in ROLES_BY_KEY.items()}


def parse_role(value) -> Optional[Role]:
    """Resolve a Role from an enum member, a full label or a short key.

    Returns None for anything unrecognized.
    """
    if isinstance(value, Role):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    if text.lower() in ROLES_BY_KEY:
        return ROLES_BY_KEY[text.lower()]
    try:
        return Role(text)
    except ValueError:
        return None


class ConflictKind(str, Enum):
    """Conflict dimension, listed in detection priority order."""
    FREQUENCY = 'frequency'
    NUTRITIONAL = 'nutritional'
    STRUCTURAL = 'structural'
    PATHOLOGICAL = 'pathological'
    VIBRATIONAL = 'vibrational'
    NONE = 'none'


class Severity(str, Enum):
    WARNING = 'warning'
    ERROR = 'error'


@dataclass
class Crop:
    """Catalog entry. Read-only as far as the engine is concerned."""
    id: Optional[int] = None
    name: str = ""
    common_name: Optional[str] = None
    frequency_hz: Optional[int] = None
    preferred_role: Optional[Role] = None
    category: str = ""
    spacing_inches: Optional[float] = None
    conflict_tags: Tuple[str, ...] = ()
    instrument_type: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.common_name or self.name

    def tags_for(self, dimension: str) -> frozenset:
        """Values of the conflict tags in one namespace (e.g. 'pest')."""
        prefix = f"{dimension}:"
        return frozenset(
            tag[len(prefix):] for tag in self.conflict_tags
            if isinstance(tag, str) and tag.startswith(prefix) and len(tag) > len(prefix)
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'common_name': self.common_name,
            'frequency_hz': self.frequency_hz,
            'preferred_role': self.preferred_role.value if self.preferred_role else None,
            'category': self.category,
            'spacing_inches': self.spacing_inches,
            'conflict_tags': list(self.conflict_tags),
            'instrument_type': self.instrument_type,
        }


def _as_int(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _as_float(value) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _as_tags(value) -> Tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        value = value.split(',')
    try:
        return tuple(t.strip().lower() for t in value if isinstance(t, str) and t.strip())
    except TypeError:
        return ()


def crop_from_mapping(record) -> Crop:
    """Build a Crop from a dict or sqlite3.Row, tolerating missing fields.

    Malformed values become None/empty so the engine treats them as
    "no match" instead of failing.
    """
    keys = set(record.keys())

    def get(name, default=None):
        return record[name] if name in keys else default

    category = get('category')
    return Crop(
        id=get('id'),
        name=get('name') or "",
        common_name=get('common_name'),
        frequency_hz=_as_int(get('frequency_hz')),
        preferred_role=parse_role(get('preferred_role')),
        category=category.strip().lower() if isinstance(category, str) else "",
        spacing_inches=_as_float(get('spacing_inches')),
        conflict_tags=_as_tags(get('conflict_tags')),
        instrument_type=get('instrument_type'),
    )


@dataclass
class Bed:
    """Planning target tuned to a single frequency zone."""
    id: Optional[int] = None
    bed_number: int = 0
    zone_name: str = ""
    frequency_hz: int = 0
    inoculant_type: Optional[str] = None
    aerial_crop_id: Optional[int] = None
    internal_brix: Optional[float] = None
    vitality_status: str = "pending"
    bed_length_ft: float = 60.0
    bed_width_ft: float = 4.0
    notes: Optional[str] = None

    @property
    def has_inoculant(self) -> bool:
        return bool(self.inoculant_type)

    @property
    def has_aerial(self) -> bool:
        return self.aerial_crop_id is not None


@dataclass
class Planting:
    """Committed ground-role assignment. One per (bed, role)."""
    id: Optional[int] = None
    bed_id: int = 0
    crop_id: int = 0
    role: Role = Role.ROOT
    plant_count: int = 0
    planted_at: Optional[str] = None


@dataclass
class ConflictVerdict:
    """Outcome of one conflict check. Never persisted."""
    blocks: bool = False
    severity: Severity = Severity.WARNING
    kind: ConflictKind = ConflictKind.NONE
    message: str = ""
    against_crop_id: Optional[int] = None

    @property
    def is_conflict(self) -> bool:
        return self.kind != ConflictKind.NONE

    @classmethod
    def clear(cls) -> 'ConflictVerdict':
        return cls()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'blocks': self.blocks,
            'severity': self.severity.value,
            'kind': self.kind.value,
            'message': self.message,
            'against_crop_id': self.against_crop_id,
        }


@dataclass
class ChordSlot:
    """A ground role filled by a proposed crop."""
    crop: Crop
    plant_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {'crop': self.crop.to_dict(), 'plant_count': self.plant_count}


@dataclass
class OverlaySlot:
    """An overlay selection: a catalog crop or a zone recommendation."""
    name: str
    detail: Optional[str] = None
    crop: Optional[Crop] = None
    inoculant_type: Optional[str] = None
    plant_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'detail': self.detail,
            'crop': self.crop.to_dict() if self.crop else None,
            'inoculant_type': self.inoculant_type,
            'plant_count': self.plant_count,
        }


@dataclass
class ChordAssignment:
    """Proposed full voicing for one bed, as produced by generate_chord()."""
    frequency_hz: int
    zone_name: str
    mix_setting: Optional[Any] = None
    voicing_density: int = 0
    slots: Dict[Role, ChordSlot] = field(default_factory=dict)
    inoculant: Optional[OverlaySlot] = None
    aerial: Optional[OverlaySlot] = None
    warnings: list = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return all(role in self.slots for role in GROUND_ROLES)

    @property
    def full_voicing(self) -> bool:
        return self.complete and self.inoculant is not None and self.aerial is not None

    def crop_for(self, role: Role) -> Optional[Crop]:
        slot = self.slots.get(role)
        return slot.crop if slot else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'frequency_hz': self.frequency_hz,
            'zone_name': self.zone_name,
            'mix_setting': self.mix_setting.to_dict() if self.mix_setting else None,
            'voicing_density': self.voicing_density,
            'intervals': {
                role.key: self.slots[role].to_dict() if role in self.slots else None
                for role in GROUND_ROLES
            },
            'inoculant': self.inoculant.to_dict() if self.inoculant else None,
            'aerial': self.aerial.to_dict() if self.aerial else None,
            'warnings': [w.to_dict() for w in self.warnings],
            'complete': self.complete,
            'full_voicing': self.full_voicing,
        }


@dataclass
class VoicingScore:
    """Complexity classification of a bed's filled roles."""
    level: str
    label: str
    percentage: int
    is_master_conductor: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'level': self.level,
            'label': self.label,
            'percentage': self.percentage,
            'is_master_conductor': self.is_master_conductor,
        }
