"""
database.py — SQLite schema creation, seed data, and database operations.

Persistence for the garden bed conductor: the crop catalog, garden beds
(with their overlay fields and brix readings) and committed plantings.
Uses WAL mode for concurrent read performance.

The role engine never writes here; routes call these functions after the
engine's verdicts have been consulted.
"""

import sqlite3
import os
import logging

from flask import current_app, has_app_context

from models import Bed, Planting, Role, GROUND_ROLES, crop_from_mapping, parse_role
from zones import MASTER_MIX_SETTINGS

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'data', 'conductor.db')


def get_db_path():
    """Database path: app config, then CONDUCTOR_DB_PATH, then data/conductor.db."""
    if has_app_context() and current_app.config.get('DATABASE'):
        return current_app.config['DATABASE']
    return os.environ.get('CONDUCTOR_DB_PATH', DEFAULT_DB_PATH)


def get_db():
    """Get a database connection with WAL mode and foreign keys enabled."""
    db_path = get_db_path()
    os.makedirs(os.path.dirname(os.path.abspath(db_path)), exist_ok=True)
    conn = sqlite3.connect(db_path)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    conn.row_factory = sqlite3.Row
    return conn


def init_db():
    """Create all tables and indexes if they don't exist."""
    conn = get_db()
    cursor = conn.cursor()

    # Table: settings
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS settings (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        )
    """)

    # Table: crops (catalog; position defines catalog order)
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS crops (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            position INTEGER NOT NULL DEFAULT 0,
            name TEXT UNIQUE NOT NULL,
            common_name TEXT,
            frequency_hz INTEGER,
            preferred_role TEXT,
            category TEXT,
            spacing_inches REAL,
            conflict_tags TEXT DEFAULT '',
            instrument_type TEXT
        )
    """)

    # Table: garden_beds
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS garden_beds (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            bed_number INTEGER UNIQUE NOT NULL,
            zone_name TEXT NOT NULL,
            frequency_hz INTEGER NOT NULL,
            inoculant_type TEXT,
            aerial_crop_id INTEGER REFERENCES crops(id) ON DELETE SET NULL,
            internal_brix REAL,
            vitality_status TEXT NOT NULL DEFAULT 'pending'
                CHECK (vitality_status IN ('pending','thriving','needs_attention')),
            bed_length_ft REAL NOT NULL DEFAULT 60,
            bed_width_ft REAL NOT NULL DEFAULT 4,
            notes TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    """)

    # Table: bed_plantings (ground roles only, one crop per role)
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS bed_plantings (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            bed_id INTEGER NOT NULL REFERENCES garden_beds(id) ON DELETE CASCADE,
            crop_id INTEGER NOT NULL REFERENCES crops(id),
            role TEXT NOT NULL,
            plant_count INTEGER NOT NULL DEFAULT 0,
            planted_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            UNIQUE(bed_id, role)
        )
    """)

    cursor.execute("""
        CREATE INDEX IF NOT EXISTS idx_bed_plantings_bed
        ON bed_plantings(bed_id)
    """)

    conn.commit()
    conn.close()


# Seed catalog: (name, common_name, frequency_hz, role, category, spacing, tags, instrument)
SEED_CROPS = [
    # 396Hz Root
    ('beta_vulgaris', 'Beet', 396, Role.ROOT, 'annual', 4, 'nutrient:phosphorus,pest:leaf_miner', 'Bass'),
    ('daikon_radish', 'Daikon Radish', 396, Role.THIRD, 'annual', 6, 'structure:deep_root,pest:flea_beetle', 'Percussion'),
    ('comfrey', 'Comfrey', 396, Role.FIFTH, 'perennial', 36, 'structure:deep_root', 'Horn Section'),
    ('basil', 'Basil', 396, Role.SEVENTH, 'herb', 12, '', 'Synthesizers'),
    ('tall_red_amaranth', 'Tall Red Amaranth', 396, Role.AERIAL, 'annual', 18, 'structure:tall', 'Electric Guitar'),
    # 417Hz Flow
    ('sweet_potato', 'Sweet Potato', 417, Role.ROOT, 'annual', 12, 'nutrient:potassium', 'Bass'),
    ('cowpea', 'Cowpea', 417, Role.THIRD, 'annual', 6, 'pest:aphid', 'Percussion'),
    ('okra', 'Okra', 417, Role.FIFTH, 'annual', 18, 'structure:tall', 'Horn Section'),
    ('marigold', 'Marigold', 417, Role.SEVENTH, 'annual', 10, '', 'Synthesizers'),
    # 528Hz Solar
    ('corn', 'Corn', 528, Role.ROOT, 'annual', 12, 'nutrient:nitrogen,structure:tall', 'Electric Guitar'),
    ('pole_bean', 'Pole Bean', 528, Role.THIRD, 'annual', 6, 'pest:aphid', 'Percussion'),
    ('winter_squash', 'Winter Squash', 528, Role.FIFTH, 'annual', 36, 'nutrient:nitrogen,pest:squash_bug', 'Bass'),
    ('sunflower', 'Sunflower', 528, Role.FIFTH, 'annual', 18, 'structure:tall', 'Horn Section'),
    ('cowpea_solar', 'Cowpea (Solar)', 528, Role.FIFTH, 'annual', 8, '', 'Bass'),
    ('borage', 'Borage', 528, Role.SEVENTH, 'herb', 12, '', 'Synthesizers'),
    ('golden_fennel', 'Golden Fennel', 528, Role.AERIAL, 'perennial', 18, '', 'Synthesizers'),
    # 639Hz Heart
    ('collards', 'Collard Greens', 639, Role.ROOT, 'annual', 18, 'nutrient:calcium,pest:cabbage_worm', 'Electric Guitar'),
    ('nasturtium', 'Nasturtium', 639, Role.THIRD, 'annual', 10, '', 'Percussion'),
    ('dill', 'Dill (Mammoth Long Island)', 639, Role.AERIAL, 'herb', 12, '', 'Synthesizers'),
    # 741Hz Voice
    ('tomato', 'Tomato', 741, Role.ROOT, 'annual', 24, 'nutrient:potassium,pest:hornworm', 'Electric Guitar'),
    ('pepper', 'Pepper', 741, Role.THIRD, 'annual', 18, 'pest:hornworm', 'Horn Section'),
    ('bachelors_buttons', "Bachelor's Buttons", 741, Role.SEVENTH, 'annual', 9, '', 'Synthesizers'),
    # 852Hz Vision
    ('purple_kale', 'Purple Kale', 852, Role.ROOT, 'annual', 18, 'pest:cabbage_worm', 'Bass'),
    ('verbena_bonariensis', 'Purple Verbena Bonariensis', 852, Role.AERIAL, 'perennial', 18, 'structure:tall', 'Synthesizers'),
    # 963Hz Shield
    ('garlic', 'Garlic', 963, Role.ROOT, 'annual', 6, '', 'Bass'),
    ('white_moonflower', 'White Moonflower', 963, Role.AERIAL, 'perennial', 24, '', 'Synthesizers'),
    # Zone-agnostic overlay partners
    ('wine_cap', 'Wine Cap', 528, Role.INOCULANT, 'fungus', None, '', None),
    ('moringa', 'Moringa', 528, Role.OVERLAY, 'tree', 120, 'structure:canopy', 'Horn Section'),
]


def seed_defaults():
    """Populate default data if tables are empty. Idempotent — skips if data exists."""
    conn = get_db()
    cursor = conn.cursor()

    # --- Settings ---
    existing = cursor.execute("SELECT COUNT(*) FROM settings").fetchone()[0]
    if existing == 0:
        cursor.executemany(
            "INSERT INTO settings (key, value) VALUES (?, ?)",
            [('default_bed_length_ft', '60'), ('default_bed_width_ft', '4')]
        )

    # --- Crops ---
    existing = cursor.execute("SELECT COUNT(*) FROM crops").fetchone()[0]
    if existing == 0:
        cursor.executemany(
            """INSERT INTO crops
               (position, name, common_name, frequency_hz, preferred_role, category,
                spacing_inches, conflict_tags, instrument_type)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            [
                (i, name, common, hz, role.value, category, spacing, tags, instrument)
                for i, (name, common, hz, role, category, spacing, tags, instrument)
                in enumerate(SEED_CROPS, 1)
            ]
        )

    # --- Beds: two per zone ---
    existing = cursor.execute("SELECT COUNT(*) FROM garden_beds").fetchone()[0]
    if existing == 0:
        bed_number = 1
        for setting in MASTER_MIX_SETTINGS:
            for _ in range(2):
                cursor.execute(
                    "INSERT INTO garden_beds (bed_number, zone_name, frequency_hz) VALUES (?, ?, ?)",
                    (bed_number, setting.zone_name, setting.frequency_hz)
                )
                bed_number += 1

    conn.commit()
    conn.close()


# ========================================
# Settings
# ========================================

def get_setting(key, default=None):
    """Get a setting value by key."""
    conn = get_db()
    row = conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
    conn.close()
    if row:
        return row['value']
    return default


def update_setting(key, value):
    """Insert or replace a setting value."""
    conn = get_db()
    conn.execute(
        "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)",
        (key, str(value))
    )
    conn.commit()
    conn.close()


# ========================================
# Crop catalog
# ========================================

def get_crops(frequency_hz=None):
    """Retrieve the crop catalog as Crop objects, in catalog order."""
    conn = get_db()
    if frequency_hz is not None:
        rows = conn.execute(
            "SELECT * FROM crops WHERE frequency_hz = ? ORDER BY position, id",
            (frequency_hz,)
        ).fetchall()
    else:
        rows = conn.execute("SELECT * FROM crops ORDER BY position, id").fetchall()
    conn.close()
    return [crop_from_mapping(row) for row in rows]


def get_crop(crop_id):
    """Retrieve a single crop by ID, or None."""
    conn = get_db()
    row = conn.execute("SELECT * FROM crops WHERE id = ?", (crop_id,)).fetchone()
    conn.close()
    return crop_from_mapping(row) if row else None


def create_crop(name, frequency_hz=None, preferred_role=None, category='annual',
                spacing_inches=None, conflict_tags=(), common_name=None,
                instrument_type=None):
    """
    Add a crop at the end of the catalog.

    Returns:
        (crop_id, None) on success, or (None, error_message) on failure.
    """
    role = parse_role(preferred_role)
    if preferred_role is not None and role is None:
        return None, f"Unknown role: {preferred_role}"

    conn = get_db()
    try:
        position = conn.execute("SELECT COALESCE(MAX(position), 0) + 1 FROM crops").fetchone()[0]
        cursor = conn.execute(
            """INSERT INTO crops
               (position, name, common_name, frequency_hz, preferred_role, category,
                spacing_inches, conflict_tags, instrument_type)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (position, name, common_name, frequency_hz, role.value if role else None,
             category, spacing_inches, ','.join(conflict_tags or ()), instrument_type)
        )
        conn.commit()
        return cursor.lastrowid, None
    except sqlite3.IntegrityError:
        conn.rollback()
        return None, f"Crop '{name}' already exists."
    finally:
        conn.close()


# ========================================
# Beds
# ========================================

def _bed_from_row(row):
    return Bed(
        id=row['id'],
        bed_number=row['bed_number'],
        zone_name=row['zone_name'],
        frequency_hz=row['frequency_hz'],
        inoculant_type=row['inoculant_type'],
        aerial_crop_id=row['aerial_crop_id'],
        internal_brix=row['internal_brix'],
        vitality_status=row['vitality_status'],
        bed_length_ft=row['bed_length_ft'],
        bed_width_ft=row['bed_width_ft'],
        notes=row['notes'],
    )


def get_beds():
    """Retrieve all beds ordered by bed number."""
    conn = get_db()
    rows = conn.execute("SELECT * FROM garden_beds ORDER BY bed_number").fetchall()
    conn.close()
    return [_bed_from_row(row) for row in rows]


def get_bed(bed_id):
    """Retrieve a single bed by ID, or None."""
    conn = get_db()
    row = conn.execute("SELECT * FROM garden_beds WHERE id = ?", (bed_id,)).fetchone()
    conn.close()
    return _bed_from_row(row) if row else None


def create_bed(bed_number, frequency_hz, zone_name, bed_length_ft=None, bed_width_ft=None):
    """
    Add a bed tuned to a frequency zone.

    Dimensions default to the default_bed_length_ft / default_bed_width_ft settings.

    Returns:
        (bed_id, None) on success, or (None, error_message) on failure.
    """
    if bed_length_ft is None:
        bed_length_ft = float(get_setting('default_bed_length_ft', '60'))
    if bed_width_ft is None:
        bed_width_ft = float(get_setting('default_bed_width_ft', '4'))

    conn = get_db()
    try:
        cursor = conn.execute(
            """INSERT INTO garden_beds (bed_number, zone_name, frequency_hz, bed_length_ft, bed_width_ft)
               VALUES (?, ?, ?, ?, ?)""",
            (bed_number, zone_name, frequency_hz, bed_length_ft, bed_width_ft)
        )
        conn.commit()
        return cursor.lastrowid, None
    except sqlite3.IntegrityError:
        conn.rollback()
        return None, f"Bed {bed_number} already exists."
    finally:
        conn.close()


def _update_bed(bed_id, assignments, params):
    conn = get_db()
    try:
        cursor = conn.execute(
            f"UPDATE garden_beds SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            (*params, bed_id)
        )
        conn.commit()
        return cursor.rowcount > 0
    except sqlite3.Error as e:
        conn.rollback()
        logger.warning("Bed %s update failed: %s", bed_id, e)
        return False
    finally:
        conn.close()


def update_bed_overlays(bed_id, inoculant_type, aerial_crop_id):
    """Set both overlay fields (None clears an overlay)."""
    return _update_bed(
        bed_id, "inoculant_type = ?, aerial_crop_id = ?", (inoculant_type, aerial_crop_id)
    )


def update_bed_brix(bed_id, brix, vitality_status):
    """Record a measured brix reading and the vitality derived from it."""
    return _update_bed(
        bed_id, "internal_brix = ?, vitality_status = ?", (brix, vitality_status)
    )


def update_bed_dimensions(bed_id, length_ft, width_ft):
    return _update_bed(
        bed_id, "bed_length_ft = ?, bed_width_ft = ?", (length_ft, width_ft)
    )


# ========================================
# Plantings
# ========================================

def get_bed_plantings(bed_id):
    """Retrieve a bed's plantings in ground-role order."""
    conn = get_db()
    rows = conn.execute(
        "SELECT * FROM bed_plantings WHERE bed_id = ? ORDER BY id",
        (bed_id,)
    ).fetchall()
    conn.close()

    plantings = []
    for row in rows:
        role = parse_role(row['role'])
        if role is None:
            logger.warning("Planting %s has unknown role %r", row['id'], row['role'])
            continue
        plantings.append(Planting(
            id=row['id'],
            bed_id=row['bed_id'],
            crop_id=row['crop_id'],
            role=role,
            plant_count=row['plant_count'],
            planted_at=row['planted_at'],
        ))
    plantings.sort(key=lambda p: GROUND_ROLES.index(p.role) if p.role in GROUND_ROLES else 99)
    return plantings


def add_planting(bed_id, crop_id, role, plant_count):
    """
    Commit a crop to a ground role in a bed.

    A role that is already filled is never replaced: the caller has to
    remove the existing planting first.

    Returns:
        (planting_id, None) on success, or (None, error_message) on failure.
    """
    role = parse_role(role)
    if role not in GROUND_ROLES:
        return None, "Only ground roles (Root, 3rd, 5th, 7th) can be planted."

    conn = get_db()
    try:
        cursor = conn.execute(
            """INSERT INTO bed_plantings (bed_id, crop_id, role, plant_count)
               VALUES (?, ?, ?, ?)""",
            (bed_id, crop_id, role.value, plant_count)
        )
        conn.execute(
            "UPDATE garden_beds SET updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            (bed_id,)
        )
        conn.commit()
        return cursor.lastrowid, None
    except sqlite3.IntegrityError:
        conn.rollback()
        return None, f"The {role.value} role is already filled in this bed."
    finally:
        conn.close()


def remove_planting(bed_id, planting_id):
    """Delete a planting from a bed. Returns True if a row was removed."""
    conn = get_db()
    try:
        cursor = conn.execute(
            "DELETE FROM bed_plantings WHERE id = ? AND bed_id = ?",
            (planting_id, bed_id)
        )
        conn.commit()
        return cursor.rowcount > 0
    finally:
        conn.close()
