"""
Seed the catalog with sample parts and their compatible models.
Run after creating tables: ``python -m partassist.storage.seed``.
"""
from decimal import Decimal
from typing import Callable

from sqlalchemy.orm import Session

from partassist.storage.db import SessionLocal, init_db
from partassist.storage.db_models import Part, PartCompatibility
from partassist.utils.logger import get_logger

logger = get_logger(__name__)

SEED_PARTS = [
    {
        "part_number": "PS11752778",
        "name": "Refrigerator Door Shelf Bin (WPW10321304)",
        "description": (
            "Replaces Whirlpool OEM W10321304 / WPW10321304. Clear plastic refrigerator "
            "door shelf/bin; compatible with many Whirlpool/Kenmore/Maytag refrigerators."
        ),
        "price": Decimal("24.99"),
        "in_stock": True,
        "image_url": "https://partselectcom-gtcdcddbene3cpes.z01.azurefd.net/"
                     "11752778-1-M-Whirlpool-WPW10321304-Refrigerator-Door-Shelf-Bin.jpg",
        "rating": Decimal("4.2"),
        "review_count": 58,
        "category": "Door Bin",
        "appliance_type": "refrigerator",
        "models": ["WRS325SDHZ01", "WRF535SWHZ00", "WRS588FIHZ04", "WRT519SZDM03"],
    },
    {
        "part_number": "PS11757304",
        "name": "Washing Machine Drain Pump (WPW10730972)",
        "description": (
            "Replacement drain pump for select Whirlpool / Kenmore washers. "
            "OEM WPW10730972 (also listed as W10730972/AP6023956)."
        ),
        "price": Decimal("59.99"),
        "in_stock": True,
        "image_url": "https://partselectcom-gtcdcddbene3cpes.z01.azurefd.net/"
                     "11757304-1-M-Whirlpool-WPW10730972-Washer-Drain-Pump.jpg",
        "rating": Decimal("4.3"),
        "review_count": 120,
        "category": "Pump",
        "appliance_type": "washer",
        "models": ["WFW5620HW0", "WFW75HEFW0", "WFW9150WW01", "WFW8300SW02"],
    },
]


def seed_parts(session_factory: Callable[[], Session] = SessionLocal) -> int:
    """Insert the sample parts that are not present yet. Returns how many were added."""
    db = session_factory()
    added = 0
    try:
        for spec in SEED_PARTS:
            spec = dict(spec)
            models = spec.pop("models")
            if db.query(Part).filter(Part.part_number == spec["part_number"]).first():
                continue
            part = Part(**spec)
            part.compatible_models = [PartCompatibility(model_number=m) for m in models]
            db.add(part)
            added += 1
        db.commit()
        logger.info(f"🌱 Seeded {added} parts")
        return added
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Seeding failed: {e}", exc_info=True)
        raise
    finally:
        db.close()


if __name__ == "__main__":
    init_db()
    seed_parts()
