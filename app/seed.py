from typing import Optional

from sqlalchemy.orm import Session

from .config import SEED_ADMIN_EMAIL, SEED_ADMIN_PASSWORD
from .db import SessionLocal
from .logging_config import get_logger
from .models import Appliance, ApplianceType, Identity, Role
from .security import hash_password

logger = get_logger("seed")


APPLIANCE_TYPES = ["refrigerator", "washer", "dryer", "dishwasher", "oven", "hvac"]

# Starter catalog: name, brand, model, appliance type
APPLIANCES_DATA = [
    ("French Door Refrigerator", "Whirlpool", "WRF555SDFZ", "refrigerator"),
    ("Side-by-Side Refrigerator", "Samsung", "RS27T5200SR", "refrigerator"),
    ("Top Load Washer", "Maytag", "MVW6230HW", "washer"),
    ("Front Load Washer", "LG", "WM4000HWA", "washer"),
    ("Electric Dryer", "Whirlpool", "WED4815EW", "dryer"),
    ("Gas Dryer", "GE", "GTD65GBSJWS", "dryer"),
    ("Built-In Dishwasher", "Bosch", "SHX78CM5N", "dishwasher"),
    ("Electric Range Oven", "Frigidaire", "FCRE3052BS", "oven"),
    ("Wall Oven", "KitchenAid", "KOSE500ESS", "oven"),
    ("Split Air Conditioner", "Carrier", "38MARBQ12AA3", "hvac"),
]


def _seed_catalog(db: Session) -> tuple[int, int]:
    types = {t.name: t for t in db.query(ApplianceType).all()}
    new_types = 0
    for name in APPLIANCE_TYPES:
        if name not in types:
            types[name] = ApplianceType(name=name)
            db.add(types[name])
            new_types += 1
    db.flush()

    existing = {(a.brand, a.model) for a in db.query(Appliance).all()}
    new_appliances = 0
    for name, brand, model, type_name in APPLIANCES_DATA:
        if (brand, model) in existing:
            continue
        db.add(Appliance(name=name, brand=brand, model=model, type_id=types[type_name].id))
        new_appliances += 1
    return new_types, new_appliances


def _seed_admin(db: Session) -> bool:
    if not SEED_ADMIN_PASSWORD:
        logger.warning("SEED_ADMIN_PASSWORD not set, skipping admin account")
        return False
    if db.query(Identity).filter(Identity.email == SEED_ADMIN_EMAIL.lower()).first():
        return False
    db.add(Identity(
        name="Administrator",
        email=SEED_ADMIN_EMAIL.lower(),
        password=hash_password(SEED_ADMIN_PASSWORD),
        role=Role.ADMIN,
    ))
    return True


def seed_data(db: Optional[Session] = None):
    """Insert appliance types, the starter appliance catalog and the admin account. Safe to re-run."""
    owns_session = db is None
    db = db or SessionLocal()
    try:
        new_types, new_appliances = _seed_catalog(db)
        admin_created = _seed_admin(db)
        db.commit()

        if new_types or new_appliances or admin_created:
            logger.info(f"Database seeded: {new_types} appliance types, "
                        f"{new_appliances} appliances, admin created: {admin_created}.")
        else:
            logger.info("Data already exists, skipping seed.")
    except Exception as e:
        logger.error(f"Failed to seed database: {e}")
        db.rollback()
    finally:
        if owns_session:
            db.close()
