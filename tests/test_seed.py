"""Tests for app.seed module: catalog integrity and idempotent seeding."""
from app.config import SEED_ADMIN_EMAIL
from app.models import Appliance, ApplianceType, Identity, Role
from app.seed import APPLIANCE_TYPES, APPLIANCES_DATA, seed_data


class TestSeedData:
    def test_appliance_types_unique(self):
        assert len(APPLIANCE_TYPES) == len(set(APPLIANCE_TYPES))

    def test_appliance_data_structure(self):
        for name, brand, model, type_name in APPLIANCES_DATA:
            assert isinstance(name, str) and len(name) > 0
            assert isinstance(brand, str) and len(brand) > 0
            assert isinstance(model, str) and len(model) > 0
            assert type_name in APPLIANCE_TYPES, f"Invalid appliance type: {type_name}"

    def test_unique_models(self):
        keys = [(brand, model) for _, brand, model, _ in APPLIANCES_DATA]
        assert len(keys) == len(set(keys)), "Duplicate models in seed data"

    def test_every_type_has_an_appliance(self):
        assert {type_name for *_, type_name in APPLIANCES_DATA} == set(APPLIANCE_TYPES)


class TestSeeding:
    def test_seed_populates_catalog_and_admin(self, db):
        seed_data(db)

        assert db.query(ApplianceType).count() == len(APPLIANCE_TYPES)
        assert db.query(Appliance).count() == len(APPLIANCES_DATA)
        admin = db.query(Identity).filter(Identity.email == SEED_ADMIN_EMAIL.lower()).one()
        assert admin.role == Role.ADMIN

    def test_seed_is_idempotent(self, db):
        seed_data(db)
        seed_data(db)

        assert db.query(ApplianceType).count() == len(APPLIANCE_TYPES)
        assert db.query(Appliance).count() == len(APPLIANCES_DATA)
        assert db.query(Identity).filter(Identity.role == Role.ADMIN).count() == 1

    def test_seed_keeps_existing_types(self, db, fridge_type):
        seed_data(db)
        assert db.query(ApplianceType).filter(ApplianceType.name == "refrigerator").count() == 1
