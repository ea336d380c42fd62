import unittest
from flask import Flask

from shopdesk.extensions import db
from shopdesk.models import Shop, ShopMember, User
from shopdesk.services import settings_service
from shopdesk.services.auth_service import register_shop_owner, create_user, add_shop_member
from shopdesk.services.permission_service import PermissionDeniedError


class SettingsServiceTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.app = Flask(__name__)
        cls.app.config.update(
            SECRET_KEY="test",
            SQLALCHEMY_DATABASE_URI="sqlite:///:memory:",
            SQLALCHEMY_TRACK_MODIFICATIONS=False,
            TESTING=True,
            BCRYPT_ROUNDS=4,
            DEFAULT_CURRENCY="USD",
        )
        db.init_app(cls.app)
        cls.ctx = cls.app.app_context()
        cls.ctx.push()
        from shopdesk import models  # noqa: F401
        db.create_all()

    @classmethod
    def tearDownClass(cls):
        db.session.remove()
        db.drop_all()
        cls.ctx.pop()

    def setUp(self):
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        self.owner, self.shop = register_shop_owner(
            email="owner@settings.test",
            password="Password123!",
            full_name="Owner",
            shop_name="Settings Shop",
        )
        self.cashier = create_user("cashier@settings.test", "Password123!", "Cashier")
        add_shop_member(shop_id=self.shop.id, user_id=self.cashier.id, role="cashier")

    def test_get_settings(self):
        data = settings_service.get_shop_settings(self.shop.id)
        self.assertEqual(data["name"], "Settings Shop")
        self.assertEqual(data["slug"], "settings-shop")
        self.assertEqual(data["currency"], "USD")

    def test_owner_updates_profile(self):
        data = settings_service.update_shop_settings(
            shop_id=self.shop.id,
            user_id=self.owner.id,
            payload={"address": "1 Main St", "phone": "555-0100", "currency": "eur", "tax_id": "TX-1"},
        )
        self.assertEqual(data["address"], "1 Main St")
        self.assertEqual(data["currency"], "EUR")
        self.assertEqual(db.session.get(Shop, self.shop.id).tax_id, "TX-1")

    def test_admin_member_can_update(self):
        admin = create_user("admin@settings.test", "Password123!", "Admin")
        add_shop_member(shop_id=self.shop.id, user_id=admin.id, role="admin")

        data = settings_service.update_shop_settings(
            shop_id=self.shop.id, user_id=admin.id, payload={"name": "Renamed"},
        )
        self.assertEqual(data["name"], "Renamed")

    def test_cashier_cannot_update(self):
        with self.assertRaises(PermissionDeniedError):
            settings_service.update_shop_settings(
                shop_id=self.shop.id, user_id=self.cashier.id, payload={"name": "Hijacked"},
            )
        self.assertEqual(db.session.get(Shop, self.shop.id).name, "Settings Shop")

    def test_rejects_unknown_fields(self):
        with self.assertRaises(settings_service.SettingsValidationError):
            settings_service.update_shop_settings(
                shop_id=self.shop.id, user_id=self.owner.id, payload={"owner_id": self.cashier.id},
            )

    def test_rejects_blank_name_and_bad_currency(self):
        with self.assertRaises(settings_service.SettingsValidationError):
            settings_service.update_shop_settings(
                shop_id=self.shop.id, user_id=self.owner.id, payload={"name": "  "},
            )
        with self.assertRaises(settings_service.SettingsValidationError):
            settings_service.update_shop_settings(
                shop_id=self.shop.id, user_id=self.owner.id, payload={"currency": "XXX"},
            )

    def test_clearing_optional_field(self):
        settings_service.update_shop_settings(
            shop_id=self.shop.id, user_id=self.owner.id, payload={"phone": "555"},
        )
        data = settings_service.update_shop_settings(
            shop_id=self.shop.id, user_id=self.owner.id, payload={"phone": ""},
        )
        self.assertIsNone(data["phone"])

    def test_owner_membership_row_is_admin(self):
        member = db.session.query(ShopMember).filter_by(shop_id=self.shop.id, user_id=self.owner.id).one()
        self.assertEqual(member.role, "admin")
        self.assertEqual(db.session.query(User).count(), 2)


if __name__ == "__main__":
    unittest.main()
