from django.test import SimpleTestCase, TestCase

from accounts.models import CustomUser, Restaurant, role_level


class RoleLevelTests(SimpleTestCase):
    def test_hierarchy(self):
        self.assertLess(role_level('WAITER'), role_level('SUPERVISOR'))
        self.assertLess(role_level('SUPERVISOR'), role_level('MANAGER'))
        self.assertLess(role_level('MANAGER'), role_level('ADMIN'))
        self.assertLess(role_level('ADMIN'), role_level('SUPER_ADMIN'))
        self.assertEqual(role_level('chef'), role_level('STAFF'))
        self.assertEqual(role_level(None), 0)

    def test_has_minimum_role(self):
        self.assertTrue(CustomUser(role='MANAGER').has_minimum_role('SUPERVISOR'))
        self.assertFalse(CustomUser(role='CLEANER').has_minimum_role('SUPERVISOR'))
        self.assertTrue(CustomUser(role='CLEANER').has_minimum_role(None))


class CustomUserManagerTests(TestCase):
    def test_staff_without_password_cannot_log_in(self):
        restaurant = Restaurant.objects.create(name="R", email="r@test.local")
        user = CustomUser.objects.create_user(email="cook@test.local", restaurant=restaurant)
        self.assertFalse(user.has_usable_password())
        self.assertEqual(user.role, 'STAFF')
