from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.db import models
from django.core.validators import MinValueValidator, MaxValueValidator
from django.conf import settings
import uuid


# Minimum-role check for task eligibility: a candidate qualifies when its
# level is at or above the level of the task's minimum role.
ROLE_LEVELS = {
    'STAFF': 1,
    'CHEF': 1,
    'KITCHEN_STAFF': 1,
    'WAITER': 1,
    'CASHIER': 1,
    'CLEANER': 1,
    'SUPERVISOR': 2,
    'MANAGER': 3,
    'ADMIN': 4,
    'SUPER_ADMIN': 5,
}

MINIMUM_ROLE_CHOICES = (
    ('STAFF', 'Staff'),
    ('SUPERVISOR', 'Supervisor'),
    ('MANAGER', 'Manager'),
    ('ADMIN', 'Admin'),
)


def role_level(role):
    return ROLE_LEVELS.get((role or '').upper(), 0)


class CustomUserManager(BaseUserManager):
    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError('The Email field must be set')
        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)

        if password:
            user.set_password(password)
        else:
            # Staff members created by a manager sign in elsewhere
            user.set_unusable_password()

        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_active', True)
        extra_fields.setdefault('role', 'SUPER_ADMIN')

        if extra_fields.get('is_staff') is not True:
            raise ValueError('Superuser must have is_staff=True.')
        if extra_fields.get('is_superuser') is not True:
            raise ValueError('Superuser must have is_superuser=True.')

        return self.create_user(email, password, **extra_fields)


class Restaurant(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    name_fr = models.CharField(max_length=255, blank=True, null=True)
    email = models.EmailField(unique=True)
    timezone = models.CharField(max_length=50, default='Asia/Bangkok')
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'restaurants'

    def __str__(self):
        return self.name


class CustomUser(AbstractUser):
    ROLE_CHOICES = settings.STAFF_ROLES_CHOICES

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default='STAFF')
    phone = models.CharField(max_length=20, blank=True, null=True)
    restaurant = models.ForeignKey(Restaurant, on_delete=models.CASCADE, related_name='staff', null=True, blank=True)
    work_zone = models.CharField(max_length=255, blank=True, null=True, help_text="Assigned location/zone, e.g. 'kitchen:line'")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Remove username and use email instead
    username = None
    email = models.EmailField(unique=True)

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['first_name', 'last_name']

    objects = CustomUserManager()

    class Meta:
        db_table = 'users'

    def __str__(self):
        return f"{self.get_full_name()} - {self.restaurant.name}" if self.restaurant else self.get_full_name()

    @property
    def role_rank(self):
        return role_level(self.role)

    def has_minimum_role(self, minimum_role):
        return self.role_rank >= role_level(minimum_role or 'STAFF')

    def is_admin_role(self):
        """Check if user has an admin role."""
        return self.role in ['SUPER_ADMIN', 'ADMIN', 'MANAGER']


class StaffSkill(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(CustomUser, on_delete=models.CASCADE, related_name='skills')
    skill_name = models.CharField(max_length=100)
    skill_category = models.CharField(max_length=50, blank=True, null=True)
    proficiency_level = models.IntegerField(default=3, validators=[MinValueValidator(1), MaxValueValidator(5)])
    certified = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'staff_skills'
        unique_together = ('user', 'skill_name')

    def __str__(self):
        return f"{self.user.email} - {self.skill_name} ({self.proficiency_level})"


class StaffAvailability(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(CustomUser, on_delete=models.CASCADE, related_name='availability')
    restaurant = models.ForeignKey(Restaurant, on_delete=models.CASCADE, related_name='staff_availability')
    date = models.DateField()
    shift_start = models.TimeField(null=True, blank=True)
    shift_end = models.TimeField(null=True, blank=True)
    is_available = models.BooleanField(default=True)
    max_concurrent_tasks = models.IntegerField(default=3, validators=[MinValueValidator(1)])
    # Display cache only; recomputed from live task counts on every binding
    current_workload_percentage = models.IntegerField(default=0)
    notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'staff_availability'
        unique_together = ('user', 'date')
        indexes = [
            models.Index(fields=['restaurant', 'date'], name='staff_avail_rest_date_idx'),
        ]

    def __str__(self):
        return f"{self.user.email} on {self.date} ({'available' if self.is_available else 'unavailable'})"
