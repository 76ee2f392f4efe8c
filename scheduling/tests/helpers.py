from datetime import datetime, time, timezone as dt_timezone
import itertools

from accounts.models import CustomUser, Restaurant, StaffAvailability, StaffSkill
from scheduling.models import Task, TaskTemplate

# 10:00 in Bangkok on a Monday
TASK_TIME = datetime(2026, 5, 4, 3, 0, tzinfo=dt_timezone.utc)
TASK_DATE = TASK_TIME.date()

_counter = itertools.count(1)


def make_restaurant(name="Test R", timezone="Asia/Bangkok"):
    n = next(_counter)
    return Restaurant.objects.create(name=f"{name} {n}", email=f"r{n}@test.local", timezone=timezone)


def make_staff(restaurant, role="STAFF", skills=(), work_zone=None, is_active=True, **extra):
    n = next(_counter)
    user = CustomUser.objects.create_user(
        email=f"staff{n}@test.local",
        role=role,
        restaurant=restaurant,
        first_name=extra.pop('first_name', f"Staff{n}"),
        last_name=extra.pop('last_name', "User"),
        work_zone=work_zone,
        is_active=is_active,
        **extra,
    )
    for skill in skills:
        StaffSkill.objects.create(user=user, skill_name=skill, proficiency_level=4)
    return user


def make_availability(user, date=TASK_DATE, is_available=True, max_concurrent_tasks=3,
                      shift_start=time(8, 0), shift_end=time(16, 0)):
    return StaffAvailability.objects.create(
        user=user,
        restaurant=user.restaurant,
        date=date,
        is_available=is_available,
        max_concurrent_tasks=max_concurrent_tasks,
        shift_start=shift_start,
        shift_end=shift_end,
    )


def make_task(restaurant, title="Clean grill", **fields):
    fields.setdefault('scheduled_for', TASK_TIME)
    return Task.objects.create(restaurant=restaurant, title=title, **fields)


def make_active_tasks(restaurant, user, count):
    for i in range(count):
        Task.objects.create(
            restaurant=restaurant,
            title=f"Busy {i}",
            status=Task.STATUS_ASSIGNED,
            assigned_to=user,
        )


def make_template(restaurant, name="Open kitchen", **fields):
    return TaskTemplate.objects.create(restaurant=restaurant, name=name, **fields)
