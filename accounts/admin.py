from django.contrib import admin

from accounts.models import Restaurant, CustomUser, StaffSkill, StaffAvailability


@admin.register(Restaurant)
class RestaurantAdmin(admin.ModelAdmin):
    list_display = ['name', 'email', 'timezone', 'is_active']
    fieldsets = (
        ('Basic Info', {
            'fields': ('name', 'name_fr', 'email')
        }),
        ('Scheduling', {
            'fields': ('timezone', 'is_active')
        }),
    )


class StaffSkillInline(admin.TabularInline):
    model = StaffSkill
    extra = 0


@admin.register(CustomUser)
class CustomUserAdmin(admin.ModelAdmin):
    list_display = ['email', 'first_name', 'last_name', 'role', 'restaurant', 'work_zone', 'is_active']
    list_filter = ['role', 'is_active', 'restaurant']
    search_fields = ['email', 'first_name', 'last_name']
    inlines = [StaffSkillInline]


@admin.register(StaffAvailability)
class StaffAvailabilityAdmin(admin.ModelAdmin):
    list_display = ['user', 'date', 'shift_start', 'shift_end', 'is_available', 'current_workload_percentage']
    list_filter = ['is_available', 'date']
