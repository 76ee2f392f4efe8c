from django.contrib import admin
from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ['title', 'recipient_name', 'notification_type', 'is_read', 'created_at']
    list_filter = ['notification_type', 'is_read', 'created_at']
    search_fields = ['title', 'message', 'recipient__email', 'recipient__first_name', 'recipient__last_name']
    readonly_fields = ['created_at']
    date_hierarchy = 'created_at'

    def recipient_name(self, obj):
        return obj.recipient.get_full_name() or obj.recipient.email
    recipient_name.short_description = 'Recipient'
