from django.contrib import admin

from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'event_type', 'delivery_status', 'is_read', 'created_at')
    list_filter = ('event_type', 'delivery_status', 'is_read')
    search_fields = ('user__email',)
