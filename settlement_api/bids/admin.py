from django.contrib import admin

from .models import Bid


@admin.register(Bid)
class BidAdmin(admin.ModelAdmin):
    list_display = ('id', 'project', 'expert', 'amount', 'status', 'created_at')
    list_filter = ('status',)
    search_fields = ('project__title', 'expert__email')
    readonly_fields = ('status', 'accepted_at')
