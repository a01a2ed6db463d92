from django.contrib import admin

from .models import Contract


@admin.register(Contract)
class ContractAdmin(admin.ModelAdmin):
    list_display = ('id', 'project', 'client', 'expert', 'amount', 'status', 'signed_at')
    list_filter = ('status',)
    readonly_fields = ('signature_metadata', 'signed_by', 'signed_at')
