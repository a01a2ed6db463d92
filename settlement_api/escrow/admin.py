from django.contrib import admin

from .models import EscrowAccount, Invoice, PaymentRelease, Transaction


class ReadOnlyAdmin(admin.ModelAdmin):
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(EscrowAccount)
class EscrowAccountAdmin(admin.ModelAdmin):
    list_display = ('id', 'project', 'total_amount', 'released_amount', 'refunded_amount', 'status')
    list_filter = ('status',)
    readonly_fields = ('total_amount', 'released_amount', 'refunded_amount', 'platform_fee_percent', 'status')


@admin.register(PaymentRelease)
class PaymentReleaseAdmin(ReadOnlyAdmin):
    list_display = ('id', 'escrow_account', 'amount', 'platform_fee', 'expert_receives', 'status', 'requested_at')
    list_filter = ('status',)


@admin.register(Transaction)
class TransactionAdmin(ReadOnlyAdmin):
    list_display = ('id', 'project', 'transaction_type', 'amount', 'status', 'gateway_reference', 'created_at')
    list_filter = ('transaction_type', 'status')


@admin.register(Invoice)
class InvoiceAdmin(ReadOnlyAdmin):
    list_display = ('invoice_number', 'project', 'amount', 'platform_fee', 'total_amount', 'status', 'issued_at')
