from rest_framework import serializers

from .models import EscrowAccount, Invoice, PaymentRelease, Transaction


class TransactionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Transaction
        fields = [
            'id', 'project', 'contract', 'payment_release', 'sender', 'recipient', 'amount',
            'transaction_type', 'status', 'gateway_reference', 'created_at',
        ]
        read_only_fields = fields


class InvoiceSerializer(serializers.ModelSerializer):
    class Meta:
        model = Invoice
        fields = ['id', 'invoice_number', 'amount', 'platform_fee', 'total_amount', 'issued_to', 'status', 'issued_at']
        read_only_fields = fields


class PaymentReleaseSerializer(serializers.ModelSerializer):
    invoice = InvoiceSerializer(read_only=True, allow_null=True)

    class Meta:
        model = PaymentRelease
        fields = [
            'id', 'escrow_account', 'milestone', 'amount', 'platform_fee', 'expert_receives',
            'requested_by', 'approved_by', 'status', 'gateway_reference', 'failure_reason',
            'requested_at', 'approved_at', 'released_at', 'invoice',
        ]
        read_only_fields = fields


class EscrowAccountSerializer(serializers.ModelSerializer):
    """
    Escrow account with its cached counters.

    ``balance`` is the cached total minus released and refunded amounts;
    use the verify endpoint to recompute it from the ledger.
    """
    balance = serializers.DecimalField(source='cached_balance', max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = EscrowAccount
        fields = [
            'id', 'project', 'total_amount', 'released_amount', 'refunded_amount', 'balance',
            'platform_fee_percent', 'status', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class FundEscrowSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    payment_method = serializers.CharField(required=False, allow_blank=True)

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError("Amount must be greater than zero.")
        return value


class ReleaseRequestSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    milestone_id = serializers.IntegerField(required=False, allow_null=True)

    def validate(self, attrs):
        if attrs.get('amount') is None and attrs.get('milestone_id') is None:
            raise serializers.ValidationError("Either amount or milestone_id is required.")
        if attrs.get('amount') is not None and attrs['amount'] <= 0:
            raise serializers.ValidationError({'amount': "Amount must be greater than zero."})
        return attrs


class RefundSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class EscrowLockSerializer(serializers.Serializer):
    locked = serializers.BooleanField()
