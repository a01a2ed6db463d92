from rest_framework import serializers
from django.contrib.auth import get_user_model

from projects.models import Project

from .models import Contract

User = get_user_model()


class ContractSerializer(serializers.ModelSerializer):
    class Meta:
        model = Contract
        fields = [
            'id', 'project', 'client', 'expert', 'terms', 'amount', 'status',
            'signature_metadata', 'signed_by', 'signed_at', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class CreateContractSerializer(serializers.Serializer):
    project = serializers.PrimaryKeyRelatedField(queryset=Project.objects.all())
    expert = serializers.PrimaryKeyRelatedField(queryset=User.objects.filter(user_type='expert'))
    terms = serializers.CharField(required=False, allow_blank=True, default='')
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, required=False, allow_null=True)


class SignContractSerializer(serializers.Serializer):
    """
    Signature consent. The IP address, user agent and timestamp are taken
    from the request, not from the payload.
    """
    consent = serializers.BooleanField()

    def validate_consent(self, value):
        if not value:
            raise serializers.ValidationError("You must consent to the contract terms to sign.")
        return value


class ContractStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Contract.STATUS_CHOICES)
