from abc import ABC, abstractmethod


class BasePaymentProvider(ABC):
    """
    Abstract base class for all payment gateways.
    Defines the common interface that the escrow ledger settles through.

    Every operation returns a dict with at least ``id`` and ``status``;
    ``status == 'success'`` is the only outcome treated as settled.
    """

    name = None

    def __init__(self, **kwargs):
        """Initialize the payment provider with configuration."""
        self.config = kwargs

    @abstractmethod
    def create_payment_intent(self, amount, metadata, idempotency_key=None):
        """
        Collect ``amount`` from the client into the platform escrow.

        Args:
            amount: Amount to charge (as Decimal)
            metadata: Dict attached to the provider-side record
            idempotency_key: Gateway-side replay key; a repeated key must
                not charge twice

        Returns:
            Dict containing ``id`` and ``status``
        """
        pass

    @abstractmethod
    def transfer(self, amount, destination_account_id, idempotency_key=None):
        """
        Pay ``amount`` out to an expert's payout destination.
        ``idempotency_key`` makes a retried payout a no-op at the gateway.

        Returns:
            Dict containing ``id`` and ``status``
        """
        pass

    @abstractmethod
    def refund(self, reference, amount):
        """
        Return ``amount`` of a previous charge to the client.

        Args:
            reference: Provider id of the original charge
            amount: Amount to refund

        Returns:
            Dict containing ``id`` and ``status``
        """
        pass
