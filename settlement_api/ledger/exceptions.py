"""
Error kinds raised by the settlement core.

Every error is a DRF ``APIException`` so the API layer renders it without
extra glue. ``default_code`` is the stable kind callers branch on; ``detail``
is the human-readable message.
"""
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.views import exception_handler as drf_exception_handler


class SettlementError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Settlement operation failed."
    default_code = "settlement_error"
    retryable = False

    @property
    def kind(self):
        return self.default_code


class NotFound(SettlementError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found."
    default_code = "not_found"


class Forbidden(SettlementError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "You are not allowed to perform this action."
    default_code = "forbidden"


class InvalidTransition(SettlementError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Invalid state transition."
    default_code = "invalid_transition"

    def __init__(self, from_state, to_state):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Invalid state transition from {from_state} to {to_state}")


class DuplicateBid(SettlementError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "You have already submitted a bid for this project."
    default_code = "duplicate_bid"


class ProjectNotBiddable(SettlementError):
    default_detail = "Project is not open for bidding."
    default_code = "project_not_biddable"


class BudgetOutOfRange(SettlementError):
    default_detail = "Bid amount is outside the project budget."
    default_code = "budget_out_of_range"


class InvalidState(SettlementError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "The object is not in a state that allows this action."
    default_code = "invalid_state"


class ExpertNotVerified(SettlementError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Cannot hire an expert who is not verified."
    default_code = "expert_not_verified"


class NoActiveContract(SettlementError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Project has no signed or active contract."
    default_code = "no_active_contract"


class InsufficientEscrowBalance(SettlementError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Insufficient escrow balance."
    default_code = "insufficient_escrow_balance"


class ConflictRetryable(SettlementError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "The resource was modified concurrently, please retry."
    default_code = "conflict_retryable"
    retryable = True


class GatewayFailure(SettlementError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "Payment gateway reported a failure."
    default_code = "gateway_failure"


def exception_handler(exc, context):
    """DRF exception handler that adds the error kind to settlement errors."""
    response = drf_exception_handler(exc, context)
    if response is not None and isinstance(exc, SettlementError):
        response.data = {"detail": str(exc.detail), "kind": exc.kind}
    return response
