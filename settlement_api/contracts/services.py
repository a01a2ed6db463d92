import logging

from django.db.models import Q
from django.utils import timezone

from accounts.vetting import ProfileVettingService
from ledger.exceptions import ExpertNotVerified, Forbidden, InvalidState
from ledger.money import to_money
from ledger.store import fetch, lock, unit_of_work
from projects.models import Project

from .models import Contract

logger = logging.getLogger(__name__)

# forward order; 'cancelled' is reachable from any non-terminal status
STATUS_ORDER = {'pending': 0, 'signed': 1, 'active': 2, 'completed': 3}
TERMINAL_STATUSES = ('completed', 'cancelled')


class ContractManager:
    def __init__(self, vetting=None):
        self.vetting = vetting or ProfileVettingService()

    def get_contract(self, contract_id, actor):
        contract = fetch(Contract.objects.select_related('project'), pk=contract_id)
        if not (actor.is_staff or contract.is_party(actor)):
            raise Forbidden("Not authorized to view this contract.")
        return contract

    def list_contracts(self, actor, status=None):
        """Contracts the actor is a party to; staff see every contract."""
        queryset = Contract.objects.select_related('project', 'client', 'expert')
        if not actor.is_staff:
            queryset = queryset.filter(Q(client=actor) | Q(expert=actor))
        if status:
            queryset = queryset.filter(status=status)
        return queryset

    def create_contract(self, project_id, expert, actor, terms='', amount=None):
        project = fetch(Project.objects, pk=project_id)
        if not (actor.is_staff or project.client_id == actor.pk):
            raise Forbidden("Not authorized to create contract for this project.")
        if project.selected_expert_id != expert.pk:
            raise InvalidState("Contracts can only be created for the expert selected on the project.")
        if not self.vetting.is_verified(expert):
            raise ExpertNotVerified()

        amount = to_money(amount if amount is not None else (project.budget or 0))
        if amount < 0:
            raise InvalidState("Contract amount cannot be negative.")

        contract = Contract.objects.create(
            project=project,
            client_id=project.client_id,
            expert=expert,
            terms=terms or '',
            amount=amount,
            status='pending',
        )
        logger.info("Contract %s created for project %s and expert %s", contract.pk, project.pk, expert.pk)
        return contract

    def sign_contract(self, contract_id, actor, signature_metadata=None):
        """
        Record a signature.

        ``signature_metadata`` (IP, user agent, consent flag and timestamp)
        is a compliance record: it is written once, on the pending -> signed
        move, and never replaced afterwards.
        """
        with unit_of_work():
            contract = lock(Contract.objects, pk=contract_id)
            if not contract.is_party(actor):
                raise Forbidden("Not authorized to sign this contract.")
            if contract.status != 'pending' or contract.signature_metadata is not None:
                raise InvalidState("Only pending contracts can be signed.")

            contract.status = 'signed'
            contract.signed_at = timezone.now()
            contract.signed_by = actor
            contract.signature_metadata = dict(signature_metadata or {})
            contract.save(update_fields=['status', 'signed_at', 'signed_by', 'signature_metadata', 'updated_at'])

        logger.info("Contract %s signed by user %s", contract.pk, actor.pk)
        return contract

    def update_contract_status(self, contract_id, status, actor):
        if status not in Contract.STATUSES:
            raise InvalidState(f"Invalid contract status: {status}")

        with unit_of_work():
            contract = lock(Contract.objects, pk=contract_id)
            if not (actor.is_staff or contract.is_party(actor)):
                raise Forbidden("Not authorized to update this contract.")

            current = contract.status
            if status == current:
                return contract
            if current in TERMINAL_STATUSES:
                raise InvalidState(f"Contract is already {current}.")
            if status != 'cancelled':
                if STATUS_ORDER[status] < STATUS_ORDER[current]:
                    raise InvalidState(f"Contract cannot move from {current} back to {status}.")
                if current == 'pending' and status != 'signed':
                    raise InvalidState("Contract must be signed first.")

            update_fields = ['status', 'updated_at']
            contract.status = status
            if status == 'signed':
                contract.signed_at = timezone.now()
                contract.signed_by = actor
                update_fields += ['signed_at', 'signed_by']
            contract.save(update_fields=update_fields)

        logger.info("Contract %s moved %s -> %s", contract.pk, current, status)
        return contract

    @staticmethod
    def fundable_contract(project):
        """Latest signed or active contract of a project, if any."""
        return (
            project.contracts.filter(status__in=Contract.FUNDABLE_STATUSES)
            .order_by('-signed_at', '-id')
            .first()
        )
