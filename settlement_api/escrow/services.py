"""
Escrow ledger.

Money movements are appended to ``Transaction`` and never edited. The cached
counters on ``EscrowAccount`` are rewritten from the completed rows after
every movement; ``balance()`` and ``verify_ledger()`` always read the log.

Gateway calls never run inside a retryable unit of work. A release is first
claimed (``approved``) under the account lock, then paid out, then settled;
claimed releases count against the available balance until they settle.
"""
import logging
import string
import uuid

from django.conf import settings
from django.db.models import Sum
from django.utils import timezone
from django.utils.crypto import get_random_string

from accounts.vetting import ProfileVettingService
from contracts.services import ContractManager
from ledger.exceptions import (
    Forbidden,
    GatewayFailure,
    InsufficientEscrowBalance,
    InvalidState,
    NoActiveContract,
)
from ledger.money import ZERO, split_fee, to_money
from ledger.store import fetch, lock, retry_on_conflict, unit_of_work
from payments.services import PaymentService
from projects.models import Milestone, Project

from .models import EscrowAccount, Invoice, PaymentRelease, Transaction

logger = logging.getLogger(__name__)

TRANSACTION_FIELDS = {
    'escrow_funding': 'total_amount',
    'payment_release': 'released_amount',
    'refund': 'refunded_amount',
}
PAYABLE_MILESTONE_STATUSES = ('submitted', 'approved')
# releases that hold on to escrow money until they settle
OPEN_RELEASE_STATUSES = ('pending', 'approved')


class EscrowLedger:
    def __init__(self, payments=None, vetting=None):
        self.payments = payments or PaymentService()
        self.vetting = vetting or ProfileVettingService()

    # ledger reads

    @staticmethod
    def ledger_totals(account):
        """Sums of completed transactions keyed by the cached counter they back."""
        totals = {field: ZERO for field in TRANSACTION_FIELDS.values()}
        rows = (
            account.transactions.filter(status='completed')
            .values('transaction_type')
            .annotate(total=Sum('amount'))
            .order_by()
        )
        for row in rows:
            totals[TRANSACTION_FIELDS[row['transaction_type']]] = to_money(row['total'] or 0)
        return totals

    @staticmethod
    def _balance_of(totals):
        return totals['total_amount'] - totals['released_amount'] - totals['refunded_amount']

    def balance(self, account):
        return self._balance_of(self.ledger_totals(account))

    @staticmethod
    def claimed(account):
        """Amount held by releases that were approved but have not settled yet."""
        total = account.releases.filter(status='approved').aggregate(total=Sum('amount'))['total']
        return to_money(total or 0)

    def available(self, account):
        return self.balance(account) - self.claimed(account)

    @staticmethod
    def _status_for(totals, balance):
        if totals['total_amount'] == ZERO:
            return 'pending'
        if balance > ZERO:
            return 'active'
        return 'refunded' if totals['refunded_amount'] > ZERO else 'released'

    def _refresh(self, account, totals=None):
        totals = totals or self.ledger_totals(account)
        for field, value in totals.items():
            setattr(account, field, value)
        if account.status != 'disputed':
            account.status = self._status_for(totals, self._balance_of(totals))
        account.save(update_fields=list(totals) + ['status', 'updated_at'])
        return account

    def get_account(self, escrow_account_id, actor):
        account = fetch(EscrowAccount.objects.select_related('project'), pk=escrow_account_id)
        if not (actor.is_staff or account.project.is_participant(actor)):
            raise Forbidden("Not authorized to view this escrow account.")
        return account

    @staticmethod
    def list_accounts(actor):
        queryset = EscrowAccount.objects.select_related('project')
        if actor.is_staff:
            return queryset
        if actor.user_type == 'client':
            return queryset.filter(project__client=actor)
        return queryset.filter(project__selected_expert=actor)

    def list_releases(self, escrow_account_id, actor, status=None):
        account = self.get_account(escrow_account_id, actor)
        releases = account.releases.select_related('milestone', 'requested_by', 'approved_by')
        if status:
            releases = releases.filter(status=status)
        return releases

    def verify_ledger(self, escrow_account_id):
        """
        Recompute the cached counters from the transaction log.

        Returns the ledger balance and a ``{field: (cached, ledger)}`` map of
        every counter that had drifted; drifted counters are rewritten.
        """
        with unit_of_work():
            account = lock(EscrowAccount.objects, pk=escrow_account_id)
            totals = self.ledger_totals(account)
            drift = {
                field: (getattr(account, field), value)
                for field, value in totals.items()
                if getattr(account, field) != value
            }
            if drift:
                logger.warning("Escrow account %s drifted from its ledger: %s", account.pk, drift)
            self._refresh(account, totals)
        return {'balance': self._balance_of(totals), 'drift': drift}

    # money movements

    def fund_escrow(self, project_id, amount, actor, metadata=None):
        """
        Charge the client and append an ``escrow_funding`` transaction.

        Nothing is written before the charge succeeds, so a declined charge
        leaves no trace (not even the account created on first funding).
        A successful charge is always recorded: the recording step holds no
        gateway call and is retried on conflicts.
        """
        amount = to_money(amount)
        if amount <= ZERO:
            raise InvalidState("Funding amount must be greater than zero.")

        project = fetch(Project.objects, pk=project_id)
        if project.client_id != actor.pk:
            raise Forbidden("Only the project client can fund the escrow.")
        if ContractManager.fundable_contract(project) is None:
            raise NoActiveContract()
        account = EscrowAccount.objects.filter(project=project).first()
        if account is not None and account.status == 'disputed':
            raise InvalidState("Escrow is locked due to a dispute.")

        idempotency_key = f"fund-{project.pk}-{uuid.uuid4().hex}"
        result = self.payments.charge(amount, {
            **(metadata or {}),
            'project_id': project.pk,
        }, idempotency_key=idempotency_key)
        if not self.payments.is_success(result):
            logger.error("Escrow funding for project %s failed at the gateway: %s", project.pk, result)
            raise GatewayFailure(result.get('message') or "Payment initiation failed.")

        try:
            funding = self._record_funding(project.pk, amount, actor, result.get('id') or '')
        except Exception:
            logger.error(
                "Charge %s of %s for project %s succeeded but was not recorded",
                result.get('id'), amount, project.pk,
            )
            raise
        logger.info("Escrow %s funded with %s for project %s", funding.escrow_account_id, amount, project.pk)
        return funding

    @retry_on_conflict
    def _record_funding(self, project_id, amount, actor, gateway_reference):
        with unit_of_work():
            project = lock(Project.objects, pk=project_id)
            account, _ = EscrowAccount.objects.get_or_create(
                project=project,
                defaults={'platform_fee_percent': to_money(settings.PLATFORM_FEE_PERCENT)},
            )
            account = lock(EscrowAccount.objects, pk=account.pk)
            funding = Transaction.objects.create(
                project=project,
                contract=ContractManager.fundable_contract(project),
                escrow_account=account,
                sender=actor,
                amount=amount,
                transaction_type='escrow_funding',
                status='completed',
                gateway_reference=gateway_reference,
            )
            self._refresh(account)
        return funding

    def request_release(self, escrow_account_id, amount, requested_by, milestone_id=None):
        account = fetch(EscrowAccount.objects.select_related('project'), pk=escrow_account_id)
        project = account.project
        if requested_by.pk not in (project.client_id, project.selected_expert_id):
            raise Forbidden("Only the project client or selected expert can request a release.")
        if account.status == 'disputed':
            raise InvalidState("Escrow is locked due to a dispute.")

        milestone = None
        if milestone_id is not None:
            milestone = fetch(Milestone.objects, pk=milestone_id, project_id=project.pk)
            if milestone.is_paid:
                raise InvalidState("Milestone has already been paid.")
            if milestone.status not in PAYABLE_MILESTONE_STATUSES:
                raise InvalidState("Milestone must be submitted or approved before requesting a release.")
            if account.releases.filter(milestone=milestone, status__in=OPEN_RELEASE_STATUSES).exists():
                raise InvalidState("A release for this milestone is already open.")
            if amount is None:
                amount = milestone.amount

        if amount is None:
            raise InvalidState("Release amount is required.")
        amount = to_money(amount)
        if amount <= ZERO:
            raise InvalidState("Release amount must be greater than zero.")
        if amount > self.available(account):
            raise InsufficientEscrowBalance()

        platform_fee, expert_receives = split_fee(amount, account.platform_fee_percent)
        release = PaymentRelease.objects.create(
            escrow_account=account,
            milestone=milestone,
            amount=amount,
            platform_fee=platform_fee,
            expert_receives=expert_receives,
            requested_by=requested_by,
        )
        logger.info(
            "Release %s of %s requested on escrow %s (fee %s, expert %s)",
            release.pk, amount, account.pk, platform_fee, expert_receives,
        )
        return release

    def approve_release(self, release_id, approver):
        """
        Pay out a pending release in three steps.

        1. Claim: under the account lock, check the release against the
           balance left after other claims and mark it ``approved``.
        2. Transfer ``expert_receives`` once, keyed by the release id.
        3. Settle: write the ``payment_release`` transaction, pay the
           milestone and issue the invoice; or mark the release ``rejected``
           and raise ``GatewayFailure``.

        Only steps 1 and 3 are retried on conflicts; the transfer never is.
        """
        release = fetch(PaymentRelease.objects.select_related('escrow_account__project'), pk=release_id)
        if release.escrow_account.project.client_id != approver.pk:
            raise Forbidden("Only the project client can approve releases.")

        release, expert = self._claim_release(release_id, approver)
        result = self.payments.transfer(
            release.expert_receives,
            self.vetting.payout_destination(expert),
            idempotency_key=f"release-{release.pk}",
        )
        release = self._settle_release(release.pk, expert, result)

        if release.status == 'rejected':
            logger.error("Release %s rejected by the payment gateway: %s", release.pk, release.failure_reason)
            raise GatewayFailure(release.failure_reason)

        logger.info("Release %s paid out %s to expert %s", release.pk, release.expert_receives, expert.pk)
        return release

    @retry_on_conflict
    def _claim_release(self, release_id, approver):
        with unit_of_work():
            account = lock(EscrowAccount.objects.select_related('project'), pk=self._account_id_of(release_id))
            release = lock(PaymentRelease.objects, pk=release_id)
            if release.status != 'pending':
                raise InvalidState("Only pending releases can be approved.")
            if account.status == 'disputed':
                raise InvalidState("Escrow is locked due to a dispute.")

            available = self.available(account)
            if release.amount > available:
                raise InsufficientEscrowBalance(
                    f"Release of {release.amount} exceeds the available escrow balance of {available}."
                )
            if release.milestone_id is not None and Milestone.objects.filter(
                pk=release.milestone_id, is_paid=True,
            ).exists():
                raise InvalidState("Milestone has already been paid.")

            expert = account.project.selected_expert
            if expert is None:
                raise InvalidState("Project has no selected expert to pay.")

            release.status = 'approved'
            release.approved_by = approver
            release.approved_at = timezone.now()
            release.save(update_fields=['status', 'approved_by', 'approved_at'])
        return release, expert

    @retry_on_conflict
    def _settle_release(self, release_id, expert, result):
        with unit_of_work():
            account = lock(EscrowAccount.objects.select_related('project'), pk=self._account_id_of(release_id))
            release = lock(PaymentRelease.objects, pk=release_id)
            if release.status != 'approved':
                # settled by an earlier attempt
                return release
            project = account.project

            if not self.payments.is_success(result):
                release.status = 'rejected'
                release.failure_reason = result.get('message') or "Transfer failed."
                release.save(update_fields=['status', 'failure_reason'])
                return release

            now = timezone.now()
            release.status = 'released'
            release.released_at = now
            release.gateway_reference = result.get('id') or ''
            release.save(update_fields=['status', 'released_at', 'gateway_reference'])

            Transaction.objects.create(
                project=project,
                contract=ContractManager.fundable_contract(project),
                escrow_account=account,
                payment_release=release,
                sender=project.client,
                recipient=expert,
                amount=release.amount,
                transaction_type='payment_release',
                status='completed',
                gateway_reference=release.gateway_reference,
            )
            if release.milestone_id is not None:
                milestone = lock(Milestone.objects, pk=release.milestone_id)
                milestone.is_paid = True
                milestone.save(update_fields=['is_paid'])
            self._issue_invoice(release, project, now)
            self._refresh(account)
        return release

    @staticmethod
    def _account_id_of(release_id):
        return fetch(PaymentRelease.objects.only('escrow_account_id'), pk=release_id).escrow_account_id

    def refund_escrow(self, escrow_account_id, actor, amount=None, reason=''):
        """
        Return unreleased money to the client.

        The account stays locked across the gateway refund so no release can
        be claimed against the money being returned.
        """
        with unit_of_work():
            account = lock(EscrowAccount.objects.select_related('project'), pk=escrow_account_id)
            project = account.project
            if not (actor.is_staff or project.client_id == actor.pk):
                raise Forbidden("Only the project client or an admin can refund the escrow.")
            if account.status == 'disputed':
                raise InvalidState("Escrow is locked due to a dispute.")

            available = self.available(account)
            amount = available if amount is None else to_money(amount)
            if amount <= ZERO:
                raise InvalidState("Nothing to refund.")
            if amount > available:
                raise InsufficientEscrowBalance()

            funding = (
                account.transactions.filter(transaction_type='escrow_funding', status='completed')
                .order_by('-created_at', '-id')
                .first()
            )
            result = self.payments.refund(funding.gateway_reference, amount)
            if not self.payments.is_success(result):
                logger.error("Refund on escrow %s failed at the gateway: %s", account.pk, result)
                raise GatewayFailure(result.get('message') or "Refund failed.")

            refund = Transaction.objects.create(
                project=project,
                contract=funding.contract,
                escrow_account=account,
                recipient=project.client,
                amount=amount,
                transaction_type='refund',
                status='completed',
                gateway_reference=result.get('id') or '',
            )
            self._refresh(account)

        logger.info("Escrow %s refunded %s to client (%s)", account.pk, amount, reason or 'no reason given')
        return refund

    def set_dispute_lock(self, escrow_account_id, locked, actor):
        if not actor.is_staff:
            raise Forbidden("Only admins can lock or unlock an escrow.")
        with unit_of_work():
            account = lock(EscrowAccount.objects, pk=escrow_account_id)
            if locked:
                account.status = 'disputed'
                account.save(update_fields=['status', 'updated_at'])
            else:
                # any non-disputed value lets the refresh recompute it
                account.status = 'active'
                self._refresh(account)
        logger.info("Escrow %s dispute lock %s by %s", account.pk, 'set' if locked else 'cleared', actor.pk)
        return account

    @staticmethod
    def _issue_invoice(release, project, issued_at):
        allowed = string.ascii_uppercase + string.digits
        while True:
            number = f"INV-{issued_at:%Y%m%d}-{get_random_string(4, allowed)}"
            if not Invoice.objects.filter(invoice_number=number).exists():
                break
        return Invoice.objects.create(
            project=project,
            payment_release=release,
            invoice_number=number,
            amount=release.expert_receives,
            platform_fee=release.platform_fee,
            total_amount=release.amount,
            issued_to=project.client,
            status='paid',
        )
