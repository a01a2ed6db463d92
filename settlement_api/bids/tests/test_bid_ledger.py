from datetime import timedelta
from decimal import Decimal

import pytest
from django.db import IntegrityError, transaction
from django.utils import timezone

from bids.models import Bid
from bids.services import BidLedger
from conftest import BidFactory, ExpertFactory, ProjectFactory
from ledger.exceptions import (
    BudgetOutOfRange,
    DuplicateBid,
    Forbidden,
    InvalidState,
    NotFound,
    InvalidTransition,
    ProjectNotBiddable,
)


@pytest.fixture
def ledger():
    return BidLedger()


@pytest.mark.django_db
class TestSubmitBid:

    def test_creates_pending_bid(self, ledger, project, expert):
        bid = ledger.submit_bid(project.pk, expert, '750', proposed_timeline='3 weeks', proposed_duration=21)
        assert bid.status == 'pending'
        assert bid.amount == Decimal('750.00')
        assert bid.proposed_duration == 21

    def test_second_active_bid_is_duplicate(self, ledger, project, expert):
        ledger.submit_bid(project.pk, expert, '750')
        with pytest.raises(DuplicateBid):
            ledger.submit_bid(project.pk, expert, '800')
        assert Bid.objects.filter(project=project, expert=expert).count() == 1

    def test_can_bid_again_after_withdrawing(self, ledger, project, expert):
        first = ledger.submit_bid(project.pk, expert, '750')
        ledger.withdraw_bid(first.pk, expert)
        second = ledger.submit_bid(project.pk, expert, '700')
        assert second.status == 'pending'

    @pytest.mark.parametrize('amount', ['499.99', '1000.01', '0', '-5'])
    def test_amount_outside_budget(self, ledger, project, expert, amount):
        with pytest.raises(BudgetOutOfRange):
            ledger.submit_bid(project.pk, expert, amount)

    def test_open_budget_bounds(self, ledger, client_user, expert):
        project = ProjectFactory(client=client_user, min_budget=None, max_budget=None)
        bid = ledger.submit_bid(project.pk, expert, '123456.78')
        assert bid.amount == Decimal('123456.78')

    def test_closed_project(self, ledger, client_user, expert):
        project = ProjectFactory(client=client_user, open_for_bidding=False)
        with pytest.raises(ProjectNotBiddable):
            ledger.submit_bid(project.pk, expert, '750')

    def test_terminal_project(self, ledger, client_user, expert):
        project = ProjectFactory(client=client_user, state='cancelled')
        with pytest.raises(ProjectNotBiddable):
            ledger.submit_bid(project.pk, expert, '750')

    def test_deadline_passed(self, ledger, client_user, expert):
        project = ProjectFactory(client=client_user, bidding_deadline=timezone.now() - timedelta(hours=1))
        with pytest.raises(ProjectNotBiddable):
            ledger.submit_bid(project.pk, expert, '750')

    def test_only_experts_bid(self, ledger, project, client_user):
        with pytest.raises(Forbidden):
            ledger.submit_bid(project.pk, client_user, '750')

    def test_database_rejects_second_active_bid(self, project, expert):
        BidFactory(project=project, expert=expert)
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                BidFactory(project=project, expert=expert)


@pytest.mark.django_db
class TestUpdateAndWithdraw:

    def test_owner_updates_pending_bid(self, ledger, project, expert):
        bid = BidFactory(project=project, expert=expert)
        bid = ledger.update_bid(bid.pk, expert, amount='900', cover_letter="Updated")
        bid.refresh_from_db()
        assert bid.amount == Decimal('900.00')
        assert bid.cover_letter == "Updated"

    def test_update_rechecks_budget(self, ledger, project, expert):
        bid = BidFactory(project=project, expert=expert)
        with pytest.raises(BudgetOutOfRange):
            ledger.update_bid(bid.pk, expert, amount='2000')

    def test_update_rejects_unknown_fields(self, ledger, project, expert):
        bid = BidFactory(project=project, expert=expert)
        with pytest.raises(InvalidState):
            ledger.update_bid(bid.pk, expert, status='accepted')

    def test_other_expert_cannot_touch_bid(self, ledger, project, expert, other_expert):
        bid = BidFactory(project=project, expert=expert)
        with pytest.raises(Forbidden):
            ledger.update_bid(bid.pk, other_expert, amount='900')
        with pytest.raises(Forbidden):
            ledger.withdraw_bid(bid.pk, other_expert)

    @pytest.mark.parametrize('status', ['accepted', 'rejected', 'withdrawn'])
    def test_only_pending_bids_change(self, ledger, project, expert, status):
        bid = BidFactory(project=project, expert=expert, status=status)
        with pytest.raises(InvalidState):
            ledger.update_bid(bid.pk, expert, amount='900')
        with pytest.raises(InvalidState):
            ledger.withdraw_bid(bid.pk, expert)

    def test_client_rejects_single_bid(self, ledger, project, client_user):
        bid = BidFactory(project=project)
        bid = ledger.reject_bid(bid.pk, client_user)
        assert bid.status == 'rejected'
        with pytest.raises(InvalidState):
            ledger.reject_bid(bid.pk, client_user)

    def test_schedule_interview(self, ledger, project, client_user):
        bid = BidFactory(project=project)
        when = timezone.now() + timedelta(days=2)
        bid = ledger.schedule_interview(bid.pk, client_user, when)
        assert bid.interview_at == when


@pytest.mark.django_db
class TestAcceptBid:

    def test_accepts_one_and_rejects_the_rest(self, ledger, project, client_user):
        chosen = BidFactory(project=project)
        others = BidFactory.create_batch(2, project=project)
        withdrawn = BidFactory(project=project, status='withdrawn')

        result = ledger.accept_bid(project.pk, chosen.pk, client_user)

        chosen.refresh_from_db()
        project.refresh_from_db()
        assert chosen.status == 'accepted'
        assert chosen.accepted_at is not None
        assert project.selected_expert_id == chosen.expert_id
        assert project.open_for_bidding is False
        assert project.state == 'accepted'
        assert {bid.pk for bid in result.rejected_bids} == {bid.pk for bid in others}
        assert set(Bid.objects.filter(pk__in=[b.pk for b in others]).values_list('status', flat=True)) == {'rejected'}
        withdrawn.refresh_from_db()
        assert withdrawn.status == 'withdrawn'

    def test_acceptance_walks_the_state_machine(self, ledger, project, client_user):
        bid = BidFactory(project=project)
        ledger.accept_bid(project.pk, bid.pk, client_user)
        hops = [(r.from_state, r.to_state) for r in project.state_transitions.order_by('id')]
        assert hops == [('draft', 'submitted'), ('submitted', 'expert_review'), ('expert_review', 'accepted')]

    def test_second_acceptance_fails(self, ledger, project, client_user):
        first, second = BidFactory.create_batch(2, project=project)
        ledger.accept_bid(project.pk, first.pk, client_user)
        with pytest.raises(InvalidState):
            ledger.accept_bid(project.pk, second.pk, client_user)
        assert Bid.objects.filter(project=project, status='accepted').count() == 1

    def test_bid_created_after_acceptance_is_refused(self, ledger, project, client_user):
        first = BidFactory(project=project)
        ledger.accept_bid(project.pk, first.pk, client_user)
        late = BidFactory(project=project, expert=ExpertFactory())
        with pytest.raises(InvalidState):
            ledger.accept_bid(project.pk, late.pk, client_user)

    def test_only_project_client_accepts(self, ledger, project, other_expert):
        bid = BidFactory(project=project)
        with pytest.raises(Forbidden):
            ledger.accept_bid(project.pk, bid.pk, other_expert)

    def test_staff_may_accept(self, ledger, project, staff_user):
        bid = BidFactory(project=project)
        result = ledger.accept_bid(project.pk, bid.pk, staff_user)
        assert result.bid.status == 'accepted'

    def test_bid_of_other_project(self, ledger, project, client_user):
        bid = BidFactory()
        with pytest.raises(NotFound):
            ledger.accept_bid(project.pk, bid.pk, client_user)

    def test_withdrawn_bid_cannot_be_accepted(self, ledger, project, client_user):
        bid = BidFactory(project=project, status='withdrawn')
        with pytest.raises(InvalidState):
            ledger.accept_bid(project.pk, bid.pk, client_user)
        project.refresh_from_db()
        assert project.state == 'draft'
        assert project.selected_expert is None

    def test_failed_state_change_rolls_back_acceptance(self, ledger, client_user):
        project = ProjectFactory(client=client_user, state='active')
        bid = BidFactory(project=project)
        other = BidFactory(project=project)

        with pytest.raises(InvalidTransition):
            ledger.accept_bid(project.pk, bid.pk, client_user)

        bid.refresh_from_db()
        other.refresh_from_db()
        project.refresh_from_db()
        assert bid.status == 'pending'
        assert other.status == 'pending'
        assert project.selected_expert is None
        assert project.open_for_bidding is True

    def test_database_allows_one_accepted_bid(self, project):
        BidFactory(project=project, status='accepted')
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                BidFactory(project=project, status='accepted')
