"""
Test configuration: factory_boy factories and shared fixtures.

Services are built against an in-process ``MockProvider`` gateway and a
recording notifier so tests can assert on gateway calls and on the
notifications scheduled after commit.
"""
from decimal import Decimal

import pytest
import factory
from factory.django import DjangoModelFactory
from django.utils import timezone

from escrow.services import EscrowLedger
from payments.providers.mock import MockProvider
from payments.services import PaymentService
from workflow.orchestrator import SettlementOrchestrator


# ============================================================================
# FACTORIES
# ============================================================================

class UserFactory(DjangoModelFactory):
    class Meta:
        model = 'accounts.CustomUser'
        django_get_or_create = ('email',)

    email = factory.Sequence(lambda n: f"user{n}@example.com")
    first_name = factory.Faker('first_name')
    last_name = factory.Faker('last_name')
    password = factory.django.Password('testpass123')
    user_type = 'client'
    is_active = True


class ClientFactory(UserFactory):
    email = factory.Sequence(lambda n: f"client{n}@example.com")
    user_type = 'client'


class StaffFactory(UserFactory):
    email = factory.Sequence(lambda n: f"admin{n}@example.com")
    is_staff = True


class ExpertProfileFactory(DjangoModelFactory):
    class Meta:
        model = 'accounts.ExpertProfile'

    title = factory.Faker('job')
    hourly_rate = Decimal('50.00')
    vetting_status = 'verified'
    payout_account_id = factory.Sequence(lambda n: f"acct_expert_{n}")


class ExpertFactory(UserFactory):
    """Expert account; verified unless ``profile__vetting_status`` says otherwise."""
    email = factory.Sequence(lambda n: f"expert{n}@example.com")
    user_type = 'expert'
    profile = factory.RelatedFactory(ExpertProfileFactory, factory_related_name='user')


class ProjectFactory(DjangoModelFactory):
    class Meta:
        model = 'projects.Project'

    client = factory.SubFactory(ClientFactory)
    title = factory.Sequence(lambda n: f"Project {n}")
    description = factory.Faker('paragraph')
    min_budget = Decimal('500.00')
    max_budget = Decimal('1000.00')
    state = 'draft'
    open_for_bidding = True


class BidFactory(DjangoModelFactory):
    class Meta:
        model = 'bids.Bid'

    project = factory.SubFactory(ProjectFactory)
    expert = factory.SubFactory(ExpertFactory)
    amount = Decimal('800.00')
    proposed_timeline = '4 weeks'
    proposed_duration = 28
    cover_letter = factory.Faker('sentence')


class ContractFactory(DjangoModelFactory):
    class Meta:
        model = 'contracts.Contract'

    project = factory.SubFactory(ProjectFactory)
    client = factory.SelfAttribute('project.client')
    expert = factory.SubFactory(ExpertFactory)
    terms = 'Standard terms'
    amount = Decimal('1000.00')
    status = 'pending'


class MilestoneFactory(DjangoModelFactory):
    class Meta:
        model = 'projects.Milestone'

    project = factory.SubFactory(ProjectFactory)
    title = factory.Sequence(lambda n: f"Milestone {n}")
    amount = Decimal('300.00')
    status = 'approved'


# ============================================================================
# COLLABORATORS
# ============================================================================

class RecordingNotifier:
    def __init__(self):
        self.sent = []

    def notify(self, user_id, event_type, payload):
        self.sent.append((user_id, event_type, payload))

    def events_for(self, user_id):
        return [event for uid, event, _ in self.sent if uid == user_id]


class FailingNotifier:
    def notify(self, user_id, event_type, payload):
        raise RuntimeError("notification backend down")


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def client_user(db):
    return ClientFactory()


@pytest.fixture
def expert(db):
    return ExpertFactory()


@pytest.fixture
def other_expert(db):
    return ExpertFactory()


@pytest.fixture
def staff_user(db):
    return StaffFactory()


@pytest.fixture
def project(client_user):
    return ProjectFactory(client=client_user)


@pytest.fixture
def gateway():
    return MockProvider()


@pytest.fixture
def payments(gateway):
    return PaymentService(provider=gateway)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def orchestrator(db, payments, notifier):
    return SettlementOrchestrator.build(notifier=notifier, payments=payments)


@pytest.fixture
def escrow_ledger(db, payments):
    return EscrowLedger(payments=payments)


@pytest.fixture
def hired_project(client_user, expert):
    """Active project with a selected expert and a signed contract."""
    project = ProjectFactory(client=client_user, state='active', selected_expert=expert, open_for_bidding=False)
    ContractFactory(project=project, expert=expert, status='signed', signed_by=client_user, signed_at=timezone.now())
    return project


@pytest.fixture
def funded_escrow(escrow_ledger, hired_project, client_user):
    """Escrow account holding 1000.00 at a 10% platform fee."""
    funding = escrow_ledger.fund_escrow(hired_project.pk, Decimal('1000.00'), client_user)
    return funding.escrow_account
