import logging

from celery import shared_task

from .orchestrator import SettlementOrchestrator

logger = logging.getLogger(__name__)


@shared_task
def expire_invites():
    """Periodic sweep: cancel projects whose expert invite has run out."""
    expired = SettlementOrchestrator.build().expire_invites()
    logger.info("expire_invites sweep cancelled %s projects", len(expired))
    return expired
