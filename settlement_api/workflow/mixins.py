from .orchestrator import SettlementOrchestrator


class OrchestratorMixin:
    """Gives API views a wired ``SettlementOrchestrator``."""
    orchestrator_class = SettlementOrchestrator

    def get_orchestrator(self):
        if not hasattr(self, '_orchestrator'):
            self._orchestrator = self.orchestrator_class.build()
        return self._orchestrator
