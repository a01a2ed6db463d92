"""
Project lifecycle state machine.

Every state change goes through here: it validates the edge against
``states.TRANSITIONS`` and appends a ``ProjectStateTransition`` in the same
unit of work as the state write, so the audit log and the project row can
never disagree.
"""
import logging
from collections import deque

from ledger.exceptions import InvalidTransition
from ledger.store import fetch, lock, unit_of_work

from . import states
from .models import Project, ProjectStateTransition

logger = logging.getLogger(__name__)


class ProjectStateMachine:

    @staticmethod
    def can_transition(from_state, to_state):
        return to_state in states.TRANSITIONS.get(from_state, frozenset())

    @staticmethod
    def path(from_state, to_state):
        """
        Shortest chain of allowed edges from ``from_state`` to ``to_state``.

        Cancelled/rejected are only allowed as the final hop. Returns None
        when the target is unreachable and [] when already there.
        """
        if from_state == to_state:
            return []
        queue = deque([(from_state, [])])
        seen = {from_state}
        while queue:
            state, trail = queue.popleft()
            for successor in sorted(states.TRANSITIONS.get(state, ())):
                if successor in seen:
                    continue
                if successor in states.DETOUR_STATES and successor != to_state:
                    continue
                route = trail + [successor]
                if successor == to_state:
                    return route
                seen.add(successor)
                queue.append((successor, route))
        return None

    def transition(self, project_id, to_state, actor=None, reason=None, metadata=None):
        """
        Move a project to ``to_state``.

        Same-state requests are a no-op and write no audit record.
        Raises NotFound / InvalidTransition before anything is written.
        """
        with unit_of_work():
            project = lock(Project.objects, pk=project_id)
            return self.apply(project, to_state, actor=actor, reason=reason, metadata=metadata)

    def apply(self, project, to_state, actor=None, reason=None, metadata=None):
        """Apply one edge to an already locked project row."""
        from_state = project.state
        if to_state not in states.STATES:
            raise InvalidTransition(from_state, to_state)
        if from_state == to_state:
            return project
        if not self.can_transition(from_state, to_state):
            raise InvalidTransition(from_state, to_state)

        with unit_of_work():
            project.state = to_state
            project.rejection_reason = reason if to_state == states.REJECTED else None
            project.save(update_fields=['state', 'rejection_reason', 'updated_at'])

            ProjectStateTransition.objects.create(
                project=project,
                from_state=from_state,
                to_state=to_state,
                triggered_by=actor,
                reason=reason,
                metadata=metadata or {},
            )

        logger.info(
            "Project %s moved %s -> %s by %s",
            project.pk, from_state, to_state, getattr(actor, 'pk', 'system'),
        )
        return project

    def advance(self, project_id, target, actor=None, reason=None, metadata=None):
        with unit_of_work():
            project = lock(Project.objects, pk=project_id)
            return self.apply_path(project, target, actor=actor, reason=reason, metadata=metadata)

    def apply_path(self, project, target, actor=None, reason=None, metadata=None):
        """Walk a locked project forward to ``target``, auditing every hop."""
        route = self.path(project.state, target)
        if route is None:
            raise InvalidTransition(project.state, target)
        with unit_of_work():
            for state in route:
                self.apply(project, state, actor=actor, reason=reason, metadata=metadata)
        return project

    def history(self, project_id):
        project = fetch(Project.objects, pk=project_id)
        return list(project.state_transitions.select_related('triggered_by').all())
