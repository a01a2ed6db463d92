DRAFT = 'draft'
SUBMITTED = 'submitted'
EXPERT_REVIEW = 'expert_review'
ACCEPTED = 'accepted'
ACTIVE = 'active'
COMPLETED = 'completed'
CANCELLED = 'cancelled'
REJECTED = 'rejected'

STATE_CHOICES = (
    (DRAFT, 'Draft'),
    (SUBMITTED, 'Submitted'),
    (EXPERT_REVIEW, 'Expert Review'),
    (ACCEPTED, 'Accepted'),
    (ACTIVE, 'Active'),
    (COMPLETED, 'Completed'),
    (CANCELLED, 'Cancelled'),
    (REJECTED, 'Rejected'),
)

STATES = frozenset(value for value, _ in STATE_CHOICES)

# Directed edges; no implicit self-loops.
TRANSITIONS = {
    DRAFT: frozenset({SUBMITTED, CANCELLED}),
    SUBMITTED: frozenset({EXPERT_REVIEW, CANCELLED}),
    EXPERT_REVIEW: frozenset({ACCEPTED, REJECTED, CANCELLED}),
    ACCEPTED: frozenset({ACTIVE, CANCELLED}),
    ACTIVE: frozenset({COMPLETED, CANCELLED}),
    COMPLETED: frozenset(),
    CANCELLED: frozenset(),
    REJECTED: frozenset({DRAFT}),
}

TERMINAL_STATES = frozenset(state for state, successors in TRANSITIONS.items() if not successors)

# States a forward walk (``advance``) never passes through.
DETOUR_STATES = frozenset({CANCELLED, REJECTED})
