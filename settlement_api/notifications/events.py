BID_SUBMITTED = 'bid_submitted'
BID_ACCEPTED = 'bid_accepted'
BID_REJECTED = 'bid_rejected'
BID_WITHDRAWN = 'bid_withdrawn'
INTERVIEW_SCHEDULED = 'interview_scheduled'
PROJECT_INVITE = 'project_invite'
INVITE_ACCEPTED = 'invite_accepted'
INVITE_DECLINED = 'invite_declined'
CONTRACT_SIGNED = 'contract_signed'
ESCROW_FUNDED = 'escrow_funded'
RELEASE_REQUESTED = 'release_requested'
FUNDS_RELEASED = 'funds_released'
FUNDS_REFUNDED = 'funds_refunded'
PROJECT_STATE_CHANGED = 'project_state_changed'

EVENT_CHOICES = (
    (BID_SUBMITTED, 'Bid submitted'),
    (BID_ACCEPTED, 'Bid accepted'),
    (BID_REJECTED, 'Bid rejected'),
    (BID_WITHDRAWN, 'Bid withdrawn'),
    (INTERVIEW_SCHEDULED, 'Interview scheduled'),
    (PROJECT_INVITE, 'Project invite'),
    (INVITE_ACCEPTED, 'Invite accepted'),
    (INVITE_DECLINED, 'Invite declined'),
    (CONTRACT_SIGNED, 'Contract signed'),
    (ESCROW_FUNDED, 'Escrow funded'),
    (RELEASE_REQUESTED, 'Release requested'),
    (FUNDS_RELEASED, 'Funds released'),
    (FUNDS_REFUNDED, 'Funds refunded'),
    (PROJECT_STATE_CHANGED, 'Project state changed'),
)

EVENT_TYPES = frozenset(value for value, _ in EVENT_CHOICES)
