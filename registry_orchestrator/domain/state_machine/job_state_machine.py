from registry_orchestrator.domain.enums.job_status import JobStatus


# Mapping of valid transitions: from_state -> set of allowed to_states
VALID_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.RUNNING, JobStatus.FAILED}),
    JobStatus.RUNNING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    # Terminal: nothing leaves completed or failed
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


class InvalidStateTransitionError(Exception):
    """Raised when an invalid job status transition is attempted."""

    def __init__(self, from_state: JobStatus, to_state: JobStatus) -> None:
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Invalid transition from {from_state.value} to {to_state.value}. "
            f"Allowed transitions: {[s.value for s in VALID_TRANSITIONS.get(from_state, frozenset())]}"
        )


class JobStateMachine:
    """
    Validates and enforces status transitions for scrape jobs.

    Stateless; callers pass both states explicitly.
    """

    def can_transition(self, from_state: JobStatus, to_state: JobStatus) -> bool:
        """Return True if transitioning from_state → to_state is permitted."""
        if from_state.is_terminal:
            return False
        return to_state in VALID_TRANSITIONS.get(from_state, frozenset())

    def validate_transition(self, from_state: JobStatus, to_state: JobStatus) -> None:
        """Raise InvalidStateTransitionError if the transition is not permitted."""
        if not self.can_transition(from_state, to_state):
            raise InvalidStateTransitionError(from_state, to_state)

    def get_allowed_transitions(self, from_state: JobStatus) -> frozenset[JobStatus]:
        """Return the set of states reachable from from_state."""
        return VALID_TRANSITIONS.get(from_state, frozenset())
