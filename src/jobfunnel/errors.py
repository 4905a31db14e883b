from __future__ import annotations


class JobFunnelError(ValueError):
    """Base class for failures surfaced to API and CLI callers."""


class NotFound(JobFunnelError):
    def __init__(self, kind: str, identifier: object):
        super().__init__(f"{kind} {identifier} not found")
        self.kind = kind
        self.identifier = identifier


class InvalidTransition(JobFunnelError):
    def __init__(self, status: object):
        super().__init__(f"unsupported application status '{status}'")
        self.status = status


class ConcurrencyConflict(JobFunnelError):
    """Another writer changed the application or its metric first.

    Callers retry the whole transition, never only the metric half.
    """

    def __init__(self, application_id: int, attempts: int = 1):
        super().__init__(f"application {application_id} changed concurrently after {attempts} attempt(s)")
        self.application_id = application_id
        self.attempts = attempts
