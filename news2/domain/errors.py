"""Error taxonomy for the scoring and alerting core."""


class MonitoringError(Exception):
    """Base class for every error raised or returned by the core."""


class InvalidObservation(MonitoringError):
    """A vital sign was missing or outside its plausible range."""

    def __init__(self, field: str, reason: str) -> None:
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid observation: {field}: {reason}")


class PatientNotActive(MonitoringError):
    """The patient is unknown or no longer under monitoring."""

    def __init__(self, patient_id: str) -> None:
        self.patient_id = patient_id
        super().__init__(f"Patient {patient_id} is not under active monitoring")


class NotFound(MonitoringError):
    def __init__(self, entity: str, identifier: str) -> None:
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} {identifier} not found")


class AlreadyResolved(MonitoringError):
    def __init__(self, alert_id: str) -> None:
        self.alert_id = alert_id
        super().__init__(f"Alert {alert_id} is already resolved")


class AlertConflict(MonitoringError):
    """Two writers raced for the same open alert slot of a patient."""

    def __init__(self, patient_id: str, kind: str) -> None:
        self.patient_id = patient_id
        self.kind = kind
        super().__init__(f"Concurrent update of open {kind} alert for patient {patient_id}")


class RepositoryUnavailable(MonitoringError):
    """Storage failed; the caller should retry the whole operation."""
