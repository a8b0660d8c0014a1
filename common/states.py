from common.exceptions import InvalidState


class StateMachine:
    """Declarative transition table for a status field.

    ``transitions`` maps an operation name to ``(allowed_from, target)``.
    A target of ``None`` means the operation decides the resulting status
    itself (for example a partial receipt).
    """

    def __init__(self, name, transitions):
        self.name = name
        self.transitions = dict(transitions)

    def allowed_from(self, operation):
        return self.transitions[operation][0]

    def can(self, operation, status):
        return status in self.allowed_from(operation)

    def ensure(self, operation, status):
        if not self.can(operation, status):
            allowed = sorted(str(value) for value in self.allowed_from(operation))
            raise InvalidState(
                f"Cannot {operation} a {self.name} in status '{status}'.",
                errors={"operation": operation, "status": str(status), "allowed": allowed},
            )
        return self.transitions[operation][1]
