"""Exception hierarchy for the alerting engine."""


class AlertingError(Exception):
    """Base class for alerting errors."""


class ValidationError(AlertingError):
    """Rejected input: bad condition, severity, duplicate rule name, ..."""


class ConditionError(ValidationError):
    """Condition string could not be parsed."""
    def __init__(self, message, condition=None):
        super().__init__(message)
        self.condition = condition


class RuleNotFoundError(ValidationError):
    """Rule id does not exist."""


class EvaluationError(AlertingError):
    """A stored rule failed to evaluate at runtime."""


class ChannelDeliveryError(AlertingError):
    """Notification channel failed: network error, timeout or bad response."""
    def __init__(self, message, channel=None, status_code=None, retryable=True):
        super().__init__(message)
        self.channel = channel
        self.status_code = status_code
        self.retryable = retryable


class PersistenceError(AlertingError):
    """Reading or writing rules, alerts or maintenance windows failed."""


def store_call(store, method, *args, **kwargs):
    """Call a storage method, normalizing any failure to PersistenceError."""
    try:
        return getattr(store, method)(*args, **kwargs)
    except PersistenceError:
        raise
    except Exception as e:
        raise PersistenceError(f"{method} failed: {e}") from e
