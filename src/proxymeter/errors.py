class ProxymeterError(Exception):
    """
    base class for all errors raised by proxymeter.
    """


class ValidationError(ProxymeterError):
    """
    raised when a report query carries a malformed parameter.
    The message is safe to hand back to the caller verbatim.
    """


class SnapshotLoadError(ProxymeterError):
    """
    raised when an exported usage snapshot cannot be read or parsed.
    """
