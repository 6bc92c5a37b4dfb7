# leafscan/core/errors.py


class ScanError(Exception):
    """Base class of every failure surfaced by the scan pipeline."""

    user_message = "Scan failed, please try again."

    def __init__(self, message: str, user_message: str = None):
        super().__init__(message)
        if user_message is not None:
            self.user_message = user_message


class PreprocessingError(ScanError):
    user_message = "The photo could not be read, please take it again."


class GateUnavailableError(ScanError):
    user_message = "Leaf check is unavailable right now, please try again."


class _ModelError(ScanError):
    def __init__(self, model: str, message: str, user_message: str = None):
        super().__init__(f"[{model}] {message}", user_message)
        self.model = model


class InferenceError(_ModelError):
    user_message = "Analysis failed, please try again."


class IncompleteInferenceError(_ModelError):
    user_message = "Analysis was incomplete, please try again."


class DecodeError(_ModelError):
    user_message = "Analysis returned an unreadable result, please try again."


class ScanBusyError(ScanError):
    user_message = "A scan is already in progress."


class NothingToSaveError(ScanError):
    user_message = "There is no scan result to save."


class NotAuthenticatedError(ScanError):
    user_message = "Please sign in to save scans."


class PersistenceError(ScanError):
    user_message = "The scan could not be saved, please try again."


class ScanOwnershipError(ScanError):
    user_message = "This scan belongs to another user."
