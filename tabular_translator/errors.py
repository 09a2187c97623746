class TranslatorError(Exception):
    """Base class for every error raised by the translation pipeline."""


class InputError(TranslatorError):
    pass


class EmptyDatasetError(InputError):
    pass


class NoEligibleColumnsError(InputError):
    pass


class UnsupportedFormatError(InputError):
    pass


class TranslationServiceError(TranslatorError):
    """A remote call failed in a way that is worth retrying."""


class BackendUnavailableError(TranslatorError):
    def __init__(self, consecutive_failures: int) -> None:
        super().__init__(
            f"Translation backend looks unavailable: {consecutive_failures} "
            "consecutive batches failed."
        )
        self.consecutive_failures = consecutive_failures


class StallError(TranslatorError):
    def __init__(self, stalled_seconds: float) -> None:
        super().__init__(
            f"No translation progress for {stalled_seconds:.0f}s; giving up."
        )
        self.stalled_seconds = stalled_seconds


class CheckpointError(TranslatorError):
    pass


class RunInterrupted(TranslatorError):
    pass


class DatasetReadError(InputError):
    pass


class ProviderConfigError(TranslatorError):
    """Unknown provider name or invalid provider options."""
