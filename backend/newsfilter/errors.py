"""
Exception types raised across the fetch and classification pipeline.
"""


class SourceFetchError(Exception):
    """A single source attempt could not complete (network, HTTP, config)."""


class ModelCallError(Exception):
    """The generative model call failed or returned no text."""


class BatchClassificationError(Exception):
    """One classification batch failed; other batches are unaffected."""


class ClassifierPreconditionError(Exception):
    """Classification cannot start at all."""


class NoActiveCriteriaError(ClassifierPreconditionError):
    def __init__(self):
        super().__init__("No active criteria. Add or activate criteria before filtering.")


class MissingCredentialError(ClassifierPreconditionError):
    def __init__(self):
        super().__init__(
            "ANTHROPIC_API_KEY is not set. Add it to .env or to the app settings."
        )


class FetchRunInProgressError(Exception):
    """A fetch-all run is already active."""

    def __init__(self):
        super().__init__("A fetch run is already in progress")
