"""Error types for the prediction and variant engine."""


class TotoAIError(Exception):
    """Base error for TotoAI operations."""


class InvalidInputError(TotoAIError, ValueError):
    """Input rejected before any computation (bad odds, budget, strategy...)."""


class ModelEstimateError(TotoAIError):
    """The external model estimator failed or returned an unusable judgment."""


class MatchNotFoundError(TotoAIError, LookupError):
    """No match with the requested id in the store."""


class TicketSetNotFoundError(TotoAIError, LookupError):
    """No generated ticket set with the requested id in the store."""
