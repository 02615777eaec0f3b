"""
Exceptions raised by the matching engine.
"""


class ConfigurationInvalid(ValueError):
    """Weights, thresholds or vocabulary are unusable. Raised at construction, never per call."""
    pass


class RetrievalUnavailable(RuntimeError):
    """Candidate retrieval failed or timed out. Recovered by falling back, never surfaced."""
    pass
