class LlmError(Exception):
    """Base class for generative-AI call failures."""


class ConfigurationError(LlmError):
    """Missing or rejected credentials; needs operator action."""


class ThrottlingError(LlmError):
    """Rate limit or quota exceeded; retryable later."""


class LlmUnavailableError(LlmError):
    """No response at all (connection refused, DNS, timeout)."""


class LlmResponseError(LlmError):
    """A response arrived but was unusable (error status, empty candidates)."""


class TranscriptionError(Exception):
    """The transcription pipeline could not reach the model."""
