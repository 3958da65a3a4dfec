"""Error taxonomy for the recommendation engine.

Local failures (one tool call, one enrichment lookup) are recovered where they
happen. Terminal failures (model round-trip, no content, bad final JSON) end
the run and surface only the generic user message.
"""

GENERIC_USER_MESSAGE = "We could not get suggestions right now. Please try again."


class AgentError(Exception):
    """Base class for every failure raised by the engine."""

    user_message = GENERIC_USER_MESSAGE

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class InvalidToolCall(AgentError):
    """Unknown tool name or arguments that could not be parsed."""

    def __init__(self, message: str, tool_name: str, cause: BaseException | None = None):
        super().__init__(message, cause)
        self.tool_name = tool_name


class ModelResponseError(AgentError):
    """The model produced no usable final content."""


class ValidationError(AgentError):
    """The model's final answer failed schema validation.

    `raw_text` is kept for diagnostics and must never reach the end user.
    """

    def __init__(self, message: str, raw_text: str, cause: BaseException | None = None):
        super().__init__(message, cause)
        self.raw_text = raw_text


class LookupFailure(AgentError):
    """A places lookup did not produce a usable place."""


class PlaceNotFound(LookupFailure):
    def __init__(self, query: str):
        super().__init__(f"No place found for {query!r}")
        self.query = query


class PlacesProviderError(LookupFailure):
    """The places provider answered with an error status or a malformed body."""


class ProviderTransportError(AgentError):
    """Network or HTTP failure talking to an external provider."""

    def __init__(self, provider: str, message: str, cause: BaseException | None = None):
        super().__init__(f"{provider}: {message}", cause)
        self.provider = provider
