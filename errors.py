"""Exception types raised by the vocabulary pipeline."""


class Lang2LangError(Exception):
    """Base class for Lang2Lang failures."""


class CacheUnavailable(Lang2LangError):
    """The vocabulary store could not be read or written."""


class GatewayError(Lang2LangError):
    """The AI translation service gave no usable answer."""


class GatewayUnavailable(GatewayError):
    """Transport failure or non-200 response from the LLM."""


class GatewayMalformedResponse(GatewayError):
    """The LLM answered, but not with the JSON shape we asked for."""

    def __init__(self, message: str, raw_text: str = ""):
        super().__init__(message)
        self.raw_text = raw_text
