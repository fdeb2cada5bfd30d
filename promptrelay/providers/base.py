# shared error taxonomy and the output contract every provider path fulfils
# anything raised before the request is committed is a ProviderError subclass the caller sees as an exception;
# DiagnosticError subclasses happen after commit and are rendered as a single text chunk instead

from typing import AsyncIterator, Optional

# lazy, finite, non-restartable sequence of text fragments; concatenation is the generated text
TextStream = AsyncIterator[str]


class ProviderError(Exception):
    pass


class TemplateParseError(ProviderError):
    def __init__(self, reason: str) -> None:
        super().__init__(f"Failed to parse curl: {reason}")
        self.reason = reason


class MissingVariableError(ProviderError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Missing required variable: {name}. Please configure it in settings.")
        self.name = name


class UnsupportedImageInputError(ProviderError):
    def __init__(self, provider_id: Optional[str]) -> None:
        super().__init__(f"Provider {provider_id or 'unknown'} does not support image input")
        self.provider_id = provider_id


class EmptyMessageError(ProviderError):
    def __init__(self) -> None:
        super().__init__("User message is required")


class ProviderNotConfiguredError(ProviderError):
    pass


class AgentUnavailableError(ProviderError):
    pass


class DiagnosticError(ProviderError):
    """Post-request failure; reported in-band as the last chunk of the stream."""


class NetworkError(DiagnosticError):
    def __init__(self, reason: str) -> None:
        super().__init__(f"Network error during API request: {reason}")


class HttpStatusError(DiagnosticError):
    def __init__(self, status: int, reason: str = "", body: str = "") -> None:
        text = f"API request failed: {status}"
        if reason:
            text += f" {reason}"
        if body:
            text += f" - {body}"
        super().__init__(text)
        self.status = status
        self.body = body


class StreamReadError(DiagnosticError):
    def __init__(self, reason: str) -> None:
        super().__init__(f"Error reading stream: {reason}")


class ResponseParseError(DiagnosticError):
    def __init__(self, reason: str) -> None:
        super().__init__(f"Failed to parse non-streaming response: {reason}")
