class ChatError(Exception):
    """Base class for failures reported to the user by the chat loop."""


class ConfigError(ChatError):
    pass


class FileReadError(ChatError):
    def __init__(self, path: str, reason: str):
        super().__init__(f"Failed to read `{path}`: {reason}")
        self.path = path


class UnknownFileTypeError(ChatError):
    def __init__(self, source: str = "input"):
        super().__init__(f"Unknown file type for {source}, expected an image")


class APIError(ChatError):
    def __init__(self, status: int, detail: str = ""):
        message = f"API request failed: {status}"
        if detail:
            message += f" {detail}"
        super().__init__(message)
        self.status = status


class TransportError(ChatError):
    pass


class EmptyResponseError(ChatError):
    def __init__(self):
        super().__init__("No response from API")


class ClipboardError(ChatError):
    pass
