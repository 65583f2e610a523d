"""
panewatch exceptions
"""


class PanewatchError(Exception):
    """Base exception for all panewatch errors"""

    pass


class ConfigError(PanewatchError):
    """Raised when the configuration file or environment is malformed"""

    pass


class SessionError(PanewatchError):
    """Raised when a session cannot be saved or loaded"""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class InvalidTreeError(PanewatchError):
    """Raised when a pane tree breaks a structural invariant"""

    pass
