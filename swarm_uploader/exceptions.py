"""Error taxonomy for swarm_uploader."""


class UploaderError(Exception):
    """Base class for all uploader errors."""


class ConfigError(UploaderError):
    """Invalid runtime configuration."""


class InvalidInputError(UploaderError):
    """Source is neither a valid URL nor an existing local file."""


class MissingNameError(UploaderError):
    """A filename is required but none was given or inferable."""


class SourceNotFoundError(UploaderError, FileNotFoundError):
    """Local source path does not exist."""


class DownloadError(UploaderError):
    """Fetching a remote source failed (non-2xx status, network error, timeout)."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class LocalReadError(UploaderError):
    """Reading a local source failed."""


class UploadError(UploaderError):
    """Gateway rejected the upload or could not be reached."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class LogWriteError(UploaderError):
    """Writing the result log failed."""
