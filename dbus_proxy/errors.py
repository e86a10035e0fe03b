class DbusError(Exception):
    """Base class for every failure raised by the scraping pipeline."""


class NotFound(DbusError):
    pass


class TimeNotFound(NotFound):
    def __init__(self, line_code: str):
        super().__init__(f"Bus time not found for line {line_code}")
        self.line_code = line_code


class UpstreamFormatError(DbusError):
    pass


class UpstreamHttpError(DbusError):
    def __init__(self, status: int, message: str):
        super().__init__(message)
        self.status = status


class ParseError(DbusError):
    pass


class CacheWriteError(DbusError):
    def __init__(self, key: str, cause: Exception):
        super().__init__(f"Unable to write cache entry {key}: {cause}")
        self.key = key
