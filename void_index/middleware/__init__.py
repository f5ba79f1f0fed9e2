from .request_logging import RequestLoggingASGIMiddleware

__all__ = ["RequestLoggingASGIMiddleware"]
