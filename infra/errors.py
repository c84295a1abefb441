"""
Error taxonomy shared by every phase.

    PipelineError
    ├── NotFoundError          expected absence, always recovered locally
    │   ├── OcrPendingError    OCR text not produced yet (retryable)
    │   └── IsbnNotFoundError  no identifier from any lookup strategy
    ├── ApiError               non-2xx status or unexpected payload
    │   └── ResponseSchemaError
    ├── ToolError              external rasterizer failed
    │   └── RasterizerMissingError   fatal to the whole run
    ├── WorkspaceIOError       marker/artifact read or write failed
    ├── CredentialsMissingError  token or session cookie not set
    └── ShutdownRequested      run stopped before the item finished
"""

from typing import Optional


class PipelineError(Exception):
    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message}: {self.cause}"
        return self.message


class NotFoundError(PipelineError):
    pass


class OcrPendingError(NotFoundError):
    def __init__(self, image_id: str):
        super().__init__(f"OCR not yet available for image {image_id}")
        self.image_id = image_id


class IsbnNotFoundError(NotFoundError):
    def __init__(self, title: str):
        super().__init__(f"ISBN not found for \"{title}\"")
        self.title = title


class ApiError(PipelineError):
    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message, cause)
        self.status_code = status_code


class ResponseSchemaError(ApiError):
    pass


class ToolError(PipelineError):
    pass


class RasterizerMissingError(ToolError):
    pass


class WorkspaceIOError(PipelineError):
    pass


class CredentialsMissingError(PipelineError):
    pass


class ShutdownRequested(PipelineError):
    pass
