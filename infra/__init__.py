from infra.config import WorkspaceConfig, load_config
from infra.errors import (
    PipelineError,
    NotFoundError,
    OcrPendingError,
    IsbnNotFoundError,
    ApiError,
    ResponseSchemaError,
    ToolError,
    RasterizerMissingError,
    WorkspaceIOError,
    CredentialsMissingError,
    ShutdownRequested,
)
from infra.logger import PipelineLogger, create_logger
from infra.result import Ok, Err, Result, attempt
from infra.retry import RetryPolicy
from infra.batcher import BatchConfig, RateLimitedBatcher

__all__ = [
    "WorkspaceConfig",
    "load_config",

    "PipelineError",
    "NotFoundError",
    "OcrPendingError",
    "IsbnNotFoundError",
    "ApiError",
    "ResponseSchemaError",
    "ToolError",
    "RasterizerMissingError",
    "WorkspaceIOError",
    "CredentialsMissingError",
    "ShutdownRequested",

    "PipelineLogger",
    "create_logger",

    "Ok",
    "Err",
    "Result",
    "attempt",

    "RetryPolicy",
    "BatchConfig",
    "RateLimitedBatcher",
]
