"""
Custom error handlers for the Newsdesk API.

Provides user-friendly error messages and prevents technical details
from leaking to API consumers.
"""

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from newsdesk.utils.errors import NewsdeskError
from newsdesk.utils.logger import logger

# User-friendly error messages (don't expose technical details)
ERROR_MESSAGES = {
    # Articles and sources
    "article_not_found": "We couldn't find that article. It may not have been aggregated yet.",
    "source_not_found": "That news source isn't registered.",
    "article_invalid": "That article is missing a title or a valid link.",
    "article_duplicate": "That article is already in the feed.",
    # Fetching and summarizing
    "fetch_failed": "We couldn't reach that news source. We'll try again on the next run.",
    "rate_limited": "Too many requests. Please wait a moment and try again.",
    "provider_error": "The summary service is unavailable right now.",
    "summarization_failed": "We couldn't summarize that article. Please try again later.",
    # Storage
    "store_error": "We couldn't save your change. Please try again.",
    # Generic errors
    "server_error": "Something went wrong on our end. Please try again in a few moments.",
    "validation_error": "Please check your input and try again.",
}

# Exception class name -> (message key, HTTP status)
_EXCEPTION_MAP = {
    "ArticleNotFoundError": ("article_not_found", status.HTTP_404_NOT_FOUND),
    "SourceNotFoundError": ("source_not_found", status.HTTP_404_NOT_FOUND),
    "ArticleValidationError": ("article_invalid", status.HTTP_422_UNPROCESSABLE_ENTITY),
    "DuplicateArticle": ("article_duplicate", status.HTTP_409_CONFLICT),
    "DuplicateKeyError": ("article_duplicate", status.HTTP_409_CONFLICT),
    "FetchError": ("fetch_failed", status.HTTP_502_BAD_GATEWAY),
    "RateLimited": ("rate_limited", status.HTTP_429_TOO_MANY_REQUESTS),
    "ProviderError": ("provider_error", status.HTTP_503_SERVICE_UNAVAILABLE),
    "SummarizationError": ("summarization_failed", status.HTTP_500_INTERNAL_SERVER_ERROR),
    "StoreError": ("store_error", status.HTTP_500_INTERNAL_SERVER_ERROR),
}


def get_friendly_message(exception: Exception) -> str:
    """
    Convert exception to user-friendly message.

    Args:
        exception: The exception that was raised

    Returns:
        User-friendly error message (no technical details)
    """
    key, _ = _EXCEPTION_MAP.get(exception.__class__.__name__, ("server_error", None))
    return ERROR_MESSAGES[key]


def get_status_code(exception: Exception) -> int:
    _, code = _EXCEPTION_MAP.get(
        exception.__class__.__name__, (None, status.HTTP_500_INTERNAL_SERVER_ERROR)
    )
    return code


async def newsdesk_exception_handler(request: Request, exc: NewsdeskError) -> JSONResponse:
    """
    Map domain errors to a status code and a friendly message.

    Rate limits carry a Retry-After header when the wait is known.
    """
    status_code = get_status_code(exc)
    if status_code >= 500:
        logger.error(f"{exc.__class__.__name__} in {request.method} {request.url.path}: {exc}")
    else:
        logger.info(f"{exc.__class__.__name__} in {request.method} {request.url.path}: {exc}")

    headers = None
    retry_after = getattr(exc, "retry_after", None)
    if retry_after:
        headers = {"Retry-After": str(max(1, int(retry_after)))}

    return JSONResponse(
        status_code=status_code,
        content={"detail": get_friendly_message(exc)},
        headers=headers,
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Catch-all exception handler for unexpected errors.

    Logs the full traceback and returns a generic message.
    """
    logger.opt(exception=exc).error(
        f"Unhandled exception in {request.method} {request.url.path} "
        f"(query: {dict(request.query_params)})"
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": ERROR_MESSAGES["server_error"],
        },
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Handle Pydantic validation errors with friendly messages.

    Args:
        request: The FastAPI request
        exc: The validation error

    Returns:
        JSON response with validation error details
    """
    logger.warning(f"Validation error in {request.method} {request.url.path}: {exc.errors()}")

    # Serialize errors properly (remove non-serializable objects from ctx)
    errors = []
    for error in exc.errors():
        clean_error = {
            "type": error.get("type"),
            "loc": error.get("loc"),
            "msg": error.get("msg"),
            "input": error.get("input"),
        }
        if "ctx" in error:
            clean_error["ctx"] = {
                key: value if isinstance(value, (str, int, float, bool, type(None))) else str(value)
                for key, value in error["ctx"].items()
            }
        errors.append(clean_error)

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": errors,
        },
    )
