import logging
import traceback
from typing import Callable

from bson import ObjectId
from fastapi import Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from pymongo.errors import (
    ConnectionFailure,
    DuplicateKeyError,
    OperationFailure,
    ServerSelectionTimeoutError,
)
from starlette.middleware.base import BaseHTTPMiddleware

from messenger.core.config import settings
from messenger.core.errors import (
    BaseCustomException,
    ValidationError,
    create_error_response,
    create_validation_error_response,
    duplicate_key_error,
)

logger = logging.getLogger(__name__)


def _to_validation_errors(errors) -> list:
    validation_errors = []
    for error in errors:
        field_name = ".".join(str(loc) for loc in error["loc"])
        validation_errors.append(
            ValidationError(
                field=field_name,
                message=error["msg"],
                value=error.get("input")
            )
        )
    return validation_errors


def _encode(content):
    return jsonable_encoder(content, custom_encoder={ObjectId: str})


def _json(error_response) -> JSONResponse:
    return JSONResponse(
        status_code=error_response.status_code,
        content=_encode(error_response.model_dump())
    )


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    통합 에러 처리 미들웨어

    라우터에서 처리되지 않은 예외를 표준화된 에러 응답으로 변환합니다.
    내부 예외 메시지는 debug 모드에서만 노출됩니다.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)

        except BaseCustomException as e:
            return JSONResponse(status_code=e.status_code, content=_encode(e.to_dict()))

        except PydanticValidationError as e:
            # 요청 검증은 RequestValidationError로 처리되므로, 여기 도달하는 것은
            # 저장된 문서 로드 등 서버 측 모델 검증 실패
            logger.error(f"Model validation error: {e}", exc_info=True)
            return _json(create_error_response(
                "internal_server_error",
                "An unexpected error occurred",
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                {"detail": str(e)} if settings.debug else None
            ))

        except DuplicateKeyError as e:
            # users.email / users.username 등 unique index 위반
            return JSONResponse(
                status_code=status.HTTP_409_CONFLICT,
                content=_encode(duplicate_key_error((e.details or {}).get("keyValue")).to_dict())
            )

        except (ConnectionFailure, ServerSelectionTimeoutError) as e:
            logger.error(f"MongoDB connection error: {type(e).__name__}: {e}")
            return _json(create_error_response(
                "mongodb_connection_error",
                "MongoDB connection failed",
                status.HTTP_503_SERVICE_UNAVAILABLE,
                {"detail": str(e) if settings.debug else None}
            ))

        except OperationFailure as e:
            # MongoDB 작업 실패 (권한, 유효하지 않은 쿼리 등)
            logger.error(f"MongoDB operation error: {e}")
            return _json(create_error_response(
                "mongodb_operation_error",
                "MongoDB operation failed",
                status.HTTP_400_BAD_REQUEST,
                {"detail": str(e) if settings.debug else None}
            ))

        except Exception as e:
            error_detail = None
            if settings.debug:
                error_detail = {
                    "exception": str(e),
                    "type": type(e).__name__,
                    "traceback": traceback.format_exc()
                }

            logger.error(f"Unhandled exception: {type(e).__name__}: {e}", exc_info=True)
            return _json(create_error_response(
                "internal_server_error",
                "An unexpected error occurred",
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                error_detail
            ))


def create_http_exception_handler():
    """FastAPI HTTPException 핸들러 생성"""
    async def http_exception_handler(request: Request, exc):
        """HTTPException을 표준 형식으로 변환"""

        # 커스텀 예외인 경우 그대로 반환
        if isinstance(exc, BaseCustomException):
            return JSONResponse(
                status_code=exc.status_code,
                content=_encode(exc.to_dict()),
                headers=getattr(exc, "headers", None)
            )

        error_response = create_error_response(
            "http_error",
            exc.detail if isinstance(exc.detail, str) else "HTTP error occurred",
            exc.status_code,
            {"detail": exc.detail} if not isinstance(exc.detail, str) else None
        )
        return _json(error_response)

    return http_exception_handler


def create_validation_exception_handler():
    """요청 body/query 검증 실패(RequestValidationError) 핸들러 생성"""
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return _json(create_validation_error_response(
            "Request validation failed",
            _to_validation_errors(exc.errors())
        ))

    return validation_exception_handler
