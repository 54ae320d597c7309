from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """성공 응답 envelope: {success, message, data}"""
    success: bool = Field(default=True, description="처리 성공 여부")
    message: str = Field(..., description="처리 결과 메시지")
    data: Optional[T] = Field(None, description="응답 데이터")
