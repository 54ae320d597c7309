from typing import Any, Optional, Tuple

from bson import ObjectId

from .errors import ValidationException, ValidationError


class Validator:
    """입력 검증을 위한 유틸리티 클래스"""

    @staticmethod
    def validate_string_length(
        value: str,
        field_name: str,
        min_length: Optional[int] = None,
        max_length: Optional[int] = None
    ) -> str:
        """문자열 길이 검증"""
        errors = []

        if min_length and len(value) < min_length:
            errors.append(
                ValidationError(
                    field=field_name,
                    message=f"Must be at least {min_length} characters long",
                    value=len(value)
                )
            )

        if max_length and len(value) > max_length:
            errors.append(
                ValidationError(
                    field=field_name,
                    message=f"Must be no more than {max_length} characters long",
                    value=len(value)
                )
            )

        if errors:
            raise ValidationException(
                f"{field_name} length validation failed",
                validation_errors=errors
            )

        return value

    @staticmethod
    def validate_object_id(value: Any, field_name: str = "id") -> ObjectId:
        """MongoDB ObjectId 형식 검증"""
        if isinstance(value, ObjectId):
            return value

        if not isinstance(value, str) or not ObjectId.is_valid(value):
            raise ValidationException(
                f"Invalid {field_name}",
                validation_errors=[
                    ValidationError(field=field_name, message="Must be a valid ObjectId", value=value)
                ]
            )
        return ObjectId(value)

    @staticmethod
    def validate_pagination(limit: Optional[int], skip: Optional[int], max_limit: int) -> Tuple[int, int]:
        """limit은 [1, max_limit], skip은 0 이상으로 보정"""
        limit = min(max_limit, max(1, int(limit if limit is not None else max_limit)))
        skip = max(0, int(skip or 0))
        return limit, skip
