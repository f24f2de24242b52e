"""
상품 속성 값의 타입 규칙.

모든 값은 텍스트로 저장됩니다. normalize_raw_value()는 저장 시 속성 타입별로 허용되는
텍스트를 결정하고, interpret_value()는 조회 시 저장된 텍스트를 Python 값으로 되돌립니다.
"""
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from wms_core.database.models import ATTRIBUTE_TYPES, OPTION_TYPES
from wms_core.services.exceptions import ValidationError

BOOLEAN_LITERALS = {"true": True, "false": False}


def is_known_type(attribute_type: str) -> bool:
    return attribute_type in ATTRIBUTE_TYPES


def uses_options(attribute_type: str) -> bool:
    return attribute_type in OPTION_TYPES


def normalize_raw_value(attribute_type: str, raw_value: Any, is_required: bool = False) -> Optional[str]:
    """
    자유 입력 값을 검증하고 저장할 텍스트를 반환합니다.

    Args:
        attribute_type: 옵션을 쓰지 않는 속성 타입 중 하나.
        raw_value: 입력 값 (문자열, 숫자, bool, date 또는 datetime).
        is_required: 속성이 비어 있지 않은 값을 가져야 하는지 여부.

    Returns:
        저장할 텍스트. 빈 텍스트는 필수가 아닌 text 속성에서만 반환됩니다.

    Raises:
        ValidationError: 값을 속성 타입으로 읽을 수 없을 때.
    """
    if uses_options(attribute_type) or not is_known_type(attribute_type):
        raise ValidationError(f"Attribute type '{attribute_type}' does not accept free-typed values.")

    if raw_value is None or (isinstance(raw_value, str) and raw_value.strip() == ""):
        if attribute_type == "text" and not is_required:
            return "" if raw_value is not None else None
        raise ValidationError(f"A value is required for attributes of type '{attribute_type}'.")

    if attribute_type == "text":
        return str(raw_value)

    if attribute_type == "boolean":
        if isinstance(raw_value, bool):
            return "true" if raw_value else "false"
        text = str(raw_value).strip().lower()
        if text not in BOOLEAN_LITERALS:
            raise ValidationError(f"Boolean attribute values must be 'true' or 'false', got '{raw_value}'.")
        return text

    if attribute_type == "number":
        if isinstance(raw_value, bool):
            raise ValidationError("Number attribute values cannot be booleans.")
        try:
            number = Decimal(str(raw_value).strip())
        except InvalidOperation:
            raise ValidationError(f"'{raw_value}' is not a decimal number.")
        if not number.is_finite():
            raise ValidationError(f"'{raw_value}' is not a finite number.")
        return str(number)

    # date: datetime은 시간 부분을 버리고 날짜만 저장합니다.
    if isinstance(raw_value, datetime):
        return raw_value.date().isoformat()
    if isinstance(raw_value, date):
        return raw_value.isoformat()
    try:
        return date.fromisoformat(str(raw_value).strip()).isoformat()
    except ValueError:
        raise ValidationError(f"'{raw_value}' is not an ISO date (YYYY-MM-DD).")


def interpret_value(attribute_type: str, stored: Optional[str]) -> Any:
    """
    저장된 텍스트를 속성 타입에 맞게 읽습니다.
    규칙이 생기기 전에 저장된 행은 해석되지 않을 수 있으며, 그 경우 원래 텍스트를 그대로 반환합니다.
    """
    if stored is None:
        return None
    try:
        if attribute_type == "number":
            return Decimal(stored)
        if attribute_type == "boolean":
            return BOOLEAN_LITERALS[stored.strip().lower()]
        if attribute_type == "date":
            return date.fromisoformat(stored)
    except (InvalidOperation, KeyError, ValueError):
        return stored
    return stored
