"""Input normalization shared by the services."""

from decimal import Decimal, InvalidOperation

from pointsman.exceptions import ValidationError

REF_MAX_LENGTH = 64
ORDER_REF_MAX_LENGTH = 100


def clean_ref(name: str, value, max_length: int = REF_MAX_LENGTH) -> str:
    """Strip and validate an external identifier (client, branch, order...)."""
    if value is None:
        raise ValidationError(message=f"{name} is required", field=name)
    text = str(value).strip()
    if not text:
        raise ValidationError(message=f"{name} is required", field=name)
    if len(text) > max_length:
        raise ValidationError(
            message=f"{name} is longer than {max_length} characters", field=name
        )
    return text


def clean_points(name: str, value, allow_negative: bool = False) -> int:
    """Validate a non-zero integer point quantity."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(message=f"{name} must be an integer", field=name)
    if value == 0 or (value < 0 and not allow_negative):
        raise ValidationError(
            message=f"{name} must be {'non-zero' if allow_negative else 'positive'}",
            field=name,
        )
    return value


def clean_amount(name: str, value) -> Decimal:
    """Validate a non-negative money amount."""
    if isinstance(value, bool):
        raise ValidationError(message=f"{name} must be a number", field=name)
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(message=f"{name} must be a number", field=name)
    if not amount.is_finite() or amount < 0:
        raise ValidationError(message=f"{name} must be a non-negative number", field=name)
    return amount


def clean_page(page, page_size, max_page_size: int) -> tuple[int, int]:
    """Validate 1-based pagination arguments."""
    for name, value in (("page", page), ("page_size", page_size)):
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise ValidationError(message=f"{name} must be a positive integer", field=name)
    if page_size > max_page_size:
        raise ValidationError(
            message=f"page_size cannot exceed {max_page_size}", field="page_size"
        )
    return page, page_size


def clean_id(name: str, value) -> int:
    """Validate a primary key given as an int or a string of digits."""
    if isinstance(value, str):
        text = value.strip()
        if text.isascii() and text.isdigit():
            value = int(text)
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError(message=f"{name} must be a positive integer", field=name)
    return value
