"""
Exceptions for the stock ledger engine.

Input problems are ReportError with a structured code for programmatic
handling. Store failures are never wrapped: they reach the caller as raised.
"""

from typing import Any


class ReportError(Exception):
    """
    Client error raised while validating a report request.

    Usage:
        try:
            engine.movement_report(payload)
        except ReportError as e:
            if e.code == 'EMPTY_WAREHOUSES':
                print(e.message)

    Attributes:
        code: Error code for programmatic handling
        message: Human-readable message
        data: Additional context data
    """

    _default_messages = {
        'EMPTY_PRODUCTS': 'Select at least one product',
        'EMPTY_WAREHOUSES': 'Select at least one warehouse',
        'EMPTY_MOVEMENTS': 'Select at least one movement type',
        'UNKNOWN_MOVEMENT': 'Unknown movement type',
        'INVALID_DATE': 'Dates must be formatted as YYYY-MM-DD',
        'INVALID_RANGE': 'From date must not be after to date',
        'SINGLE_PRODUCT_REQUIRED': 'SKU detail reports cover exactly one product',
    }

    def __init__(self, code: str, message: str | None = None, **data: Any):
        self.code = code
        self.message = message or self._default_messages.get(code, code)
        self.data = data
        super().__init__(self.message)

    def as_dict(self) -> dict[str, Any]:
        """Serialize to dict (useful for APIs)."""
        return {
            'code': self.code,
            'message': self.message,
            'data': {k: str(v) for k, v in self.data.items()},
        }
