# sales/services/exceptions.py

"""
SALES DOMAIN ERRORS
"""

from __future__ import annotations


class SaleError(Exception):
    code = "sale_error"

    def __init__(self, message: str = "", **details):
        self.details = details
        super().__init__(message or self.code)

    @property
    def message(self) -> str:
        return str(self)

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "details": {k: (v if v is None or isinstance(v, (int, str, bool)) else str(v))
                        for k, v in self.details.items()},
        }


class SaleNotFoundError(SaleError):
    code = "sale_not_found"

    def __init__(self, *, sale_id):
        self.sale_id = sale_id
        super().__init__(f"Sale {sale_id} not found", sale_id=sale_id)
