"""
Shanghai/Shenzhen stock code validation, run before any external call.

Accepted: "sh600519", "SZ000001", "600519", "300750".
"""
import re

from libs.errors import SymbolValidationError

EXCHANGE_PREFIXES = ("sh", "sz")
# Shanghai codes start with 6/9, Shenzhen with 0/2/3; 1 and 8 cover funds and the BSE board
ALLOWED_LEADING_DIGITS = set("0123689")

_SIX_DIGITS = re.compile(r"^\d{6}$")


def validate_symbol(symbol: str) -> str:
    """Return the normalised (trimmed, lower-case) code or raise SymbolValidationError."""
    code = (symbol or "").strip().lower()

    if code.startswith(EXCHANGE_PREFIXES):
        if not _SIX_DIGITS.match(code[2:]):
            raise SymbolValidationError(
                "Invalid stock code format: expected 6 digits after the exchange prefix "
                "(e.g. sh600519, sz000001)",
                SymbolValidationError.MALFORMED_AFTER_PREFIX,
            )
        return code

    if not _SIX_DIGITS.match(code):
        raise SymbolValidationError(
            "Stock code must be 6 digits (e.g. 600519, 000001, 300750)",
            SymbolValidationError.WRONG_LENGTH,
        )

    if code[0] not in ALLOWED_LEADING_DIGITS:
        raise SymbolValidationError(
            "Not a valid Shanghai/Shenzhen stock code "
            "(Shanghai codes start with 6/9, Shenzhen codes with 0/2/3)",
            SymbolValidationError.DISALLOWED_LEADING_DIGIT,
        )
    return code
