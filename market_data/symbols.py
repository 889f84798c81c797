"""
Shanghai / Shenzhen stock code normalisation.
"""

PREFIXES = ("sh", "sz")
# Shanghai codes start with 6 (main board) or 9 (B shares)
SHANGHAI_LEADING_DIGITS = ("6", "9")


def exchange_prefix(symbol: str) -> str:
    code = symbol.strip().lower()
    if code.startswith(PREFIXES):
        return code[:2]
    return "sh" if code.startswith(SHANGHAI_LEADING_DIGITS) else "sz"


def bare_code(symbol: str) -> str:
    code = symbol.strip().lower()
    return code[2:] if code.startswith(PREFIXES) else code


def to_juhe_gid(symbol: str) -> str:
    """'600519' → 'sh600519', 'SZ000001' → 'sz000001'."""
    return f"{exchange_prefix(symbol)}{bare_code(symbol)}"


def to_yf_symbol(symbol: str) -> str:
    """'600519' → '600519.SS', 'sz000001' → '000001.SZ'."""
    suffix = "SS" if exchange_prefix(symbol) == "sh" else "SZ"
    return f"{bare_code(symbol)}.{suffix}"
