from typing import Optional


def normalize_design_code(code: Optional[str]) -> str:
    """Canonical form of a design code: surrounding whitespace removed, upper case.

    Every design code read from an order row, a master design row or a lookup
    key goes through here so that "ab12 " and "AB12" never become two mappings.
    """
    if code is None:
        return ""
    return str(code).strip().upper()
