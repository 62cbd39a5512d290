"""Postal code helpers."""
import re
from typing import List, Optional, Iterable

UNWANTED_ZIPCODE_PATTERN = re.compile(r"(.*(?:CEDEX).*|(?:\d{5}\sSP\s\d+))", re.IGNORECASE)
ZIPCODE_SEPARATORS = re.compile(r"[;|,]")


def is_unwanted_zip_code(zip_code: Optional[str]) -> bool:
    """Empty codes, CEDEX codes and "NNNNN SP N" military codes are unwanted."""
    if zip_code is None or not zip_code.strip():
        return True
    return UNWANTED_ZIPCODE_PATTERN.fullmatch(zip_code.strip()) is not None


def split_zip_codes(value: Optional[str]) -> List[str]:
    """Split a postal code field and drop unwanted codes."""
    if value is None:
        return []
    return [code.strip() for code in ZIPCODE_SEPARATORS.split(value) if not is_unwanted_zip_code(code)]


def best_zip_code(zip_codes: Iterable[str]) -> Optional[str]:
    """
    Pick the postal code that best represents a place.

    The main post office code of a city usually ends with the most zeros
    (75000 over 75001), ties are broken by the smallest code.
    """
    zip_codes = [code for code in zip_codes if code]
    if not zip_codes:
        return None
    if len(zip_codes) == 1:
        return zip_codes[0]

    def trailing_zeros(code: str) -> int:
        return len(code) - len(code.rstrip("0"))

    return sorted(zip_codes, key=lambda code: (-trailing_zeros(code), code))[0]
