"""
Contact identifier normalization.

Lookups between follow-ups and inbound messages join on exact string
equality, so every number must pass through normalize_number() before it
reaches the store or the notifier.

    +33 6 12 34 56 78   -> 33612345678
    0612345678          -> 33612345678
    whatsapp:+336...    -> 336...
"""

import re
from dataclasses import dataclass

from relay.errors import ValidationError

_PREFIXES = ("whatsapp:", "tel:")
_SEPARATORS = re.compile(r"[\s+\-.()]")
_ASCII_DIGITS = re.compile(r"[0-9]+")

MIN_DIGITS = 6
MAX_DIGITS = 15  # E.164


@dataclass(frozen=True)
class CountryRule:
    """Rewrite rule for local-format numbers."""

    country_code: str = "33"
    trunk_prefix: str = "0"


def normalize_number(raw: str, rule: CountryRule = CountryRule()) -> str:
    """
    Convert a provider number into the canonical digit string.

    Args:
        raw: Number as received from a webhook
        rule: Country rule applied to numbers carrying a trunk prefix

    Returns:
        Digits only, international form, no leading separator

    Raises:
        ValidationError: Empty or non-numeric input, or implausible length
    """
    if raw is None:
        raise ValidationError("Missing contact number")

    value = str(raw).strip()
    lowered = value.lower()
    for prefix in _PREFIXES:
        if lowered.startswith(prefix):
            value = value[len(prefix):]
            break

    had_plus = value.startswith("+")
    digits = _SEPARATORS.sub("", value)

    if not _ASCII_DIGITS.fullmatch(digits):
        raise ValidationError(f"Invalid contact number: {raw!r}")

    if not had_plus:
        if digits.startswith("00"):
            digits = digits[2:]
        elif rule.trunk_prefix and digits.startswith(rule.trunk_prefix):
            digits = rule.country_code + digits[len(rule.trunk_prefix):]

    if not MIN_DIGITS <= len(digits) <= MAX_DIGITS:
        raise ValidationError(f"Invalid contact number length: {raw!r}")

    return digits
