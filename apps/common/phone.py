import phonenumbers


def to_e164(raw: str, default_region: str = "US") -> str:
    try:
        n = phonenumbers.parse(raw, default_region)
    except phonenumbers.NumberParseException:
        raise ValueError("Invalid phone number")
    if not phonenumbers.is_valid_number(n):
        raise ValueError("Invalid phone number")
    return phonenumbers.format_number(n, phonenumbers.PhoneNumberFormat.E164)


def normalize_phone(raw: str | None, default_region: str = "US") -> str:
    """E.164 when the number parses, otherwise the trimmed input (phone is informational only)."""
    value = (raw or "").strip()
    if not value:
        return ""
    try:
        return to_e164(value, default_region)
    except ValueError:
        return value
