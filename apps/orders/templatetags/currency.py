from django import template

register = template.Library()


@register.filter
def usd_cents(value):
    """Format integer cents as USD currency (e.g., 123456 -> $1,234.56)."""
    try:
        cents = int(value)
    except (TypeError, ValueError):
        return value
    sign = "-" if cents < 0 else ""
    return f"{sign}${abs(cents) / 100:,.2f}"
