from typing import Optional


def clean_status(value: Optional[str], max_length: int = 64) -> str:
    """Trim a caller-supplied order status and cap its length; the text is otherwise kept as given."""
    if value is None:
        return ""
    return value.strip()[:max_length].rstrip()
