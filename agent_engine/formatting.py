"""Human-readable amounts for justifications and explanations."""

NATIVE_SYMBOL = "STT"


def format_amount(value: float) -> str:
    return f"{value:g}"
