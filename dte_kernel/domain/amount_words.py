"""Spanish rendering of a USD amount, as printed under a DTE total."""

from decimal import Decimal

from dte_kernel.domain.money import round_money, to_decimal

_UNITS = (
    "", "UNO", "DOS", "TRES", "CUATRO", "CINCO", "SEIS", "SIETE", "OCHO", "NUEVE",
)
_TEENS = (
    "DIEZ", "ONCE", "DOCE", "TRECE", "CATORCE", "QUINCE",
    "DIECISÉIS", "DIECISIETE", "DIECIOCHO", "DIECINUEVE",
)
_TWENTIES = (
    "VEINTE", "VEINTIUNO", "VEINTIDÓS", "VEINTITRÉS", "VEINTICUATRO",
    "VEINTICINCO", "VEINTISÉIS", "VEINTISIETE", "VEINTIOCHO", "VEINTINUEVE",
)
_TENS = (
    "", "", "", "TREINTA", "CUARENTA", "CINCUENTA",
    "SESENTA", "SETENTA", "OCHENTA", "NOVENTA",
)
_HUNDREDS = (
    "", "CIENTO", "DOSCIENTOS", "TRESCIENTOS", "CUATROCIENTOS", "QUINIENTOS",
    "SEISCIENTOS", "SETECIENTOS", "OCHOCIENTOS", "NOVECIENTOS",
)

MAX_AMOUNT = Decimal("999999999999.99")


def _below_hundred(n: int) -> str:
    if n < 10:
        return _UNITS[n]
    if n < 20:
        return _TEENS[n - 10]
    if n < 30:
        return _TWENTIES[n - 20]
    tens, units = divmod(n, 10)
    return _TENS[tens] + (f" Y {_UNITS[units]}" if units else "")


def _below_thousand(n: int) -> str:
    if n == 100:
        return "CIEN"
    hundreds, rest = divmod(n, 100)
    parts = [_HUNDREDS[hundreds], _below_hundred(rest)]
    return " ".join(p for p in parts if p)


def _apocope(words: str) -> str:
    # "UNO" shortens before a noun or a multiplier: UN DÓLAR, VEINTIÚN MIL.
    if words.endswith("VEINTIUNO"):
        return words[: -len("VEINTIUNO")] + "VEINTIÚN"
    if words.endswith("UNO"):
        return words[:-1]
    return words


def integer_in_words(n: int) -> str:
    """Cardinal for 0 <= n < 10**12, without apocope on the last group."""
    if n < 0:
        raise ValueError("Only non-negative integers can be rendered")
    if n == 0:
        return "CERO"

    millions, rest = divmod(n, 1_000_000)
    thousands, units = divmod(rest, 1000)
    parts: list[str] = []

    if millions:
        if millions == 1:
            parts.append("UN MILLÓN")
        else:
            millions_words = (
                _apocope(integer_in_words(millions))
                if millions >= 1000
                else _apocope(_below_thousand(millions))
            )
            parts.append(f"{millions_words} MILLONES")
    if thousands:
        parts.append(
            "MIL" if thousands == 1 else f"{_apocope(_below_thousand(thousands))} MIL"
        )
    if units:
        parts.append(_below_thousand(units))
    return " ".join(parts)


def amount_in_words(amount: Decimal) -> str:
    """
    ``Decimal("102.87")`` -> ``CIENTO DOS DÓLARES CON OCHENTA Y SIETE CENTAVOS``.

    The amount is rounded with the money engine's rule first.  Negative
    amounts and amounts of a trillion or more raise ValueError.
    """
    value = round_money(to_decimal(amount))
    if value < 0:
        raise ValueError("Amounts in words must be non-negative")
    if value > MAX_AMOUNT:
        raise ValueError(f"Amount {value} is too large to render")

    dollars = int(value)
    cents = int((value - dollars) * 100)

    if dollars == 1:
        dollar_words = "UN DÓLAR"
    else:
        dollar_words = f"{_apocope(integer_in_words(dollars))} DÓLARES"
        if dollars and dollars % 1_000_000 == 0:
            dollar_words = dollar_words.replace(" DÓLARES", " DE DÓLARES")

    if cents == 1:
        cent_words = "UN CENTAVO"
    else:
        cent_words = f"{_apocope(integer_in_words(cents))} CENTAVOS"

    return f"{dollar_words} CON {cent_words}"
