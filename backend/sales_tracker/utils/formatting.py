"""
Locale-aware display formatting for currency, percentages, numbers and dates
"""

from dataclasses import dataclass
from datetime import date
from typing import Optional

from sales_tracker.config import LOCALE
from sales_tracker.services.calculations import round_to


@dataclass(frozen=True)
class LocaleConventions:
    decimal_sep: str
    group_sep: str
    currency_symbol: str
    symbol_after: bool
    date_format: str
    # Spanish only groups numbers of five or more integer digits
    min_grouping_digits: int = 1


LOCALES = {
    "es_ES": LocaleConventions(",", ".", "€", True, "%d/%m/%Y", min_grouping_digits=2),
    "de_DE": LocaleConventions(",", ".", "€", True, "%d.%m.%Y"),
    "fr_FR": LocaleConventions(",", " ", "€", True, "%d/%m/%Y"),
    "en_GB": LocaleConventions(".", ",", "£", False, "%d/%m/%Y"),
    "en_US": LocaleConventions(".", ",", "$", False, "%m/%d/%Y"),
}


class Formatter:
    def __init__(self, locale: str, conventions: LocaleConventions):
        self.locale = locale
        self.conventions = conventions

    def number(self, value: float, decimals: int = 2) -> str:
        c = self.conventions
        rounded = round_to(value or 0, decimals)
        text = f"{abs(rounded):,.{decimals}f}"
        integer, _, fraction = text.partition(".")
        digits = integer.replace(",", "")
        if len(digits) < 3 + c.min_grouping_digits:
            integer = digits
        else:
            integer = integer.replace(",", c.group_sep)
        result = integer + (c.decimal_sep + fraction if fraction else "")
        return f"-{result}" if rounded < 0 else result

    def currency(self, value: float) -> str:
        c = self.conventions
        amount = self.number(value, 2)
        if c.symbol_after:
            return f"{amount} {c.currency_symbol}"
        if amount.startswith("-"):
            return f"-{c.currency_symbol}{amount[1:]}"
        return f"{c.currency_symbol}{amount}"

    def percentage(self, value: float) -> str:
        return f"{self.number(value, 2)}%"

    def date(self, day: date) -> str:
        return day.strftime(self.conventions.date_format)


def normalize_locale(locale: str) -> str:
    return locale.replace("-", "_")


def get_formatter(locale: Optional[str] = None) -> Formatter:
    """Formatter for a supported locale (configured LOCALE by default)"""
    name = normalize_locale(locale or LOCALE)
    conventions = LOCALES.get(name)
    if conventions is None:
        raise ValueError(f"Unsupported locale: {locale}")
    return Formatter(name, conventions)
