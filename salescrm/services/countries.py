"""
Country -> currency reference table (values are stored in the local currency
of the client's country; reports convert them to INR).
"""
from dataclasses import dataclass
from typing import List, Optional


@dataclass(frozen=True)
class Country:
    name: str
    code: str
    currency: str
    symbol: str
    rate_to_inr: float


COUNTRIES: List[Country] = [
    Country("Afghanistan", "AF", "AFN", "؋", 1.21),
    Country("Albania", "AL", "ALL", "L", 0.87),
    Country("Algeria", "DZ", "DZD", "د.ج", 0.62),
    Country("Argentina", "AR", "ARS", "$", 0.084),
    Country("Australia", "AU", "AUD", "$", 54.5),
    Country("Austria", "AT", "EUR", "€", 91.2),
    Country("Bahrain", "BH", "BHD", ".د.ب", 221.5),
    Country("Bangladesh", "BD", "BDT", "৳", 0.76),
    Country("Belgium", "BE", "EUR", "€", 91.2),
    Country("Brazil", "BR", "BRL", "R$", 14.5),
    Country("Canada", "CA", "CAD", "$", 61.2),
    Country("Chile", "CL", "CLP", "$", 0.088),
    Country("China", "CN", "CNY", "¥", 11.5),
    Country("Colombia", "CO", "COP", "$", 0.02),
    Country("Czech Republic", "CZ", "CZK", "Kč", 3.65),
    Country("Denmark", "DK", "DKK", "kr", 12.2),
    Country("Egypt", "EG", "EGP", "E£", 1.7),
    Country("Finland", "FI", "EUR", "€", 91.2),
    Country("France", "FR", "EUR", "€", 91.2),
    Country("Germany", "DE", "EUR", "€", 91.2),
    Country("Greece", "GR", "EUR", "€", 91.2),
    Country("Hong Kong", "HK", "HKD", "HK$", 10.7),
    Country("Hungary", "HU", "HUF", "Ft", 0.23),
    Country("Iceland", "IS", "ISK", "kr", 0.61),
    Country("India", "IN", "INR", "₹", 1),
    Country("Indonesia", "ID", "IDR", "Rp", 0.0053),
    Country("Ireland", "IE", "EUR", "€", 91.2),
    Country("Israel", "IL", "ILS", "₪", 23.2),
    Country("Italy", "IT", "EUR", "€", 91.2),
    Country("Japan", "JP", "JPY", "¥", 0.56),
    Country("Jordan", "JO", "JOD", "د.ا", 117.8),
    Country("Kenya", "KE", "KES", "KSh", 0.54),
    Country("Kuwait", "KW", "KWD", "د.ك", 272.5),
    Country("Malaysia", "MY", "MYR", "RM", 18.8),
    Country("Mexico", "MX", "MXN", "$", 4.85),
    Country("Netherlands", "NL", "EUR", "€", 91.2),
    Country("New Zealand", "NZ", "NZD", "$", 50.5),
    Country("Nigeria", "NG", "NGN", "₦", 0.055),
    Country("Norway", "NO", "NOK", "kr", 7.65),
    Country("Oman", "OM", "OMR", "ر.ع.", 217.2),
    Country("Pakistan", "PK", "PKR", "₨", 0.30),
    Country("Peru", "PE", "PEN", "S/", 22.5),
    Country("Philippines", "PH", "PHP", "₱", 1.49),
    Country("Poland", "PL", "PLN", "zł", 20.8),
    Country("Portugal", "PT", "EUR", "€", 91.2),
    Country("Qatar", "QA", "QAR", "ر.ق", 22.95),
    Country("Romania", "RO", "RON", "lei", 18.4),
    Country("Russia", "RU", "RUB", "₽", 0.82),
    Country("Saudi Arabia", "SA", "SAR", "ر.س", 22.28),
    Country("Singapore", "SG", "SGD", "S$", 62.5),
    Country("South Africa", "ZA", "ZAR", "R", 4.65),
    Country("South Korea", "KR", "KRW", "₩", 0.062),
    Country("Spain", "ES", "EUR", "€", 91.2),
    Country("Sri Lanka", "LK", "LKR", "Rs", 0.28),
    Country("Sweden", "SE", "SEK", "kr", 7.95),
    Country("Switzerland", "CH", "CHF", "CHF", 95.5),
    Country("Taiwan", "TW", "TWD", "NT$", 2.6),
    Country("Thailand", "TH", "THB", "฿", 2.45),
    Country("Turkey", "TR", "TRY", "₺", 2.45),
    Country("Ukraine", "UA", "UAH", "₴", 2.02),
    Country("United Arab Emirates", "AE", "AED", "د.إ", 22.75),
    Country("United Kingdom", "GB", "GBP", "£", 106.5),
    Country("United States", "US", "USD", "$", 83.5),
    Country("Vietnam", "VN", "VND", "₫", 0.0034),
]

_ALIASES = {
    "uae": "United Arab Emirates",
    "usa": "United States",
    "uk": "United Kingdom",
    "usd": "United States",
    "gbp": "United Kingdom",
    "eur": "Germany",
}

_BY_NAME = {c.name.lower(): c for c in COUNTRIES}
DEFAULT_COUNTRY = _BY_NAME["united states"]


def get_country(name: Optional[str]) -> Optional[Country]:
    """Case-insensitive lookup, with a few common aliases (UAE, USA, UK)."""
    if not name:
        return None
    key = name.strip().lower()
    key = _ALIASES.get(key, key).lower()
    return _BY_NAME.get(key)


def get_currency_by_country(name: Optional[str]) -> Optional[dict]:
    country = get_country(name)
    if not country:
        return None
    return {"currency": country.currency, "symbol": country.symbol, "rate": country.rate_to_inr}


def convert_to_inr(value: float, country_name: Optional[str]) -> float:
    """Unknown countries are treated as USD."""
    country = get_country(country_name) or DEFAULT_COUNTRY
    return value * country.rate_to_inr


def format_currency(value: float, country_name: Optional[str]) -> str:
    """Compact display: $1.2M, €250K, ₹900."""
    country = get_country(country_name)
    symbol = country.symbol if country else "$"
    if value >= 1_000_000:
        return f"{symbol}{value / 1_000_000:.1f}M"
    if value >= 1_000:
        return f"{symbol}{value / 1_000:.0f}K"
    return f"{symbol}{value:,.0f}"


def search_countries(query: str) -> List[Country]:
    q = (query or "").strip().lower()
    if not q:
        return list(COUNTRIES)
    return [
        c for c in COUNTRIES
        if q in c.name.lower() or q in c.code.lower() or q in c.currency.lower()
    ]
