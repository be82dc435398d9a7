"""Metadata inference from free text.

Every classification here is an ordered rule table (pattern -> label) so the
heuristics stay auditable and can be tested one row at a time. Patterns cover
the Portuguese, English and German wording seen in the feeds.

Known ambiguity: salary numbers have every `.` and `,` stripped before
conversion, so a decimal point is read as a thousands separator
("1.500,50" -> 150050).
"""

from __future__ import annotations

import re
from typing import List, Optional, Pattern, Tuple
from urllib.parse import urlparse

from .models import EmploymentType, JobLocation, JobMeta, Salary, SalaryUnit
from .utils import html_to_text


# First match wins; FULL_TIME is the default.
EMPLOYMENT_TYPE_RULES: List[Tuple[Pattern[str], EmploymentType]] = [
    (re.compile(r"meio[-\s]?período|tempo parcial|part[-\s]?time|teilzeit"), "PART_TIME"),
    (re.compile(r"temporário|temporaria|temporario|contrato|freelancer|terceirizado|zeitarbeit|contractor"), "CONTRACTOR"),
    (re.compile(r"estágio|internship|interno|aprendizagem|trainee|ausbildung"), "INTERN"),
    (re.compile(r"sazonal|temporada|seasonal|saisonarbeit|temporary"), "TEMPORARY"),
]

REMOTE_RE = re.compile(r"remoto|home[-\s]?office|trabalho remoto|work from home|teletrabalho|telecommute|remote")

# First match wins; HOUR is the default.
SALARY_UNIT_RULES: List[Tuple[Pattern[str], SalaryUnit]] = [
    (re.compile(r"\b(?:ano|anual|per year|annually|por ano|jährlich|yearly)\b"), "YEAR"),
    (re.compile(r"\b(?:mês|mensal|per month|por mês|monat|monthly)\b"), "MONTH"),
    (re.compile(r"\b(?:semana|semanal|per week|pro woche|weekly)\b"), "WEEK"),
    (re.compile(r"\b(?:dia|diário|per day|pro tag|daily)\b"), "DAY"),
    (re.compile(r"\b(?:hora|horário|por hora|hourly|stunde)\b"), "HOUR"),
]

CURRENCY_RE = re.compile(r"r\$|[€£$]|\b(?:brl|reais|real|eur|euro|usd|dólar|dollar|chf|franco|gbp|libra)\b")
CURRENCY_CODES = {
    "r$": "BRL", "brl": "BRL", "real": "BRL", "reais": "BRL",
    "€": "EUR", "eur": "EUR", "euro": "EUR",
    "$": "USD", "usd": "USD", "dólar": "USD", "dollar": "USD",
    "£": "GBP", "gbp": "GBP", "libra": "GBP",
    "chf": "CHF", "franco": "CHF",
}

_NUM = r"(\d{1,2}[.,]?\d{3,6})"
SALARY_RANGE_RE = re.compile(_NUM + r"\s*(?:[-–—]|bis|até|to|a)\s*" + _NUM)
SALARY_FROM_RE = re.compile(r"(?:ab|from|von|a partir de)\s*(?:r\$|[€£$])?\s*" + _NUM + r"|" + _NUM + r"\s*(?:\+|bis)")

EXPERIENCE_YEARS_RE = re.compile(r"(\d+)\s*\+?\s*(?:anos|jahre|years|yrs)\s*(?:de\s+|of\s+)?(?:experiência|erfahrung|experience)")
EXPERIENCE_REQUIRED_RE = re.compile(r"experiência requerida|experiência necessária|erfahrung erforderlich|experience required")
EQUIVALENT_EXPERIENCE_RE = re.compile(r"ou experiência equivalente|or equivalent experience|gleichwertige erfahrung")

COUNTRY_BY_SUFFIX = {
    "de": "DE", "at": "AT", "br": "BR", "ch": "CH", "li": "LI",
    "uk": "GB", "gb": "GB", "ie": "IE",
    "us": "US", "ca": "CA", "au": "AU", "nz": "NZ",
    "nl": "NL", "be": "BE", "fr": "FR", "es": "ES", "pt": "PT", "it": "IT",
    "pl": "PL", "cz": "CZ", "sk": "SK", "hu": "HU", "ro": "RO", "bg": "BG",
    "ua": "UA", "rs": "RS", "hr": "HR", "si": "SI",
    "dk": "DK", "se": "SE", "no": "NO", "fi": "FI", "is": "IS",
    "ee": "EE", "lv": "LV", "lt": "LT",
}

# (display name, lowercase spellings, state abbreviation). Abbreviations only
# count as whole upper-case tokens: "se", "to", "pa" are ordinary words.
CITY_LEXICON: List[Tuple[str, Tuple[str, ...], Optional[str]]] = [
    ("São Paulo", ("são paulo", "sao paulo"), "SP"),
    ("Rio de Janeiro", ("rio de janeiro",), "RJ"),
    ("Brasília", ("brasília", "brasilia"), "DF"),
    ("Salvador", ("salvador",), "BA"),
    ("Fortaleza", ("fortaleza",), "CE"),
    ("Belo Horizonte", ("belo horizonte",), "MG"),
    ("Manaus", ("manaus",), "AM"),
    ("Curitiba", ("curitiba",), "PR"),
    ("Recife", ("recife",), "PE"),
    ("Porto Alegre", ("porto alegre",), "RS"),
    ("Goiânia", ("goiânia", "goiania"), "GO"),
    ("Belém", ("belém", "belem"), "PA"),
    ("São Luís", ("são luís", "sao luis"), "MA"),
    ("Maceió", ("maceió", "maceio"), "AL"),
    ("Natal", ("natal",), "RN"),
    ("Teresina", ("teresina", "terezina"), "PI"),
    ("João Pessoa", ("joão pessoa", "joao pessoa"), "PB"),
    ("Campo Grande", ("campo grande",), "MS"),
    ("Cuiabá", ("cuiabá", "cuiaba"), "MT"),
    ("Florianópolis", ("florianópolis", "florianopolis"), "SC"),
    ("Aracaju", ("aracaju",), "SE"),
    ("Palmas", ("palmas",), "TO"),
]


def _first_rule(text: str, rules, default):
    for pattern, label in rules:
        if pattern.search(text):
            return label
    return default


def _to_int(raw: Optional[str]) -> Optional[int]:
    if not raw:
        return None
    return int(re.sub(r"[.,]", "", raw))


def parse_salary(text: str) -> Optional[Salary]:
    """Detect currency and amount(s) in lowercased text."""
    cmatch = CURRENCY_RE.search(text)
    if not cmatch:
        return None
    currency = CURRENCY_CODES.get(cmatch.group(0))
    if not currency:
        return None

    low: Optional[int] = None
    high: Optional[int] = None
    rng = SALARY_RANGE_RE.search(text)
    if rng:
        low, high = _to_int(rng.group(1)), _to_int(rng.group(2))
    else:
        one = SALARY_FROM_RE.search(text)
        if one:
            low = _to_int(one.group(1) or one.group(2))

    if not (low or high):
        return None
    unit = _first_rule(text, SALARY_UNIT_RULES, "HOUR")
    return Salary(currency=currency, min=low, max=high, unit=unit)


def parse_experience(text: str) -> Optional[str]:
    years = EXPERIENCE_YEARS_RE.search(text)
    if years:
        return f"{years.group(1)} years of relevant experience"
    if EXPERIENCE_REQUIRED_RE.search(text):
        return "Relevant experience required"
    return None


def country_from_site(site_url: str, default_country: str = "US") -> str:
    """ISO country from the site's domain suffix (e.g. `vagas.com.br` -> BR)."""
    host = urlparse(site_url or "").hostname or ""
    suffix = host.rsplit(".", 1)[-1].lower() if "." in host else ""
    return COUNTRY_BY_SUFFIX.get(suffix, default_country)


def find_city(text: str) -> Optional[str]:
    """First city from the lexicon mentioned in `text` (original case)."""
    lowered = text.lower()
    for name, spellings, abbr in CITY_LEXICON:
        if any(s in lowered for s in spellings):
            return name
        if abbr and re.search(rf"\b{abbr}\b", text):
            return name
    return None


def infer_job_locations(html: str, title: str, site_url: str, default_country: str = "US") -> List[JobLocation]:
    """Always returns at least one location; the country is never missing."""
    country = country_from_site(site_url, default_country)
    text = f"{html_to_text(html or '')} {title or ''}"
    return [JobLocation(country=country, city=find_city(text))]


def infer_meta(html: str, title: str, site_url: str, default_country: str = "US") -> JobMeta:
    """Infer employment, remote, salary, experience and location signals."""
    text = f"{html_to_text(html or '')} {title or ''}".lower()
    return JobMeta(
        employment_type=_first_rule(text, EMPLOYMENT_TYPE_RULES, "FULL_TIME"),
        is_remote=bool(REMOTE_RE.search(text)),
        salary=parse_salary(text),
        experience_requirements=parse_experience(text),
        experience_in_place_of_education=bool(EQUIVALENT_EXPERIENCE_RE.search(text)),
        job_locations=infer_job_locations(html, title, site_url, default_country),
    )
