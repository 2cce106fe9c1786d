"""
Destination inference from free-text trip names.

Trip names are whatever the user typed ("🇯🇵 Tokyo Adventure", "Paris, France",
"Murree Trip"). `infer_destination` turns them into a best-guess place name that
is good enough for an image search query. It is a pure function over the fixed
tables below.
"""

import re
from typing import Dict, Optional

UNKNOWN_DESTINATION = "Unknown Destination"

# ISO 3166-1 alpha-2 code -> country name
COUNTRIES: Dict[str, str] = {
    # Americas
    "US": "United States",
    "CA": "Canada",
    "MX": "Mexico",
    "BR": "Brazil",
    "AR": "Argentina",
    "CL": "Chile",
    "CO": "Colombia",
    "PE": "Peru",
    "VE": "Venezuela",
    "EC": "Ecuador",
    # Europe
    "GB": "United Kingdom",
    "FR": "France",
    "IT": "Italy",
    "ES": "Spain",
    "DE": "Germany",
    "NL": "Netherlands",
    "PT": "Portugal",
    "GR": "Greece",
    "TR": "Turkey",
    "RU": "Russia",
    "PL": "Poland",
    "CZ": "Czech Republic",
    "HU": "Hungary",
    "AT": "Austria",
    "CH": "Switzerland",
    "BE": "Belgium",
    "DK": "Denmark",
    "SE": "Sweden",
    "NO": "Norway",
    "FI": "Finland",
    "IE": "Ireland",
    "IS": "Iceland",
    "RO": "Romania",
    "BG": "Bulgaria",
    "HR": "Croatia",
    "SI": "Slovenia",
    # Asia
    "CN": "China",
    "JP": "Japan",
    "KR": "South Korea",
    "IN": "India",
    "TH": "Thailand",
    "SG": "Singapore",
    "MY": "Malaysia",
    "ID": "Indonesia",
    "VN": "Vietnam",
    "PH": "Philippines",
    "PK": "Pakistan",
    "BD": "Bangladesh",
    "LK": "Sri Lanka",
    "MM": "Myanmar",
    "KH": "Cambodia",
    "LA": "Laos",
    # Middle East
    "AE": "United Arab Emirates",
    "SA": "Saudi Arabia",
    "QA": "Qatar",
    "KW": "Kuwait",
    "BH": "Bahrain",
    "OM": "Oman",
    "JO": "Jordan",
    "LB": "Lebanon",
    "IL": "Israel",
    "IR": "Iran",
    "IQ": "Iraq",
    # Africa
    "ZA": "South Africa",
    "EG": "Egypt",
    "MA": "Morocco",
    "KE": "Kenya",
    "TZ": "Tanzania",
    "ET": "Ethiopia",
    "NG": "Nigeria",
    "GH": "Ghana",
    "TN": "Tunisia",
    "DZ": "Algeria",
    # Oceania
    "AU": "Australia",
    "NZ": "New Zealand",
    "FJ": "Fiji",
    "PG": "Papua New Guinea",
}


def _flag(code: str) -> str:
    """Regional-indicator flag emoji for a two-letter country code."""
    return "".join(chr(0x1F1E6 + ord(letter) - ord("A")) for letter in code)


FLAG_TO_COUNTRY: Dict[str, str] = {_flag(code): name for code, name in COUNTRIES.items()}

CITY_TO_COUNTRY: Dict[str, str] = {}
for _country, _cities in {
    "United States": ["New York", "Los Angeles", "Chicago", "Miami", "San Francisco", "Las Vegas"],
    "Brazil": ["São Paulo", "Rio de Janeiro", "Brasília", "Salvador", "Fortaleza"],
    "India": ["Mumbai", "Delhi", "Bangalore", "Hyderabad", "Chennai", "Goa"],
    "China": ["Beijing", "Shanghai", "Guangzhou", "Shenzhen", "Chengdu"],
    "United Kingdom": ["London", "Manchester", "Birmingham", "Liverpool", "Edinburgh"],
    "France": ["Paris", "Lyon", "Marseille", "Toulouse", "Nice"],
    "Italy": ["Rome", "Milan", "Naples", "Turin", "Palermo", "Venice", "Florence"],
    "Spain": ["Madrid", "Barcelona", "Valencia", "Seville", "Bilbao"],
    "Germany": ["Berlin", "Munich", "Hamburg", "Frankfurt", "Cologne"],
    "Japan": ["Tokyo", "Osaka", "Yokohama", "Nagoya", "Sapporo", "Kyoto"],
    "Australia": ["Sydney", "Melbourne", "Brisbane", "Perth", "Adelaide"],
    "Pakistan": ["Karachi", "Lahore", "Islamabad", "Faisalabad", "Rawalpindi"],
    "Canada": ["Toronto", "Vancouver", "Montreal", "Calgary", "Ottawa"],
    "Mexico": ["Mexico City", "Guadalajara", "Monterrey", "Puebla", "Tijuana", "Cancun"],
    "Argentina": ["Buenos Aires", "Córdoba", "Rosario", "Mendoza", "Tucumán"],
    "Thailand": ["Bangkok", "Chiang Mai", "Pattaya", "Phuket", "Hua Hin"],
    "United Arab Emirates": ["Dubai", "Abu Dhabi", "Sharjah", "Ajman", "Ras Al Khaimah"],
    "Turkey": ["Istanbul", "Ankara", "Izmir", "Bursa", "Antalya"],
    "Greece": ["Athens", "Thessaloniki", "Patras", "Heraklion", "Larissa", "Santorini"],
    "Portugal": ["Lisbon", "Porto", "Braga", "Coimbra", "Faro"],
    "Netherlands": ["Amsterdam", "Rotterdam", "The Hague", "Utrecht", "Eindhoven"],
    "Indonesia": ["Jakarta", "Bali"],
    "South Korea": ["Seoul", "Busan"],
    "Egypt": ["Cairo", "Luxor"],
    "Czech Republic": ["Prague"],
    "Austria": ["Vienna", "Salzburg"],
}.items():
    for _city in _cities:
        CITY_TO_COUNTRY[_city] = _country

# Whole-word spellings that only ever appear as separate name components.
COUNTRY_ALIASES: Dict[str, str] = {
    "usa": "United States",
    "america": "United States",
    "uk": "United Kingdom",
    "england": "United Kingdom",
    "scotland": "United Kingdom",
    "britain": "United Kingdom",
    "uae": "United Arab Emirates",
    "emirates": "United Arab Emirates",
    "holland": "Netherlands",
    "korea": "South Korea",
    "czechia": "Czech Republic",
    "türkiye": "Turkey",
    "turkiye": "Turkey",
}


# Everyday words that contain a country name ("Romantic" holds "Oman").
_MASKED_WORDS = re.compile(r"\broman(?:tic\w*|ce\w*)", re.IGNORECASE)

# Longest first so "South Africa" wins over shorter names it contains.
_COUNTRY_NAMES = [
    (country, country.casefold())
    for country in sorted(COUNTRIES.values(), key=len, reverse=True)
]
_CITY_NAMES = [
    (city, city.casefold())
    for city in sorted(CITY_TO_COUNTRY, key=len, reverse=True)
]
_COMPONENT_SPLIT = re.compile(r"[,\s\-]+")
_FILLER_WORDS = re.compile(r"\b(?:trip|weekend|vacation|holiday)\b", re.IGNORECASE)


def _match_flag(name: str) -> Optional[str]:
    for flag, country in FLAG_TO_COUNTRY.items():
        if flag in name:
            return country
    return None


def _haystack(name: str) -> str:
    return _MASKED_WORDS.sub(" ", name).casefold()


def _match_country(name: str) -> Optional[str]:
    haystack = _haystack(name)
    for country, needle in _COUNTRY_NAMES:
        if needle in haystack:
            return country
    return None


def _match_city(name: str) -> Optional[str]:
    haystack = _haystack(name)
    for city, needle in _CITY_NAMES:
        if needle in haystack:
            return CITY_TO_COUNTRY[city]
    return None


def _match_components(name: str) -> Optional[str]:
    by_lower_name = {country.lower(): country for country in COUNTRIES.values()}
    for component in reversed(_COMPONENT_SPLIT.split(name)):
        key = component.strip().lower()
        if not key:
            continue
        if key in by_lower_name:
            return by_lower_name[key]
        if key in COUNTRY_ALIASES:
            return COUNTRY_ALIASES[key]
    return None


def _strip_filler(name: str) -> str:
    remainder = _FILLER_WORDS.sub(" ", name)
    return " ".join(remainder.split()).strip(" ,-")


def infer_destination(name: str) -> str:
    """
    Best-guess destination for a trip name. First match wins:

    1. a flag emoji from FLAG_TO_COUNTRY
    2. a country name anywhere in the name (case-insensitive)
    3. a known city, mapped to its country
    4. name components scanned right-to-left for a country or alias
       ("Road trip - USA")
    5. the name itself with "Trip" and generic occasion words removed, or
       UNKNOWN_DESTINATION when nothing is left
    """
    country = _match_flag(name)
    if country:
        return country

    country = _match_country(name) or _match_city(name) or _match_components(name)
    if country:
        return country

    remainder = _strip_filler(name)
    return remainder or UNKNOWN_DESTINATION
