import unicodedata


COUNTRY_NAME_TO_CODE = {
    "france": "FR",
    "allemagne": "DE",
    "germany": "DE",
    "alemania": "DE",
    "espagne": "ES",
    "spain": "ES",
    "espana": "ES",
    "italie": "IT",
    "italy": "IT",
    "italia": "IT",
    "belgique": "BE",
    "belgium": "BE",
    "belgica": "BE",
    "pays-bas": "NL",
    "netherlands": "NL",
    "paises bajos": "NL",
    "royaume-uni": "GB",
    "united kingdom": "GB",
    "reino unido": "GB",
    "pologne": "PL",
    "poland": "PL",
    "polonia": "PL",
    "etats-unis": "US",
    "united states": "US",
    "estados unidos": "US",
    "chine": "CN",
    "china": "CN",
    "japon": "JP",
    "japan": "JP",
    "australie": "AU",
    "australia": "AU",
    "bresil": "BR",
    "brazil": "BR",
    "brasil": "BR",
    "canada": "CA",
    "inde": "IN",
    "india": "IN",
    "afrique du sud": "ZA",
    "south africa": "ZA",
    "sudafrica": "ZA",
    "maroc": "MA",
    "morocco": "MA",
    "marruecos": "MA",
    "algerie": "DZ",
    "algeria": "DZ",
    "argelia": "DZ",
    "tunisie": "TN",
    "tunisia": "TN",
    "tunez": "TN",
    "cote d'ivoire": "CI",
    "ivory coast": "CI",
    "costa de marfil": "CI",
    "burkina faso": "BF",
    "senegal": "SN",
    "mali": "ML",
}


def _fold(value: str) -> str:
    decomposed = unicodedata.normalize("NFKD", value)
    return "".join(char for char in decomposed if not unicodedata.combining(char)).lower()


def normalize_country_code(country: str | None) -> str:
    if not country:
        return ""

    raw = str(country).strip()
    if not raw:
        return ""

    mapped = COUNTRY_NAME_TO_CODE.get(_fold(raw).replace("’", "'"))
    if mapped:
        return mapped

    return raw.upper()
