import logging
from typing import Optional

logger = logging.getLogger("trainbot.aliases")

# Friendly station name variants -> BART station abbreviation.
# Keys include the exact GTFS stop names so stops can be tagged at load time.
BART_ABBREVIATION_MAP: dict[str, str] = {
    "12th Street / Oakland City Center": "12th",
    "12th St": "12th",
    "12th": "12th",
    "16th Street / Mission": "16th",
    "16th St": "16th",
    "16th": "16th",
    "19th Street Oakland": "19th",
    "19th St": "19th",
    "19th": "19th",
    "24th Street / Mission": "24th",
    "24th St": "24th",
    "24th": "24th",
    "Antioch": "antc",
    "Ashby": "ashb",
    "Balboa Park": "balb",
    "Balboa": "balb",
    "Bay Fair": "bayf",
    "Berryessa / North San Jose": "bery",
    "Berryessa": "bery",
    "Castro Valley": "cast",
    "Castro": "cast",
    "Civic Center / UN Plaza": "civc",
    "Civic Center": "civc",
    "Coliseum": "cols",
    "Colma": "colm",
    "Concord": "conc",
    "Daly City": "daly",
    "Daly": "daly",
    "Downtown Berkeley": "dbrk",
    "Downtown": "dbrk",
    "Dublin / Pleasanton": "dubl",
    "Dublin": "dubl",
    "El Cerrito Del Norte": "deln",
    "El Cerrito North": "deln",
    "El Cerrito Plaza": "plza",
    "Embarcadero": "embr",
    "Fremont": "frmt",
    "Fruitvale": "ftvl",
    "Glen Park": "glen",
    "Glen": "glen",
    "Hayward": "hayw",
    "Lafayette": "lafy",
    "Lake Merritt": "lake",
    "MacArthur": "mcar",
    "Millbrae": "mlbr",
    "Millbrae (Caltrain Transfer Platform)": "mlbr",
    "Milpitas": "mlpt",
    "Montgomery Street": "mont",
    "Montgomery St": "mont",
    "Montgomery": "mont",
    "North Berkeley": "nbrk",
    "North Concord / Martinez": "ncon",
    "North Concord": "ncon",
    "Oakland International Airport": "oakl",
    "Oakland Airport": "oakl",
    "Orinda": "orin",
    "Pittsburg / Bay Point": "pitt",
    "Pittsburg Bay Point": "pitt",
    "Pittsburg Center": "pctr",
    "Pittsburg": "pctr",
    "Pleasant Hill / Contra Costa Centre": "phil",
    "Pleasant Hill": "phil",
    "Powell Street": "powl",
    "Powell St": "powl",
    "Powell": "powl",
    "Richmond": "rich",
    "Rockridge": "rock",
    "San Bruno": "sbrn",
    "San Francisco International Airport": "sfia",
    "SFO": "sfia",
    "San Leandro": "sanl",
    "South Hayward": "shay",
    "South San Francisco": "ssan",
    "Union City": "ucty",
    "Walnut Creek": "wcrk",
    "Warm Springs / South Fremont": "warm",
    "Warm Springs": "warm",
    "West Dublin / Pleasanton": "wdub",
    "West Dublin": "wdub",
    "West Oakland": "woak",
}


def sorted_aliases(alias_map: dict[str, str]) -> list[str]:
    """Aliases longest first, so "Daly City" wins over "Daly" in substring matches."""
    return sorted(alias_map, key=len, reverse=True)


def abbreviation_for_headsign(headsign: str, alias_map: dict[str, str]) -> Optional[str]:
    """Map a GTFS trip headsign to a station abbreviation.

    Exact alias match first, then the longest alias contained in the headsign
    (case-insensitive).
    """
    if headsign in alias_map:
        return alias_map[headsign]

    lowered = headsign.lower()
    for alias in sorted_aliases(alias_map):
        if alias.lower() in lowered:
            return alias_map[alias]

    logger.warning(f"Could not find abbreviation for GTFS headsign: '{headsign}'")
    return None
