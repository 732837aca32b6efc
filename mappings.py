# Airport directory and ticket-noise tokens used by the ticket scanner.
# Codes map to a human-readable "City, Country" string.

from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional

AIRPORT_LOCATIONS = {
    # ===== NORTH AMERICA =====
    "ATL": "Atlanta, United States", "LAX": "Los Angeles, United States",
    "ORD": "Chicago, United States", "MDW": "Chicago, United States",
    "DFW": "Dallas, United States", "DEN": "Denver, United States",
    "JFK": "New York, United States", "LGA": "New York, United States",
    "EWR": "Newark, United States", "SFO": "San Francisco, United States",
    "LAS": "Las Vegas, United States", "SEA": "Seattle, United States",
    "MCO": "Orlando, United States", "CLT": "Charlotte, United States",
    "PHX": "Phoenix, United States", "IAH": "Houston, United States",
    "HOU": "Houston, United States", "MIA": "Miami, United States",
    "BOS": "Boston, United States", "MSP": "Minneapolis, United States",
    "DTW": "Detroit, United States", "FLL": "Fort Lauderdale, United States",
    "PHL": "Philadelphia, United States", "BWI": "Baltimore, United States",
    "IAD": "Washington, United States", "DCA": "Washington, United States",
    "SAN": "San Diego, United States", "TPA": "Tampa, United States",
    "PDX": "Portland, United States", "HNL": "Honolulu, United States",
    "BNA": "Nashville, United States", "AUS": "Austin, United States",
    "MSY": "New Orleans, United States", "SLC": "Salt Lake City, United States",
    "SAT": "San Antonio, United States", "RDU": "Raleigh, United States",
    "AUG": "Augusta, United States", "ANC": "Anchorage, United States",
    "YYZ": "Toronto, Canada", "YVR": "Vancouver, Canada",
    "YUL": "Montreal, Canada", "YYC": "Calgary, Canada",
    "YOW": "Ottawa, Canada", "YEG": "Edmonton, Canada",
    "MEX": "Mexico City, Mexico", "CUN": "Cancun, Mexico",
    "GDL": "Guadalajara, Mexico", "MTY": "Monterrey, Mexico",

    # ===== CENTRAL AMERICA & CARIBBEAN =====
    "TGU": "Tegucigalpa, Honduras", "SAP": "San Pedro Sula, Honduras",
    "RTB": "Roatan, Honduras", "XPL": "Comayagua, Honduras",
    "SAL": "San Salvador, El Salvador", "GUA": "Guatemala City, Guatemala",
    "MGA": "Managua, Nicaragua", "SJO": "San Jose, Costa Rica",
    "PTY": "Panama City, Panama", "BZE": "Belize City, Belize",
    "SDQ": "Santo Domingo, Dominican Republic", "PUJ": "Punta Cana, Dominican Republic",
    "SJU": "San Juan, Puerto Rico", "HAV": "Havana, Cuba",
    "MBJ": "Montego Bay, Jamaica", "KIN": "Kingston, Jamaica",
    "NAS": "Nassau, Bahamas",

    # ===== SOUTH AMERICA =====
    "GRU": "Sao Paulo, Brazil", "GIG": "Rio de Janeiro, Brazil",
    "BSB": "Brasilia, Brazil", "VIA": "Videira, Brazil",
    "EZE": "Buenos Aires, Argentina", "AEP": "Buenos Aires, Argentina",
    "SCL": "Santiago, Chile", "LIM": "Lima, Peru", "JUL": "Juliaca, Peru",
    "BOG": "Bogota, Colombia", "MDE": "Medellin, Colombia",
    "UIO": "Quito, Ecuador", "GYE": "Guayaquil, Ecuador",
    "CCS": "Caracas, Venezuela", "MAR": "Maracaibo, Venezuela",
    "MVD": "Montevideo, Uruguay", "ASU": "Asuncion, Paraguay",
    "VVI": "Santa Cruz, Bolivia",

    # ===== EUROPE =====
    "LHR": "London, United Kingdom", "LGW": "London, United Kingdom",
    "STN": "London, United Kingdom", "LTN": "London, United Kingdom",
    "LCY": "London, United Kingdom", "MAN": "Manchester, United Kingdom",
    "EDI": "Edinburgh, United Kingdom", "GLA": "Glasgow, United Kingdom",
    "BHX": "Birmingham, United Kingdom", "DUB": "Dublin, Ireland",
    "CDG": "Paris, France", "ORY": "Paris, France", "NCE": "Nice, France",
    "LYS": "Lyon, France", "MRS": "Marseille, France",
    "AMS": "Amsterdam, Netherlands", "BRU": "Brussels, Belgium",
    "FRA": "Frankfurt, Germany", "MUC": "Munich, Germany",
    "BER": "Berlin, Germany", "HAM": "Hamburg, Germany",
    "DUS": "Dusseldorf, Germany", "CGN": "Cologne, Germany",
    "ZRH": "Zurich, Switzerland", "GVA": "Geneva, Switzerland",
    "VIE": "Vienna, Austria", "PRG": "Prague, Czech Republic",
    "BUD": "Budapest, Hungary", "WAW": "Warsaw, Poland", "KRK": "Krakow, Poland",
    "MAD": "Madrid, Spain", "BCN": "Barcelona, Spain", "AGP": "Malaga, Spain",
    "PMI": "Palma de Mallorca, Spain", "LIS": "Lisbon, Portugal",
    "OPO": "Porto, Portugal", "FCO": "Rome, Italy", "MXP": "Milan, Italy",
    "LIN": "Milan, Italy", "VCE": "Venice, Italy", "NAP": "Naples, Italy",
    "ATH": "Athens, Greece", "CPH": "Copenhagen, Denmark",
    "OSL": "Oslo, Norway", "RET": "Rost, Norway", "ARN": "Stockholm, Sweden",
    "HEL": "Helsinki, Finland", "RIX": "Riga, Latvia", "VNO": "Vilnius, Lithuania",
    "TLL": "Tallinn, Estonia", "OTP": "Bucharest, Romania", "SOF": "Sofia, Bulgaria",
    "BEG": "Belgrade, Serbia", "ZAG": "Zagreb, Croatia", "IST": "Istanbul, Turkey",
    "SAW": "Istanbul, Turkey", "AYT": "Antalya, Turkey", "KEF": "Reykjavik, Iceland",
    "BUS": "Batumi, Georgia", "TBS": "Tbilisi, Georgia", "EVN": "Yerevan, Armenia",

    # ===== MIDDLE EAST =====
    "DXB": "Dubai, United Arab Emirates", "AUH": "Abu Dhabi, United Arab Emirates",
    "SHJ": "Sharjah, United Arab Emirates", "DOH": "Doha, Qatar",
    "JED": "Jeddah, Saudi Arabia", "RUH": "Riyadh, Saudi Arabia",
    "KWI": "Kuwait City, Kuwait", "BAH": "Manama, Bahrain", "MCT": "Muscat, Oman",
    "AMM": "Amman, Jordan", "BEY": "Beirut, Lebanon", "TLV": "Tel Aviv, Israel",

    # ===== AFRICA =====
    "CAI": "Cairo, Egypt", "JNB": "Johannesburg, South Africa",
    "CPT": "Cape Town, South Africa", "NBO": "Nairobi, Kenya",
    "ADD": "Addis Ababa, Ethiopia", "LOS": "Lagos, Nigeria", "ACC": "Accra, Ghana",
    "CMN": "Casablanca, Morocco", "RAK": "Marrakesh, Morocco", "TUN": "Tunis, Tunisia",
    "ALG": "Algiers, Algeria", "DAR": "Dar es Salaam, Tanzania", "KGL": "Kigali, Rwanda",

    # ===== ASIA =====
    "DEL": "Delhi, India", "BOM": "Mumbai, India", "BLR": "Bengaluru, India",
    "MAA": "Chennai, India", "CCU": "Kolkata, India", "HYD": "Hyderabad, India",
    "KTM": "Kathmandu, Nepal", "CMB": "Colombo, Sri Lanka", "DAC": "Dhaka, Bangladesh",
    "SIN": "Singapore, Singapore", "KUL": "Kuala Lumpur, Malaysia",
    "BKK": "Bangkok, Thailand", "DMK": "Bangkok, Thailand", "HKT": "Phuket, Thailand",
    "CGK": "Jakarta, Indonesia", "DPS": "Denpasar, Indonesia", "NAM": "Namlea, Indonesia",
    "MNL": "Manila, Philippines", "CEB": "Cebu, Philippines",
    "SGN": "Ho Chi Minh City, Vietnam", "HAN": "Hanoi, Vietnam",
    "HKG": "Hong Kong, China", "PEK": "Beijing, China", "PKX": "Beijing, China",
    "PVG": "Shanghai, China", "SHA": "Shanghai, China", "CAN": "Guangzhou, China",
    "SZX": "Shenzhen, China", "TPE": "Taipei, Taiwan", "ICN": "Seoul, South Korea",
    "GMP": "Seoul, South Korea", "NRT": "Tokyo, Japan", "HND": "Tokyo, Japan",
    "KIX": "Osaka, Japan", "ALA": "Almaty, Kazakhstan", "TAS": "Tashkent, Uzbekistan",

    # ===== OCEANIA =====
    "SYD": "Sydney, Australia", "MEL": "Melbourne, Australia",
    "BNE": "Brisbane, Australia", "PER": "Perth, Australia",
    "AKL": "Auckland, New Zealand", "CHC": "Christchurch, New Zealand",
    "NAN": "Nadi, Fiji", "PPT": "Papeete, French Polynesia",
}

# Letter groups that show up on boarding passes and e-tickets but are not
# routing information. Some of them are also real airport codes (MAR, SAT,
# BUS, ...), which is why they are blocked explicitly.
NOISE_TOKENS = frozenset({
    # months / weekdays
    "JAN", "FEB", "MAR", "APR", "MAY", "JUN", "JUL", "AUG", "SEP", "OCT", "NOV", "DEC",
    "MON", "TUE", "WED", "THU", "FRI", "SAT", "SUN",
    # document / booking codes
    "PNR", "TKT", "ETKT", "REF", "DOC", "PAX", "ADT", "CHD", "INF", "SEQ", "SSR",
    "FQTV", "BCBP", "GDS", "RLOC",
    # cabin and fare classes
    "ECO", "ECON", "ECONOMY", "BUS", "BIZ", "FST", "CLS", "CLASS", "FARE", "YCL",
    # boarding boilerplate
    "GATE", "SEAT", "ZONE", "GRP", "BRD", "DEP", "ARR", "ETD", "ETA", "STD", "STA",
    "BAG", "BAGS", "PCS", "TERM", "FLT", "NAM", "NAME", "RET", "OUT", "VIA",
    # airline boilerplate words
    "THE", "AND", "FOR", "ALL", "NON", "AIR", "MAX", "MIN", "HRS", "OPT", "SVC",
    # whole words whose leading letters spell an airport (NUMBER -> BER)
    "BOARDING", "PASS", "PASSENGER", "FLIGHT", "NUMBER", "REFERENCE", "BOOKING",
    "TICKET", "TERMINAL", "SEQUENCE", "DEPARTURE", "ARRIVAL", "CARRIER",
    "OPERATED", "FROM", "DATE", "TIME", "BOARD", "SEATING", "GROUP",
})


class AirportDirectory:
    """Read-only code -> "City, Country" lookup."""

    def __init__(self, locations: Mapping[str, str]):
        self._locations = MappingProxyType({
            code.strip().upper(): name for code, name in locations.items()
        })

    def __contains__(self, code: object) -> bool:
        return isinstance(code, str) and code.upper() in self._locations

    def __len__(self) -> int:
        return len(self._locations)

    def __iter__(self):
        return iter(self._locations)

    def get(self, code: str, default: Optional[str] = None) -> Optional[str]:
        return self._locations.get(code.upper(), default) if code else default

    def items(self):
        return self._locations.items()


class NoiseBlocklist:
    """Tokens never accepted as location codes."""

    def __init__(self, tokens: Iterable[str]):
        self._tokens: FrozenSet[str] = frozenset(t.strip().upper() for t in tokens)

    def __contains__(self, token: object) -> bool:
        return isinstance(token, str) and token.upper() in self._tokens

    def __len__(self) -> int:
        return len(self._tokens)

    def __iter__(self):
        return iter(self._tokens)


DEFAULT_DIRECTORY = AirportDirectory(AIRPORT_LOCATIONS)
DEFAULT_BLOCKLIST = NoiseBlocklist(NOISE_TOKENS)


# Helper function to get airport location
def get_airport_name(code, directory=DEFAULT_DIRECTORY):
    """Get "City, Country" for a code, or the code itself when unknown"""
    return directory.get(code, code)


def search_airport_code(code, directory=DEFAULT_DIRECTORY, blocklist=DEFAULT_BLOCKLIST) -> Dict:
    """
    Look up a single airport code.

    Returns a dict with `exists`, `code` and either `name` or `error`.
    A code that is in the directory but also on the noise blocklist is
    reported as existing with a warning, since the scanner will never
    pick it from ticket text.
    """
    code = (code or "").upper().strip()

    if len(code) != 3 or not code.isalpha():
        return {
            'exists': False,
            'error': 'Invalid airport code format. Must be 3 letters.',
            'code': code,
        }

    if code not in directory:
        return {
            'exists': False,
            'error': f'Airport code "{code}" not found in directory.',
            'code': code,
        }

    result = {
        'exists': True,
        'code': code,
        'name': directory.get(code),
    }
    if code in blocklist:
        result['warning'] = f'"{code}" is on the noise blocklist and is ignored in ticket text.'
    return result


def search_by_name(search_term, directory=DEFAULT_DIRECTORY) -> List[Dict]:
    """Case-insensitive reverse lookup by city or country"""
    search_term = (search_term or "").lower().strip()
    if not search_term:
        return []
    return [
        {'code': code, 'name': name}
        for code, name in sorted(directory.items())
        if search_term in name.lower()
    ]
