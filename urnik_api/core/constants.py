# urnik_api/core/constants.py

# --- Upstream Endpoints ---
URNIK_BASE_URL = "https://sckr.si/vss/urniki"
# Class timetable pages live under c/{week}/c{NNNNN}.htm
CLASS_PAGE_TEMPLATE = "{base_url}/c/{week}/c{class_id}.htm"
CLASS_ID_WIDTH = 5

# --- HTTP Headers ---
DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}
HTTP_TIMEOUT = 30.0

# --- Parsing Constants ---
# Canonical weekday names as printed in the day header cells (Monday..Friday)
WEEKDAY_NAMES = ["Ponedeljek", "Torek", "Sreda", "Četrtek", "Petek"]

# Phrases that mark a day without classes ("Pred začetkom šol.leta")
DAY_NOTE_MARKERS = ["Pred začet", "šol.leta"]

SUB_GROUP_MARKER = "Skupina"

# 1 day-label column pair + 16 slots x 2 sub-columns
MAX_COLUMNS = 34
COLUMNS_PER_SLOT = 2

# --- Slot Times ---
TIME_SLOTS = {
    1: ("7:15", "8:00"),
    2: ("8:05", "8:50"),
    3: ("8:55", "9:40"),
    4: ("9:45", "10:30"),
    5: ("10:35", "11:20"),
    6: ("11:25", "12:10"),
    7: ("12:15", "13:00"),
    8: ("13:05", "13:50"),
    9: ("13:55", "14:40"),
    10: ("14:45", "15:30"),
    11: ("15:35", "16:20"),
    12: ("16:25", "17:10"),
    13: ("17:15", "18:00"),
    14: ("18:05", "18:50"),
    15: ("18:55", "19:40"),
    16: ("19:45", "20:30"),
}
SCHOOL_TIMEZONE = "Europe/Ljubljana"

# --- Options Probing ---
# Class pages that exist in every published week
WEEK_PROBE_ANCHORS = ["00001", "00002", "00003"]
WEEKS_BEFORE_CURRENT = 8
WEEKS_AFTER_CURRENT = 12
MAX_CLASS_ID = 300
MAX_CONSECUTIVE_MISSES = 30

# --- Caching ---
# Time-to-live (TTL) in seconds
TIMETABLE_CACHE_TTL = 15 * 60 # 15 minutes
TIMETABLE_CACHE_MAXSIZE = 512
OPTIONS_CACHE_TTL = 6 * 60 * 60 # 6 hours

# --- Calendar Export ---
ICS_PRODID = "-//ŠC Kranj//Urnik//EN"
ICS_UID_DOMAIN = "sckranj.si"
