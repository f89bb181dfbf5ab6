"""Application constants."""

USER_AGENT = "osm-postcodes/0.3 (+postcode lookup import)"
RUN_MODES = ("fresh", "append")
EXIT_SUCCESS = 0
EXIT_PARTIAL = 10
EXIT_HARD_FAIL = 20

DEFAULT_TABLE = "postcodes"
DEFAULT_SINK_URI = "sqlite://output.db"
DEFAULT_BATCH_SIZE = 5000
DEFAULT_QUEUE_SIZE = 10000
DEFAULT_CHUNK_SIZE = 1024 * 256
DEFAULT_PROVINCE_LEVELS = (4,)

PROVINCE_RESOLVED = "resolved"
PROVINCE_UNRESOLVED = "PROVINCE_UNRESOLVED"
PROVINCE_OUTSIDE = "PROVINCE_OUTSIDE"
ENTITY_UNRECOGNIZED = "ENTITY_UNRECOGNIZED"

OUTPUT_COLUMNS = (
    "lat",
    "lon",
    "city",
    "country",
    "postcode",
    "province",
    "street",
    "house_number",
)

POSTCODE_KEYS = ("addr:postcode", "postal_code")
CITY_KEYS = ("addr:city", "addr:town", "addr:village", "addr:hamlet")
STREET_KEYS = ("addr:street", "addr:place")
HOUSE_NUMBER_KEYS = ("addr:housenumber",)
COUNTRY_KEYS = ("addr:country",)
REGION_NAME_KEYS = ("name", "province", "name:en")

JSON_LOG_FIELDS = (
    "timestamp",
    "run_id",
    "stage",
    "country",
    "event",
    "status",
    "rows_in",
    "rows_out",
    "error_code",
    "offset",
    "entity",
    "message",
)
