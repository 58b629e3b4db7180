# Constants for search aggregation, enrichment and checkout polling.

# Catalog adapter ids, in merge priority order (first seen wins on duplicate URLs)
SOURCE_STOREFRONT = "storefront"        # internal Shopify storefront
SOURCE_MARKETPLACE = "marketplace"      # Amazon search results
SOURCE_ALLOWED_MERCHANT = "allowed_merchant"  # other allowed merchant domains

DEFAULT_SEARCH_LIMIT = 6
MAX_SEARCH_LIMIT = 12

# Catalog marketplace enum values
MARKETPLACE_AMAZON = "AMAZON"
MARKETPLACE_SHOPIFY = "SHOPIFY"

# Positional names for "Small / Blue" style variant titles
TITLE_OPTION_NAMES = ("Size", "Color")

# Enrichment waterfall stages
STAGE_FALLBACK = "fallback"
STAGE_CATALOG = "catalog"
STAGE_SCRAPE = "scrape"
STAGE_GENERATIVE = "generative"

# Scrape gating and limits
MIN_REVIEWS = 3                 # fewer reviews than this triggers the page scrape
MAX_SCRAPED_REVIEWS = 25
MAX_HIGHLIGHTS_SCRAPED = 6
HIGHLIGHT_MIN_LEN = 8           # exclusive bounds
HIGHLIGHT_MAX_LEN = 180
APP_REVIEW_MIN_LEN = 20

# Generative fallbacks
HIGHLIGHTS_MIN = 3
HIGHLIGHTS_MAX = 5
HIGHLIGHTS_REVIEW_TEXTS = 10
HIGHLIGHTS_INPUT_CHARS = 6000
SUMMARY_REVIEW_TEXTS = 25
SUMMARY_INPUT_CHARS = 8000
PDP_TEXT_CHARS = 12000

# Review domains trusted for product summaries
ALLOWED_REVIEW_DOMAINS = (
    "dcrainmaker.com",
    "reddit.com",
    "amazon.com",
    "rei.com",
    "nike.com",
    "lululemon.com",
    "whoop.com",
    "therabody.com",
)

# Checkout polling intervals (seconds)
POLL_AWAITING_OFFER_S = 2.0
POLL_PROCESSING_S = 1.0
POLL_UNKNOWN_STATE_S = 2.0
POLL_ERROR_BACKOFF_S = 1.0      # doubled after each consecutive failure
