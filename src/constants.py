"""Application constants - centralized configuration values."""

# =============================================================================
# Pagination
# =============================================================================
DEFAULT_PAGE_SIZE = 30
MAX_PAGE_SIZE = 100
ASSIGNABLE_USERS_LIMIT = 20
DASHBOARD_RECENT_REPOSITORIES = 10

# =============================================================================
# Cache TTLs (in seconds)
# =============================================================================
CACHE_TTL_REPOSITORY = 300  # 5 minutes
CACHE_TTL_AVATAR = 30 * 24 * 60 * 60  # 30 days

# =============================================================================
# API Timeouts (in seconds)
# =============================================================================
API_TIMEOUT_GITHUB = 30.0
AVATAR_FETCH_TIMEOUT = 5.0

# =============================================================================
# Background Task Intervals (in seconds)
# =============================================================================
SYNC_INTERVAL_STALE = 5 * 60  # 5 minutes
STALE_SCAN_BATCH_SIZE = 50
MAX_CONSECUTIVE_FAILURES = 5
SHUTDOWN_TIMEOUT = 10.0  # seconds to wait for in-flight jobs

# =============================================================================
# Background Job Retries
# =============================================================================
JOB_MAX_ATTEMPTS = 5
JOB_RETRY_BASE_DELAY = 2.0  # seconds
JOB_RETRY_MAX_DELAY = 60.0  # seconds

# =============================================================================
# GitHub API
# =============================================================================
GITHUB_DEFAULT_DOMAIN = "github.com"
GITHUB_API_URL = "https://api.github.com"
GITHUB_GRAPHQL_URL = "https://api.github.com/graphql"
GITHUB_API_VERSION = "2022-11-28"

# Rate limiting thresholds
GITHUB_CRITICAL_RATE_LIMIT = 50
GITHUB_WARNING_RATE_LIMIT = 200

# Retry configuration
GITHUB_MAX_RETRIES = 3
GITHUB_RETRY_BACKOFF_BASE = 2

# Sleep delays (in seconds)
GITHUB_RATE_LIMIT_DELAY = 0.1
GITHUB_MAX_RETRY_DELAY = 60
GITHUB_MIN_CRITICAL_DELAY = 1.0

GITHUB_PAGE_SIZE = 100
GITHUB_GRAPHQL_PAGE_SIZE = 100

# =============================================================================
# Issue Search
# =============================================================================
VALID_SORT_FIELDS = ["created", "updated", "comments"]
VALID_SORT_ORDERS = ["asc", "desc"]
DEFAULT_SORT_FIELD = "updated"
DEFAULT_SORT_ORDER = "desc"

# =============================================================================
# Session & Security
# =============================================================================
SESSION_TIMEOUT_DAYS = 7
SESSION_COOKIE_NAME = "issuelens_session"
PASSWORD_MIN_LENGTH = 8
