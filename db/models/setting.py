# Fixed set of setting keys read by the pipeline. Values are stored as JSON.
DAILY_QUOTA = "daily_quota"
SEGMENT_FILTERS = "segment_filters"
COOLDOWN_DAYS = "cooldown_days"
ALLOWED_DOMAINS = "allowed_domains"
SKIP_RULES = "skip_rules"
PAGINATION_CURSOR = "pagination_cursor"

SETTING_KEYS = (
    DAILY_QUOTA,
    SEGMENT_FILTERS,
    COOLDOWN_DAYS,
    ALLOWED_DOMAINS,
    SKIP_RULES,
    PAGINATION_CURSOR,
)
