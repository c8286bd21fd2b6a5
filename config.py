import os

class Config:
    # AI Integration - Anthropic Claude
    # Using claude_key from secrets for authentication
    ANTHROPIC_API_KEY = os.environ.get('claude_key')
    ANTHROPIC_MODEL = os.environ.get('ANTHROPIC_MODEL') or "claude-3-5-sonnet-20241022"

    # Database - Required
    DATABASE_URL = os.environ.get("DATABASE_URL")

    # App settings - Required
    SECRET_KEY = os.environ.get("SECRET_KEY")
    SESSION_SECRET = os.environ.get("SESSION_SECRET")

    # Scheduler settings
    SCHEDULER_TIMEZONE = 'Europe/Istanbul'
    AUTO_START_SCHEDULER = (os.environ.get("AUTO_START_SCHEDULER") or "false").lower() == "true"

    # Venue discovery (Claude-assisted)
    DISCOVERY_AREA = os.environ.get("DISCOVERY_AREA") or "Beşiktaş, Istanbul"
    DISCOVERY_INTERVAL_HOURS = int(os.environ.get("DISCOVERY_INTERVAL_HOURS") or "24")

    # Amenity dimensions every cafe is scored on (0-10 scale)
    AMENITY_KEYS = ('wifi', 'outlet', 'comfort', 'hygiene', 'quality', 'noise', 'service')
    RATING_MIN = 0
    RATING_MAX = 10

    # Review rewards
    BASE_REVIEW_POINTS = 10        # Flat reward for any accepted review
    CONSENSUS_BONUS_POINTS = 5     # Per amenity agreeing with the current average (or first review)
    CONSENSUS_TOLERANCE = 2        # Max distance from the average that still counts as agreement

    # Optimistic update attempts before a review gives up under contention
    REVIEW_MAX_ATTEMPTS = int(os.environ.get("REVIEW_MAX_ATTEMPTS") or "3")

    DEFAULT_RANK = 'Novice Scout'
    RECENT_REVIEWS_LIMIT = 5
