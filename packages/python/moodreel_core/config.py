from datetime import timedelta


CHAT_COMPLETION_MODEL = "gpt-4o-mini"
ANALYSIS_TEMPERATURE = 0.3  # scoring should be stable across calls
CURATION_TEMPERATURE = 0.7

PROFILE_MAX_AGE = timedelta(days=1)
RECOMMENDATION_CACHE_TTL = timedelta(days=7)

MONTHLY_REPLACEMENT_QUOTA = 3
REPLACEMENT_BATCH_SIZE = 5

LIKE_INFLUENCE = 0.3
DISLIKE_INFLUENCE = 0.15

EXTRA_CANDIDATES = 5
GENRE_MATCH_BONUS = 5.0

DEFAULT_LANGUAGE = "en"
MIN_RATED_MOVIES = 25
