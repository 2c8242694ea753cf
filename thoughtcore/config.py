from typing import Tuple

from pydantic import BaseModel
import os
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

# Load .env file if it exists (before reading os.getenv)
_env_path = Path(__file__).resolve().parent.parent / ".env"
if _env_path.exists():
    with open(_env_path) as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#") and "=" in line:
                key, _, value = line.partition("=")
                key = key.strip()
                value = value.strip()
                # Only set if not already in environment (env vars take precedence)
                if key not in os.environ:
                    os.environ[key] = value


def _env_float(name: str, default: str) -> float:
    return float(os.getenv(f"THOUGHTCORE_{name}", default))


def _env_int(name: str, default: str) -> int:
    return int(os.getenv(f"THOUGHTCORE_{name}", default))


class Settings(BaseModel):
    # Sessions
    max_steps: int = _env_int("MAX_STEPS", "10")
    completion_flag: str = os.getenv("THOUGHTCORE_COMPLETION_FLAG", "processing_complete")

    # Result cache (milliseconds)
    cache_ttl_ms: int = _env_int("CACHE_TTL_MS", "60000")

    # Routing
    min_confidence: float = _env_float("MIN_CONFIDENCE", "0.2")
    max_recommendations: int = _env_int("MAX_RECOMMENDATIONS", "3")
    fallback_tool: str = os.getenv("THOUGHTCORE_FALLBACK_TOOL", "first_thought_advisor")
    fallback_confidence: float = _env_float("FALLBACK_CONFIDENCE", "0.5")
    default_main_param: str = os.getenv("THOUGHTCORE_DEFAULT_MAIN_PARAM", "query")

    # Confidence scoring
    candidate_floor: float = _env_float("CANDIDATE_FLOOR", "0.1")
    level_bonus: float = _env_float("LEVEL_BONUS", "0.2")
    type_bonus: float = _env_float("TYPE_BONUS", "0.3")
    keyword_bonus_per_match: float = _env_float("KEYWORD_BONUS_PER_MATCH", "0.1")
    keyword_bonus_cap: float = _env_float("KEYWORD_BONUS_CAP", "0.5")
    self_mention_bonus: float = _env_float("SELF_MENTION_BONUS", "0.2")
    recency_bonus_per_use: float = _env_float("RECENCY_BONUS_PER_USE", "0.02")
    recency_bonus_cap: float = _env_float("RECENCY_BONUS_CAP", "0.1")

    # Request analysis
    min_token_length: int = _env_int("MIN_TOKEN_LENGTH", "3")
    domain_min_score: int = _env_int("DOMAIN_MIN_SCORE", "2")
    length_cutoffs: Tuple[int, int] = (50, 150)
    token_cutoffs: Tuple[int, int] = (5, 10)
    complex_term_cutoffs: Tuple[int, int] = (2, 4)
    complexity_buckets: Tuple[int, int] = (2, 4)

settings = Settings()

logger.debug(
    f"Config: max_steps={settings.max_steps}, cache_ttl={settings.cache_ttl_ms}ms, "
    f"min_confidence={settings.min_confidence}"
)
