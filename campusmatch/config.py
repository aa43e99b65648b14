# config.py
# Centralized configuration values, overridable through the environment.

import os

from .env import load_env

load_env()

DB_PATH = os.environ.get("CAMPUSMATCH_DB_PATH", "data/campusmatch.db")

# Crush channel
CRUSHES_PER_WEEK = int(os.environ.get("CAMPUSMATCH_CRUSHES_PER_WEEK", "3"))
WEEK_START = os.environ.get("CAMPUSMATCH_WEEK_START", "sunday").lower()
# "lenient": any pending reverse crush matches; "strict": only this week's
CRUSH_RECIPROCITY = os.environ.get("CAMPUSMATCH_CRUSH_RECIPROCITY", "lenient").lower()

# Ranking
CANDIDATE_FETCH_LIMIT = int(os.environ.get("CAMPUSMATCH_CANDIDATE_FETCH_LIMIT", "50"))
RANK_LIMIT = int(os.environ.get("CAMPUSMATCH_RANK_LIMIT", "10"))
# "strict": fixed denominator of 100; "renormalized": scale by applicable weights
SCORING_POLICY = os.environ.get("CAMPUSMATCH_SCORING_POLICY", "strict").lower()

# Contention handling
RETRY_MAX = int(os.environ.get("CAMPUSMATCH_RETRY_MAX", "5"))
RETRY_BASE_DELAY = float(os.environ.get("CAMPUSMATCH_RETRY_BASE_DELAY", "0.05"))
RETRY_MAX_DELAY = float(os.environ.get("CAMPUSMATCH_RETRY_MAX_DELAY", "1.0"))
BUSY_TIMEOUT = float(os.environ.get("CAMPUSMATCH_BUSY_TIMEOUT", "5.0"))

# Logging
LOG_LEVEL = os.environ.get("CAMPUSMATCH_LOG_LEVEL", "INFO")
LOG_DIR = os.environ.get("CAMPUSMATCH_LOG_DIR") or None
