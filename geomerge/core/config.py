"""Configuration management for the reconciliation engine."""
import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Base paths
PROJECT_ROOT = Path(__file__).parent.parent.parent
DATA_DIR = Path(os.getenv("DATA_DIR", PROJECT_ROOT / "data"))
DUCKDB_PATH = Path(os.getenv("DATABASE_PATH", DATA_DIR / "duckdb" / "geomerge.duckdb"))

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

# Field size limits of the persisted entities
NAME_MAX_LENGTH = 200
ALTERNATE_NAME_MAX_LENGTH = 200
LANGUAGE_MAX_LENGTH = 7
ADM_LEVEL_COUNT = 5

# Map-extract rows are tab separated with a fixed number of columns
NUMBER_OF_COLUMNS = 16

# Candidate resolution settings
NAME_MATCH_THRESHOLD: float = float(os.getenv("NAME_MATCH_THRESHOLD", "0.9"))
CANDIDATE_SCORE_THRESHOLD: float = float(os.getenv("CANDIDATE_SCORE_THRESHOLD", "95.0"))
SEARCH_RESULT_LIMIT: int = int(os.getenv("SEARCH_RESULT_LIMIT", "1"))

# Rows processed between two store flushes
BATCH_SIZE: int = int(os.getenv("BATCH_SIZE", "100"))

# Administrative level of a municipality when a country has no specific rule
DEFAULT_PLACE_LEVEL: int = int(os.getenv("DEFAULT_PLACE_LEVEL", "8"))

# Default search service: minimum fuzzy score (0-100) and half side of the
# box searched around a location, in degrees
SEARCH_MIN_SCORE: float = float(os.getenv("SEARCH_MIN_SCORE", "60.0"))
SEARCH_RADIUS_DEGREES: float = float(os.getenv("SEARCH_RADIUS_DEGREES", "0.5"))
