from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent / ".env")


@dataclass(frozen=True)
class PipelineConfig:
    """
    Tunables for the recommendation pipeline.
    """

    prefilter_cap: int = int(os.getenv("LUNCHSCORE_PREFILTER_CAP", "20"))
    max_recommendations: int = int(os.getenv("LUNCHSCORE_MAX_RECOMMENDATIONS", "5"))
    context_ttl_seconds: float = float(os.getenv("LUNCHSCORE_CONTEXT_TTL", "1800"))
    data_dir: Path = Path(os.getenv("LUNCHSCORE_DATA_DIR", "lunchscore/data"))
    meals_filename: str = "meals.csv"
    preferences_filename: str = "preferences.csv"
    restaurants_filename: str = "restaurants.json"

    @property
    def meals_path(self) -> Path:
        return self.data_dir / self.meals_filename

    @property
    def preferences_path(self) -> Path:
        return self.data_dir / self.preferences_filename

    @property
    def restaurants_path(self) -> Path:
        return self.data_dir / self.restaurants_filename


DEFAULT_PIPELINE_CONFIG = PipelineConfig()
