"""
Engine configuration: loaded from environment / .env file.

Rule documents (scoring rules, CDD ruleset, sector mapping, staleness
thresholds) ship inside the package under amlrisk/rules/data; RULES_DIR
points the engine at an externally versioned copy instead.
"""
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings
from functools import lru_cache

BUNDLED_RULES_DIR = Path(__file__).resolve().parent.parent / "rules" / "data"


class Settings(BaseSettings):
    # ── App ──
    app_name: str = "aml-risk-engine"
    app_env: str = "development"
    log_level: str = "INFO"

    # ── Rule documents ──
    rules_dir: Optional[Path] = None
    scoring_rules_file: str = "risk_scoring_v3_8.json"
    cdd_ruleset_file: str = "cdd_ruleset.json"
    sector_mapping_file: str = "sector_mapping.json"
    cdd_staleness_file: str = "cdd_staleness.json"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    def resolved_rules_dir(self) -> Path:
        return self.rules_dir or BUNDLED_RULES_DIR


@lru_cache
def get_settings() -> Settings:
    return Settings()
