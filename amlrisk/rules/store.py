"""
Rule configuration store.

Loads the rule documents once per handle and serves them read-only.
Callers construct a RuleStore (or use get_rule_store() for the process
default) and pass it into scoring.engine.run() / determination.render().
reset() drops the cached documents; tests use it after swapping files.
"""
from __future__ import annotations

import json
import threading
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from amlrisk.core.config import Settings, get_settings
from amlrisk.schemas.rules import (
    CDDRuleset,
    CddStalenessConfig,
    RiskScoringConfig,
    SectorMapping,
)

logger = structlog.get_logger()

ModelT = TypeVar("ModelT", bound=BaseModel)


class RuleConfigError(RuntimeError):
    """A rule document is missing, unreadable or structurally invalid."""


@dataclass(frozen=True)
class RuleConfig:
    risk_scoring: RiskScoringConfig
    cdd_ruleset: CDDRuleset
    sector_mapping: SectorMapping
    cdd_staleness: CddStalenessConfig


class RuleStore:
    def __init__(
        self,
        rules_dir: Optional[Path | str] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._rules_dir = Path(rules_dir) if rules_dir else self._settings.resolved_rules_dir()
        self._lock = threading.Lock()
        self._config: Optional[RuleConfig] = None

    @property
    def rules_dir(self) -> Path:
        return self._rules_dir

    def load(self) -> RuleConfig:
        config = self._config
        if config is not None:
            return config
        with self._lock:
            # Another thread may have finished the load while we waited.
            if self._config is None:
                self._config = self._build()
            return self._config

    def reset(self) -> None:
        with self._lock:
            self._config = None

    # ── Read-only accessors ──

    def risk_scoring(self) -> RiskScoringConfig:
        return self.load().risk_scoring

    def cdd_ruleset(self) -> CDDRuleset:
        return self.load().cdd_ruleset

    def sector_mapping(self) -> SectorMapping:
        return self.load().sector_mapping

    def cdd_staleness(self) -> CddStalenessConfig:
        return self.load().cdd_staleness

    # ── Loading ──

    def _build(self) -> RuleConfig:
        s = self._settings
        config = RuleConfig(
            risk_scoring=self._read(s.scoring_rules_file, RiskScoringConfig),
            cdd_ruleset=self._read(s.cdd_ruleset_file, CDDRuleset),
            sector_mapping=self._read(s.sector_mapping_file, SectorMapping),
            cdd_staleness=self._read(s.cdd_staleness_file, CddStalenessConfig),
        )
        logger.info(
            "rule_config_loaded",
            rules_dir=str(self._rules_dir),
            scoring_version=config.risk_scoring.meta.version,
            client_types=sorted(config.cdd_ruleset.client_types),
        )
        return config

    def _read(self, filename: str, model: type[ModelT]) -> ModelT:
        path = self._rules_dir / filename
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
            return model.model_validate(payload)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.error("rule_config_invalid", path=str(path), error=str(e))
            raise RuleConfigError(f"Cannot load rule document {path}: {e}") from e


@lru_cache
def get_rule_store() -> RuleStore:
    return RuleStore()


def reset_rule_store() -> None:
    get_rule_store().reset()
    get_rule_store.cache_clear()
