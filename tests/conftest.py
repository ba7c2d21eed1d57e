import pytest

from amlrisk.core.config import BUNDLED_RULES_DIR
from amlrisk.rules.store import RuleStore


@pytest.fixture(scope="session")
def store() -> RuleStore:
    """Store over the bundled rule documents, shared by the whole run."""
    return RuleStore(rules_dir=BUNDLED_RULES_DIR)


@pytest.fixture(scope="session")
def scoring_config(store):
    return store.risk_scoring()


@pytest.fixture(scope="session")
def cdd_ruleset(store):
    return store.cdd_ruleset()
