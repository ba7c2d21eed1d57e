"""
Scorer tests against the bundled v3.8 scoring rules.
Covers threshold boundaries, automatic outcomes, triggers and rationale.
"""
from structlog.testing import capture_logs

from amlrisk.schemas.assessment import ClientCategory, RiskTier, normalize_answers
from amlrisk.schemas.rules import Threshold
from amlrisk.scoring import scorer

IND = ClientCategory.INDIVIDUAL
CORP = ClientCategory.CORPORATE


def _individual(**overrides) -> dict:
    """Baseline low-risk individual (score 1: new client), then override by field id."""
    answers = {
        "3": "New client",
        "16": "UK",
        "20": "No",
        "24": "Yes",
        "28": "Ongoing",
        "32": "No",
        "38": "Client",
        "42": "No",
        "47": "No",
        "48": "No",
    }
    answers.update({k.lstrip("f"): v for k, v in overrides.items()})
    return normalize_answers(answers)


def _corporate(**overrides) -> dict:
    answers = {
        "10": "Private limited company",
        "16": "New client",
        "26": "All resident in the UK / European Economic Area",
        "28": "No",
        "30": "No",
        "32": "No",
        "34": "No",
        "36": "No",
        "37": "Yes",
        "39": "Ongoing",
        "47": "No",
        "49": "Standard",
        "59": "Client",
        "63": "No",
        "67": "No",
        "68": "No",
    }
    answers.update({k.lstrip("f"): v for k, v in overrides.items()})
    return normalize_answers(answers)


class TestIndividualScoring:
    def test_low_risk_baseline(self, scoring_config):
        out = scorer.score(IND, _individual(), scoring_config)
        assert out.score == 1
        assert out.tier == RiskTier.LOW
        assert out.automatic_outcome is None

    def test_zero_score_factors_are_recorded(self, scoring_config):
        out = scorer.score(IND, _individual(), scoring_config)
        ids = [f.factor_id for f in out.factors]
        assert "country_of_residence" in ids
        assert "pep_or_rca" in ids
        assert "funds_movement" not in ids  # unscored

    def test_factors_follow_declaration_order(self, scoring_config):
        out = scorer.score(IND, _individual(), scoring_config)
        declared = [f.id for f in scoring_config.factors_for(IND)]
        recorded = [f.factor_id for f in out.factors]
        assert recorded == [i for i in declared if i in recorded]

    def test_score_4_is_low(self, scoring_config):
        out = scorer.score(IND, _individual(f16="FATF-equivalent jurisdiction", f24="No", f28="One-off"), scoring_config)
        assert out.score == 4
        assert out.tier == RiskTier.LOW

    def test_score_5_is_medium(self, scoring_config):
        out = scorer.score(
            IND,
            _individual(f16="FATF-equivalent jurisdiction", f24="No", f28="One-off", f42="Yes"),
            scoring_config,
        )
        assert out.score == 5
        assert out.tier == RiskTier.MEDIUM

    def test_score_8_is_medium(self, scoring_config):
        out = scorer.score(
            IND,
            _individual(f16="FATF-equivalent jurisdiction", f24="Unusual", f28="One-off", f38="Third party", f42="Yes"),
            scoring_config,
        )
        assert out.score == 8
        assert out.tier == RiskTier.MEDIUM

    def test_score_9_is_high(self, scoring_config):
        out = scorer.score(
            IND,
            _individual(
                f16="FATF-equivalent jurisdiction", f24="Unusual", f28="One-off",
                f38="Third party", f42="Yes", f47="Yes",
            ),
            scoring_config,
        )
        assert out.score == 9
        assert out.tier == RiskTier.HIGH

    def test_hrtc_prefix(self, scoring_config):
        out = scorer.score(IND, _individual(f16="HRTC - Democratic People's Republic of Korea"), scoring_config)
        assert out.score == 4

    def test_delivery_channel_remote(self, scoring_config):
        out = scorer.score(IND, _individual(f52="Remote (non-face-to-face)"), scoring_config)
        assert out.score == 2

    def test_unknown_answers_ignored(self, scoring_config):
        out = scorer.score(IND, _individual(f24="Not sure"), scoring_config)
        assert out.score == 1
        assert "routine_instruction" not in [f.factor_id for f in out.factors]


class TestAutomaticOutcomes:
    def test_pep_forces_high(self, scoring_config):
        out = scorer.score(IND, _individual(f20="Yes"), scoring_config)
        assert out.score == 1
        assert out.tier == RiskTier.HIGH
        assert out.automatic_outcome.outcome_id == "HIGH_RISK_EDD_REQUIRED"
        assert out.automatic_outcome.triggered_by == 'Politically Exposed Person (PEP / RCA): "Yes"'

    def test_pep_prefix_variant(self, scoring_config):
        out = scorer.score(IND, _individual(f20="Yes - family member of a PEP"), scoring_config)
        assert out.tier == RiskTier.HIGH

    def test_corporate_pep_forces_high(self, scoring_config):
        out = scorer.score(CORP, _corporate(f36="Yes"), scoring_config)
        assert out.tier == RiskTier.HIGH

    def test_prohibited_sector_does_not_force_tier(self, scoring_config):
        out = scorer.score(CORP, _corporate(f49="Prohibited"), scoring_config)
        assert out.automatic_outcome.outcome_id == "OUT_OF_APPETITE"
        assert out.tier == RiskTier.LOW
        assert out.score == 1

    def test_higher_risk_sector_scores(self, scoring_config):
        out = scorer.score(CORP, _corporate(f49="Higher-risk"), scoring_config)
        assert out.score == 3
        assert out.automatic_outcome is None


class TestCorporateScoring:
    def test_low(self, scoring_config):
        out = scorer.score(CORP, _corporate(), scoring_config)
        assert (out.score, out.tier) == (1, RiskTier.LOW)

    def test_medium(self, scoring_config):
        out = scorer.score(
            CORP,
            _corporate(
                f26="Some resident in the UK / European Economic Area and some resident elsewhere",
                f30="Yes", f37="No", f39="One-off", f63="Yes",
            ),
            scoring_config,
        )
        assert (out.score, out.tier) == (7, RiskTier.MEDIUM)

    def test_high(self, scoring_config):
        out = scorer.score(
            CORP,
            _corporate(
                f26="All resident out with the UK / European Economic Area",
                f28="Yes", f30="Yes", f32="Yes", f34="Yes",
                f37="Unusual", f39="One-off", f47="Yes",
            ),
            scoring_config,
        )
        assert (out.score, out.tier) == (17, RiskTier.HIGH)


class TestTierThresholds:
    def test_thresholds_partition_scores(self, scoring_config):
        for total in range(0, 60):
            containing = [t for t, th in scoring_config.thresholds.items() if th.contains(total)]
            assert len(containing) == 1, total

    def test_gap_falls_back_to_most_severe_and_logs(self, scoring_config):
        gapped = scoring_config.model_copy(update={"thresholds": {
            RiskTier.LOW: Threshold(min=0, max=3),
            RiskTier.MEDIUM: Threshold(min=5, max=8),
            RiskTier.HIGH: Threshold(min=9, max=None),
        }})
        with capture_logs() as logs:
            tier = scorer.classify_tier(4, gapped)
        assert tier == RiskTier.HIGH
        assert any(e["event"] == "tier_threshold_miss" and e["score"] == 4 for e in logs)


class TestTriggers:
    def test_client_account_requires_funds_movement(self, scoring_config):
        assert scorer.check_triggers(scoring_config, IND, _individual(f36="Yes")) == []
        triggers = scorer.check_triggers(scoring_config, IND, _individual(f35="Yes", f36="Yes"))
        assert [t.trigger_id for t in triggers] == ["client_account"]
        assert "PCP §20" in triggers[0].authority

    def test_tcsp_is_ungated(self, scoring_config):
        triggers = scorer.check_triggers(scoring_config, IND, _individual(f50="Yes"))
        assert [t.trigger_id for t in triggers] == ["tcsp_activity"]

    def test_funds_triggers_all_fire(self, scoring_config):
        answers = _individual(f35="Yes", f36="Yes", f38="Third party", f42="Yes")
        ids = [t.trigger_id for t in scorer.check_triggers(scoring_config, IND, answers)]
        assert ids == ["client_account", "third_party_funder", "cross_border_transaction"]

    def test_corporate_triggers(self, scoring_config):
        answers = _corporate(f54="Yes", f55="Yes", f70="Yes")
        ids = [t.trigger_id for t in scorer.check_triggers(scoring_config, CORP, answers)]
        assert ids == ["client_account", "tcsp_activity"]

    def test_triggers_do_not_change_score(self, scoring_config):
        base = scorer.score(IND, _individual(), scoring_config)
        triggered = scorer.score(IND, _individual(f35="Yes", f36="Yes", f50="Yes"), scoring_config)
        assert (base.score, base.tier) == (triggered.score, triggered.tier)


class TestRationale:
    def test_range_statement(self, scoring_config):
        out = scorer.score(IND, _individual(f42="Yes"), scoring_config)
        lines = scorer.build_rationale(out.score, out.tier, out.factors, out.automatic_outcome, scoring_config)
        assert lines[0] == "Risk assessment: LOW (score: 2)"
        assert lines[1] == "Score of 2 falls within LOW range (0-4)"
        assert lines[2:] == [
            "",
            "Contributing risk factors:",
            '  - Existing or new client: "New client" adds +1 to risk score',
            '  - Cross-border movement of funds: "Yes" adds +1 to risk score',
        ]

    def test_open_ended_threshold(self, scoring_config):
        lines = scorer.build_rationale(12, RiskTier.HIGH, [], None, scoring_config)
        assert lines == ["Risk assessment: HIGH (score: 12)", "Score of 12 meets HIGH threshold (9+)"]

    def test_outcome_lines(self, scoring_config):
        out = scorer.score(IND, _individual(f20="Yes"), scoring_config)
        lines = scorer.build_rationale(out.score, out.tier, out.factors, out.automatic_outcome, scoring_config)
        assert "AUTOMATIC OUTCOME: Automatic HIGH risk classification requiring Enhanced Due Diligence" in lines
        assert 'Triggered by: Politically Exposed Person (PEP / RCA): "Yes"' in lines
