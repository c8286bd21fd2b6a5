"""
Tests for the review scoring engine.
"""

import pytest
from services.scoring_service import (
    ScoringRules,
    VenueSnapshot,
    compute_review_outcome,
    load_scoring_rules,
    round_score,
)


class TestConsensusScenarios:
    """Walk one cafe through its first three reviews"""

    def test_first_review_on_new_cafe(self):
        outcome = compute_review_outcome(VenueSnapshot(review_count=0, amenities={}), {'wifi': 8})

        assert outcome.amenities == {'wifi': 8.0}
        assert outcome.review_count == 1
        assert outcome.earned_points == 15

    def test_agreeing_second_review(self):
        outcome = compute_review_outcome(VenueSnapshot(review_count=1, amenities={'wifi': 8.0}), {'wifi': 9})

        assert outcome.amenities['wifi'] == 8.5
        assert outcome.review_count == 2
        assert outcome.earned_points == 15
        assert outcome.bonus_keys == ('wifi',)

    def test_disagreeing_third_review(self):
        outcome = compute_review_outcome(VenueSnapshot(review_count=2, amenities={'wifi': 8.5}), {'wifi': 2})

        assert outcome.amenities['wifi'] == 6.3
        assert outcome.review_count == 3
        assert outcome.earned_points == 10
        assert outcome.bonus_keys == ()


class TestPoints:
    def test_new_cafe_bonus_for_every_rated_amenity(self):
        ratings = {'wifi': 1, 'outlet': 10, 'noise': 5}
        outcome = compute_review_outcome(VenueSnapshot(0, {}), ratings)

        assert outcome.earned_points == 10 + 5 * 3

    def test_bonus_boundary_is_inclusive(self):
        snapshot = VenueSnapshot(4, {'wifi': 5.0, 'comfort': 5.0})
        outcome = compute_review_outcome(snapshot, {'wifi': 7, 'comfort': 7.1})

        assert outcome.bonus_keys == ('wifi',)
        assert outcome.earned_points == 15

    def test_no_bonus_for_amenity_without_prior_average(self):
        outcome = compute_review_outcome(VenueSnapshot(3, {'wifi': 7.0}), {'hygiene': 0})

        assert outcome.earned_points == 10

    def test_points_formula_holds(self):
        snapshot = VenueSnapshot(5, {'wifi': 6.0, 'outlet': 2.0, 'quality': 9.5})
        ratings = {'wifi': 8, 'outlet': 9, 'quality': 10, 'service': 4}
        outcome = compute_review_outcome(snapshot, ratings)

        qualifying = [k for k in ratings if k in snapshot.amenities and abs(ratings[k] - snapshot.amenities[k]) <= 2]
        assert outcome.earned_points == 10 + 5 * len(qualifying)
        assert outcome.earned_points <= 10 + 5 * len(ratings)

    def test_custom_rules(self):
        rules = ScoringRules(base_points=20, consensus_bonus=1, consensus_tolerance=0.5)
        outcome = compute_review_outcome(VenueSnapshot(1, {'wifi': 8.0}), {'wifi': 8.4}, rules)

        assert outcome.earned_points == 21


class TestRunningAverage:
    def test_first_review_is_not_blended_with_zero(self):
        outcome = compute_review_outcome(VenueSnapshot(0, {'wifi': 3.0}), {'wifi': 9})

        assert outcome.amenities['wifi'] == 9.0

    def test_missing_amenity_on_reviewed_cafe_counts_as_zero(self):
        outcome = compute_review_outcome(VenueSnapshot(2, {'wifi': 8.0}), {'outlet': 6})

        assert outcome.amenities == {'wifi': 8.0, 'outlet': 2.0}

    def test_unrated_amenities_untouched(self):
        prior = {'wifi': 7.3, 'noise': 4.1, 'service': 9.9}
        outcome = compute_review_outcome(VenueSnapshot(7, prior), {'noise': 6})

        assert outcome.amenities['wifi'] == 7.3
        assert outcome.amenities['service'] == 9.9
        assert outcome.amenities['noise'] == 4.3

    def test_recurrence_holds_within_rounding(self):
        old_avg, old_count, score = 6.7, 12, 3
        outcome = compute_review_outcome(VenueSnapshot(old_count, {'comfort': old_avg}), {'comfort': score})

        expected_total = old_avg * old_count + score
        assert abs(outcome.amenities['comfort'] * outcome.review_count - expected_total) <= 0.05 * outcome.review_count

    def test_scores_are_not_clamped(self):
        outcome = compute_review_outcome(VenueSnapshot(1, {'wifi': 9.0}), {'wifi': 25})

        assert outcome.amenities['wifi'] == 17.0


class TestEngineContract:
    def test_empty_ratings(self):
        snapshot = VenueSnapshot(4, {'wifi': 5.5})
        outcome = compute_review_outcome(snapshot, {})

        assert outcome.earned_points == 10
        assert outcome.amenities == {'wifi': 5.5}
        assert outcome.review_count == 5

    def test_inputs_not_mutated(self):
        amenities = {'wifi': 5.0}
        ratings = {'wifi': 6, 'outlet': 3}
        compute_review_outcome(VenueSnapshot(2, amenities), ratings)

        assert amenities == {'wifi': 5.0}
        assert ratings == {'wifi': 6, 'outlet': 3}

    def test_deterministic(self):
        snapshot = VenueSnapshot(3, {'wifi': 4.4, 'noise': 8.0})
        ratings = {'wifi': 5, 'noise': 1}

        assert compute_review_outcome(snapshot, ratings) == compute_review_outcome(snapshot, ratings)


class TestRounding:
    @pytest.mark.parametrize('value,expected', [
        (19 / 3, 6.3),
        (8.5, 8.5),
        (0.25, 0.3),
        (-0.25, -0.3),
        (6.35, 6.4),
        (7, 7.0),
    ])
    def test_round_half_away_from_zero(self, value, expected):
        assert round_score(value) == expected


class TestScoringRulesLoading:
    def test_defaults_without_file(self, tmp_path):
        rules = load_scoring_rules(str(tmp_path / 'missing.yml'))

        assert rules == ScoringRules()
        assert rules.base_points == 10
        assert rules.consensus_bonus == 5
        assert rules.consensus_tolerance == 2

    def test_yaml_overrides(self, tmp_path):
        path = tmp_path / 'rules.yml'
        path.write_text("base_points: 12\nconsensus_tolerance: 1.5\n")

        rules = load_scoring_rules(str(path))

        assert rules.base_points == 12
        assert rules.consensus_bonus == 5
        assert rules.consensus_tolerance == 1.5

    def test_invalid_yaml_falls_back(self, tmp_path):
        path = tmp_path / 'rules.yml'
        path.write_text("- just\n- a list\n")

        assert load_scoring_rules(str(path)) == ScoringRules()

    @pytest.mark.parametrize('content', [
        "base_points: lots\n",
        "consensus_tolerance: null\n",
        "consensus_bonus: [1, 2]\n",
        "base_points: 12\nconsensus_bonus: {five: 5}\n",
    ])
    def test_bad_values_fall_back(self, tmp_path, content):
        path = tmp_path / 'rules.yml'
        path.write_text(content)

        assert load_scoring_rules(str(path)) == ScoringRules()

    def test_rules_path_from_environment(self, tmp_path, monkeypatch):
        path = tmp_path / 'env_rules.yml'
        path.write_text("consensus_bonus: 7\n")
        monkeypatch.setenv('REVIEW_RULES_PATH', str(path))

        assert load_scoring_rules().consensus_bonus == 7
