"""
Tests for the TrueSkill factor-graph engine.

Reference values are the published TrueSkill examples (default
configuration, 10% draw probability):
https://github.com/sublee/trueskill/blob/master/trueskilltest.py
"""

import math

import pytest

from skillgraph import (
    DrawProbabilityOutOfRange,
    MalformedMatchError,
    Rating,
    TrueSkill,
    TrueSkillConfig,
    UnsupportedArityError,
)
from skillgraph.base.gaussian import norm_cdf


@pytest.fixture
def ts() -> TrueSkill:
    return TrueSkill.new_default(10.0)


def assert_rating(rating: Rating, mu: float, sigma: float, tol: float = 1e-3):
    assert rating.mu == pytest.approx(mu, abs=tol)
    assert rating.sigma == pytest.approx(sigma, abs=tol)


def _c(ts: TrueSkill, num_players: int = 2) -> float:
    """Std dev of the team performance difference for default-rated players."""
    cfg = ts.config
    return math.sqrt(num_players * (cfg.sigma ** 2 + cfg.tau ** 2 + cfg.beta ** 2))


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

def test_default_configuration():
    ts = TrueSkill.new_default(10.0)
    cfg = ts.config
    assert cfg.mu == 25.0
    assert cfg.sigma == pytest.approx(25.0 / 3.0)
    assert cfg.beta == pytest.approx(25.0 / 6.0)
    assert cfg.tau == pytest.approx(25.0 / 300.0)
    assert cfg.draw_probability == pytest.approx(0.1)


@pytest.mark.parametrize("percent", [-0.1, 100.1, -50.0, 1000.0])
def test_draw_probability_out_of_range(percent):
    with pytest.raises(DrawProbabilityOutOfRange):
        TrueSkill.new(25.0, 8.0, 4.0, 0.08, percent)
    with pytest.raises(ValueError):
        TrueSkill.new_default(percent)


@pytest.mark.parametrize("percent", [0.0, 100.0, 50.0])
def test_draw_probability_boundaries_accepted(percent):
    ts = TrueSkill.new(25.0, 8.0, 4.0, 0.08, percent)
    assert ts.config.draw_probability == pytest.approx(percent / 100.0)


def test_config_is_immutable():
    cfg = TrueSkillConfig()
    with pytest.raises(AttributeError):
        cfg.mu = 30.0


def test_draw_margin():
    cfg = TrueSkillConfig()
    # Phi^-1(0.55) * sqrt(2) * beta
    assert cfg.draw_margin(2) == pytest.approx(0.740466, abs=1e-5)
    assert cfg.draw_margin(4) == pytest.approx(cfg.draw_margin(2) * math.sqrt(2.0))
    assert TrueSkillConfig(draw_probability=0.0).draw_margin(2) == 0.0


# ---------------------------------------------------------------------------
# One-on-one
# ---------------------------------------------------------------------------

def test_1vs1_win(ts):
    a, b = ts.new_default_player(), ts.new_default_player()
    (new_a, new_b), probability = ts.adjust_skills([a, b], [False])
    assert_rating(new_a, 29.396, 7.171)
    assert_rating(new_b, 20.604, 7.171)
    assert new_a.mu > 25.0 > new_b.mu
    assert new_a.sigma < ts.config.sigma and new_b.sigma < ts.config.sigma

    # Exact evidence for a tree: P(d > eps) for d ~ N(0, c^2)
    expected = norm_cdf(-ts.config.draw_margin(2) / _c(ts))
    assert probability == pytest.approx(expected, rel=1e-6)


def test_1vs1_draw(ts):
    a, b = ts.new_default_player(), ts.new_default_player()
    (new_a, new_b), probability = ts.adjust_skills([a, b], [True])
    assert_rating(new_a, 25.0, 6.458)
    assert_rating(new_b, 25.0, 6.458)
    assert new_a.mu == pytest.approx(25.0, abs=1e-9)

    eps = ts.config.draw_margin(2) / _c(ts)
    assert probability == pytest.approx(norm_cdf(eps) - norm_cdf(-eps), rel=1e-6)


@pytest.mark.parametrize(
    "stronger, weaker",
    [(Rating(40.0, 3.0), Rating(15.0, 3.0)), (Rating(60.0, 0.5), Rating(0.0, 0.5))],
)
def test_draw_probability_independent_of_listing_order(ts, stronger, weaker):
    (s1, w1), p_strong_first = ts.adjust_skills([stronger, weaker], [True])
    (w2, s2), p_weak_first = ts.adjust_skills([weaker, stronger], [True])
    assert p_weak_first > 0.0
    assert p_weak_first == pytest.approx(p_strong_first, rel=1e-9)
    assert s1.mu == pytest.approx(s2.mu, rel=1e-9)
    assert w1.sigma == pytest.approx(w2.sigma, rel=1e-9)


def test_1vs1_upset_moves_more_than_expected_win(ts):
    strong, weak = Rating(30.0, 4.0), Rating(20.0, 4.0)
    (_, weak_after_upset), p_upset = ts.adjust_skills([weak, strong], [False])
    (_, weak_after_loss), p_expected = ts.adjust_skills([strong, weak], [False])
    assert weak_after_upset.mu - weak.mu > weak.mu - weak_after_loss.mu
    assert p_upset < p_expected


def test_input_ratings_not_modified(ts):
    a, b = Rating(27.0, 5.0), Rating(22.0, 6.0)
    ts.adjust_skills([a, b], [False])
    assert (a.mu, a.sigma) == (27.0, 5.0)
    assert (b.mu, b.sigma) == (22.0, 6.0)


def test_results_are_deterministic(ts):
    players = [Rating(25.0, 8.0), Rating(27.0, 3.0), Rating(20.0, 6.0), Rating(31.0, 7.5)]
    first = ts.adjust_skills(players, [False, True, False])
    second = ts.adjust_skills(players, [False, True, False])
    assert first == second


# ---------------------------------------------------------------------------
# Free-for-all and teams
# ---------------------------------------------------------------------------

def test_3_player_free_for_all(ts):
    players = [ts.new_default_player() for _ in range(3)]
    (first, second, third), probability = ts.adjust_skills(players, [False, False])
    assert_rating(first, 31.675, 6.657, tol=1e-2)
    assert_rating(second, 25.000, 6.208, tol=1e-2)
    assert_rating(third, 18.325, 6.657, tol=1e-2)
    assert 0.0 < probability < 1.0


def test_4_player_free_for_all(ts):
    players = [ts.new_default_player() for _ in range(4)]
    ratings, _ = ts.adjust_skills(players, False)
    assert_rating(ratings[0], 33.207, 6.348, tol=1e-2)
    assert_rating(ratings[1], 27.401, 5.787, tol=1e-2)
    assert_rating(ratings[2], 22.599, 5.787, tol=1e-2)
    assert_rating(ratings[3], 16.793, 6.348, tol=1e-2)


def test_single_draw_flag_applies_to_all_pairs(ts):
    players = [ts.new_default_player() for _ in range(3)]
    assert ts.adjust_skills(players, True) == ts.adjust_skills(players, [True, True])


def test_3_way_draw_is_symmetric(ts):
    players = [ts.new_default_player() for _ in range(3)]
    ratings, _ = ts.adjust_skills(players, [True, True])
    for rating in ratings:
        assert rating.mu == pytest.approx(25.0, abs=1e-3)
        assert rating.sigma < ts.config.sigma
    assert ratings[0].sigma == pytest.approx(ratings[2].sigma, abs=1e-3)


def test_2vs2(ts):
    team_a = [ts.new_default_player(), ts.new_default_player()]
    team_b = [ts.new_default_player(), ts.new_default_player()]
    (new_a, new_b), probability = ts.adjust_team_skills([team_a, team_b], [False])
    for rating in new_a:
        assert_rating(rating, 28.108, 7.774)
    for rating in new_b:
        assert_rating(rating, 21.892, 7.774)

    expected = norm_cdf(-ts.config.draw_margin(4) / _c(ts, 4))
    assert probability == pytest.approx(expected, rel=1e-6)


def test_uneven_teams_share_update_by_variance(ts):
    team_a = [Rating(25.0, 8.0), Rating(25.0, 2.0)]
    team_b = [Rating(25.0, 5.0)]
    (new_a, new_b), _ = ts.adjust_team_skills([team_a, team_b], [False])
    # The more uncertain teammate absorbs more of the win
    assert new_a[0].mu - 25.0 > new_a[1].mu - 25.0 > 0.0
    assert new_b[0].mu < 25.0


def test_multi_team_match(ts):
    teams = [
        [Rating(25.0, 8.0), Rating(22.0, 6.0)],
        [Rating(30.0, 4.0)],
        [Rating(20.0, 7.0), Rating(24.0, 5.0), Rating(26.0, 3.0)],
    ]
    new_teams, probability = ts.adjust_team_skills(teams, [False, True])
    assert [len(t) for t in new_teams] == [2, 1, 3]
    assert 0.0 < probability < 1.0
    for old_team, new_team in zip(teams, new_teams):
        for old, new in zip(old_team, new_team):
            assert new.sigma < math.sqrt(old.sigma ** 2 + ts.config.tau ** 2)


# ---------------------------------------------------------------------------
# Schedule behaviour
# ---------------------------------------------------------------------------

def test_two_teams_need_no_loop(ts):
    graph = ts.build_factor_graph([[Rating()], [Rating()]], [False])
    assert graph.result is None
    result = graph.run_schedule()
    assert graph.result is result
    assert result.passes == 0
    assert result.converged


def test_rerunning_converged_schedule_is_stable(ts):
    players = [Rating(25.0, 8.0), Rating(28.0, 5.0), Rating(21.0, 6.0), Rating(24.0, 7.0)]
    graph = ts.build_factor_graph([[p] for p in players], [False, True, False])

    first = graph.run_schedule()
    assert first.converged
    assert first.passes > 1
    before = [graph.skill(i) for i in range(graph.num_teams)]

    second = graph.run_schedule()
    assert second.converged
    assert second.passes == 1
    assert second.delta <= graph.schedule.max_delta
    after = [graph.skill(i) for i in range(graph.num_teams)]
    for old, new in zip(before, after):
        assert old.delta(new) < graph.schedule.max_delta


def test_pass_cap_is_not_an_error():
    capped = TrueSkill(TrueSkillConfig(), max_passes=1)
    players = [Rating(25.0, 8.0), Rating(28.0, 5.0), Rating(21.0, 6.0)]
    graph = capped.build_factor_graph([[p] for p in players], [False, False])
    result = graph.run_schedule()
    assert result.passes == 1
    assert not result.converged

    ratings, probability = capped.adjust_skills(players, [False, False])
    assert len(ratings) == 3
    assert all(math.isfinite(r.mu) and r.sigma > 0 for r in ratings)
    assert math.isfinite(probability) and probability > 0.0


# ---------------------------------------------------------------------------
# Malformed input
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("draws", [[], [False, False], [True, False, True]])
def test_draw_flag_count_must_match(ts, draws):
    with pytest.raises(MalformedMatchError):
        ts.adjust_skills([Rating(), Rating()], draws)


def test_needs_two_entrants(ts):
    with pytest.raises(MalformedMatchError):
        ts.adjust_skills([Rating()], [])
    with pytest.raises(MalformedMatchError):
        ts.adjust_skills([Rating()], False)


def test_empty_team_rejected(ts):
    with pytest.raises(MalformedMatchError):
        ts.adjust_team_skills([[Rating()], []], [False])


def test_draw_impossible_without_draw_probability():
    ts = TrueSkill.new_default(0.0)
    with pytest.raises(MalformedMatchError):
        ts.adjust_skills([Rating(), Rating()], [True])
    # Decisive results are still fine
    (winner, loser), _ = ts.adjust_skills([Rating(), Rating()], [False])
    assert winner.mu > loser.mu


def test_decisive_result_impossible_with_certain_draws():
    ts = TrueSkill.new_default(100.0)
    with pytest.raises(MalformedMatchError):
        ts.adjust_skills([Rating(), Rating()], [False])
    (a, b), probability = ts.adjust_skills([Rating(), Rating()], [True])
    assert probability == pytest.approx(1.0)
    assert a.mu == pytest.approx(25.0)


# ---------------------------------------------------------------------------
# Closed-form helpers
# ---------------------------------------------------------------------------

def test_match_quality_default_players(ts):
    a, b = ts.new_default_player(), ts.new_default_player()
    assert ts.match_quality([a, b]) == pytest.approx(math.sqrt(0.2), rel=1e-9)


def test_match_quality_peaks_at_equal_skill(ts):
    x = Rating(27.0, 4.0)
    peak = ts.match_quality([x, x])
    for other in (Rating(28.0, 4.0), Rating(20.0, 4.0), Rating(35.0, 4.0)):
        assert ts.match_quality([x, other]) < peak
    assert 0.0 <= peak <= 1.0


@pytest.mark.parametrize("count", [0, 1, 3, 4])
def test_match_quality_unsupported_arity(ts, count):
    with pytest.raises(UnsupportedArityError):
        ts.match_quality([Rating()] * count)


def test_win_probability_symmetry(ts):
    team_a = [Rating(27.0, 3.0), Rating(20.0, 6.0)]
    team_b = [Rating(30.0, 5.0)]
    p = ts.win_probability(team_a, team_b)
    assert p + ts.win_probability(team_b, team_a) == pytest.approx(1.0)
    assert 0.0 < p < 1.0


def test_win_probability_values(ts):
    a, b = ts.new_default_player(), ts.new_default_player()
    assert ts.win_probability([a], [b]) == pytest.approx(0.5)

    strong, weak = Rating(30.0, 2.0), Rating(20.0, 2.0)
    beta = ts.config.beta
    expected = norm_cdf(10.0 / math.sqrt(8.0 + 2 * beta ** 2))
    assert ts.win_probability([strong], [weak]) == pytest.approx(expected)


def test_win_probability_needs_players(ts):
    with pytest.raises(MalformedMatchError):
        ts.win_probability([], [Rating()])


def test_conservative_skill(ts):
    assert ts.conservative_skill(ts.new_default_player()) == pytest.approx(0.0, abs=1e-9)
    assert ts.conservative_skill(Rating(30.0, 2.0)) == pytest.approx(24.0)
    assert ts.conservative_skill(Rating(100.0, 1.0)) == 50.0
    assert ts.conservative_skill(Rating(5.0, 8.0)) == 0.0
    assert ts.true_skill(Rating(30.0, 2.0)) == ts.conservative_skill(Rating(30.0, 2.0))


@pytest.mark.parametrize(
    "rating",
    [Rating(-1e9, 1e-9), Rating(1e9, 1e9), Rating(25.0, 1e-12), Rating(49.0, 0.1), Rating(0.0, 1.0)],
)
def test_conservative_skill_bounds(ts, rating):
    value = ts.conservative_skill(rating)
    assert 0.0 <= value <= 2.0 * ts.config.mu
