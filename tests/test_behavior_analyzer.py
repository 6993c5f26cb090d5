# tests/test_behavior_analyzer.py
"""
Tests for the behavior analyzer

1. Human-looking streams pass, scripted streams fail
2. Sub-analyses: trajectory, clicks, timing, keystrokes
3. Degenerate input (too few events, identical points, unknown types)
4. KMeans transition clustering
"""

import math

import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from trustlens.analyzers.behavior_analyzer import (
    BehaviorAnalyzer,
    interval_statistics,
    timing_variation_coefficient,
    has_click_without_prior_movement,
)
from trustlens.core.telemetry import Event
from tests.test_utils import (
    create_human_event_stream,
    create_bot_event_stream,
    to_events,
    BASE_TIME_MS,
)

pytestmark = [
    pytest.mark.behavior,
    pytest.mark.unit
]


@pytest.fixture
def analyzer():
    return BehaviorAnalyzer()


@pytest.fixture
def human_events():
    return to_events(create_human_event_stream())


def _keypresses(intervals, start=2000):
    t = BASE_TIME_MS + start
    events = [Event('keypress', {'key': 'a', 'timestamp': t}, t)]
    for gap in intervals:
        t += gap
        events.append(Event('keypress', {'key': 'a', 'timestamp': t}, t))
    return events


class TestVerdicts:

    def test_human_stream_is_human(self, analyzer, human_events):
        # Act
        result = analyzer.analyze(human_events)

        # Assert: trajectory 30 + clicks 25 + timing 25
        assert result.is_human is True
        assert result.score == 80
        assert result.insufficient_data is False
        assert 'Keyboard input pattern is unnatural' not in result.reasons

    def test_first_ten_human_moves_are_already_human(self, analyzer, human_events):
        result = analyzer.analyze(human_events[:10])

        assert result.is_human is True
        assert result.score == 55, "Trajectory and timing should be natural, clicks not"
        assert result.reasons == ['Click pattern is unnatural']

    def test_constant_cadence_stream_is_not_human(self, analyzer):
        result = analyzer.analyze(to_events(create_bot_event_stream(count=12)))

        assert result.is_human is False
        assert result.score == 0
        assert 'Mouse movement trajectory is unnatural' in result.reasons
        assert 'Event timing is unnatural' in result.reasons
        assert result.metrics['suspiciously_regular_intervals'] is True

    def test_score_within_bounds(self, analyzer, human_events):
        result = analyzer.analyze(human_events + _keypresses([180, 120, 260, 90, 310]))
        assert 0 <= result.score <= 100


class TestInsufficientData:

    def test_fewer_than_five_moves(self, analyzer, human_events):
        result = analyzer.analyze(human_events[:4])

        assert result.insufficient_data is True
        assert result.score == 0
        assert result.is_human is False
        assert result.metrics['mouse_event_count'] == 4

    def test_keypresses_only(self, analyzer):
        result = analyzer.analyze(_keypresses([150] * 10))

        assert result.insufficient_data is True

    def test_unknown_event_types_are_ignored(self, analyzer, human_events):
        noise = [Event('pointerrawupdate', {'timestamp': BASE_TIME_MS + i}, BASE_TIME_MS + i)
                 for i in range(50)]

        with_noise = analyzer.analyze(noise + human_events)
        without_noise = analyzer.analyze(human_events)

        assert with_noise.score == without_noise.score


class TestTrajectory:

    def test_identical_points_are_a_straight_line(self, analyzer):
        events = [Event('mousemove', {'x': 50, 'y': 50, 'timestamp': BASE_TIME_MS + t}, 0)
                  for t in (0, 37, 121, 150, 290, 333)]

        result = analyzer.analyze_trajectory(events)

        assert result.is_natural is False
        assert result.metrics['straight_line_ratio'] == 1.0
        assert result.metrics['direction_changes'] == 0

    def test_moves_without_coordinates_are_skipped(self, analyzer):
        events = [Event('mousemove', {'timestamp': BASE_TIME_MS + t}, 0) for t in range(0, 600, 100)]

        result = analyzer.analyze_trajectory(events)

        assert result.is_natural is False
        assert result.metrics['speed_variation'] == 0.0

    def test_human_path_metrics(self, analyzer, human_events):
        moves = [e for e in human_events if e.type == 'mousemove']

        result = analyzer.analyze_trajectory(moves)

        assert result.is_natural is True
        assert result.metrics['speed_variation'] > 50
        assert result.metrics['acceleration_changes'] >= 2
        assert result.metrics['direction_changes'] >= 3
        assert result.metrics['straight_line_ratio'] < 0.98


class TestClicks:

    def test_clicks_after_movement_are_natural(self, analyzer, human_events):
        clicks = [e for e in human_events if e.type == 'click']

        result = analyzer.analyze_clicks(clicks, human_events)

        assert result.is_natural is True
        assert result.metrics['click_precision'] == 1.0
        assert result.metrics['avg_time_between_clicks'] == 1000

    def test_rapid_clicks_are_unnatural(self, analyzer, human_events):
        t = BASE_TIME_MS + 800
        clicks = [Event('click', {'timestamp': t + i * 100}, 0) for i in range(3)]

        result = analyzer.analyze_clicks(clicks, human_events + clicks)

        assert result.is_natural is False

    def test_clicks_without_movement_lower_precision(self, analyzer):
        clicks = [Event('click', {'timestamp': BASE_TIME_MS + i * 2000}, 0) for i in range(3)]

        result = analyzer.analyze_clicks(clicks, clicks)

        assert result.metrics['click_precision'] == 0.0
        assert result.metrics['clicks_without_movement'] == 3
        assert result.is_natural is False


class TestKeystrokes:

    def test_varied_typing_is_natural(self, analyzer):
        result = analyzer.analyze_keypresses(_keypresses([180, 120, 260, 90, 310]))

        assert result.is_natural is True

    def test_fast_uniform_typing_is_unnatural(self, analyzer):
        result = analyzer.analyze_keypresses(_keypresses([30] * 8))

        assert result.is_natural is False
        assert result.metrics['suspiciously_fast_typing'] is True

    def test_keystrokes_add_to_human_score(self, analyzer, human_events):
        result = analyzer.analyze(human_events + _keypresses([180, 120, 260, 90, 310]))

        assert 'Keyboard input pattern is unnatural' not in result.reasons

    def test_uniform_keystrokes_add_reason(self, analyzer, human_events):
        result = analyzer.analyze(human_events + _keypresses([30] * 8))

        assert 'Keyboard input pattern is unnatural' in result.reasons


class TestHelpers:

    def test_interval_statistics(self):
        stats = interval_statistics([0, 100, 300, 600])

        assert stats['mean'] == pytest.approx(200.0)
        assert stats['std'] == pytest.approx(81.6496, rel=1e-4)
        assert stats['cv'] == pytest.approx(0.408248, rel=1e-4)

    def test_zero_mean_interval_has_zero_cv(self):
        assert interval_statistics([5, 5, 5])['cv'] == 0.0

    def test_timing_cv_needs_five_events(self, human_events):
        assert timing_variation_coefficient(human_events[:4]) is None
        assert timing_variation_coefficient(human_events) > 0.2

    def test_click_before_first_move(self):
        events = [Event('click', {}, 0), Event('mousemove', {'x': 1, 'y': 1}, 0)]
        assert has_click_without_prior_movement(events) is True

    def test_click_after_move(self, human_events):
        assert has_click_without_prior_movement(human_events) is False


class TestClustering:

    def test_too_few_events_skip_clustering(self, analyzer, human_events):
        result = analyzer.cluster_transitions(human_events[:5])

        assert result.transition_count == 0
        assert result.anomaly_detected is False

    def test_identical_transitions_form_one_cluster(self, analyzer):
        events = to_events(create_bot_event_stream(count=12))

        result = analyzer.cluster_transitions(events)

        assert result.transition_count == 11
        assert result.cluster_sizes == [11]
        assert result.anomaly_detected is False

    def test_single_outlier_transition_is_flagged(self, analyzer):
        # Arrange: 19 identical transitions and one very long pause
        stream = create_bot_event_stream(count=20)
        stream.append(('mousemove', {'x': 300, 'y': 100, 'timestamp': BASE_TIME_MS + 60000}))

        # Act
        result = analyzer.cluster_transitions(to_events(stream))

        # Assert
        assert result.transition_count == 20
        assert sorted(result.cluster_sizes) == [1, 19]
        assert result.anomaly_detected is True

    def test_cluster_analysis_reported_in_metrics(self, analyzer, human_events):
        data = analyzer.analyze(human_events).to_dict()

        assert 'cluster_analysis' in data['metrics']
        assert data['metrics']['cluster_analysis']['transitionCount'] == len(human_events) - 1


def _extreme_moves(count=10, magnitude=1e200):
    """Pointer moves bouncing between opposite corners of a huge plane"""
    events = []
    for i in range(count):
        sign = 1 if i % 2 else -1
        t = BASE_TIME_MS + i * 100 + (i % 3) * 37
        events.append(Event('mousemove', {'x': sign * magnitude, 'y': -sign * magnitude, 'timestamp': t}, t))
    return events


class TestExtremeInput:

    def test_huge_coordinates_give_bounded_score(self, analyzer):
        # Act
        result = analyzer.analyze(_extreme_moves())

        # Assert
        assert 0 <= result.score <= 100
        for name, value in result.metrics.items():
            if isinstance(value, float):
                assert math.isfinite(value), name

    def test_huge_coordinates_count_as_straight_line(self, analyzer):
        result = analyzer.analyze_trajectory(_extreme_moves())

        assert result.is_natural is False
        assert 0.0 <= result.metrics['straight_line_ratio'] <= 1.0
        assert math.isfinite(result.metrics['speed_variation'])
        assert math.isfinite(result.metrics['trajectory_complexity'])

    def test_huge_timestamps_give_finite_statistics(self):
        stats = interval_statistics([-1e308, 1e308, -1e308, 1e308])

        assert all(math.isfinite(v) for v in stats.values())

    def test_overflowing_transitions_skip_clustering(self, analyzer):
        # Act
        result = analyzer.cluster_transitions(_extreme_moves(count=12, magnitude=1e308))

        # Assert
        assert result.transition_count == 11
        assert result.error is not None
        assert result.anomaly_detected is False
