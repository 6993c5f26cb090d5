# trustlens/analyzers/behavior_analyzer.py
"""
Behavior Analyzer
Purpose: Scores how human an interaction event stream looks
Techniques: Pointer trajectory statistics (speed, acceleration, direction,
principal-component straightness), click/movement correlation, inter-event
timing variability, keystroke cadence, KMeans outlier check
"""

import logging
import warnings
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
from sklearn.cluster import KMeans
from sklearn.decomposition import PCA
from sklearn.exceptions import ConvergenceWarning
from sklearn.preprocessing import StandardScaler

from ..core.config import BEHAVIOR_HUMAN_THRESHOLD
from ..core.results import BehaviorAnalysis, ClusterAnalysis
from ..core.rules import ScoringRule, evaluate_rules, clamp_score
from ..core.telemetry import Event, EventType

logger = logging.getLogger(__name__)

# Minimum pointer-move events before any behavior analysis is attempted
MIN_MOUSE_EVENTS = 5

# Trajectory thresholds
MIN_SPEED_STD = 50.0             # px/s
MIN_ACCELERATION_CHANGES = 2
MIN_DIRECTION_CHANGES = 3
DIRECTION_CHANGE_COSINE = 0.9
MAX_STRAIGHT_LINE_RATIO = 0.98

# Click thresholds
MIN_CLICKS = 2
MIN_CLICK_INTERVAL_MS = 500.0
MIN_CLICK_PRECISION = 0.7
CLICK_MOVEMENT_WINDOW_MS = 1000.0

# Timing thresholds
MIN_TIMING_EVENTS = 5
NATURAL_TIMING_CV = 0.2
REGULAR_TIMING_CV = 0.1

# Keystroke thresholds
MIN_KEYPRESSES = 5
MIN_KEYPRESS_INTERVAL_MS = 100.0
MIN_KEYPRESS_STD_MS = 50.0
FAST_TYPING_INTERVAL_MS = 50.0

# Outlier check
CLUSTER_COUNT = 2
MIN_CLUSTER_EVENTS = 10
MIN_CLUSTER_SHARE = 0.1


@dataclass
class PatternResult:
    """Outcome of one sub-analysis"""
    is_natural: bool = False
    metrics: Dict[str, Any] = field(default_factory=dict)


# ============================================================================
# EVENT HELPERS (shared with the decision aggregator)
# ============================================================================

def known_events(events: Sequence[Event]) -> List[Event]:
    """Events whose type the analyzers model, in arrival order"""
    return [e for e in events if EventType.is_known(e.type)]


def events_of_type(events: Sequence[Event], event_type: EventType) -> List[Event]:
    return [e for e in events if e.type == event_type.value]


def interval_statistics(times: Sequence[float]) -> Dict[str, float]:
    """
    Mean, population standard deviation and coefficient of variation of the
    gaps between consecutive times.

    A zero mean interval yields a CV of 0.
    """
    if len(times) < 2:
        return {'mean': 0.0, 'std': 0.0, 'cv': 0.0}

    with np.errstate(over='ignore', invalid='ignore'):
        intervals = np.diff(np.asarray(times, dtype=float))
        mean = float(np.mean(intervals))
        std = float(np.std(intervals))

    # Overflowing timestamps leave no usable statistics
    if not (np.isfinite(mean) and np.isfinite(std)):
        return {'mean': 0.0, 'std': 0.0, 'cv': 0.0}

    with np.errstate(over='ignore'):
        cv = float(np.float64(std) / mean) if mean != 0 else 0.0
    return {'mean': mean, 'std': std, 'cv': cv if np.isfinite(cv) else 0.0}


def _finite(value: float, default: float = 0.0) -> float:
    value = float(value)
    return value if np.isfinite(value) else default


def timing_variation_coefficient(events: Sequence[Event]) -> Optional[float]:
    """Inter-arrival CV across known events, or None with fewer than 5 events"""
    events = known_events(events)
    if len(events) < MIN_TIMING_EVENTS:
        return None
    return interval_statistics([e.event_time for e in events])['cv']


def has_click_without_prior_movement(events: Sequence[Event]) -> bool:
    """True if any click appears before the first mousemove in the log"""
    for event in events:
        if event.type == EventType.MOUSEMOVE.value:
            return False
        if event.type == EventType.CLICK.value:
            return True
    return False


# ============================================================================
# ANALYZER
# ============================================================================

class BehaviorAnalyzer:
    """
    Behavior Analyzer

    Each sub-analysis adds a fixed positive delta only when judged natural.
    The event stream is human when the total reaches the human threshold.
    """

    def __init__(self,
                 human_threshold: float = BEHAVIOR_HUMAN_THRESHOLD,
                 cluster_count: int = CLUSTER_COUNT,
                 random_state: int = 0):
        self.human_threshold = human_threshold
        self.cluster_count = cluster_count
        self.random_state = random_state

        # Natural sub-analyses add their delta; unnatural ones record a reason
        self.rules = [
            ScoringRule('natural_trajectory', lambda c: c['trajectory'].is_natural, 30),
            ScoringRule('unnatural_trajectory', lambda c: not c['trajectory'].is_natural, 0,
                        'Mouse movement trajectory is unnatural'),
            ScoringRule('natural_clicks', lambda c: c['clicks'].is_natural, 25),
            ScoringRule('unnatural_clicks', lambda c: not c['clicks'].is_natural, 0,
                        'Click pattern is unnatural'),
            ScoringRule('natural_timing', lambda c: c['timing'].is_natural, 25),
            ScoringRule('unnatural_timing', lambda c: not c['timing'].is_natural, 0,
                        'Event timing is unnatural'),
            ScoringRule('natural_keystrokes',
                        lambda c: c['keystrokes'] is not None and c['keystrokes'].is_natural, 20),
            ScoringRule('unnatural_keystrokes',
                        lambda c: c['keystrokes'] is not None and not c['keystrokes'].is_natural, 0,
                        'Keyboard input pattern is unnatural'),
        ]

    def analyze(self, events: Sequence[Event]) -> BehaviorAnalysis:
        """
        Analyze an ordered event sequence.

        Args:
            events: Session events in arrival order

        Returns:
            BehaviorAnalysis; fewer than 5 mousemove events yields a
            non-human, zero-score, insufficient-data result
        """
        events = known_events(events)
        mouse_events = events_of_type(events, EventType.MOUSEMOVE)
        cluster_analysis = self.cluster_transitions(events)

        if len(mouse_events) < MIN_MOUSE_EVENTS:
            return BehaviorAnalysis(
                score=0,
                is_human=False,
                reasons=['Not enough mouse movement events for behavior analysis'],
                metrics={'mouse_event_count': len(mouse_events)},
                cluster_analysis=cluster_analysis,
                insufficient_data=True,
            )

        keypress_events = events_of_type(events, EventType.KEYPRESS)
        context = {
            'trajectory': self.analyze_trajectory(mouse_events),
            'clicks': self.analyze_clicks(events_of_type(events, EventType.CLICK), events),
            'timing': self.analyze_timing(events),
            'keystrokes': self.analyze_keypresses(keypress_events) if keypress_events else None,
        }

        outcome = evaluate_rules(self.rules, context)

        metrics: Dict[str, Any] = {'mouse_event_count': len(mouse_events)}
        for result in context.values():
            if result is not None:
                metrics.update(result.metrics)

        score = clamp_score(outcome.score)
        return BehaviorAnalysis(
            score=score,
            is_human=score >= self.human_threshold,
            reasons=outcome.messages,
            metrics=metrics,
            cluster_analysis=cluster_analysis,
        )

    def analyze_trajectory(self, mouse_events: Sequence[Event]) -> PatternResult:
        """
        Pointer trajectory naturalness.

        Natural paths vary in speed (std > 50 px/s), change acceleration sign
        at least twice, change direction at least three times and are not
        explained by a single principal axis (first component ratio < 0.98).
        """
        result = PatternResult(metrics={
            'trajectory_complexity': 0.0,
            'speed_variation': 0.0,
            'acceleration_changes': 0,
            'direction_changes': 0,
            'straight_line_ratio': 0.0,
        })

        samples = [(e.point, e.event_time) for e in mouse_events if e.point is not None]
        if len(samples) < MIN_MOUSE_EVENTS:
            return result

        points = np.array([p for p, _ in samples], dtype=float)
        times = np.array([t for _, t in samples], dtype=float)

        # Instantaneous speeds in px/s; zero-duration steps are skipped and
        # steps whose speed overflows are dropped
        with np.errstate(over='ignore', invalid='ignore', divide='ignore'):
            deltas = np.diff(points, axis=0)
            distances = np.hypot(deltas[:, 0], deltas[:, 1])
            durations = np.diff(times) / 1000.0
            moving = durations > 0
            speeds = distances[moving] / durations[moving]
            speeds = speeds[np.isfinite(speeds)]

            avg_speed = _finite(np.mean(speeds)) if speeds.size else 0.0
            speed_variation = _finite(np.std(speeds)) if speeds.size else 0.0

            # Sign changes between consecutive accelerations (zeros break the run)
            accelerations = np.diff(speeds)
            acceleration_changes = int(np.sum(
                accelerations[1:] * accelerations[:-1] < 0)) if accelerations.size > 1 else 0

        direction_changes = self._count_direction_changes(deltas)
        straight_line_ratio = self._straight_line_ratio(points)

        result.metrics.update({
            'speed_variation': speed_variation,
            'acceleration_changes': acceleration_changes,
            'direction_changes': direction_changes,
            'straight_line_ratio': straight_line_ratio,
            'trajectory_complexity': _finite((direction_changes / len(points)) *
                                             (speed_variation / (avg_speed if avg_speed > 0 else 1.0))),
        })

        result.is_natural = (
            speed_variation > MIN_SPEED_STD and
            acceleration_changes >= MIN_ACCELERATION_CHANGES and
            direction_changes >= MIN_DIRECTION_CHANGES and
            straight_line_ratio < MAX_STRAIGHT_LINE_RATIO
        )
        return result

    @staticmethod
    def _count_direction_changes(deltas: np.ndarray) -> int:
        """Consecutive displacement pairs whose angle cosine is below 0.9"""
        if len(deltas) < 2:
            return 0

        first, second = deltas[:-1], deltas[1:]
        with np.errstate(over='ignore', invalid='ignore'):
            norms = np.linalg.norm(first, axis=1) * np.linalg.norm(second, axis=1)
            valid = (norms > 0) & np.isfinite(norms)
            cosines = np.einsum('ij,ij->i', first[valid], second[valid]) / norms[valid]
        cosines = cosines[np.isfinite(cosines)]
        return int(np.sum(cosines < DIRECTION_CHANGE_COSINE))

    @staticmethod
    def _straight_line_ratio(points: np.ndarray) -> float:
        """
        Explained variance ratio of the first principal component over
        standardized points. A path with no spread, or one whose spread
        overflows, counts as a straight line.
        """
        with np.errstate(over='ignore', invalid='ignore'):
            spread = points.std(axis=0)
            if not np.all(np.isfinite(spread)) or np.allclose(spread, 0):
                return 1.0
            scaled = StandardScaler().fit_transform(points)

        if not np.all(np.isfinite(scaled)):
            return 1.0

        try:
            pca = PCA(n_components=2).fit(scaled)
        except ValueError as e:
            logger.warning("Principal component fit failed: %s", e)
            return 1.0
        ratio = float(pca.explained_variance_ratio_[0])
        return ratio if np.isfinite(ratio) else 1.0

    def analyze_clicks(self, click_events: Sequence[Event], all_events: Sequence[Event]) -> PatternResult:
        """Click spacing and whether clicks follow pointer movement"""
        result = PatternResult(metrics={
            'click_count': len(click_events),
            'avg_time_between_clicks': 0.0,
            'click_precision': 0.0,
            'clicks_without_movement': 0,
        })

        if len(click_events) < MIN_CLICKS:
            return result

        click_times = [e.event_time for e in click_events]
        avg_interval = interval_statistics(click_times)['mean']

        movement_times = np.array([e.event_time for e in events_of_type(all_events, EventType.MOUSEMOVE)],
                                  dtype=float)
        clicks_without_movement = 0
        for click_time in click_times:
            gaps = click_time - movement_times
            if not np.any((gaps > 0) & (gaps < CLICK_MOVEMENT_WINDOW_MS)):
                clicks_without_movement += 1

        precision = 1.0 - clicks_without_movement / len(click_events)
        result.metrics.update({
            'avg_time_between_clicks': avg_interval,
            'click_precision': precision,
            'clicks_without_movement': clicks_without_movement,
        })

        result.is_natural = avg_interval > MIN_CLICK_INTERVAL_MS and precision >= MIN_CLICK_PRECISION
        return result

    def analyze_timing(self, events: Sequence[Event]) -> PatternResult:
        """Inter-arrival variability across all modeled events"""
        result = PatternResult(metrics={
            'avg_interval': 0.0,
            'interval_variation': 0.0,
            'variation_coefficient': 0.0,
            'suspiciously_regular_intervals': False,
        })

        if len(events) < MIN_TIMING_EVENTS:
            return result

        stats = interval_statistics([e.event_time for e in events])
        suspicious = stats['cv'] < REGULAR_TIMING_CV
        result.metrics.update({
            'avg_interval': stats['mean'],
            'interval_variation': stats['std'],
            'variation_coefficient': stats['cv'],
            'suspiciously_regular_intervals': suspicious,
        })

        result.is_natural = not suspicious and stats['cv'] > NATURAL_TIMING_CV
        return result

    def analyze_keypresses(self, keypress_events: Sequence[Event]) -> PatternResult:
        """Keystroke cadence and its variability"""
        result = PatternResult(metrics={
            'keypress_count': len(keypress_events),
            'avg_time_between_keypress': 0.0,
            'keypress_variation': 0.0,
            'suspiciously_fast_typing': False,
        })

        if len(keypress_events) < MIN_KEYPRESSES:
            return result

        stats = interval_statistics([e.event_time for e in keypress_events])
        result.metrics.update({
            'avg_time_between_keypress': stats['mean'],
            'keypress_variation': stats['std'],
            'suspiciously_fast_typing': stats['mean'] < FAST_TYPING_INTERVAL_MS,
        })

        result.is_natural = stats['mean'] > MIN_KEYPRESS_INTERVAL_MS and stats['std'] > MIN_KEYPRESS_STD_MS
        return result

    def cluster_transitions(self, events: Sequence[Event]) -> ClusterAnalysis:
        """
        Partition consecutive event transitions with KMeans.

        Features per transition are the inter-arrival time (ms) and, for
        mousemove-to-mousemove pairs, the pointer displacement (px). An
        anomaly is flagged when any cluster holds under 10% of transitions.
        """
        if len(events) < MIN_CLUSTER_EVENTS:
            return ClusterAnalysis()

        features = []
        for previous, current in zip(events, events[1:]):
            distance = 0.0
            if (previous.type == EventType.MOUSEMOVE.value and
                    current.type == EventType.MOUSEMOVE.value and
                    previous.point is not None and current.point is not None):
                with np.errstate(over='ignore', invalid='ignore'):
                    distance = float(np.hypot(np.float64(current.point[0]) - previous.point[0],
                                              np.float64(current.point[1]) - previous.point[1]))
            features.append([current.event_time - previous.event_time, distance])

        matrix = np.array(features, dtype=float)
        analysis = ClusterAnalysis(transition_count=len(matrix))

        # Squared distances must stay finite inside KMeans
        with np.errstate(over='ignore', invalid='ignore'):
            usable = bool(np.all(np.isfinite(matrix)) and np.isfinite(np.sum(np.square(matrix))))
        if not usable:
            logger.warning("Transition features overflow; skipping clustering")
            analysis.error = "Non-finite transition features"
            return analysis

        # Fewer distinct transitions than clusters cannot be partitioned
        if len(np.unique(matrix, axis=0)) < self.cluster_count:
            analysis.cluster_sizes = [len(matrix)]
            analysis.centroids = [matrix.mean(axis=0).tolist()]
            return analysis

        try:
            with warnings.catch_warnings():
                warnings.simplefilter('ignore', ConvergenceWarning)
                kmeans = KMeans(n_clusters=self.cluster_count, n_init=10,
                                random_state=self.random_state).fit(matrix)
        except ValueError as e:
            logger.warning("Transition clustering failed: %s", e)
            analysis.error = str(e)
            return analysis

        sizes = np.bincount(kmeans.labels_, minlength=self.cluster_count)
        analysis.cluster_sizes = sizes.tolist()
        analysis.centroids = kmeans.cluster_centers_.tolist()
        analysis.anomaly_detected = bool(np.any(sizes < MIN_CLUSTER_SHARE * len(matrix)))
        return analysis
