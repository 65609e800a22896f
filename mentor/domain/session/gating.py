from mentor.domain.diff.change_magnitude import change_magnitude
from mentor.domain.models.session_state import GateDecision

DEFAULT_CHANGE_THRESHOLD = 50


class GatePolicy:
    """Decides whether a snapshot changed enough to pay for an analysis.

    The threshold is an absolute character budget and does not scale with
    document length.
    """

    def __init__(self, threshold: int = DEFAULT_CHANGE_THRESHOLD):
        if threshold < 0:
            raise ValueError("threshold must be non-negative")
        self.threshold = threshold

    def evaluate(self, baseline: str, snapshot: str) -> GateDecision:
        """Compare a snapshot against the last analyzed baseline"""

        magnitude = change_magnitude(baseline, snapshot)
        return GateDecision(
            magnitude=magnitude,
            threshold=self.threshold,
            should_analyze=magnitude > self.threshold
        )
