"""Fasting progress calculations shared by every presentation surface."""


def calculate_progress_fraction(elapsed_millis: int, goal_millis: int) -> float:
    """
    Fraction of the goal completed, clamped to [0, 1].

    A zero (or negative) goal yields 0.0 and negative elapsed time counts
    as no progress.
    """
    if goal_millis <= 0:
        return 0.0
    fraction = max(0, elapsed_millis) / goal_millis
    return min(1.0, fraction)


def calculate_progress_percentage(elapsed_millis: int, goal_millis: int) -> int:
    """
    Whole percentage of the goal completed, truncated and clamped to [0, 100].

    Uses integer arithmetic so the result equals floor(fraction * 100)
    exactly for integer inputs.
    """
    if goal_millis <= 0:
        return 0
    elapsed = max(0, int(elapsed_millis))
    return min(100, (elapsed * 100) // int(goal_millis))
