"""Running-average helper for expert ratings."""

def online_mean(current_mean: float, count: int, new_value: float) -> float:
    """Mean after folding ``new_value`` into ``count`` previous values."""
    if count <= 0:
        return float(new_value)
    return (float(current_mean) * count + float(new_value)) / (count + 1)
