from .att import estimate_att, unadjusted_difference
from .variance import conditional_variance, distinct_with_counts, estimate_variance

__all__ = [
    "estimate_att", "unadjusted_difference",
    "estimate_variance", "conditional_variance", "distinct_with_counts",
]
