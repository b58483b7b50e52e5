from enum import Enum


class Capability(str, Enum):
    """Declared properties of a learner or of a whole wrapper chain."""

    NUMERICS = "numerics"
    FACTORS = "factors"
    MISSINGS = "missings"
    WEIGHTS = "weights"
    TWOCLASS = "twoclass"
    MULTICLASS = "multiclass"
    PROB = "prob"
    SE = "se"

    def __str__(self) -> str:
        return self.value


__all__ = ["Capability"]
