"""Partitioning of eligible instances into sequential batches."""

import math
from fractions import Fraction
from typing import List, Optional, Sequence

from rolling_deploy.models import Batch, Instance
from rolling_deploy.utils.errors import ValidationError


class InstanceBatcher:
    """Slices an ordered instance list into contiguous batches."""

    def __init__(self, percent: Optional[float] = None):
        """Initialize batcher.

        Args:
            percent: Fraction of instances per batch (0 < percent <= 1), or
                None for a single batch of everything

        Raises:
            ValidationError: If percent is out of range
        """
        if percent is not None and not 0 < percent <= 1:
            raise ValidationError(f"percent must be in (0, 1], got {percent}")
        self.percent = percent

    def batch_size(self, count: int) -> int:
        """Number of instances per batch for ``count`` eligible instances.

        ceil(count * percent), never less than 1. The product is computed on
        the decimal value of percent, so 10 * 0.3 is exactly 3 rather than the
        float 3.0000000000000004.
        """
        if count == 0:
            return 0
        if self.percent is None:
            return count
        return max(1, math.ceil(count * Fraction(str(self.percent))))

    def batches(self, instances: Sequence[Instance]) -> List[Batch]:
        """Partition ``instances`` into batches, preserving order.

        Args:
            instances: Ordered eligible instances

        Returns:
            Batches numbered from 1; empty when there are no instances
        """
        size = self.batch_size(len(instances))
        if size == 0:
            return []

        return [
            Batch(number=number, instances=tuple(instances[start:start + size]))
            for number, start in enumerate(range(0, len(instances), size), 1)
        ]
