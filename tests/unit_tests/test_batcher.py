"""
Unit tests for instance batching.
"""

import unittest

from rolling_deploy.orchestrator.batcher import InstanceBatcher
from rolling_deploy.utils.errors import ValidationError
from tests.unit_tests.fakes import make_instance


class TestInstanceBatcher(unittest.TestCase):
    """Test partitioning of eligible instances."""

    def setUp(self):
        self.instances = [make_instance(f"i-{n}") for n in range(10)]

    def test_no_percent_is_single_batch(self):
        """Test all instances go into one batch without a percent."""
        batches = InstanceBatcher().batches(self.instances)

        self.assertEqual(len(batches), 1)
        self.assertEqual(batches[0].number, 1)
        self.assertEqual(list(batches[0].instances), self.instances)

    def test_batch_size_rounds_up(self):
        """Test batch size is the ceiling of count * percent."""
        self.assertEqual(InstanceBatcher(0.25).batch_size(10), 3)
        self.assertEqual(InstanceBatcher(0.5).batch_size(3), 2)
        self.assertEqual(InstanceBatcher(1.0).batch_size(7), 7)

    def test_batch_size_is_at_least_one(self):
        """Test tiny fractions still deploy one instance at a time."""
        self.assertEqual(InstanceBatcher(0.01).batch_size(4), 1)

    def test_batch_size_ignores_float_noise(self):
        """Test 10 * 0.3 gives batches of three, not four."""
        batcher = InstanceBatcher(0.3)

        self.assertEqual(batcher.batch_size(10), 3)
        self.assertEqual([len(b) for b in batcher.batches(self.instances)], [3, 3, 3, 1])

    def test_batch_size_uses_exact_decimal_product(self):
        """Test a percent just above a boundary still rounds up."""
        self.assertEqual(InstanceBatcher(0.3000000001).batch_size(10), 4)
        self.assertEqual(InstanceBatcher(0.7).batch_size(10), 7)
        self.assertEqual(InstanceBatcher(0.1).batch_size(30), 3)

    def test_batches_preserve_order_and_cover_every_instance(self):
        """Test batches are contiguous slices numbered from one."""
        batches = InstanceBatcher(0.4).batches(self.instances)

        self.assertEqual([b.number for b in batches], [1, 2, 3])
        self.assertEqual([len(b) for b in batches], [4, 4, 2])
        flattened = [i for b in batches for i in b.instances]
        self.assertEqual(flattened, self.instances)

    def test_empty_instances_give_no_batches(self):
        """Test an empty layer yields no batches."""
        self.assertEqual(InstanceBatcher(0.5).batches([]), [])
        self.assertEqual(InstanceBatcher().batch_size(0), 0)

    def test_invalid_percent_rejected(self):
        """Test percent outside (0, 1] is rejected."""
        for percent in (0, -0.5, 1.5):
            with self.subTest(percent=percent):
                with self.assertRaises(ValidationError):
                    InstanceBatcher(percent)


if __name__ == "__main__":
    unittest.main()
