"""
Tests for confidence -> severity grading
"""

import unittest

from leafscan.models.scan_types import SeverityTier
from leafscan.services.severity_service import grade

ORDER = [SeverityTier.LOW, SeverityTier.MILD, SeverityTier.MODERATE, SeverityTier.SEVERE]


class TestGrade(unittest.TestCase):

    def test_boundaries_belong_to_upper_bucket(self):
        self.assertEqual(grade(0), SeverityTier.LOW)
        self.assertEqual(grade(9.999), SeverityTier.LOW)
        self.assertEqual(grade(10.0), SeverityTier.MILD)
        self.assertEqual(grade(24.999), SeverityTier.MILD)
        self.assertEqual(grade(25.0), SeverityTier.MODERATE)
        self.assertEqual(grade(49.999), SeverityTier.MODERATE)
        self.assertEqual(grade(50.0), SeverityTier.SEVERE)
        self.assertEqual(grade(100.0), SeverityTier.SEVERE)

    def test_monotonic(self):
        previous = ORDER.index(grade(0))
        for step in range(0, 2001):
            tier = ORDER.index(grade(step / 20.0))
            self.assertGreaterEqual(tier, previous)
            previous = tier

    def test_labels_are_user_facing(self):
        self.assertEqual(grade(82.0).value, "Severe")
        self.assertEqual(grade(12.5).value, "Mild")

    def test_nan_rejected(self):
        with self.assertRaises(ValueError):
            grade(float("nan"))


if __name__ == "__main__":
    unittest.main()
