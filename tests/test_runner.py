"""
Tests for the ModelRunner contract
"""

import unittest

import numpy as np

from leafscan.core.errors import IncompleteInferenceError, InferenceError
from leafscan.ml.runner import ModelRunner

from fakes import FakeModel


class TestModelRunner(unittest.TestCase):

    def setUp(self):
        self.tensor = np.arange(24, dtype=np.uint8)
        self.tensor.setflags(write=False)

    def test_unwraps_first_output_tensor(self):
        runner = ModelRunner("disease", FakeModel(output=[[0.2, 0.8]]))
        out = runner.run(self.tensor)
        np.testing.assert_allclose(out, [0.2, 0.8])

    def test_plain_vector_output(self):
        runner = ModelRunner("resnet", lambda x: [0.1, 0.2, 0.7])
        np.testing.assert_allclose(runner.run(self.tensor), [0.1, 0.2, 0.7])

    def test_null_output(self):
        runner = ModelRunner("biotic", FakeModel(output=None))
        with self.assertRaises(IncompleteInferenceError) as ctx:
            runner.run(self.tensor)
        self.assertEqual(ctx.exception.model, "biotic")

    def test_empty_outputs(self):
        for out in ([], [np.array([])], (None,)):
            runner = ModelRunner("resnet", lambda x, out=out: out)
            with self.assertRaises(IncompleteInferenceError):
                runner.run(self.tensor)

    def test_model_failure(self):
        runner = ModelRunner("classifier", FakeModel(error=RuntimeError("boom")))
        with self.assertRaises(InferenceError) as ctx:
            runner.run(self.tensor)
        self.assertEqual(ctx.exception.model, "classifier")
        self.assertIn("boom", str(ctx.exception))

    def test_float_family_input(self):
        model = FakeModel(output=[1.0])
        ModelRunner("resnet", model, input_dtype="float32", input_shape=(1, 2, 4, 3)).run(self.tensor)
        self.assertEqual(model.last_input.shape, (1, 2, 4, 3))
        self.assertEqual(model.last_input.dtype, np.float32)
        self.assertLessEqual(float(model.last_input.max()), 1.0)

    def test_uint8_input_is_a_private_copy(self):
        model = FakeModel(output=[1])
        ModelRunner("resnet", model).run(self.tensor)
        self.assertEqual(model.last_input.dtype, np.uint8)
        self.assertTrue(model.last_input.flags.writeable)
        np.testing.assert_array_equal(model.last_input, self.tensor)

    def test_unknown_dtype(self):
        with self.assertRaises(ValueError):
            ModelRunner("resnet", FakeModel(), input_dtype="int16")


if __name__ == "__main__":
    unittest.main()
