# leafscan/ml/tflite.py
import threading

import numpy as np
import tensorflow as tf


class TFLiteModel:
    """
    Minimal adapter giving a .tflite file the `run(input) -> [outputs]`
    contract used by ModelRunner.

    tf.lite.Interpreter is not thread-safe, so invocations are serialized
    per model. Different models still run concurrently.
    """

    def __init__(self, model_path: str, num_threads: int = None):
        self.model_path = model_path
        self._interpreter = tf.lite.Interpreter(model_path=model_path, num_threads=num_threads)
        self._interpreter.allocate_tensors()
        self._input = self._interpreter.get_input_details()[0]
        self._outputs = self._interpreter.get_output_details()
        self._lock = threading.Lock()

    @property
    def input_shape(self):
        return tuple(int(d) for d in self._input["shape"])

    @property
    def input_dtype(self) -> str:
        return np.dtype(self._input["dtype"]).name

    def run(self, x):
        x = np.asarray(x, dtype=self._input["dtype"]).reshape(self.input_shape)
        with self._lock:
            self._interpreter.set_tensor(self._input["index"], x)
            self._interpreter.invoke()
            return [np.copy(self._interpreter.get_tensor(o["index"])) for o in self._outputs]
