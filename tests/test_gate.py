"""
Tests for the leaf presence gate
"""

import unittest
from unittest import mock

import requests

from leafscan.core.errors import GateUnavailableError
from leafscan.services.gate_service import LeafPresenceGate, decode_gate_response


def _session(payload=None, status_error=None, json_error=None, post_error=None):
    session = mock.Mock()
    resp = mock.Mock()
    if status_error is not None:
        resp.raise_for_status.side_effect = status_error
    if json_error is not None:
        resp.json.side_effect = json_error
    else:
        resp.json.return_value = payload
    if post_error is not None:
        session.post.side_effect = post_error
    else:
        session.post.return_value = resp
    return session


class TestDecodeGateResponse(unittest.TestCase):

    def test_type_payload(self):
        verdict = decode_gate_response({"type": "NotCoffee Leaf"})
        self.assertFalse(verdict.present)
        self.assertEqual(verdict.label, "NotCoffee Leaf")

    def test_classification_top(self):
        self.assertTrue(decode_gate_response({"top": "Coffee Leaf", "confidence": 0.9}).present)

    def test_detection_predictions(self):
        payload = {
            "predictions": [
                {"class": "NotCoffee Leaf", "confidence": 0.3},
                {"class": "Coffee Leaf", "confidence": 0.8},
            ]
        }
        verdict = decode_gate_response(payload)
        self.assertTrue(verdict.present)
        self.assertEqual(verdict.label, "Coffee Leaf")

    def test_no_detections_rejects(self):
        self.assertFalse(decode_gate_response({"predictions": []}).present)

    def test_malformed(self):
        for payload in ({}, [], "leaf", {"predictions": "x"}, {"predictions": [{"confidence": 0.5}]}):
            with self.assertRaises(GateUnavailableError):
                decode_gate_response(payload)


class TestLeafPresenceGate(unittest.TestCase):

    def test_request_shape(self):
        session = _session({"type": "Coffee Leaf"})
        gate = LeafPresenceGate(url="https://gate.test/leaf", api_key="k", timeout=3, session=session)

        verdict = gate.check_subject_present("QUJD")

        self.assertTrue(verdict.present)
        _, kwargs = session.post.call_args
        self.assertEqual(session.post.call_args[0][0], "https://gate.test/leaf")
        self.assertEqual(kwargs["params"], {"api_key": "k"})
        self.assertEqual(kwargs["data"], "data:image/jpeg;base64,QUJD")
        self.assertEqual(kwargs["timeout"], 3.0)

    def test_prefixed_body_kept(self):
        session = _session({"type": "Coffee Leaf"})
        gate = LeafPresenceGate(url="https://gate.test/leaf", api_key="k", session=session)
        gate.check_subject_present("data:image/png;base64,QUJD")
        self.assertEqual(session.post.call_args[1]["data"], "data:image/png;base64,QUJD")

    def test_transport_failures(self):
        sessions = [
            _session(post_error=requests.Timeout("slow")),
            _session(post_error=requests.ConnectionError("down")),
            _session(status_error=requests.HTTPError("503")),
            _session(json_error=ValueError("not json")),
        ]
        for session in sessions:
            gate = LeafPresenceGate(url="https://gate.test/leaf", api_key="k", session=session)
            with self.assertRaises(GateUnavailableError):
                gate.check_subject_present("QUJD")


if __name__ == "__main__":
    unittest.main()
