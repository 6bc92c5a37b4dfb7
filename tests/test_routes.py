"""
Tests for the Flask scan API
"""

import io
import unittest
from unittest import mock

from leafscan import create_app
from leafscan.api.scan_routes import current_user_id
from leafscan.models.scan_types import GateVerdict
from leafscan.services.scan_service import ScanOrchestrator

from fakes import FakeGate, FakeModel, FakeRepository, make_jpeg, make_models, make_runners


class TestScanRoutes(unittest.TestCase):

    def setUp(self):
        self.build()

    def build(self, models=None, gate=None):
        self.repo = FakeRepository()
        seg, clf = make_runners(models or make_models())
        self.orch = ScanOrchestrator(
            seg, clf, gate=gate, persistence=self.repo, identity=current_user_id, export_enabled=False
        )
        self.addCleanup(self.orch.close)
        self.app = create_app(orchestrator=self.orch, repository=self.repo)
        self.client = self.app.test_client()

    def _post_image(self, data=None, headers=None):
        data = make_jpeg() if data is None else data
        return self.client.post(
            "/api/scan",
            data={"image": (io.BytesIO(data), "leaf.jpg")},
            content_type="multipart/form-data",
            headers=headers,
        )

    def test_scan_returns_diagnosis(self):
        resp = self._post_image()
        self.assertEqual(resp.status_code, 200)
        body = resp.get_json()
        self.assertEqual(body["status"], "fused")
        self.assertEqual(body["segmentation"]["type"], "disease")
        self.assertEqual(body["severity_label"], "Severe")
        self.assertEqual(body["classifier"]["class"], "Rust")

    def test_scan_rejected(self):
        self.build(gate=FakeGate(GateVerdict(present=False, label="NotCoffee Leaf")))
        body = self._post_image().get_json()
        self.assertEqual(body["status"], "rejected")
        self.assertEqual(body["message"], "Not an image leaf, please try again.")

    def test_missing_image(self):
        resp = self.client.post("/api/scan", data={}, content_type="multipart/form-data")
        self.assertEqual(resp.status_code, 400)

    def test_bad_image(self):
        resp = self._post_image(b"not a jpeg")
        self.assertEqual(resp.status_code, 422)
        self.assertEqual(resp.get_json()["error"], "PreprocessingError")

    def test_inference_error(self):
        self.build(models=make_models(classifier=FakeModel(error=RuntimeError("boom"))))
        resp = self._post_image()
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.get_json()["error"], "InferenceError")
        self.assertEqual(self.client.get("/api/scan/state").get_json()["state"], "idle")

    def test_save_flow(self):
        self._post_image()

        resp = self.client.post("/api/scan/save")
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(self.repo.records, [])

        resp = self.client.post("/api/scan/save", headers={"X-User-Id": "user-1"})
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.get_json()["leaf_id"], "leaf-1")
        self.assertEqual(self.client.get("/api/scan/state").get_json()["state"], "idle")

        leaves = self.client.get("/api/leaves", headers={"X-User-Id": "user-1"}).get_json()
        self.assertEqual(len(leaves["items"]), 1)

    def test_save_without_scan(self):
        resp = self.client.post("/api/scan/save", headers={"X-User-Id": "user-1"})
        self.assertEqual(resp.status_code, 409)

    def test_discard(self):
        self._post_image()
        state = self.client.get("/api/scan/state").get_json()
        self.assertEqual(state["state"], "fused")
        self.assertIsNotNone(state["result"])

        resp = self.client.post("/api/scan/discard")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(self.client.get("/api/scan/state").get_json()["state"], "idle")

    def test_scan_is_private_to_its_user(self):
        self._post_image(headers={"X-User-Id": "alice"})

        state = self.client.get("/api/scan/state", headers={"X-User-Id": "bob"}).get_json()
        self.assertEqual(state["state"], "fused")
        self.assertIsNone(state["result"])

        resp = self.client.post("/api/scan/save", headers={"X-User-Id": "bob"})
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(resp.get_json()["error"], "ScanOwnershipError")
        self.assertEqual(self.client.post("/api/scan/discard", headers={"X-User-Id": "bob"}).status_code, 403)
        self.assertEqual(self.repo.records, [])

        state = self.client.get("/api/scan/state", headers={"X-User-Id": "alice"}).get_json()
        self.assertEqual(state["result"]["segmentation"]["type"], "disease")
        resp = self.client.post("/api/scan/save", headers={"X-User-Id": "alice"})
        self.assertEqual(resp.status_code, 201)
        self.assertEqual([r.user_id for r in self.repo.records], ["alice"])

    def test_leaves_requires_user(self):
        self.assertEqual(self.client.get("/api/leaves").status_code, 401)


class TestCreateApp(unittest.TestCase):

    def test_built_orchestrator_closed_at_exit(self):
        orch = mock.Mock()
        with mock.patch("leafscan.build_orchestrator", return_value=orch) as build, \
                mock.patch("leafscan.atexit.register") as register:
            app = create_app(repository=FakeRepository())

        build.assert_called_once()
        register.assert_called_once_with(orch.close)
        self.assertIs(app.extensions["scan_orchestrator"], orch)


if __name__ == "__main__":
    unittest.main()
