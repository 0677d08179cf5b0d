import unittest

from fastapi.testclient import TestClient

from meteo_risk.main import app


class TestMain(unittest.TestCase):
    def test_app_metadata(self):
        self.assertEqual(app.title, "Météo Risk")
        paths = {route.path for route in app.routes}
        self.assertIn("/v1/predict", paths)
        self.assertIn("/v1/parse", paths)
        self.assertIn("/v1/health", paths)

    def test_health(self):
        client = TestClient(app)
        resp = client.get("/v1/health")
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["status"], "ok")
        self.assertIn(body["historical_source"], {"nasa_power", "era5"})
        self.assertIsInstance(body["strict"], bool)


if __name__ == "__main__":
    unittest.main()
