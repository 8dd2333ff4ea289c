import unittest
from unittest.mock import MagicMock

import requests

from annadhanam.config import Configuration
from annadhanam.models import MatchRequest, PredictionRequest
from annadhanam.services.api_client import FoodRescueApiError, FoodRescueClient


def _response(payload=None, status=200, text="", bad_json=False):
    resp = MagicMock()
    resp.status_code = status
    resp.ok = 200 <= status < 300
    resp.text = text
    if bad_json:
        resp.json.side_effect = ValueError("no json")
    else:
        resp.json.return_value = payload
    return resp


class TestFoodRescueClient(unittest.TestCase):
    def setUp(self):
        self.cfg = Configuration(api_base_url="http://svc.test/", api_timeout=3)
        self.session = MagicMock()
        self.client = FoodRescueClient(self.cfg, session=self.session)

    def test_list_restaurants_skips_entries_without_coordinates(self):
        self.session.request.return_value = _response({
            "restaurants": [
                {"id": 1, "name": "Murugan Idli", "address": "T Nagar", "latitude": 13.04, "longitude": 80.23},
                {"id": 2, "name": "No Geo", "address": "Somewhere"},
                {"id": 3, "name": "Adyar Ananda", "latitude": "13.00", "longitude": "80.25", "email": ""},
            ]
        })

        restaurants = self.client.list_restaurants()

        self.assertEqual([r.id for r in restaurants], [1, 3])
        self.assertEqual(restaurants[1].coordinate, (13.0, 80.25))
        self.assertIsNone(restaurants[1].email)
        args, kwargs = self.session.request.call_args
        self.assertEqual(args, ("GET", "http://svc.test/api/restaurants"))
        self.assertEqual(kwargs["timeout"], 3)

    def test_missing_list_key_is_empty(self):
        self.session.request.return_value = _response({})
        self.assertEqual(self.client.list_ngos(), [])

    def test_ngo_capacity_never_negative(self):
        self.session.request.return_value = _response({
            "ngos": [{"id": 4, "name": "Goonj", "latitude": 13.1, "longitude": 80.2, "capacity_kg": -5}]
        })
        self.assertEqual(self.client.list_ngos()[0].capacity_kg, 0.0)

    def test_match_preserves_order_and_posts_payload(self):
        self.session.request.return_value = _response({
            "matched_ngos": [
                {"ngo_name": "Far", "distance_km": 9.1, "allocated_kg": 5, "latitude": 13.3, "longitude": 80.3},
                {"ngo_name": "Near", "distance_km": 1.2, "allocated_kg": 20, "latitude": 13.1, "longitude": 80.1},
            ],
            "route_info": {"total_distance_km": 10.3, "estimated_time_minutes": 25},
            "total_allocated_kg": 25,
        })

        result = self.client.match(MatchRequest(restaurant_id=1, surplus_kg=25, max_distance_km=15))

        self.assertEqual([n.ngo_name for n in result.matched_ngos], ["Far", "Near"])
        self.assertEqual(result.route_info.estimated_time_minutes, 25.0)
        self.assertEqual(result.total_allocated_kg, 25.0)
        _, kwargs = self.session.request.call_args
        self.assertEqual(kwargs["json"], {"restaurant_id": 1, "surplus_kg": 25, "max_distance_km": 15})

    def test_predict_without_prediction_key_raises(self):
        self.session.request.return_value = _response({"error": "model not loaded"})
        with self.assertRaises(FoodRescueApiError):
            self.client.predict(PredictionRequest(restaurant_id="1", previous_waste_kg=15.5))

    def test_logs_sends_restaurant_query_param(self):
        self.session.request.return_value = _response({
            "logs": [{"id": 1, "date": "2024-03-01", "meal_type": "dinner", "predicted_surplus_kg": 10, "actual_surplus_kg": None, "status": "completed"}]
        })

        logs = self.client.logs(7)

        self.assertEqual(len(logs), 1)
        self.assertIsNone(logs[0].actual_surplus_kg)
        self.assertTrue(logs[0].is_completed)
        _, kwargs = self.session.request.call_args
        self.assertEqual(kwargs["params"], {"restaurant_id": 7})

    def test_http_error_raises(self):
        self.session.request.return_value = _response(status=500, text="Internal Server Error")
        with self.assertRaises(FoodRescueApiError) as ctx:
            self.client.dashboard_stats()
        self.assertIn("500", str(ctx.exception))

    def test_network_error_raises(self):
        self.session.request.side_effect = requests.ConnectionError("refused")
        with self.assertRaises(FoodRescueApiError):
            self.client.list_restaurants()

    def test_invalid_json_raises(self):
        self.session.request.return_value = _response(bad_json=True)
        with self.assertRaises(FoodRescueApiError):
            self.client.list_restaurants()

    def test_match_request_rejects_non_positive_surplus(self):
        with self.assertRaises(ValueError):
            MatchRequest(restaurant_id=1, surplus_kg=0, max_distance_km=10)


if __name__ == "__main__":
    unittest.main()
