"""
Tests for /api/v1/telemetry
===========================
Covers:
- Resilient views answer 200 with a data key, even when the database is down
- Strict views: 404 detail shape, 500 on upstream failure, history counts
- Validate / average: 404 and 400 bodies, success payloads
- Connectivity probe: available paths and failure body

Run: pytest tests/test_telemetry_router.py -v
"""

from __future__ import annotations

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from app.services.telemetry import (
    GPS_HISTORY_PATH,
    HEALTH_PATH,
    HEARTBEAT_HISTORY_PATH,
    STATUS_PATH,
    TelemetryAggregator,
)

_STATUS = {
    "latitude": 51.5145,
    "longitude": -0.1167,
    "gps_valid": True,
    "wifi_connected": True,
    "firebase_ready": True,
    "timestamp": "2026-02-22T11:59:58.000Z",
    "device": "ESP32_Wrist_01",
}

_HEALTH = {
    "bpm": 78,
    "valid_bpm": True,
    "pulse_value": 2600,
    "waveform": [2100, 2250, 2400, 2600, 2450, 2300, 2200, 2150, 2100, 2120, 2180],
    "timestamp": 1771761599000,
}


@pytest.fixture
def client(live_data, fake_clock):
    aggregator = TelemetryAggregator(live_data, clock=fake_clock)
    with patch("app.routers.telemetry.get_telemetry_aggregator", return_value=aggregator):
        from app.main import app
        yield TestClient(app)


# ---------------------------------------------------------------------------
# Resilient views
# ---------------------------------------------------------------------------

class TestResilientViews:

    def test_latest_merges_device_record(self, client, live_data):
        live_data.nodes[STATUS_PATH] = _STATUS

        response = client.get("/api/v1/telemetry/latest")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["latitude"] == 51.5145
        assert data["device"] == "ESP32_Wrist_01"
        assert data["last_update"] == 1771761600000

    def test_latest_survives_database_failure(self, client, live_data):
        live_data.failing.add(STATUS_PATH)

        response = client.get("/api/v1/telemetry/latest")

        assert response.status_code == 200
        assert response.json()["data"]["gps_valid"] is False

    def test_status_flags(self, client, live_data):
        live_data.nodes[STATUS_PATH] = {"wifi_connected": True, "gps_valid": True}

        response = client.get("/api/v1/telemetry/status")

        assert response.status_code == 200
        assert response.json() == {
            "data": {
                "wifi": True,
                "gps": True,
                "heartbeat": False,
                "lastUpdate": "2026-02-22T12:00:00.000Z",
            }
        }

    def test_health_view(self, client, live_data):
        live_data.nodes[STATUS_PATH] = _STATUS
        live_data.nodes[HEALTH_PATH] = _HEALTH

        response = client.get("/api/v1/telemetry/health")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["heartRate"] == {"bpm": 78, "valid": True, "status": "Normal", "zone": "Normal"}
        assert data["pulse"]["signal"] == "Normal"
        assert data["bloodPressure"]["confidence"] == "Low"
        assert "last_update" in data

    def test_health_numeric_health_id(self, client, live_data):
        live_data.nodes[HEALTH_PATH] = {"bpm": 75, "valid_bpm": True, "pulse_value": 2500, "health_id": 42}

        response = client.get("/api/v1/telemetry/health")

        data = response.json()["data"]
        assert data["healthId"] == "42"
        assert data["heartRate"]["bpm"] == 75

    def test_health_offline_payload(self, client, live_data):
        live_data.failing.update({STATUS_PATH, HEALTH_PATH})

        response = client.get("/api/v1/telemetry/health")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["healthId"] == "offline"
        assert data["heartRate"]["status"] == "No Signal"
        assert data["bloodPressure"]["valid"] is False


# ---------------------------------------------------------------------------
# Strict views
# ---------------------------------------------------------------------------

class TestStrictViews:

    def test_combined_not_found(self, client):
        response = client.get("/api/v1/telemetry/combined")

        assert response.status_code == 404
        assert response.json()["detail"] == {"message": "No ESP32 data found", "code": "not_found"}

    def test_combined_upstream_failure(self, client, live_data):
        live_data.failing.add(STATUS_PATH)

        response = client.get("/api/v1/telemetry/combined")

        assert response.status_code == 500
        assert response.json()["detail"]["code"] == "upstream_error"

    def test_combined_unreadable_record_is_500(self, client, live_data):
        live_data.nodes[STATUS_PATH] = {**_STATUS, "latitude": "north"}

        response = client.get("/api/v1/telemetry/combined")

        assert response.status_code == 500
        assert response.json()["detail"] == {
            "message": "Error fetching combined data",
            "code": "upstream_error",
        }

    def test_combined_numeric_device_id(self, client, live_data):
        live_data.nodes[STATUS_PATH] = {**_STATUS, "device": 7}

        response = client.get("/api/v1/telemetry/combined")

        assert response.status_code == 200
        assert response.json()["data"]["system"]["device"] == "7"

    def test_combined_view(self, client, live_data):
        live_data.nodes[STATUS_PATH] = _STATUS
        live_data.nodes[HEALTH_PATH] = _HEALTH

        response = client.get("/api/v1/telemetry/combined")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["gps"] == {
            "valid": True,
            "latitude": 51.5145,
            "longitude": -0.1167,
            "timestamp": "2026-02-22T11:59:58.000Z",
        }
        assert data["heartbeat"]["pulseValue"] == 2600
        assert "message" not in data["heartbeat"]
        assert data["system"]["device"] == "ESP32_Wrist_01"

    def test_gps_history_count(self, client, live_data):
        live_data.nodes[GPS_HISTORY_PATH] = {
            "-Na": {"latitude": 1.0, "longitude": 2.0},
            "-Nb": {"latitude": 1.1, "longitude": 2.1},
        }

        response = client.get("/api/v1/telemetry/history/gps")

        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 2
        assert [entry["id"] for entry in body["data"]] == ["-Na", "-Nb"]

    def test_heartbeat_history_not_found(self, client):
        response = client.get("/api/v1/telemetry/history/heartbeat")

        assert response.status_code == 404
        assert response.json()["detail"]["message"] == "No heartbeat history found"

    def test_heartbeat_history_upstream_failure(self, client, live_data):
        live_data.failing.add(HEARTBEAT_HISTORY_PATH)

        response = client.get("/api/v1/telemetry/history/heartbeat")

        assert response.status_code == 500


# ---------------------------------------------------------------------------
# Validate / average
# ---------------------------------------------------------------------------

class TestLatestReading:

    def test_validate_passes(self, client, live_data):
        live_data.nodes[HEALTH_PATH] = _HEALTH

        response = client.get("/api/v1/telemetry/validate")

        assert response.status_code == 200
        body = response.json()
        assert body["valid"] is True
        assert body["message"] == "Heart rate validation passed"
        assert body["data"] == {
            "bpm": 78,
            "pulseValue": 2600,
            "waveformLength": 11,
            "timestamp": 1771761599000,
        }
        assert set(body["validation"]) == {"pulseValue", "heartRate", "waveform", "signalQuality"}

    def test_validate_failure_is_still_200(self, client, live_data):
        live_data.nodes[HEALTH_PATH] = {**_HEALTH, "waveform": []}

        response = client.get("/api/v1/telemetry/validate")

        assert response.status_code == 200
        assert response.json()["valid"] is False
        assert response.json()["message"] == "Heart rate validation failed"

    def test_validate_without_data(self, client):
        response = client.get("/api/v1/telemetry/validate")

        assert response.status_code == 404
        assert response.json() == {
            "valid": False,
            "message": "No heartbeat data found",
            "reason": "No data available",
        }

    def test_average(self, client, live_data):
        live_data.nodes[HEALTH_PATH] = {**_HEALTH, "bpm": 72.5}

        response = client.get("/api/v1/telemetry/average")

        assert response.status_code == 200
        body = response.json()
        assert body["averageBPM"] == 73
        assert body["readingsCount"] == 1
        assert body["timePeriod"] == 10000

    def test_average_rejects_invalid_reading(self, client, live_data):
        live_data.nodes[HEALTH_PATH] = {**_HEALTH, "valid_bpm": False}

        response = client.get("/api/v1/telemetry/average")

        assert response.status_code == 400
        assert response.json() == {
            "message": "Current heartbeat reading is not valid",
            "averageBPM": 0,
            "readingsCount": 0,
        }

    def test_average_without_data(self, client):
        response = client.get("/api/v1/telemetry/average")

        assert response.status_code == 404
        assert response.json()["averageBPM"] == 0


# ---------------------------------------------------------------------------
# Connectivity
# ---------------------------------------------------------------------------

class TestConnectivity:

    def test_lists_available_paths(self, client, live_data):
        live_data.nodes[STATUS_PATH] = _STATUS
        live_data.nodes[GPS_HISTORY_PATH] = {"-Na": {}}

        response = client.get("/api/v1/telemetry/connectivity")

        assert response.status_code == 200
        assert response.json() == {
            "message": "Realtime Database connection test",
            "connected": True,
            "availablePaths": ["current-status", "gps"],
        }

    def test_failure_reports_disconnected(self, client, live_data):
        live_data.failing.add("")

        response = client.get("/api/v1/telemetry/connectivity")

        assert response.status_code == 500
        assert response.json()["connected"] is False
        assert response.json()["error"] == "connection refused"
