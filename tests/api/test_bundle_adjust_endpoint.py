"""Tests for the bundle adjustment endpoints."""

import pytest
from fastapi.testclient import TestClient

from backend.main import app

client = TestClient(app)


@pytest.fixture
def payload():
    return {
        "cameras": {
            "1": {
                "rotation": [0.0, 0.0, 0.0],
                "translation": [0.0, 0.0, 0.0],
                "intrinsics": {"focal_length": 1000.0, "principal_point": [500.0, 500.0]}
            }
        },
        "landmarks": {"0": {"position": [0.0, 0.0, 10.0]}},
        "tracks": [{"id": 0, "observations": [{"frame_id": 1, "location": [500.0, 500.0]}]}]
    }


def test_default_configuration():
    response = client.get("/bundle-adjust/configuration")

    assert response.status_code == 200
    data = response.json()
    assert data["loss_function_type"] == "trivial"
    assert data["camera"]["optimize_focal_length"] is True
    assert data["solver"]["method"] == "trf"


def test_bundle_adjust(payload):
    response = client.post("/bundle-adjust", json=payload)

    assert response.status_code == 200
    data = response.json()
    assert data["committed"] is True
    assert data["num_residual_blocks"] == 1
    assert data["summary"]["success"] is True
    assert data["cameras"]["1"]["intrinsics"]["focal_length"] == pytest.approx(1000.0)
    assert data["landmarks"]["0"]["position"] == pytest.approx([0.0, 0.0, 10.0])


def test_bundle_adjust_with_settings(payload):
    payload["settings"] = {"loss_function_type": "huber", "camera": {"optimize_focal_length": False}}
    response = client.post("/bundle-adjust", json=payload)

    assert response.status_code == 200
    assert response.json()["summary"]["num_constant_parameter_blocks"] == 1


def test_missing_cameras(payload):
    del payload["cameras"]
    response = client.post("/bundle-adjust", json=payload)

    assert response.status_code == 400
    assert "cameras" in response.json()["detail"]


def test_invalid_settings(payload):
    payload["settings"] = {"loss_function_scale": 0.0}
    response = client.post("/bundle-adjust", json=payload)

    assert response.status_code == 422
    assert response.json()["detail"].startswith("Invalid configuration")


def test_unknown_setting(payload):
    payload["settings"] = {"solver": {"max_iters": 10}}
    response = client.post("/bundle-adjust", json=payload)

    assert response.status_code == 422


def test_malformed_camera(payload):
    payload["cameras"]["1"]["intrinsics"]["focal_length"] = -1.0
    response = client.post("/bundle-adjust", json=payload)

    assert response.status_code == 422
