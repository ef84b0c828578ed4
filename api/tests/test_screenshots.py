"""
Tests for screenshot endpoints.

These tests cover the HTTP contract of the service:
- health and info
- request validation answers 400 with the error envelope
- single capture success and failure status codes
- multi-viewport capture with one navigation
- crawl with JSON and zip output
- zip generation from previously returned screenshots
- a browser that cannot be launched answers 500 with a reason kind
- unknown endpoints answer 404 with the endpoint list
"""

from __future__ import annotations

import base64
import io
import json
import zipfile

from fastapi import status


def _decode(value: str) -> bytes:
    return base64.b64decode(value)


def _assert_error_envelope(data: dict, reason_kind: str | None = None) -> None:
    assert data["success"] is False
    assert data["error"]
    assert data["message"]
    assert "timestamp" in data
    if reason_kind is not None:
        assert data["reasonKind"] == reason_kind


# --- health / info ---


def test_health_check(client):
    response = client.get("/health")

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["status"] == "ok"
    assert data["service"] == "screenshot-service"


def test_info_lists_screen_sizes_and_defaults(client):
    response = client.get("/info")

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    sizes = {item["name"]: (item["width"], item["height"]) for item in data["screenSizes"]}
    assert sizes == {
        "desktop": (1920, 1080),
        "laptop": (1366, 768),
        "tablet": (768, 1024),
        "mobile": (375, 667),
        "mobile-large": (414, 896),
    }
    assert data["formats"] == ["png", "jpeg"]
    assert data["defaultFormat"] == "png"
    assert data["defaultQuality"] == 80
    assert data["maxDelay"] == 30000
    assert data["maxPages"] == 100
    assert "fullPage" in data["options"]


# --- POST /screenshot ---


def test_screenshot_success(client, fake_browser):
    response = client.post("/screenshot", json={"url": "https://example.test/"})

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["success"] is True
    data = body["data"]
    assert _decode(data["screenshot"]) == b"https://example.test/|1920x1080|png"
    assert data["format"] == "png"
    assert data["screenSize"] == "desktop"
    assert data["dimensions"] == {"width": 1920, "height": 1080}
    assert data["url"] == "https://example.test/"
    assert data["fullPage"] is False
    assert data["delay"] == 0
    assert fake_browser.navigations == ["https://example.test/"]


def test_screenshot_jpeg_at_mobile_size(client):
    response = client.post(
        "/screenshot",
        json={
            "url": "https://example.test/about",
            "screenSize": "mobile",
            "format": "jpeg",
            "quality": 60,
            "fullPage": True,
        },
    )

    assert response.status_code == status.HTTP_200_OK
    data = response.json()["data"]
    assert _decode(data["screenshot"]) == b"https://example.test/about|375x667|jpeg"
    assert data["fullPage"] is True
    assert data["dimensions"] == {"width": 375, "height": 667}


def test_screenshot_missing_url_is_400(client):
    response = client.post("/screenshot", json={"screenSize": "desktop"})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    data = response.json()
    _assert_error_envelope(data, "validation_error")
    assert "url" in data["message"]


def test_screenshot_invalid_inputs_are_400(client, fake_browser):
    cases = [
        {"url": "ftp://example.test/"},
        {"url": "https://example.test/", "screenSize": "watch"},
        {"url": "https://example.test/", "format": "gif"},
        {"url": "https://example.test/", "format": "jpeg", "quality": 150},
        {"url": "https://example.test/", "delay": 40000},
        {"url": "https://example.test/", "delay": -5},
    ]
    for payload in cases:
        response = client.post("/screenshot", json=payload)
        assert response.status_code == status.HTTP_400_BAD_REQUEST, payload
        _assert_error_envelope(response.json(), "validation_error")

    assert fake_browser.navigations == []


def test_screenshot_png_ignores_out_of_range_quality(client):
    response = client.post(
        "/screenshot", json={"url": "https://example.test/", "format": "png", "quality": 150}
    )

    assert response.status_code == status.HTTP_200_OK


def test_screenshot_unreachable_host_is_502(client):
    response = client.post("/screenshot", json={"url": "https://unreachable.test/"})

    assert response.status_code == status.HTTP_502_BAD_GATEWAY
    _assert_error_envelope(response.json(), "host_unreachable")


def test_screenshot_timeout_is_504(client):
    response = client.post("/screenshot", json={"url": "https://example.test/slow"})

    assert response.status_code == status.HTTP_504_GATEWAY_TIMEOUT
    data = response.json()
    _assert_error_envelope(data, "navigation_timeout")
    assert "30 seconds" in data["message"]


# --- POST /screenshot/multiple-sizes ---


def test_multiple_sizes_navigates_once(client, fake_browser):
    response = client.post(
        "/screenshot/multiple-sizes",
        json={"url": "https://example.test/", "screenSizes": ["desktop", "mobile"]},
    )

    assert response.status_code == status.HTTP_200_OK
    data = response.json()["data"]
    assert data["totalScreenshots"] == 2
    assert data["successCount"] == 2
    assert data["failCount"] == 0
    assert [s["screenSize"] for s in data["screenshots"]] == ["desktop", "mobile"]
    assert data["screenshots"][1]["dimensions"] == {"width": 375, "height": 667}
    assert _decode(data["screenshots"][1]["screenshot"]) == b"https://example.test/|375x667|png"
    assert data["settings"]["format"] == "png"
    assert fake_browser.navigations == ["https://example.test/"]


def test_multiple_sizes_rejects_unknown_or_empty_sizes(client):
    for sizes in (["desktop", "watch"], []):
        response = client.post(
            "/screenshot/multiple-sizes",
            json={"url": "https://example.test/", "screenSizes": sizes},
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST, sizes
        _assert_error_envelope(response.json(), "validation_error")


def test_multiple_sizes_navigation_failure_fails_request(client):
    response = client.post(
        "/screenshot/multiple-sizes",
        json={"url": "https://unreachable.test/", "screenSizes": ["desktop", "tablet"]},
    )

    assert response.status_code == status.HTTP_502_BAD_GATEWAY
    _assert_error_envelope(response.json(), "host_unreachable")


# --- POST /screenshot/crawl ---


def test_crawl_json_reports_every_page(client):
    response = client.post(
        "/screenshot/crawl",
        json={"url": "https://example.test", "maxPages": 10},
    )

    assert response.status_code == status.HTTP_200_OK
    data = response.json()["data"]
    assert data["totalPages"] == 3
    assert data["successCount"] == 2
    assert data["failCount"] == 1
    assert data["screenSize"] == "desktop"

    pages = data["screenshots"]
    assert [p["url"] for p in pages] == [
        "https://example.test/",
        "https://example.test/about",
        "https://example.test/slow",
    ]
    assert [p["index"] for p in pages] == [1, 2, 3]
    assert pages[0]["success"] is True
    assert _decode(pages[1]["screenshot"]) == b"https://example.test/about|1920x1080|png"
    assert pages[2]["success"] is False
    assert pages[2]["screenshot"] is None
    assert pages[2]["reasonKind"] == "navigation_timeout"


def test_crawl_max_pages_one_captures_only_seed(client):
    response = client.post(
        "/screenshot/crawl",
        json={"url": "https://example.test/", "maxPages": 1},
    )

    assert response.status_code == status.HTTP_200_OK
    data = response.json()["data"]
    assert data["totalPages"] == 1
    assert data["screenshots"][0]["url"] == "https://example.test/"


def test_crawl_zip_streams_archive(client):
    response = client.post(
        "/screenshot/crawl",
        json={"url": "https://example.test/", "outputFormat": "zip"},
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.headers["content-type"] == "application/zip"
    disposition = response.headers["content-disposition"]
    assert disposition.startswith('attachment; filename="screenshots-')
    assert disposition.endswith('.zip"')

    with zipfile.ZipFile(io.BytesIO(response.content)) as archive:
        assert archive.namelist() == [
            "example_test_index_desktop.png",
            "example_test_about_desktop.png",
            "metadata.json",
        ]
        metadata = json.loads(archive.read("metadata.json"))
    assert metadata["totalPages"] == 3
    assert metadata["successCount"] == 2
    assert metadata["failCount"] == 1
    assert [page["url"] for page in metadata["pages"]][2] == "https://example.test/slow"


def test_crawl_rejects_invalid_parameters(client, fake_browser):
    cases = [
        {"url": "https://example.test/", "maxPages": 0},
        {"url": "https://example.test/", "maxPages": 101},
        {"url": "https://example.test/", "outputFormat": "xml"},
        {"url": "not a url"},
    ]
    for payload in cases:
        response = client.post("/screenshot/crawl", json=payload)
        assert response.status_code == status.HTTP_400_BAD_REQUEST, payload
        _assert_error_envelope(response.json(), "validation_error")

    assert fake_browser.navigations == []


# --- POST /screenshot/generate-zip ---


def test_generate_zip_from_crawl_results(client):
    crawl = client.post("/screenshot/crawl", json={"url": "https://example.test/"}).json()
    screenshots = crawl["data"]["screenshots"]

    response = client.post(
        "/screenshot/generate-zip",
        json={"screenshots": screenshots, "metadata": {"source": "crawl"}},
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.headers["content-type"] == "application/zip"
    with zipfile.ZipFile(io.BytesIO(response.content)) as archive:
        assert archive.namelist() == [
            "example_test_index_desktop.png",
            "example_test_about_desktop.png",
            "metadata.json",
        ]
        assert archive.read("example_test_about_desktop.png") == (
            b"https://example.test/about|1920x1080|png"
        )
        assert json.loads(archive.read("metadata.json")) == {"source": "crawl"}


def test_crawl_zip_and_generate_zip_name_entries_identically(client):
    payload = {"url": "https://example.test/", "screenSize": "tablet"}
    crawl_zip = client.post("/screenshot/crawl", json={**payload, "outputFormat": "zip"})
    crawl_json = client.post("/screenshot/crawl", json=payload).json()
    generated = client.post(
        "/screenshot/generate-zip",
        json={"screenshots": crawl_json["data"]["screenshots"]},
    )

    with zipfile.ZipFile(io.BytesIO(crawl_zip.content)) as archive:
        crawl_names = archive.namelist()
    with zipfile.ZipFile(io.BytesIO(generated.content)) as archive:
        generated_names = archive.namelist()

    assert crawl_names == generated_names
    assert crawl_names[0] == "example_test_index_tablet.png"


def test_generate_zip_without_urls_uses_index_names_and_default_metadata(client):
    image = base64.b64encode(b"raw-image").decode()
    response = client.post(
        "/screenshot/generate-zip",
        json={
            "screenshots": [
                {"screenshot": image, "format": "jpeg"},
                {"screenshot": None, "success": False},
                {"screenshot": image},
            ]
        },
    )

    assert response.status_code == status.HTTP_200_OK
    with zipfile.ZipFile(io.BytesIO(response.content)) as archive:
        assert archive.namelist() == ["screenshot_1.jpeg", "screenshot_3.png", "metadata.json"]
        metadata = json.loads(archive.read("metadata.json"))
    assert metadata["totalScreenshots"] == 2
    assert "timestamp" in metadata


def test_generate_zip_rejects_invalid_base64(client):
    response = client.post(
        "/screenshot/generate-zip",
        json={"screenshots": [{"screenshot": "%%% not base64 %%%"}]},
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    _assert_error_envelope(response.json(), "validation_error")


def test_generate_zip_requires_screenshot_list(client):
    response = client.post("/screenshot/generate-zip", json={"metadata": {}})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    _assert_error_envelope(response.json(), "validation_error")


# --- browser launch failures ---


def test_crawl_launch_failure_is_500_crawl_error(no_browser_client):
    for output_format in ("json", "zip"):
        response = no_browser_client.post(
            "/screenshot/crawl",
            json={"url": "https://example.test/", "outputFormat": output_format},
        )

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        data = response.json()
        _assert_error_envelope(data, "crawl_error")
        assert data["message"] == "Crawler error: Browser launch failed: no chromium"


def test_multiple_sizes_launch_failure_is_500_capture_error(no_browser_client):
    response = no_browser_client.post(
        "/screenshot/multiple-sizes",
        json={"url": "https://example.test/", "screenSizes": ["desktop", "mobile"]},
    )

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    _assert_error_envelope(response.json(), "capture_error")


def test_screenshot_launch_failure_is_500_capture_error(no_browser_client):
    response = no_browser_client.post("/screenshot", json={"url": "https://example.test/"})

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    data = response.json()
    _assert_error_envelope(data, "capture_error")
    assert data["message"] == "Browser launch failed: no chromium"


# --- fallthrough ---


def test_unknown_endpoint_is_404_with_endpoint_list(client):
    response = client.get("/does-not-exist")

    assert response.status_code == status.HTTP_404_NOT_FOUND
    data = response.json()
    _assert_error_envelope(data)
    assert any("POST /screenshot/crawl" in entry for entry in data["availableEndpoints"])
