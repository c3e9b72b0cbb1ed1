"""Tests for the BrightData datasets client and result transformation."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import httpx
import pytest

from app.exceptions import ScrapingJobFailed
from app.services.brightdata import BrightDataClient, transform_results
from tests.test_constants import TEST_ASIN, TEST_BRIGHTDATA_API_KEY


def _response(status_code: int = 200, json_data=None, text: str = "") -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = json_data
    resp.text = text
    return resp


def _mock_client(post=None, get=None) -> MagicMock:
    client = MagicMock()
    client.__enter__ = MagicMock(return_value=client)
    client.__exit__ = MagicMock(return_value=False)
    if isinstance(post, list):
        client.post.side_effect = post
    elif post is not None:
        client.post.return_value = post
    if isinstance(get, list):
        client.get.side_effect = get
    elif get is not None:
        client.get.return_value = get
    return client


def _bd(**kwargs) -> BrightDataClient:
    defaults = {"api_key": TEST_BRIGHTDATA_API_KEY, "poll_interval": 0, "snapshot_retry_delay": 0}
    defaults.update(kwargs)
    return BrightDataClient(**defaults)


def _row(review_id: str = "R1", **extra) -> dict:
    row = {
        "review_id": review_id,
        "review_text": "Great fryer, crispy fries every time.",
        "review_header": "Love it",
        "rating": 5,
        "author_name": "Pat",
        "review_posted_date": "2024-03-01",
        "is_verified": True,
        "helpful_count": 3,
        "product_name": "Air Fryer XL",
        "product_rating_count": 1234,
        "product_image_url": "https://img/fryer.jpg",
    }
    row.update(extra)
    return row


class TestTransformResults:
    def test_maps_fields(self):
        out = transform_results([_row(review_images=["https://img/1.jpg"])], TEST_ASIN)
        assert out["product_name"] == "Air Fryer XL"
        assert out["total_reviews"] == 1234
        assert out["product_image_url"] == "https://img/fryer.jpg"
        review = out["reviews"][0]
        assert review["id"] == "R1"
        assert review["text"].startswith("Great fryer")
        assert review["title"] == "Love it"
        assert review["author"] == "Pat"
        assert review["meta_data"]["verified_purchase"] is True
        assert review["meta_data"]["helpful_count"] == 3
        assert review["images"] == ["https://img/1.jpg"]
        assert "videos" not in review

    def test_skips_rows_without_id_or_text(self):
        rows = [_row("R1"), _row("", review_text="x"), _row("R3", review_text=""), "junk"]
        out = transform_results(rows, TEST_ASIN)
        assert [r["id"] for r in out["reviews"]] == ["R1"]

    def test_product_fields_from_first_named_row(self):
        rows = [
            {"review_id": "R1", "review_text": "ok"},
            _row("R2", product_name="Second Name"),
        ]
        out = transform_results(rows, TEST_ASIN)
        assert out["product_name"] == "Second Name"
        assert out["reviews"][0]["author"] == "Anonymous"

    def test_empty(self):
        out = transform_results([], TEST_ASIN)
        assert out["reviews"] == []
        assert out["product_name"] == ""


class TestTrigger:
    def test_returns_snapshot_id(self):
        client = _mock_client(post=_response(json_data={"snapshot_id": "s_123"}))
        with patch("app.services.brightdata.httpx.Client", return_value=client):
            assert _bd(max_reviews=50).trigger(["https://www.amazon.com/dp/B08N5WRWNW/"]) == "s_123"
        kwargs = client.post.call_args[1]
        assert kwargs["params"]["limit_multiple_results"] == 50
        assert kwargs["json"] == [{"url": "https://www.amazon.com/dp/B08N5WRWNW/"}]
        assert kwargs["headers"]["Authorization"] == f"Bearer {TEST_BRIGHTDATA_API_KEY}"

    def test_non_200_returns_none(self):
        client = _mock_client(post=_response(429, text="too many running jobs"))
        with patch("app.services.brightdata.httpx.Client", return_value=client):
            assert _bd().trigger(["u"]) is None

    def test_network_error_returns_none(self):
        client = _mock_client()
        client.post.side_effect = httpx.ConnectError("down")
        with patch("app.services.brightdata.httpx.Client", return_value=client):
            assert _bd().trigger(["u"]) is None


class TestProgressAndCancel:
    def test_progress(self):
        client = _mock_client(get=_response(json_data={"status": "running", "records": 7}))
        with patch("app.services.brightdata.httpx.Client", return_value=client):
            assert _bd().get_progress("s_1") == {"status": "running", "records": 7}

    def test_progress_error_is_unknown(self):
        client = _mock_client(get=_response(500))
        with patch("app.services.brightdata.httpx.Client", return_value=client):
            assert _bd().get_progress("s_1")["status"] == "unknown"

    def test_progress_network_error_is_unknown(self):
        client = _mock_client()
        client.get.side_effect = httpx.ReadTimeout("slow")
        with patch("app.services.brightdata.httpx.Client", return_value=client):
            assert _bd().get_progress("s_1")["status"] == "unknown"

    def test_cancel_ok(self):
        client = _mock_client(post=_response(200, text="OK"))
        with patch("app.services.brightdata.httpx.Client", return_value=client):
            assert _bd().cancel("s_1") is True
        assert client.post.call_args[0][0].endswith("/snapshot/s_1/cancel")

    def test_cancel_other_body(self):
        client = _mock_client(post=_response(200, text="Not found"))
        with patch("app.services.brightdata.httpx.Client", return_value=client):
            assert _bd().cancel("s_1") is False


class TestFetchSnapshot:
    def test_retries_while_building(self):
        client = _mock_client(get=[_response(202), _response(200, json_data=[_row()])])
        with patch("app.services.brightdata.httpx.Client", return_value=client):
            rows = _bd().fetch_snapshot("s_1")
        assert len(rows) == 1
        assert client.get.call_count == 2

    def test_gives_up_after_retries(self):
        client = _mock_client(get=[_response(202)] * 3)
        with patch("app.services.brightdata.httpx.Client", return_value=client):
            with pytest.raises(ScrapingJobFailed):
                _bd().fetch_snapshot("s_1")

    def test_error_status_raises(self):
        client = _mock_client(get=_response(404, text="no such snapshot"))
        with patch("app.services.brightdata.httpx.Client", return_value=client):
            with pytest.raises(ScrapingJobFailed):
                _bd().fetch_snapshot("s_1")

    def test_network_error_raises_scraping_failure(self):
        client = _mock_client()
        client.get.side_effect = httpx.ConnectError("down")
        with patch("app.services.brightdata.httpx.Client", return_value=client):
            with pytest.raises(ScrapingJobFailed, match="request failed") as exc_info:
                _bd().fetch_snapshot("s_1")
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    def test_invalid_json_raises_scraping_failure(self):
        resp = _response(200)
        resp.json.side_effect = ValueError("Expecting value")
        client = _mock_client(get=resp)
        with patch("app.services.brightdata.httpx.Client", return_value=client):
            with pytest.raises(ScrapingJobFailed, match="invalid JSON"):
                _bd().fetch_snapshot("s_1")


class TestFetchReviews:
    def test_not_configured(self):
        with pytest.raises(ScrapingJobFailed):
            _bd(api_key="").fetch_reviews(TEST_ASIN)

    def test_full_cycle(self):
        bd = _bd()
        with (
            patch.object(bd, "trigger", return_value="s_1") as trigger,
            patch.object(bd, "get_progress", side_effect=[{"status": "running"}, {"status": "ready"}]),
            patch.object(bd, "fetch_snapshot", return_value=[_row("R1"), _row("R2")]),
        ):
            out = bd.fetch_reviews(TEST_ASIN, "gb")
        trigger.assert_called_once_with([f"https://www.amazon.co.uk/dp/{TEST_ASIN}/"])
        assert len(out["reviews"]) == 2

    def test_failed_job(self):
        bd = _bd()
        with (
            patch.object(bd, "trigger", return_value="s_1"),
            patch.object(bd, "get_progress", return_value={"status": "failed"}),
        ):
            with pytest.raises(ScrapingJobFailed):
                bd.fetch_reviews(TEST_ASIN)

    def test_timeout_cancels(self):
        bd = _bd(max_poll_attempts=2)
        with (
            patch.object(bd, "trigger", return_value="s_1"),
            patch.object(bd, "get_progress", return_value={"status": "running"}),
            patch.object(bd, "cancel", return_value=True) as cancel,
        ):
            with pytest.raises(ScrapingJobFailed):
                bd.fetch_reviews(TEST_ASIN)
        cancel.assert_called_once_with("s_1")

    def test_trigger_refused(self):
        bd = _bd()
        with patch.object(bd, "trigger", return_value=None):
            with pytest.raises(ScrapingJobFailed):
                bd.fetch_reviews(TEST_ASIN)
