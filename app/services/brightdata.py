"""
BrightData datasets v3 client (Amazon reviews dataset).

Jobs are asynchronous on BrightData's side: ``trigger`` returns a snapshot id,
``get_progress`` reports ``running``/``ready``/``failed``, and ``fetch_snapshot``
downloads the rows once ready. The queued job chain in
``app.pipeline.brightdata_jobs`` drives these calls one step at a time;
``fetch_reviews`` runs the whole cycle synchronously inside a worker.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from app.exceptions import ScrapingJobFailed
from app.services.amazon_url import build_product_url

logger = logging.getLogger(__name__)

SNAPSHOT_MAX_RETRIES = 3
SNAPSHOT_RETRY_DELAY = 30  # seconds between 202 "still building" retries

PROGRESS_READY = "ready"
PROGRESS_RUNNING = "running"
PROGRESS_FAILED = ("failed", "error")


def transform_results(rows: list[dict[str, Any]], asin: str) -> dict[str, Any]:
    """Map BrightData rows to stored reviews plus product fields.

    Rows without ``review_id`` or ``review_text`` are skipped. Product fields
    come from the first row that carries a ``product_name``.
    """
    reviews: list[dict[str, Any]] = []
    product_name = ""
    total_reviews = 0
    product_image_url = ""

    for item in rows:
        if not isinstance(item, dict):
            continue
        if not product_name and item.get("product_name"):
            product_name = item["product_name"]
            total_reviews = item.get("product_rating_count") or 0
            if not product_image_url and item.get("product_image_url"):
                product_image_url = item["product_image_url"]

        if not item.get("review_text") or not item.get("review_id"):
            continue

        review: dict[str, Any] = {
            "id": item["review_id"],
            "rating": item.get("rating") or 0,
            "title": item.get("review_header") or "",
            "text": item["review_text"],
            "author": item.get("author_name") or "Anonymous",
            "date": item.get("review_posted_date") or "",
            "meta_data": {
                "verified_purchase": bool(item.get("is_verified", False)),
                "helpful_count": item.get("helpful_count") or 0,
                "vine_review": bool(item.get("is_amazon_vine", False)),
                "country": item.get("review_country") or "",
                "badge": item.get("badge") or "",
                "author_id": item.get("author_id") or "",
                "author_link": item.get("author_link") or "",
                "variant_asin": item.get("variant_asin"),
                "variant_name": item.get("variant_name"),
                "brand": item.get("brand") or "",
                "timestamp": item.get("timestamp") or "",
            },
        }
        if isinstance(item.get("review_images"), list) and item["review_images"]:
            review["images"] = item["review_images"]
        if isinstance(item.get("videos"), list) and item["videos"]:
            review["videos"] = item["videos"]
        reviews.append(review)

    logger.info(
        "BrightData results transformed: asin=%s rows=%d reviews=%d product=%r total_on_amazon=%s",
        asin,
        len(rows),
        len(reviews),
        product_name,
        total_reviews,
    )
    return {
        "reviews": reviews,
        "description": "",
        "total_reviews": total_reviews,
        "product_name": product_name,
        "product_image_url": product_image_url,
    }


class BrightDataClient:
    """Thin httpx wrapper around the datasets v3 endpoints."""

    def __init__(
        self,
        api_key: str,
        dataset_id: str = "gd_le8e811kzy4ggddlq",
        base_url: str = "https://api.brightdata.com/datasets/v3",
        max_reviews: int = 200,
        timeout: float = 30.0,
        poll_interval: int = 30,
        max_poll_attempts: int = 40,
        snapshot_retry_delay: int = SNAPSHOT_RETRY_DELAY,
    ) -> None:
        self.api_key = api_key
        self.dataset_id = dataset_id
        self.base_url = base_url.rstrip("/")
        self.max_reviews = max_reviews
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.max_poll_attempts = max_poll_attempts
        self.snapshot_retry_delay = snapshot_retry_delay

    @classmethod
    def from_settings(cls, settings: Any) -> BrightDataClient:
        return cls(
            api_key=settings.brightdata_api_key,
            dataset_id=settings.brightdata_dataset_id,
            base_url=settings.brightdata_base_url,
            max_reviews=settings.brightdata_max_reviews,
            timeout=settings.brightdata_timeout,
            poll_interval=settings.brightdata_poll_interval,
            max_poll_attempts=settings.brightdata_max_poll_attempts,
        )

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}

    def is_configured(self) -> bool:
        return bool(self.api_key)

    # ── Endpoints ────────────────────────────────────────────────────

    def trigger(self, urls: list[str]) -> str | None:
        """Start a scraping job for ``urls``. Returns the snapshot id, or None on refusal."""
        params: dict[str, Any] = {"dataset_id": self.dataset_id, "include_errors": "true"}
        if self.max_reviews > 0:
            params["limit_multiple_results"] = self.max_reviews
        payload = [{"url": url} for url in urls]

        try:
            with httpx.Client() as client:
                resp = client.post(
                    f"{self.base_url}/trigger",
                    params=params,
                    json=payload,
                    headers=self._headers(),
                    timeout=self.timeout,
                )
        except httpx.HTTPError as exc:
            logger.error("BrightData job trigger request failed: %s", exc)
            return None

        if resp.status_code != 200:
            if resp.status_code == 429 and "too many running jobs" in resp.text:
                logger.error("BrightData rate limit hit: too many running jobs")
            else:
                logger.error(
                    "BrightData job trigger failed: status=%s body=%s",
                    resp.status_code,
                    resp.text[:500],
                )
            return None

        snapshot_id = resp.json().get("snapshot_id")
        logger.info("BrightData job triggered: snapshot_id=%s urls=%d", snapshot_id, len(urls))
        return snapshot_id

    def get_progress(self, snapshot_id: str) -> dict[str, Any]:
        """``{"status": ..., "records": ...}``; status ``unknown`` on a failed request."""
        try:
            with httpx.Client() as client:
                resp = client.get(
                    f"{self.base_url}/progress/{snapshot_id}",
                    headers=self._headers(),
                    timeout=self.timeout,
                )
        except httpx.HTTPError as exc:
            logger.warning("BrightData progress request failed: snapshot=%s error=%s", snapshot_id, exc)
            return {"status": "unknown", "records": 0}
        if resp.status_code != 200:
            logger.warning(
                "BrightData progress check failed: snapshot=%s status=%s",
                snapshot_id,
                resp.status_code,
            )
            return {"status": "unknown", "records": 0}
        data = resp.json()
        return {"status": data.get("status", "unknown"), "records": data.get("records", 0)}

    def fetch_snapshot(self, snapshot_id: str) -> list[dict[str, Any]]:
        """Download snapshot rows. 202 (still building) is retried a few times.

        Raises:
            ScrapingJobFailed: Snapshot never became available or the request failed.
        """
        for attempt in range(1, SNAPSHOT_MAX_RETRIES + 1):
            try:
                with httpx.Client() as client:
                    resp = client.get(
                        f"{self.base_url}/snapshot/{snapshot_id}",
                        params={"format": "json"},
                        headers=self._headers(),
                        timeout=self.timeout,
                    )
            except httpx.HTTPError as exc:
                raise ScrapingJobFailed(
                    f"BrightData snapshot {snapshot_id} request failed: {exc}"
                ) from exc

            if resp.status_code == 200:
                try:
                    data = resp.json()
                except ValueError as exc:
                    raise ScrapingJobFailed(
                        f"BrightData snapshot {snapshot_id} returned invalid JSON"
                    ) from exc
                rows = data if isinstance(data, list) else []
                logger.info(
                    "BrightData snapshot fetched: snapshot=%s rows=%d attempt=%d",
                    snapshot_id,
                    len(rows),
                    attempt,
                )
                return rows

            if resp.status_code == 202:
                logger.info(
                    "BrightData snapshot %s still building (attempt %d/%d)",
                    snapshot_id,
                    attempt,
                    SNAPSHOT_MAX_RETRIES,
                )
                if attempt < SNAPSHOT_MAX_RETRIES:
                    time.sleep(self.snapshot_retry_delay)
                continue

            raise ScrapingJobFailed(
                f"BrightData snapshot fetch failed: status={resp.status_code} body={resp.text[:200]}"
            )

        raise ScrapingJobFailed(
            f"BrightData snapshot {snapshot_id} still building after {SNAPSHOT_MAX_RETRIES} attempts"
        )

    def cancel(self, snapshot_id: str) -> bool:
        """Cancel a running job. BrightData answers 200 ``OK`` on success."""
        try:
            with httpx.Client() as client:
                resp = client.post(
                    f"{self.base_url}/snapshot/{snapshot_id}/cancel",
                    headers=self._headers(),
                    timeout=self.timeout,
                )
        except httpx.HTTPError as exc:
            logger.warning("BrightData cancel request failed for %s: %s", snapshot_id, exc)
            return False
        success = resp.status_code == 200 and resp.text.strip() == "OK"
        logger.info(
            "BrightData cancel snapshot=%s success=%s status=%s",
            snapshot_id,
            success,
            resp.status_code,
        )
        return success

    # ── Synchronous cycle ────────────────────────────────────────────

    def fetch_reviews(self, asin: str, country: str = "us") -> dict[str, Any]:
        """Trigger, poll until ready, download and transform.

        The job is cancelled when polling runs out of attempts.

        Raises:
            ScrapingJobFailed: Not configured, trigger refused, job failed or timed out.
        """
        if not self.is_configured():
            raise ScrapingJobFailed("BRIGHTDATA_API_KEY is not configured")

        product_url = build_product_url(asin, country)
        logger.info("Starting BrightData scraping for %s/%s", asin, country)
        snapshot_id = self.trigger([product_url])
        if not snapshot_id:
            raise ScrapingJobFailed(f"Failed to trigger BrightData scraping job for {asin}")

        for attempt in range(1, self.max_poll_attempts + 1):
            progress = self.get_progress(snapshot_id)
            status = progress["status"]
            logger.info(
                "BrightData progress: snapshot=%s attempt=%d/%d status=%s records=%s",
                snapshot_id,
                attempt,
                self.max_poll_attempts,
                status,
                progress.get("records"),
            )
            if status == PROGRESS_READY:
                return transform_results(self.fetch_snapshot(snapshot_id), asin)
            if status in PROGRESS_FAILED:
                raise ScrapingJobFailed(f"BrightData job {snapshot_id} failed with status {status}")
            if self.poll_interval > 0 and attempt < self.max_poll_attempts:
                time.sleep(self.poll_interval)

        cancelled = self.cancel(snapshot_id)
        raise ScrapingJobFailed(
            f"BrightData job {snapshot_id} timed out after {self.max_poll_attempts} polls "
            f"(cancelled={cancelled})"
        )
