"""Tests for the poller module."""

import asyncio
from unittest.mock import MagicMock

import httpx
import pytest
from conftest import FakeLeonardoAPI, status_payload

from leonardo_tool.errors import (
    GenerationFailedError,
    InvalidRequestError,
    LeonardoHTTPError,
    LeonardoTransportError,
    MalformedResponseError,
    NoImagesError,
    PollTimeoutError,
)
from leonardo_tool.poller import (
    GeneratedImage,
    JobStatus,
    PollState,
    StatusPoller,
    max_poll_attempts,
    parse_job_status,
)


async def poll(api, sleep, timeout_seconds=60, generation_id="gen-123"):
    async with api.client() as client:
        poller = StatusPoller(client, "secret", sleep=sleep)
        try:
            return poller, await poller.poll(generation_id, timeout_seconds)
        finally:
            api.poller = poller


def run_poll(api, sleep, **kwargs):
    _, urls = asyncio.run(poll(api, sleep, **kwargs))
    return urls


class TestMaxPollAttempts:
    def test_default_timeout_hits_cap(self):
        assert max_poll_attempts(60) == 30

    def test_cap_limits_long_timeouts(self):
        assert max_poll_attempts(600) == 30

    def test_short_timeout(self):
        assert max_poll_attempts(10) == 5

    def test_floors_partial_interval(self):
        assert max_poll_attempts(5) == 2
        assert max_poll_attempts(3.9) == 1

    def test_below_one_interval(self):
        assert max_poll_attempts(1) == 0
        assert max_poll_attempts(0) == 0

    def test_negative_timeout(self):
        assert max_poll_attempts(-5) == 0

    def test_custom_interval_and_cap(self):
        assert max_poll_attempts(10, interval_ms=1_000, hard_cap=4) == 4

    def test_infinite_timeout_gets_cap(self):
        assert max_poll_attempts(float("inf")) == 30

    def test_negative_infinity(self):
        assert max_poll_attempts(float("-inf")) == 0

    def test_nan_timeout_rejected(self):
        with pytest.raises(InvalidRequestError, match="nan"):
            max_poll_attempts(float("nan"))


class TestParseJobStatus:
    def test_complete_with_images(self):
        job = parse_job_status(status_payload("COMPLETE", ["a", "b"]))
        assert job.status == "COMPLETE"
        assert job.images == [
            GeneratedImage(id="img-0", url="a"),
            GeneratedImage(id="img-1", url="b"),
        ]

    def test_pending_without_images(self):
        job = parse_job_status(status_payload("PENDING"))
        assert job.status == "PENDING"
        assert job.images == []

    def test_missing_generation(self):
        with pytest.raises(MalformedResponseError, match="unexpected poll response"):
            parse_job_status({"something": "else"})

    def test_generation_not_an_object(self):
        with pytest.raises(MalformedResponseError):
            parse_job_status({"generations_by_pk": None})

    @pytest.mark.parametrize(
        "images",
        [5, "u1", ["junk", {"id": "1", "url": "u"}], [{"id": "1", "url": 7}]],
    )
    def test_malformed_images(self, images):
        data = {
            "generations_by_pk": {"status": "COMPLETE", "generated_images": images}
        }
        with pytest.raises(MalformedResponseError, match="unexpected poll response"):
            parse_job_status(data)

    def test_null_images_treated_as_empty(self):
        data = {
            "generations_by_pk": {"status": "PENDING", "generated_images": None}
        }
        assert parse_job_status(data).images == []

    def test_missing_status_is_none(self):
        assert parse_job_status({"generations_by_pk": {}}).status is None

    def test_image_urls_filter_empty(self):
        job = JobStatus(
            status="COMPLETE",
            images=[
                GeneratedImage(id="1", url="a"),
                GeneratedImage(id="2", url=""),
                GeneratedImage(id="3", url=None),
                GeneratedImage(id="4", url="b"),
            ],
        )
        assert job.image_urls == ["a", "b"]


class TestStatusPoller:
    def test_initial_state(self):
        poller = StatusPoller(MagicMock(), "secret")
        assert poller.state == PollState.WAITING
        assert poller.attempt == 0

    def test_complete_on_first_query(self, no_sleep):
        api = FakeLeonardoAPI([status_payload("COMPLETE", ["u1"])])
        assert run_poll(api, no_sleep) == ["u1"]
        assert len(api.status_queries) == 1
        assert api.poller.state == PollState.DONE

    def test_sleeps_before_each_query(self, no_sleep):
        api = FakeLeonardoAPI(
            [
                status_payload("PENDING"),
                status_payload("PENDING"),
                status_payload("COMPLETE", ["u1"]),
            ]
        )
        run_poll(api, no_sleep)
        assert no_sleep.await_count == 3
        for call in no_sleep.await_args_list:
            assert call.args == (2.0,)

    def test_queries_status_endpoint_with_handle(self, no_sleep):
        api = FakeLeonardoAPI([status_payload("COMPLETE", ["u1"])])
        run_poll(api, no_sleep, generation_id="gen-abc")
        query = api.status_queries[0]
        assert query.url == "https://cloud.leonardo.ai/api/rest/v1/generations/gen-abc"
        assert query.headers["Authorization"] == "Bearer secret"

    def test_status_queries_use_fixed_timeout(self, no_sleep):
        api = FakeLeonardoAPI(
            [status_payload("PENDING"), status_payload("COMPLETE", ["u1"])]
        )
        run_poll(api, no_sleep)
        assert len(api.status_queries) == 2
        for query in api.status_queries:
            assert query.extensions["timeout"]["read"] == 15.0
            assert query.extensions["timeout"]["connect"] == 15.0

    def test_non_list_images_abort(self, no_sleep):
        api = FakeLeonardoAPI(
            [{"generations_by_pk": {"status": "COMPLETE", "generated_images": 5}}]
        )
        with pytest.raises(MalformedResponseError):
            run_poll(api, no_sleep)
        assert api.poller.state == PollState.FAILED_TERMINAL

    def test_infinite_timeout_capped(self, no_sleep):
        api = FakeLeonardoAPI([status_payload("PENDING")])
        with pytest.raises(PollTimeoutError, match="after 60 seconds"):
            run_poll(api, no_sleep, timeout_seconds=float("inf"))
        assert len(api.status_queries) == 30

    def test_filters_empty_urls_keeps_order(self, no_sleep):
        api = FakeLeonardoAPI([status_payload("COMPLETE", ["a", "", "b"])])
        assert run_poll(api, no_sleep) == ["a", "b"]

    def test_pending_until_timeout(self, no_sleep):
        api = FakeLeonardoAPI([status_payload("PENDING")])
        with pytest.raises(PollTimeoutError, match="timed out after 60 seconds"):
            run_poll(api, no_sleep, timeout_seconds=60)
        assert len(api.status_queries) == 30
        assert api.poller.state == PollState.TIMED_OUT

    def test_caller_timeout_below_cap(self, no_sleep):
        api = FakeLeonardoAPI([status_payload("PENDING")])
        with pytest.raises(PollTimeoutError, match="after 10 seconds"):
            run_poll(api, no_sleep, timeout_seconds=10)
        assert len(api.status_queries) == 5

    def test_hard_cap_for_long_timeout(self, no_sleep):
        api = FakeLeonardoAPI([status_payload("PENDING")])
        with pytest.raises(PollTimeoutError):
            run_poll(api, no_sleep, timeout_seconds=3600)
        assert len(api.status_queries) == 30

    def test_zero_budget_times_out_without_query(self, no_sleep):
        api = FakeLeonardoAPI([status_payload("COMPLETE", ["u1"])])
        with pytest.raises(PollTimeoutError, match="after 0 seconds"):
            run_poll(api, no_sleep, timeout_seconds=1)
        assert api.status_queries == []

    def test_failed_aborts_immediately(self, no_sleep):
        api = FakeLeonardoAPI(
            [status_payload("PENDING"), status_payload("FAILED"), status_payload("PENDING")]
        )
        with pytest.raises(GenerationFailedError, match="generation failed"):
            run_poll(api, no_sleep)
        assert len(api.status_queries) == 2
        assert api.poller.state == PollState.FAILED_TERMINAL

    @pytest.mark.parametrize("urls", [None, [], ["", ""]])
    def test_complete_without_urls(self, no_sleep, urls):
        api = FakeLeonardoAPI([status_payload("COMPLETE", urls)])
        with pytest.raises(NoImagesError, match="no image URLs"):
            run_poll(api, no_sleep)
        assert len(api.status_queries) == 1
        assert api.poller.state == PollState.FAILED_TERMINAL

    def test_unknown_status_keeps_polling(self, no_sleep):
        api = FakeLeonardoAPI(
            [status_payload("QUEUED"), status_payload("COMPLETE", ["u1"])]
        )
        assert run_poll(api, no_sleep) == ["u1"]
        assert len(api.status_queries) == 2

    def test_unknown_status_until_timeout(self, no_sleep):
        api = FakeLeonardoAPI([status_payload("PROCESSING")])
        with pytest.raises(PollTimeoutError):
            run_poll(api, no_sleep, timeout_seconds=6)
        assert len(api.status_queries) == 3

    def test_http_error_aborts(self, no_sleep):
        api = FakeLeonardoAPI(
            [status_payload("PENDING"), httpx.Response(502, text="bad gateway")]
        )
        with pytest.raises(LeonardoHTTPError, match=r"Leonardo poll error \(502\)"):
            run_poll(api, no_sleep)
        assert len(api.status_queries) == 2
        assert api.poller.state == PollState.FAILED_TERMINAL

    def test_malformed_payload_aborts(self, no_sleep):
        api = FakeLeonardoAPI([{"unexpected": True}])
        with pytest.raises(MalformedResponseError):
            run_poll(api, no_sleep)
        assert len(api.status_queries) == 1

    def test_transport_error_aborts(self, no_sleep):
        api = FakeLeonardoAPI([httpx.ConnectError("connection reset")])
        with pytest.raises(LeonardoTransportError):
            run_poll(api, no_sleep)
        assert len(api.status_queries) == 1

    def test_str_representation(self):
        poller = StatusPoller(MagicMock(), "secret")
        poller.attempt = 3
        poller.max_attempts = 30
        s = str(poller)
        assert "waiting" in s
        assert "attempt=3/30" in s
