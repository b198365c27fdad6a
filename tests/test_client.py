import unittest
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlsplit

from r2_client.client import R2Client, build_upload_headers, error_message
from r2_client.config import R2Configuration, RetryConfiguration
from r2_client.errors import (
    EmptyResponseBody,
    HTTPError,
    MissingResponseBody,
    PayloadTooLarge,
    R2ClientError,
    TransportError,
)
from r2_client.models import Credentials, HTTPMethod, TransportResponse

LIST_PAGE_ONE = b"""<ListBucketResult>
  <IsTruncated>true</IsTruncated>
  <NextContinuationToken>token-1</NextContinuationToken>
  <Contents><Key>a.txt</Key><Size>1</Size></Contents>
</ListBucketResult>"""

LIST_PAGE_TWO = b"""<ListBucketResult>
  <IsTruncated>false</IsTruncated>
  <Contents><Key>b.txt</Key><Size>2</Size></Contents>
</ListBucketResult>"""


class FakeTransport:
    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.requests = []
        self.closed = False

    def send(self, request):
        self.requests.append(request)
        response = self.responses.pop(0) if self.responses else TransportResponse(200)
        if isinstance(response, Exception):
            raise response
        return response

    def close(self):
        self.closed = True


class FakeClock:
    def __init__(self, start=datetime(2024, 1, 1, tzinfo=timezone.utc)):
        self.current = start
        self.calls = 0

    def __call__(self):
        self.calls += 1
        value = self.current
        self.current += timedelta(seconds=1)
        return value


def _configuration(**kwargs):
    values = {
        "bucket": "bucket",
        "credentials": Credentials("AKID", "SECRET"),
        "account_id": "acct",
    }
    values.update(kwargs)
    return R2Configuration(**values)


def _client(responses=None, **kwargs):
    transport = FakeTransport(responses)
    clock = FakeClock()
    client = R2Client(_configuration(**kwargs), transport=transport, clock=clock)
    return client, transport, clock


class UploadTests(unittest.TestCase):
    def test_upload_sends_signed_put_with_headers(self):
        client, transport, _ = _client([TransportResponse(200, {"ETag": '"abc"'})])

        etag = client.upload(
            "folder/a b.txt",
            b"hello",
            metadata={"Owner": "me"},
            content_type="text/plain",
            cache_control="max-age=60",
        )

        self.assertEqual("abc", etag)
        request = transport.requests[0]
        self.assertIs(HTTPMethod.PUT, request.method)
        self.assertEqual("https://acct.r2.cloudflarestorage.com/bucket/folder/a%20b.txt", request.url)
        self.assertEqual(b"hello", request.body)
        self.assertEqual("5", request.headers["Content-Length"])
        self.assertEqual("text/plain", request.headers["Content-Type"])
        self.assertEqual("max-age=60", request.headers["Cache-Control"])
        self.assertEqual("me", request.headers["x-amz-meta-owner"])
        self.assertIn("x-amz-meta-owner", request.signed_headers)
        self.assertTrue(request.authorization.startswith("AWS4-HMAC-SHA256 Credential=AKID/20240101/auto/s3/"))

    def test_upload_rejects_payload_over_limit_before_sending(self):
        client, transport, clock = _client(max_upload_size_mb=1)

        with self.assertRaises(PayloadTooLarge) as ctx:
            client.upload("big.bin", b"x" * (1_048_576 + 1))

        self.assertEqual(1, ctx.exception.maximum_mb)
        self.assertEqual([], transport.requests)
        self.assertEqual(0, clock.calls)

    def test_upload_limit_argument_overrides_configuration(self):
        client, transport, _ = _client(max_upload_size_mb=1)

        client.upload("big.bin", b"x" * (1_048_576 + 1), max_upload_size_mb=0)

        self.assertEqual(1, len(transport.requests))

    def test_upload_retries_transient_failures_with_fresh_signature(self):
        client, transport, _ = _client(
            [TransportError("connection reset"), TransportResponse(503, reason="Slow Down"), TransportResponse(200)]
        )

        client.upload("a.txt", b"data", retry=RetryConfiguration(max_retries=2))

        self.assertEqual(3, len(transport.requests))
        dates = [request.headers["x-amz-date"] for request in transport.requests]
        self.assertEqual(3, len(set(dates)))
        self.assertEqual(3, len({request.signature for request in transport.requests}))

    def test_upload_gives_up_after_last_attempt(self):
        client, transport, _ = _client([TransportResponse(500), TransportResponse(500)])

        with self.assertRaises(HTTPError) as ctx:
            client.upload("a.txt", b"data", retry=RetryConfiguration(max_retries=1))

        self.assertEqual(500, ctx.exception.status_code)
        self.assertEqual(2, len(transport.requests))

    def test_upload_does_not_retry_client_errors(self):
        body = b"<Error><Code>AccessDenied</Code><Message>Access Denied</Message></Error>"
        client, transport, _ = _client([TransportResponse(403, body=body)])

        with self.assertRaises(HTTPError) as ctx:
            client.upload("a.txt", b"data")

        self.assertEqual(403, ctx.exception.status_code)
        self.assertEqual("AccessDenied: Access Denied", ctx.exception.message)
        self.assertEqual(1, len(transport.requests))

    def test_upload_without_retries(self):
        client, transport, _ = _client([TransportError("down")], retry=RetryConfiguration.none())

        with self.assertRaises(TransportError):
            client.upload("a.txt", b"data")

        self.assertEqual(1, len(transport.requests))

    def test_upload_requires_key(self):
        client, _, _ = _client()
        with self.assertRaises(ValueError):
            client.upload("", b"data")


class DownloadTests(unittest.TestCase):
    def test_download_returns_body_and_sends_range(self):
        client, transport, _ = _client([TransportResponse(206, body=b"0123")])

        data = client.download("a.txt", byte_range=(0, 3), version_id="v1")

        self.assertEqual(b"0123", data)
        request = transport.requests[0]
        self.assertIs(HTTPMethod.GET, request.method)
        self.assertEqual("bytes=0-3", request.headers["Range"])
        self.assertEqual({"versionId": ["v1"]}, parse_qs(urlsplit(request.url).query))
        self.assertEqual(b"", request.body)

    def test_empty_body_with_zero_length_raises_empty_response(self):
        client, _, _ = _client([TransportResponse(200, {"Content-Length": "0"})])
        with self.assertRaises(EmptyResponseBody):
            client.download("a.txt")

    def test_empty_body_without_length_raises_missing_body(self):
        client, _, _ = _client([TransportResponse(200)])
        with self.assertRaises(MissingResponseBody):
            client.download("a.txt")

    def test_allow_empty_data(self):
        client, _, _ = _client([TransportResponse(200, {"Content-Length": "0"})])
        self.assertEqual(b"", client.download("a.txt", allow_empty_data=True))

    def test_not_found_raises_http_error(self):
        client, _, _ = _client([TransportResponse(404, reason="Not Found")])

        with self.assertRaises(HTTPError) as ctx:
            client.download("missing.txt")

        self.assertEqual(404, ctx.exception.status_code)
        self.assertEqual("Not Found", ctx.exception.message)
        self.assertFalse(ctx.exception.is_retryable)

    def test_invalid_range(self):
        client, transport, _ = _client()
        with self.assertRaises(ValueError):
            client.download("a.txt", byte_range=(5, 1))
        self.assertEqual([], transport.requests)


class DeleteTests(unittest.TestCase):
    def test_delete_sends_signed_delete(self):
        client, transport, _ = _client([TransportResponse(204)])

        client.delete("a.txt", mfa="123 456", bypass_governance_retention=True, expected_bucket_owner="owner")

        request = transport.requests[0]
        self.assertIs(HTTPMethod.DELETE, request.method)
        self.assertEqual("https://acct.r2.cloudflarestorage.com/bucket/a.txt", request.url)
        self.assertEqual("123 456", request.headers["x-amz-mfa"])
        self.assertEqual("true", request.headers["x-amz-bypass-governance-retention"])
        self.assertEqual("owner", request.headers["x-amz-expected-bucket-owner"])


class ListTests(unittest.TestCase):
    def test_list_objects_builds_query_and_decodes_page(self):
        client, transport, _ = _client([TransportResponse(200, body=LIST_PAGE_ONE)])

        page = client.list_objects(prefix="photos/2024", max_keys=10, continuation_token="abc==")

        self.assertEqual(["a.txt"], [obj.key for obj in page.objects])
        self.assertTrue(page.is_truncated)
        self.assertEqual("token-1", page.next_continuation_token)
        parts = urlsplit(transport.requests[0].url)
        self.assertEqual("/bucket", parts.path)
        self.assertEqual(
            {"list-type": ["2"], "prefix": ["photos/2024"], "max-keys": ["10"], "continuation-token": ["abc=="]},
            parse_qs(parts.query),
        )

    def test_list_objects_with_empty_body(self):
        client, _, _ = _client([TransportResponse(200)])

        page = client.list_objects()

        self.assertEqual([], page.objects)
        self.assertFalse(page.is_truncated)

    def test_iter_objects_follows_continuation_tokens(self):
        client, transport, _ = _client(
            [TransportResponse(200, body=LIST_PAGE_ONE), TransportResponse(200, body=LIST_PAGE_TWO)]
        )

        keys = [obj.key for obj in client.iter_objects(page_size=1)]

        self.assertEqual(["a.txt", "b.txt"], keys)
        tokens = [parse_qs(urlsplit(request.url).query).get("continuation-token") for request in transport.requests]
        self.assertEqual([None, ["token-1"]], tokens)


class LifecycleTests(unittest.TestCase):
    def test_close_leaves_shared_transport_open(self):
        client, transport, _ = _client()

        with client:
            pass

        self.assertTrue(client.closed)
        self.assertFalse(transport.closed)

    def test_closed_client_refuses_requests(self):
        client, transport, _ = _client()
        client.close()

        with self.assertRaises(R2ClientError):
            client.delete("a.txt")
        self.assertEqual([], transport.requests)

    def test_owned_transport_is_closed(self):
        transport = FakeTransport()
        client = R2Client(_configuration())
        client._transport = transport

        client.close()

        self.assertTrue(transport.closed)


class HelperTests(unittest.TestCase):
    def test_build_upload_headers_lowercases_metadata_keys(self):
        headers = build_upload_headers(
            content_length=3,
            metadata={"Camera-Model": "X100"},
            acl="private",
            storage_class="STANDARD",
            tagging="a=b",
        )

        self.assertEqual(
            {
                "Content-Length": "3",
                "x-amz-acl": "private",
                "x-amz-storage-class": "STANDARD",
                "x-amz-tagging": "a=b",
                "x-amz-meta-camera-model": "X100",
            },
            headers,
        )

    def test_error_message_falls_back_to_body_text_then_reason(self):
        self.assertEqual("plain failure", error_message(TransportResponse(500, body=b"plain failure")))
        self.assertEqual("Bad Gateway", error_message(TransportResponse(502, reason="Bad Gateway")))
        self.assertEqual("Unknown error", error_message(TransportResponse(500)))


if __name__ == "__main__":
    unittest.main()
