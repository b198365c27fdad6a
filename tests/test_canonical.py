import itertools
import unittest
from urllib.parse import unquote

from r2_client.canonical import (
    canonical_headers,
    canonical_query,
    canonical_signed_headers,
    canonical_uri,
    normalize_headers,
)


class CanonicalUriTests(unittest.TestCase):
    def test_empty_path_becomes_root(self):
        self.assertEqual("/", canonical_uri(""))

    def test_encodes_reserved_characters_per_segment(self):
        self.assertEqual("/bucket/a%20b.txt", canonical_uri("/bucket/a b.txt"))
        self.assertEqual("/bucket/100%25/x%2By", canonical_uri("/bucket/100%/x+y"))
        self.assertEqual("/bucket/caf%C3%A9/%E2%9C%93", canonical_uri("/bucket/café/✓"))

    def test_leaves_unreserved_characters_alone(self):
        self.assertEqual("/bucket/A-z_0.9~", canonical_uri("/bucket/A-z_0.9~"))

    def test_preserves_empty_segments(self):
        self.assertEqual("/bucket//nested/", canonical_uri("/bucket//nested/"))

    def test_round_trips_when_decoded_and_reencoded(self):
        for path in ["/bucket/a b.txt", "/b/100% done", "/b/日本/語", "/b/x?y#z", "/b//a/"]:
            encoded = canonical_uri(path)
            self.assertEqual(encoded, canonical_uri(unquote(encoded)))
            self.assertEqual(path.count("/"), encoded.count("/"))


class CanonicalQueryTests(unittest.TestCase):
    def test_no_query_yields_empty_string(self):
        self.assertEqual("", canonical_query("https://host/bucket"))
        self.assertEqual("", canonical_query("https://host/bucket?"))

    def test_sorts_by_name_then_value(self):
        url = "https://host/bucket?prefix=b&list-type=2&prefix=a&max-keys=10"
        self.assertEqual("list-type=2&max-keys=10&prefix=a&prefix=b", canonical_query(url))

    def test_order_independent(self):
        params = ["list-type=2", "prefix=photos%2F2024", "continuation-token=abc%3D%3D", "max-keys=5"]
        results = {
            canonical_query("https://host/b?" + "&".join(order)) for order in itertools.permutations(params)
        }
        self.assertEqual(1, len(results))
        self.assertEqual(
            "continuation-token=abc%3D%3D&list-type=2&max-keys=5&prefix=photos%2F2024",
            results.pop(),
        )

    def test_keeps_blank_values_and_encodes_spaces(self):
        self.assertEqual("a=&b=x%20y", canonical_query("https://host/b?b=x%20y&a="))


class CanonicalHeaderTests(unittest.TestCase):
    def test_lowercases_sorts_and_folds_whitespace(self):
        headers = {
            "X-Amz-Date": "20240101T000000Z",
            "Host": "acct.r2.cloudflarestorage.com",
            "X-Amz-Meta-Note": "  hello \n   world  ",
        }

        self.assertEqual(
            "host:acct.r2.cloudflarestorage.com\n"
            "x-amz-date:20240101T000000Z\n"
            "x-amz-meta-note:hello world\n",
            canonical_headers(headers),
        )
        self.assertEqual("host;x-amz-date;x-amz-meta-note", canonical_signed_headers(headers))

    def test_merges_names_differing_by_case(self):
        self.assertEqual({"x-custom": "a,b"}, normalize_headers({"X-Custom": "a", "x-custom": "b"}))

    def test_signed_headers_match_canonical_header_names(self):
        headers = {"Content-Type": "text/plain", "host": "h", "X-Amz-Date": "d"}
        names = [line.split(":", 1)[0] for line in canonical_headers(headers).splitlines()]
        self.assertEqual(";".join(names), canonical_signed_headers(headers))


if __name__ == "__main__":
    unittest.main()
