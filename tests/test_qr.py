import json
import unittest

from eventx.exceptions import MalformedPayloadException
from eventx.qr import QRPayload, issue_payload, parse_payload, render_ticket_png

from tests.factories import NOW_MS, FixedClock


class ParsePayloadTests(unittest.TestCase):
    def test_parses_json_text(self):
        payload = parse_payload(json.dumps({'userId': 'u1', 'eventId': 'e1', 'timestamp': NOW_MS}))
        self.assertEqual(payload, QRPayload('u1', 'e1', NOW_MS))

    def test_accepts_iso_timestamps(self):
        payload = parse_payload({'userId': 'u1', 'eventId': 'e1', 'timestamp': '1970-01-01T00:00:01Z'})
        self.assertEqual(payload.timestamp, 1000)

    def test_missing_fields(self):
        for data in ({'eventId': 'e1', 'timestamp': 1},
                     {'userId': 'u1', 'timestamp': 1},
                     {'userId': 'u1', 'eventId': 'e1'},
                     {'userId': '', 'eventId': 'e1', 'timestamp': 1}):
            with self.subTest(data=data):
                with self.assertRaises(MalformedPayloadException):
                    parse_payload(json.dumps(data))

    def test_not_json_or_not_object(self):
        for raw in ('hello', '[1, 2]', '42'):
            with self.subTest(raw=raw):
                with self.assertRaises(MalformedPayloadException):
                    parse_payload(raw)

    def test_unreadable_timestamp(self):
        with self.assertRaises(MalformedPayloadException):
            parse_payload({'userId': 'u1', 'eventId': 'e1', 'timestamp': 'yesterday'})
        with self.assertRaises(MalformedPayloadException):
            parse_payload({'userId': 'u1', 'eventId': 'e1', 'timestamp': True})

    def test_non_finite_timestamp(self):
        for literal in ('NaN', 'Infinity', '-Infinity', '1e400'):
            with self.subTest(literal=literal):
                with self.assertRaises(MalformedPayloadException):
                    parse_payload('{"userId": "u1", "eventId": "e1", "timestamp": %s}' % literal)


class IssuePayloadTests(unittest.TestCase):
    def test_issue_uses_clock(self):
        payload = issue_payload('u1', 'e1', FixedClock())
        self.assertEqual(json.loads(payload.to_json()),
                         {'userId': 'u1', 'eventId': 'e1', 'timestamp': NOW_MS})

    def test_render_ticket_png(self):
        png = render_ticket_png(QRPayload('u1', 'e1', NOW_MS))
        self.assertTrue(png.startswith(b'\x89PNG'))


if __name__ == '__main__':
    unittest.main()
