from __future__ import annotations

import json
import logging
import sys
import unittest

from storehub.logging_utils import JsonFormatter


class JsonFormatterTests(unittest.TestCase):
    def test_extra_fields_are_included(self) -> None:
        record = logging.LogRecord('storehub.cartons', logging.INFO, __file__, 1, 'carton_entry_appended', None, None)
        record.entry_id = 7
        record.total = 150
        payload = json.loads(JsonFormatter().format(record))
        self.assertEqual(payload['message'], 'carton_entry_appended')
        self.assertEqual(payload['logger'], 'storehub.cartons')
        self.assertEqual(payload['level'], 'INFO')
        self.assertEqual(payload['entry_id'], 7)
        self.assertEqual(payload['total'], 150)
        self.assertNotIn('pathname', payload)

    def test_exceptions_are_formatted(self) -> None:
        try:
            raise RuntimeError('boom')
        except RuntimeError:
            record = logging.LogRecord('x', logging.ERROR, __file__, 1, 'failed', None, sys.exc_info())
        payload = json.loads(JsonFormatter().format(record))
        self.assertIn('RuntimeError: boom', payload['exception'])


if __name__ == '__main__':
    unittest.main()
