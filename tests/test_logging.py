"""Tests for :mod:`userprofile.logging`."""

import io
import json
import os
from unittest import TestCase, mock

from pythonjsonlogger.json import JsonFormatter

from userprofile import logging


class TestGetLogger(TestCase):
    """:func:`.logging.getLogger` writes JSON log records."""

    def test_json_record(self) -> None:
        """Each record is a JSON object with the level and message."""
        stream = io.StringIO()
        logger = logging.getLogger('tests.logging.json', stream=stream)
        logger.warning('Orphaned blob %s', 'abc.png')
        record = json.loads(stream.getvalue().strip())
        self.assertEqual(record['message'], 'Orphaned blob abc.png')
        self.assertEqual(record['level'], 'WARNING')
        self.assertEqual(record['name'], 'tests.logging.json')
        self.assertIn('timestamp', record)

    def test_configured_once(self) -> None:
        """Getting the same logger twice does not add a second handler."""
        stream = io.StringIO()
        first = logging.getLogger('tests.logging.once', stream=stream)
        handlers = list(first.handlers)
        second = logging.getLogger('tests.logging.once', stream=stream)
        self.assertIs(first, second)
        self.assertEqual(second.handlers, handlers)

    @mock.patch.dict(os.environ, {'LOGLEVEL': '40'})
    def test_level_from_environment(self) -> None:
        """Records below ``LOGLEVEL`` are dropped."""
        stream = io.StringIO()
        logger = logging.getLogger('tests.logging.level', stream=stream)
        logger.warning('not shown')
        self.assertEqual(stream.getvalue(), '')
        logger.error('shown')
        self.assertIn('shown', stream.getvalue())

    def test_formatter(self) -> None:
        """Records are formatted by python-json-logger's current formatter."""
        logger = logging.getLogger('tests.logging.formatter',
                                   stream=io.StringIO())
        for handler in logger.handlers:
            self.assertIsInstance(handler.formatter, JsonFormatter)
