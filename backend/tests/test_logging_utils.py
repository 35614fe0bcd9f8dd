"""Tests for structured logging context."""

import logging

from utils.logging_utils import StructuredLogger, get_logging_context, logging_context, set_logging_context


def test_context_rendered_and_attached(caplog):
    logger = StructuredLogger('tests.structured')

    with caplog.at_level(logging.INFO, logger='tests.structured'):
        with logging_context(operation='reconcile'):
            logger.info('[stream_a] process gone', extra={'stream_id': 'stream_a', 'backend': 'pm2'})

    record = caplog.records[-1]
    assert record.getMessage() == '[stream_a] process gone [backend=pm2 operation=reconcile]'
    assert record.operation == 'reconcile'
    assert record.backend == 'pm2'


def test_reserved_keys_do_not_break_logging(caplog):
    logger = StructuredLogger('tests.structured')

    with caplog.at_level(logging.WARNING, logger='tests.structured'):
        logger.warning('odd extra', extra={'name': 'clash', 'message': 'clash'})

    assert caplog.records[-1].name == 'tests.structured'


def test_scoped_context_is_restored():
    with logging_context(operation='exit_observer', stream_id='stream_b'):
        assert get_logging_context()['stream_id'] == 'stream_b'
    assert 'stream_b' not in get_logging_context().values()


def test_set_logging_context_merges():
    with logging_context():
        set_logging_context(operation='stream_stop')
        set_logging_context(stream_id='stream_c')
        context = get_logging_context()
        assert context['operation'] == 'stream_stop'
        assert context['stream_id'] == 'stream_c'
