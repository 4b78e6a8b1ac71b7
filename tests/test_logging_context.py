"""Tests for per-turn correlation ids in log output."""

import io
import logging

from src.logging_context import TurnIdFilter, attach_turn_id, get_turn_id, set_turn_id


class TestTurnId:
    def test_set_and_get(self):
        set_turn_id("wamid.abc")
        assert get_turn_id() == "wamid.abc"

    def test_handler_filter_covers_plain_module_loggers(self):
        stream = io.StringIO()
        handler = logging.StreamHandler(stream)
        handler.setFormatter(logging.Formatter("%(turn_id)s %(name)s %(message)s"))
        attach_turn_id(handler)

        logger = logging.getLogger("tests.turn_id.plain")
        logger.addHandler(handler)
        logger.propagate = False
        logger.setLevel(logging.INFO)
        try:
            set_turn_id("wamid.xyz")
            logger.info("hello")
        finally:
            logger.removeHandler(handler)

        assert stream.getvalue().strip() == "wamid.xyz tests.turn_id.plain hello"

    def test_attach_is_idempotent(self):
        handler = logging.StreamHandler(io.StringIO())
        attach_turn_id(handler)
        attach_turn_id(handler)
        assert sum(isinstance(f, TurnIdFilter) for f in handler.filters) == 1
