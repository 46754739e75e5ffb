import logging

import vibegroups.logging_utils as logging_utils


class ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


def _logger(name):
    handler = ListHandler()
    logger = logging.getLogger(name)
    logger.handlers = []
    logger.propagate = False
    logger.setLevel(logging.DEBUG)
    logger.addHandler(handler)
    return logger, handler


def test_progress_logger_emits_summaries_only(monkeypatch):
    logger, handler = _logger("progress_default")

    t = {"value": 0.0}

    def fake_perf_counter():
        t["value"] += 0.1
        return t["value"]

    monkeypatch.setattr(logging_utils.time, "perf_counter", fake_perf_counter)

    prog = logging_utils.ProgressLogger(logger, total=100, label="test", interval_s=100.0, every_n=50)
    for _ in range(100):
        prog.update()
    prog.finish()

    # Summaries at 50, 100 and the finish line, not one per item
    assert len(handler.records) <= 4
    assert any(rec.levelno == logging.INFO for rec in handler.records)


def test_progress_logger_details_go_to_debug(monkeypatch):
    logger, handler = _logger("progress_detail")

    t = {"value": 0.0}

    def fake_perf_counter():
        t["value"] += 0.01
        return t["value"]

    monkeypatch.setattr(logging_utils.time, "perf_counter", fake_perf_counter)

    prog = logging_utils.ProgressLogger(logger, total=10, label="Vibe analysis", unit="tracks",
                                        interval_s=100.0, every_n=100)
    for i in range(10):
        prog.update(detail=f"Artist - Song {i}: chill")
    prog.finish()

    debug_records = [r for r in handler.records if r.levelno == logging.DEBUG]
    info_records = [r for r in handler.records if r.levelno == logging.INFO]
    assert len(debug_records) == 10
    assert any("complete" in r.getMessage() for r in info_records)


def test_progress_percent():
    logger, _ = _logger("progress_percent")
    prog = logging_utils.ProgressLogger(logger, total=4, label="test")
    assert prog.percent == 0.0
    prog.update(3)
    assert prog.percent == 75.0
    assert logging_utils.ProgressLogger(logger, total=0, label="test").percent is None
