"""
Tests for the section Timer.
"""

import pytest

from pyglm.core.compute.timing import Timer, timed


class TestTimer:

    def test_sections_accumulate(self):
        timer = Timer()
        timer.start()
        for _ in range(3):
            with timer.section('irls'):
                pass
        with timer.section('initialize'):
            pass
        timer.stop()

        result = timer.result()
        assert set(result) == {'total_seconds', 'irls', 'initialize'}
        assert result['irls'] >= 0.0
        assert result['total_seconds'] >= 0.0

    def test_section_recorded_on_exception(self):
        timer = Timer()
        timer.start()
        with pytest.raises(ValueError):
            with timer.section('irls'):
                raise ValueError("boom")
        timer.stop()
        assert 'irls' in timer.result()

    def test_stop_before_start_raises(self):
        with pytest.raises(RuntimeError, match="before start"):
            Timer().stop()

    def test_result_before_stop_raises(self):
        timer = Timer()
        timer.start()
        with pytest.raises(RuntimeError, match="before stop"):
            timer.result()


class TestTimed:

    def test_timed_context(self):
        with timed() as timer:
            pass
        assert timer.result()['total_seconds'] >= 0.0
