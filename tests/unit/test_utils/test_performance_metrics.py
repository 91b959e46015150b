"""PerformanceMetrics のテスト."""

import time

import pytest

from cnnbatch.utils import PerformanceMetrics


class TestPerformanceMetrics:
    """PerformanceMetrics のテスト"""

    def test_empty(self):
        """記録がない場合の平均は0"""
        metrics = PerformanceMetrics()

        assert metrics.count == 0
        assert metrics.average_latency_ms == 0.0

    def test_update_records_latency(self, monkeypatch):
        """開始時刻からの経過がミリ秒で記録される"""
        metrics = PerformanceMetrics()
        monkeypatch.setattr(time, "perf_counter", lambda: 10.5)

        latency = metrics.update(10.0)
        metrics.update(10.25)

        assert latency == pytest.approx(500.0)
        assert metrics.count == 2
        assert metrics.total_latency_ms == pytest.approx(750.0)
        assert metrics.average_latency_ms == pytest.approx(375.0)
