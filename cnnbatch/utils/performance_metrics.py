"""推論レイテンシの計測."""

import time
from typing import List


class PerformanceMetrics:
    """処理開始時刻からのレイテンシを記録する."""

    def __init__(self) -> None:
        """計測値を空で初期化."""
        self._latencies_ms: List[float] = []

    def update(self, start_time: float) -> float:
        """``time.perf_counter`` で取得した開始時刻からの経過をミリ秒で記録する.

        Args:
            start_time: 処理開始時の ``time.perf_counter()`` の値

        Returns:
            記録したレイテンシ (ms)
        """
        latency_ms = (time.perf_counter() - start_time) * 1000
        self._latencies_ms.append(latency_ms)
        return latency_ms

    @property
    def count(self) -> int:
        """記録件数."""
        return len(self._latencies_ms)

    @property
    def total_latency_ms(self) -> float:
        """レイテンシの合計 (ms)."""
        return sum(self._latencies_ms)

    @property
    def average_latency_ms(self) -> float:
        """レイテンシの平均 (ms). 記録がなければ0."""
        return self.total_latency_ms / self.count if self.count > 0 else 0.0
