"""Cache health monitoring and automatic cleanup.

Monitoring and auto-cleanup are independent background loops. Both start
stopped; ``tick_monitoring`` and ``tick_cleanup`` run a single iteration
without the loop, which is what the loops call on every interval.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from ..config import MonitorSettings
from . import cleanup
from .models import CacheStats, HealthSnapshot, HealthStatus, MonitoringSample
from .store import CacheStore

logger = structlog.get_logger("cache.monitor")

SUMMARY_WINDOW = 24


def health_status(efficiency: float, memory_usage: float) -> HealthStatus:
    if efficiency < 0.3 or memory_usage > 0.9:
        return "critical"
    if efficiency < 0.5 or memory_usage > 0.8:
        return "warning"
    return "healthy"


def recommendations(efficiency: float, memory_usage: float, key_count: int, max_keys: int) -> list[str]:
    advice = []
    if efficiency < 0.5:
        advice.append("Consider increasing TTL values to improve hit rates")
        advice.append("Review cache warming strategies for frequently accessed data")
    if memory_usage > 0.8:
        advice.append("Consider increasing max_keys or reducing TTL values")
        advice.append("Enable auto-cleanup or run manual cleanup operations")
    if key_count < max_keys * 0.1:
        advice.append("Cache may be under-utilized - consider warming more data")
    return advice or ["Cache is performing optimally"]


class CacheMonitor:
    """Samples store health on an interval and trims the store when it grows too large."""

    def __init__(
        self,
        store: CacheStore,
        settings: MonitorSettings | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.store = store
        self.settings = settings or MonitorSettings()
        self._clock = clock
        self._sleep = sleep
        self._started_at = clock()
        self._history: list[MonitoringSample] = []
        self._last_ops: tuple[float, int] | None = None

        self._monitoring_task: asyncio.Task | None = None
        self._cleanup_task: asyncio.Task | None = None
        self._monitoring_running = False
        self._cleanup_running = False

    @property
    def monitoring_running(self) -> bool:
        return self._monitoring_running

    @property
    def cleanup_running(self) -> bool:
        return self._cleanup_running

    def health(self) -> HealthSnapshot:
        stats = self.store.stats()
        efficiency = self.store.efficiency_ratio()
        usage = cleanup.memory_usage_ratio(stats, self.store.max_keys)
        return HealthSnapshot(
            efficiency=efficiency,
            memory_usage_ratio=usage,
            key_count=stats.keys,
            uptime_s=self._clock() - self._started_at,
            status=health_status(efficiency, usage),
            recommendations=recommendations(efficiency, usage, stats.keys, self.store.max_keys),
        )

    def _operations_per_second(self, stats: CacheStats) -> float:
        now = self._clock()
        ops = stats.hits + stats.misses
        previous, self._last_ops = self._last_ops, (now, ops)
        if previous is None:
            return 0.0
        elapsed = now - previous[0]
        return (ops - previous[1]) / elapsed if elapsed > 0 else 0.0

    def current_sample(self) -> MonitoringSample:
        stats = self.store.stats()
        return MonitoringSample(
            stats=stats,
            health=self.health(),
            memory_usage_bytes=stats.key_bytes + stats.value_bytes,
            operations_per_second=self._operations_per_second(stats),
        )

    def history(self, limit: int | None = None) -> list[MonitoringSample]:
        return list(self._history[-limit:] if limit else self._history)

    def _record(self, sample: MonitoringSample) -> None:
        self._history.append(sample)
        if len(self._history) > self.settings.history_limit:
            self._history = self._history[-self.settings.history_trim_to:]

    def tick_monitoring(self) -> MonitoringSample:
        """Take one sample, keep it in history and log threshold breaches."""
        sample = self.current_sample()
        self._record(sample)

        health = sample.health
        if health.efficiency < self.settings.log_performance_threshold:
            logger.warning("Cache efficiency below threshold",
                           efficiency=round(health.efficiency, 3),
                           threshold=self.settings.log_performance_threshold)
        if health.memory_usage_ratio > 0.9:
            logger.warning("Cache memory usage critical", usage=round(health.memory_usage_ratio, 3))
        elif health.memory_usage_ratio > 0.8:
            logger.warning("Cache memory usage high", usage=round(health.memory_usage_ratio, 3))
        return sample

    def tick_cleanup(self) -> int:
        """Sweep the store if usage is above the cleanup threshold."""
        threshold = self.settings.cleanup_threshold
        usage = cleanup.current_usage(self.store)
        if usage <= threshold:
            return 0

        logger.info("Auto-cleanup triggered", usage=round(usage, 3), threshold=threshold)
        removed = cleanup.pattern_sweep(self.store, threshold)
        if cleanup.current_usage(self.store) > threshold:
            removed += cleanup.age_sweep(self.store)

        logger.info("Auto-cleanup completed", removed=removed)
        return removed

    def perform_cleanup(self, strategy: str = "pattern-sweep", **options) -> int:
        if strategy == "pattern-sweep":
            options.setdefault("threshold", self.settings.cleanup_threshold)
        return cleanup.perform_cleanup(self.store, strategy, **options)

    def performance_summary(self) -> dict[str, Any]:
        """Averages over the most recent samples plus the current health."""
        health = self.health()
        recent = self.history(SUMMARY_WINDOW)
        if recent:
            avg_efficiency = sum(s.health.efficiency for s in recent) / len(recent)
            avg_usage = sum(s.health.memory_usage_ratio for s in recent) / len(recent)
            avg_ops = sum(s.operations_per_second for s in recent) / len(recent)
        else:
            avg_efficiency = health.efficiency
            avg_usage = health.memory_usage_ratio
            avg_ops = 0.0

        return {
            "health": health,
            "stats": self.store.stats(),
            "samples": len(recent),
            "average_efficiency": avg_efficiency,
            "average_memory_usage": avg_usage,
            "average_operations_per_second": avg_ops,
        }

    async def _monitoring_loop(self):
        while self._monitoring_running:
            try:
                await self._sleep(self.settings.monitoring_interval_s)
                if not self._monitoring_running:
                    break
                self.tick_monitoring()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Cache monitoring error", error=str(e))

    async def _cleanup_loop(self):
        while self._cleanup_running:
            try:
                await self._sleep(self.settings.cleanup_interval_s)
                if not self._cleanup_running:
                    break
                self.tick_cleanup()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Cache auto-cleanup error", error=str(e))

    def start_monitoring(self) -> None:
        if self._monitoring_running:
            return
        self._monitoring_running = True
        self._monitoring_task = asyncio.create_task(self._monitoring_loop())
        logger.info("Cache monitoring started", interval_s=self.settings.monitoring_interval_s)

    def start_auto_cleanup(self) -> None:
        if self._cleanup_running:
            return
        self._cleanup_running = True
        self._cleanup_task = asyncio.create_task(self._cleanup_loop())
        logger.info("Cache auto-cleanup started", interval_s=self.settings.cleanup_interval_s)

    @staticmethod
    async def _cancel(task: asyncio.Task | None) -> None:
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def stop_monitoring(self) -> None:
        if not self._monitoring_running and self._monitoring_task is None:
            return
        self._monitoring_running = False
        await self._cancel(self._monitoring_task)
        self._monitoring_task = None
        logger.info("Cache monitoring stopped")

    async def stop_auto_cleanup(self) -> None:
        if not self._cleanup_running and self._cleanup_task is None:
            return
        self._cleanup_running = False
        await self._cancel(self._cleanup_task)
        self._cleanup_task = None
        logger.info("Cache auto-cleanup stopped")

    async def dispose(self) -> None:
        """Stop both loops and forget the sample history."""
        await self.stop_monitoring()
        await self.stop_auto_cleanup()
        self._history.clear()
        self._last_ops = None
