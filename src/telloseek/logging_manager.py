"""
Logging Manager
Provides clean, informative logging with periodic summaries and spam reduction
for the two transport links and the mission cycle stages.
"""

import time
import logging
from collections import defaultdict
from typing import Dict, Any, Optional
from dataclasses import dataclass
from threading import Lock


@dataclass
class ConnectionStatus:
    """Track connection status for clean logging."""
    is_connected: bool = False
    last_connected_time: Optional[float] = None
    last_disconnected_time: Optional[float] = None
    connection_attempts: int = 0
    successful_connections: int = 0
    last_error: Optional[str] = None
    consecutive_failures: int = 0
    last_log_time: float = 0.0


class LoggingManager:
    """
    Logging manager that provides:
    - Spam reduction for repetitive messages
    - Periodic cycle-stage summaries (capture, detection, send)
    - Connection state tracking for the vehicle and orchestrator links
    """

    def __init__(self, summary_interval: float = 15.0, spam_cooldown: float = 5.0):
        self.summary_interval = summary_interval
        self._lock = Lock()

        self._connections: Dict[str, ConnectionStatus] = {}

        self._stage_stats: Dict[str, Dict[str, Any]] = defaultdict(lambda: {
            'total': 0,
            'succeeded': 0,
            'failed': 0,
            'last_failure': '',
            'last_summary_time': 0.0,
        })

        self._operation_counters: Dict[str, int] = defaultdict(int)

        # Spam prevention
        self._spam_filter: Dict[str, float] = {}
        self._spam_cooldown = spam_cooldown

    def log_connection_status(self, logger: logging.Logger, service_name: str,
                              is_connected: bool, details: str = "") -> None:
        """
        Log connection status with spam reduction.

        Args:
            logger: Logger instance
            service_name: Name of the link (e.g., 'Orchestrator', 'Vehicle')
            is_connected: Current connection status
            details: Additional details for the log
        """
        with self._lock:
            status = self._connections.get(service_name, ConnectionStatus())
            current_time = time.time()

            status_changed = status.is_connected != is_connected

            if is_connected:
                if status_changed:
                    status.successful_connections += 1
                    status.last_connected_time = current_time
                    status.consecutive_failures = 0
                    logger.info(f"[{service_name}] Connected {details}".strip())
                status.is_connected = True
            else:
                status.connection_attempts += 1
                status.consecutive_failures += 1
                status.last_disconnected_time = current_time

                if status_changed or status.connection_attempts == 1:
                    logger.warning(f"[{service_name}] Disconnected {details}".strip())
                elif current_time - status.last_log_time >= self._spam_cooldown:
                    logger.warning(f"[{service_name}] Still disconnected "
                                   f"({status.consecutive_failures} attempts) {details}".strip())

                status.is_connected = False
                status.last_error = details

            status.last_log_time = current_time
            self._connections[service_name] = status

    def is_connected(self, service_name: str) -> bool:
        with self._lock:
            status = self._connections.get(service_name)
            return bool(status and status.is_connected)

    def log_stage_result(self, logger: logging.Logger, stage: str,
                         success: bool, details: str = "") -> None:
        """
        Record the outcome of one mission-cycle stage and log a periodic summary.

        Failures are logged immediately (spam filtered); successes only show up
        in the summary.

        Args:
            logger: Logger instance
            stage: Cycle stage name ('capture', 'detection', 'send')
            success: Whether the stage succeeded
            details: Failure reason
        """
        with self._lock:
            stats = self._stage_stats[stage]
            current_time = time.time()

            stats['total'] += 1
            if success:
                stats['succeeded'] += 1
            else:
                stats['failed'] += 1
                stats['last_failure'] = details

            should_summarize = current_time - stats['last_summary_time'] >= self.summary_interval
            if should_summarize:
                stats['last_summary_time'] = current_time
                summary = dict(stats)

        if not success:
            self.log_operation(logger, f"{stage} failed", 'warning', details)
        if should_summarize:
            self._log_stage_summary(logger, stage, summary)

    def get_stage_stats(self, stage: str) -> Dict[str, Any]:
        with self._lock:
            return dict(self._stage_stats[stage])

    def log_operation(self, logger: logging.Logger, operation: str,
                      level: str = 'info', details: str = "") -> None:
        """
        Log operations with spam reduction.

        Args:
            logger: Logger instance
            operation: Operation name
            level: Log level ('debug', 'info', 'warning', 'error')
            details: Additional details
        """
        if self._should_log_operation(operation):
            message = f"[{operation}] {details}".strip() if details else f"[{operation}]"
            log_func = getattr(logger, level, logger.info)
            log_func(message)

        with self._lock:
            self._operation_counters[operation] += 1

    def log_system_summary(self, logger: logging.Logger) -> None:
        """Log a status summary of links, cycle stages and operations."""
        with self._lock:
            current_time = time.time()

            logger.info("=== SYSTEM STATUS SUMMARY ===")

            if self._connections:
                logger.info("Connection Status:")
                for service, status in self._connections.items():
                    if status.is_connected:
                        uptime = int(current_time - (status.last_connected_time or current_time))
                        logger.info(f"  {service}: CONNECTED ({uptime}s uptime)")
                    else:
                        logger.info(f"  {service}: DISCONNECTED "
                                    f"({status.consecutive_failures} failures)")

            if self._stage_stats:
                logger.info("Cycle Stages:")
                for stage, stats in self._stage_stats.items():
                    success_rate = (stats['succeeded'] / max(stats['total'], 1)) * 100
                    logger.info(f"  {stage}: {success_rate:.1f}% success, {stats['total']} total")

            if self._operation_counters:
                top_ops = sorted(self._operation_counters.items(), key=lambda x: x[1], reverse=True)[:5]
                logger.info("Top Operations:")
                for op, count in top_ops:
                    logger.info(f"  {op}: {count}")

            logger.info("=============================")

    def reset(self) -> None:
        with self._lock:
            self._connections.clear()
            self._stage_stats.clear()
            self._operation_counters.clear()
            self._spam_filter.clear()

    def _should_log_operation(self, operation: str) -> bool:
        """Determine if we should log an operation (spam reduction)."""
        current_time = time.time()
        with self._lock:
            last_log = self._spam_filter.get(operation, 0)
            if current_time - last_log >= self._spam_cooldown:
                self._spam_filter[operation] = current_time
                return True
            return False

    def _log_stage_summary(self, logger: logging.Logger, stage: str, stats: Dict[str, Any]) -> None:
        total = stats['total']
        success_rate = (stats['succeeded'] / max(total, 1)) * 100
        health = 'HEALTHY' if stats['failed'] <= stats['succeeded'] else 'DEGRADED'
        logger.info(f"[{stage}] Summary: {health} ({success_rate:.1f}% success, {total} attempts)")


# Global logging manager instance
logging_manager = LoggingManager()
