"""
Memory monitoring for keyframe scans and canvas renders
"""

import psutil
import logging
from typing import Dict, Optional
from contextlib import contextmanager

logger = logging.getLogger(__name__)

_GB = 1024 * 1024 * 1024


class MemoryManager:
    """Track process memory around expensive operations"""

    def __init__(self, safety_fraction: float = 0.8):
        """
        Initialize memory manager

        Args:
            safety_fraction: Share of available memory a single allocation may use
        """
        self.safety_fraction = safety_fraction
        self._peak_usage_gb = 0.0
        self._checkpoints: Dict[str, float] = {}

    def get_memory_usage(self) -> float:
        """
        Get current memory usage in GB

        Returns:
            Resident set size in GB, 0.0 when it cannot be read
        """
        try:
            usage_gb = psutil.Process().memory_info().rss / _GB
        except psutil.Error as e:
            logger.warning(f"Could not get memory usage: {e}")
            return 0.0

        if usage_gb > self._peak_usage_gb:
            self._peak_usage_gb = usage_gb
        return usage_gb

    def get_available_memory(self) -> float:
        """Available system memory in GB"""
        return psutil.virtual_memory().available / _GB

    def get_peak_usage(self) -> float:
        """Highest resident set size seen so far, in GB"""
        return self._peak_usage_gb

    def checkpoint(self, name: str):
        usage = self.get_memory_usage()
        self._checkpoints[name] = usage
        logger.debug(f"Memory checkpoint '{name}': {usage:.2f} GB")

    def get_checkpoint_diff(self, name: str) -> Optional[float]:
        """
        Get memory difference since checkpoint

        Args:
            name: Checkpoint name

        Returns:
            Memory difference in GB, or None if checkpoint doesn't exist
        """
        if name not in self._checkpoints:
            return None
        return self.get_memory_usage() - self._checkpoints[name]

    @contextmanager
    def track_operation(self, name: str):
        """
        Context manager to log the memory change of an operation

        Example:
            with memory_manager.track_operation("keyframe_scan"):
                selector.select(frames)
        """
        self.checkpoint(f"{name}_start")
        try:
            yield
        finally:
            diff = self.get_checkpoint_diff(f"{name}_start") or 0.0
            logger.info(
                f"Operation '{name}': memory change {diff:+.2f} GB "
                f"(peak {self.get_peak_usage():.2f} GB)"
            )

    def estimate_can_process(self, estimated_mb: float) -> bool:
        """
        Check if there's enough memory for an allocation

        Args:
            estimated_mb: Estimated memory requirement in MB

        Returns:
            True if processing is likely safe, False otherwise
        """
        safe_available = self.get_available_memory() * 1024 * self.safety_fraction
        can_process = estimated_mb < safe_available

        if not can_process:
            logger.warning(
                f"Estimated memory requirement ({estimated_mb:.0f} MB) "
                f"may exceed safe available memory ({safe_available:.0f} MB)"
            )
        return can_process
