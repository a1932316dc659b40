"""
Scan configuration
"""
from dataclasses import dataclass, field
from typing import FrozenSet, Optional

SCANNING_MODES = ("passive", "active")


@dataclass
class ScanConfig:
    """Tunables for the adapter session and the scan loop"""
    allowed_addresses: FrozenSet[str] = field(default_factory=frozenset)
    # Seconds an unchanged reading from one device is suppressed
    min_emit_interval: float = 10.0
    # Upper bound on how long a stop request waits for the next event
    poll_interval: float = 0.5
    idle_timeout: float = 300.0
    max_retries: int = 10
    backoff_initial: float = 1.0
    backoff_factor: float = 2.0
    backoff_max: float = 60.0
    scanning_mode: str = "passive"
    adapter: Optional[str] = None
    stall_timeout: Optional[float] = None
    queue_size: int = 256

    def __post_init__(self):
        """Validate configuration after initialization"""
        self.allowed_addresses = frozenset(self.allowed_addresses)
        if self.min_emit_interval < 0:
            raise ValueError("min_emit_interval cannot be negative")
        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        if self.idle_timeout <= 0:
            raise ValueError("idle_timeout must be positive")
        if self.max_retries < 0:
            raise ValueError("max_retries cannot be negative")
        if self.backoff_initial < 0 or self.backoff_max < self.backoff_initial:
            raise ValueError("backoff delays must satisfy 0 <= backoff_initial <= backoff_max")
        if self.backoff_factor < 1.0:
            raise ValueError("backoff_factor must be at least 1.0")
        if self.scanning_mode not in SCANNING_MODES:
            raise ValueError(f"scanning_mode must be one of {', '.join(SCANNING_MODES)}")
        if self.stall_timeout is not None and self.stall_timeout <= 0:
            raise ValueError("stall_timeout must be positive")
        if self.queue_size < 1:
            raise ValueError("queue_size must be at least 1")

    def backoff_delay(self, attempt: int) -> float:
        """Delay before recovery attempt number `attempt` (0-based)"""
        return min(self.backoff_max, self.backoff_initial * self.backoff_factor ** min(attempt, 64))
