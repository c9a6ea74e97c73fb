from dataclasses import dataclass

import httpx


@dataclass
class TimeoutConfig:
    connect_timeout: float = 5.0
    write_timeout: float = 10.0
    total_timeout: float = 30.0

    @classmethod
    def from_deadline(cls, seconds: float) -> "TimeoutConfig":
        return cls(
            connect_timeout=min(5.0, seconds),
            write_timeout=min(10.0, seconds),
            total_timeout=seconds,
        )

    def httpx_timeout(self) -> httpx.Timeout:
        return httpx.Timeout(
            self.total_timeout,
            connect=self.connect_timeout,
            read=self.total_timeout,
            write=self.write_timeout,
            pool=self.connect_timeout,
        )


DEFAULT_TIMEOUT = TimeoutConfig()
