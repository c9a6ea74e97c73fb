from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Dict, List

LATENCY_BUCKETS_MS = (50, 100, 250, 500, 1000, 2500, 5000, 10000, float("inf"))

PROVIDER_PREFIXES = {"provider_success_": "success", "provider_failure_": "failure"}


@dataclass
class LatencyHistogram:
    counts: List[int] = field(default_factory=lambda: [0] * len(LATENCY_BUCKETS_MS))
    count: int = 0
    total_ms: float = 0.0
    max_ms: float = 0.0

    def observe(self, latency_ms: float) -> None:
        for i, bound in enumerate(LATENCY_BUCKETS_MS):
            if latency_ms <= bound:
                self.counts[i] += 1
                break
        self.count += 1
        self.total_ms += latency_ms
        self.max_ms = max(self.max_ms, latency_ms)

    def summary(self) -> Dict[str, float]:
        return {
            "count": self.count,
            "avg_ms": self.total_ms / self.count if self.count else 0.0,
            "max_ms": self.max_ms,
        }


class Metrics:
    """Relay counters, globally and per client address, plus request latency."""

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.counters: Counter = Counter()
        self.client_counters: Dict[str, Counter] = defaultdict(Counter)
        self.latency = LatencyHistogram()

    def inc(self, key: str, value: int = 1, client: str | None = None):
        self.counters[key] += value
        if client:
            self.client_counters[client][key] += value

    def get(self, key: str, client: str | None = None) -> int:
        if client:
            return self.client_counters.get(client, Counter())[key]
        return self.counters[key]

    def observe_latency(self, latency_ms: float):
        self.latency.observe(latency_ms)

    def provider_outcomes(self) -> Dict[str, Dict[str, int]]:
        """{"gemini": {"success": 3, "failure": 1}, ...}"""
        outcomes: Dict[str, Dict[str, int]] = defaultdict(lambda: {"success": 0, "failure": 0})
        for key, value in self.counters.items():
            for prefix, outcome in PROVIDER_PREFIXES.items():
                if key.startswith(prefix):
                    outcomes[key[len(prefix):]][outcome] += value
        return dict(outcomes)

    def _plain_counters(self) -> Dict[str, int]:
        return {
            key: value
            for key, value in self.counters.items()
            if not key.startswith(tuple(PROVIDER_PREFIXES))
        }

    def snapshot(self, client: str | None = None):
        if client:
            return {
                "client": client,
                "metrics": dict(self.client_counters.get(client, {})),
            }

        return {
            "counters": self._plain_counters(),
            "providers": self.provider_outcomes(),
            "latency": self.latency.summary(),
            "per_client": {c: dict(d) for c, d in self.client_counters.items()},
        }

    def prometheus(self) -> str:
        lines = []

        for key, value in sorted(self._plain_counters().items()):
            lines.append(f"# TYPE relay_{key} counter")
            lines.append(f"relay_{key} {value}")

        lines.append("# TYPE relay_provider_attempts counter")
        for provider, outcomes in sorted(self.provider_outcomes().items()):
            for outcome, value in outcomes.items():
                lines.append(
                    f'relay_provider_attempts{{provider="{provider}",outcome="{outcome}"}} {value}'
                )

        for client, data in self.client_counters.items():
            for key, value in data.items():
                lines.append(f'relay_{key}{{client="{client}"}} {value}')

        lines.append("# TYPE relay_request_latency_ms histogram")
        cumulative = 0
        for bound, hits in zip(LATENCY_BUCKETS_MS, self.latency.counts):
            cumulative += hits
            label = "+Inf" if bound == float("inf") else bound
            lines.append(f'relay_request_latency_ms_bucket{{le="{label}"}} {cumulative}')
        lines.append(f"relay_request_latency_ms_sum {self.latency.total_ms}")
        lines.append(f"relay_request_latency_ms_count {self.latency.count}")

        return "\n".join(lines) + "\n"


metrics = Metrics()
