"""
Ingest counters, exposed in Prometheus text format by the API.
"""

from dataclasses import dataclass

LATENCY_BUCKETS = (0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0)


@dataclass
class MetricsSnapshot:
    posts_ingested: int
    ingest_errors: int
    latency_count: int
    latency_sum: float
    latency_max: float


class IngestMetrics:
    """Counts every processed event, its errors, and how long it took.

    Updated only from the event loop thread.
    """

    def __init__(self, buckets: tuple[float, ...] = LATENCY_BUCKETS):
        self.buckets = buckets
        self.posts_ingested = 0
        self.ingest_errors = 0
        self.latency_sum = 0.0
        self.latency_max = 0.0
        self._bucket_counts = [0] * len(buckets)

    def record(self, latency: float, ok: bool = True) -> None:
        self.posts_ingested += 1
        if not ok:
            self.ingest_errors += 1

        self.latency_sum += latency
        self.latency_max = max(self.latency_max, latency)
        for i, bound in enumerate(self.buckets):
            if latency <= bound:
                self._bucket_counts[i] += 1

    def snapshot(self) -> MetricsSnapshot:
        return MetricsSnapshot(
            posts_ingested=self.posts_ingested,
            ingest_errors=self.ingest_errors,
            latency_count=self.posts_ingested,
            latency_sum=self.latency_sum,
            latency_max=self.latency_max,
        )

    def render_prometheus(self) -> str:
        lines = [
            "# HELP posts_ingested_total Inbound post events processed.",
            "# TYPE posts_ingested_total counter",
            f"posts_ingested_total {self.posts_ingested}",
            "# HELP ingest_errors_total Inbound post events that failed.",
            "# TYPE ingest_errors_total counter",
            f"ingest_errors_total {self.ingest_errors}",
            "# HELP ingest_latency_seconds Time spent processing one event.",
            "# TYPE ingest_latency_seconds histogram",
        ]
        for bound, count in zip(self.buckets, self._bucket_counts):
            lines.append(f'ingest_latency_seconds_bucket{{le="{bound}"}} {count}')
        lines.append(f'ingest_latency_seconds_bucket{{le="+Inf"}} {self.posts_ingested}')
        lines.append(f"ingest_latency_seconds_sum {self.latency_sum}")
        lines.append(f"ingest_latency_seconds_count {self.posts_ingested}")
        return "\n".join(lines) + "\n"
