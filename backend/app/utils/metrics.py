"""Prometheus metrics for document edits and version transitions."""

from prometheus_client import Counter

document_edits_total = Counter(
    "document_edits_total",
    "AI responses processed for document edits",
    ["mode", "outcome"],
)

patch_matches_total = Counter(
    "patch_matches_total",
    "Diff blocks matched, by matching strategy",
    ["strategy"],
)

version_transitions_total = Counter(
    "version_transitions_total",
    "Version lifecycle transitions",
    ["transition", "outcome"],
)


class PrometheusEditMetrics:
    """Prometheus-based implementation of the edit and version metrics interfaces."""

    def inc_edit(self, mode: str, outcome: str) -> None:
        """Count a processed edit."""
        document_edits_total.labels(mode=mode, outcome=outcome).inc()

    def inc_patch_match(self, strategy: str) -> None:
        """Count a matched diff block."""
        patch_matches_total.labels(strategy=strategy).inc()

    def inc_transition(self, transition: str, outcome: str) -> None:
        """Count a lifecycle transition."""
        version_transitions_total.labels(transition=transition, outcome=outcome).inc()
