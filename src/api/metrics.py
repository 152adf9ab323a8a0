from prometheus_client import Counter, Histogram, Gauge, REGISTRY

from notifications.badge import BadgePublisher


# we check if they are already registered to avoid errors during hot reloads or test runs
def get_or_create_metric(name, documentation, metric_type, **kwargs):
    try:
        # Try to create it
        return metric_type(name, documentation, **kwargs)
    except ValueError:
        # If it already exists, retrieve it from the registry
        return REGISTRY._names_to_collectors[name]


REQUESTS_TOTAL = get_or_create_metric(
    "assistant_requests_total",
    "Total requests",
    Counter,
    labelnames=["endpoint", "status"],
)

REQUEST_LATENCY_SECONDS = get_or_create_metric(
    "assistant_request_latency_seconds",
    "Request latency",
    Histogram,
    labelnames=["endpoint"],
)

MESSAGES_CREATED_TOTAL = get_or_create_metric(
    "assistant_messages_created_total",
    "Messages created from chat input",
    Counter,
    labelnames=["type"],
)

UNREAD_MESSAGES = get_or_create_metric(
    "assistant_unread_messages", "Current number of unread messages", Gauge
)


class MetricsBadgePublisher(BadgePublisher):
    """Publishes the unread count as the assistant_unread_messages gauge."""

    def set_unread_count(self, count: int) -> None:
        UNREAD_MESSAGES.set(count)
