"""
Prometheus metrics for the game client.
"""

from prometheus_client import Counter, Gauge, Histogram


API_REQUESTS = Counter(
    'gameclient_api_requests_total',
    'Authority requests by outcome',
    ['operation', 'status']
)

API_LATENCY = Histogram(
    'gameclient_api_request_latency_seconds',
    'Authority request duration',
    ['operation']
)

STORE_TRANSITIONS = Counter(
    'gameclient_store_transitions_total',
    'Session store events',
    ['event', 'outcome']  # applied, rejected
)

FEED_MESSAGES_RECEIVED = Counter(
    'gameclient_feed_messages_received_total',
    'Feed messages delivered by type',
    ['type']
)

FEED_MESSAGES_REJECTED = Counter(
    'gameclient_feed_messages_rejected_total',
    'Feed messages dropped',
    ['reason']
)

FEED_RECONNECTS = Counter(
    'gameclient_feed_reconnects_scheduled_total',
    'Reconnect attempts scheduled'
)

FEED_CONNECTED = Gauge(
    'gameclient_feed_connected',
    'Whether the feed connection is open'
)
