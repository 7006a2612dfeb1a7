"""Span naming for consumed messages."""

# Queue names the broker generates for server-named (anonymous) queues
GENERATED_QUEUE_PREFIX = "amq.gen-"
GENERATED_QUEUE_LABEL = "<generated>"
RECEIVE_SUFFIX = " receive"


def span_name(queue: str) -> str:
    """Name of the receive span for a queue.

    Generated queue names are unique per declaration, so they collapse to
    a single label to keep span names low-cardinality. Any other name is
    used verbatim.
    """
    if not queue:
        return RECEIVE_SUFFIX.lstrip()
    base = GENERATED_QUEUE_LABEL if queue.startswith(GENERATED_QUEUE_PREFIX) else queue
    return base + RECEIVE_SUFFIX
