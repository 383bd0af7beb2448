import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.utils import timezone

logger = logging.getLogger(__name__)

UPDATES_GROUP = 'stock-updates'


def broadcast_refresh(**payload) -> bool:
    """Push a ``broadcast.refresh`` event to connected dashboards.

    Returns False when no channel layer is configured or the send failed;
    clients re-poll anyway, so a lost event only delays their refresh.
    """
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return False
    now = timezone.now()
    event = {'type': 'broadcast.refresh', 'version': int(now.timestamp()), 'ts': now.isoformat(), **payload}
    try:
        async_to_sync(channel_layer.group_send)(UPDATES_GROUP, event)
    except Exception:
        logger.warning('realtime broadcast failed', exc_info=True)
        return False
    return True
