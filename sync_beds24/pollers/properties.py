import structlog

from sync_beds24.metrics import poll_duration, poll_total, records_synced
from sync_beds24.network.client import Beds24Client
from sync_beds24.schemas.remote import RemoteProperty

logger = structlog.get_logger(__name__)


def poll_properties(client: Beds24Client) -> list[RemoteProperty]:
    """
    Fetch every property visible to the client's connection.

    Args:
        client (Beds24Client): Client bound to a connection

    Returns:
        list[RemoteProperty]: Properties with their room types
    """
    with poll_duration.labels(entity_type="properties").time():
        try:
            properties = client.get_properties()

            logger.info(
                "properties_polled",
                connection_id=str(client.connection_id),
                count=len(properties),
            )
            records_synced.labels(entity_type="properties").inc(len(properties))
            poll_total.labels(entity_type="properties", status="success").inc()

            return properties
        except Exception:
            poll_total.labels(entity_type="properties", status="failure").inc()
            raise
