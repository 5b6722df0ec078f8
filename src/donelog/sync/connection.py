"""
Connection validation for the remote log store
"""

import logging

from ..remote_store import DEFAULT_TABLE, SupabaseStore, SyncError

logger = logging.getLogger(__name__)


async def test_connection(
    endpoint: str,
    credential: str,
    table: str = DEFAULT_TABLE,
    timeout: float = 10.0,
) -> bool:
    """
    Check that the endpoint is reachable and the credential can read the table.

    Performs a single bounded read (one id). Never raises; every transport,
    auth or schema problem is logged and reported as False.

    Args:
        endpoint: Supabase project URL
        credential: Project API key
        table: Table to probe (default: "logs")
        timeout: Request timeout in seconds

    Returns:
        True if the probe succeeded, False otherwise
    """
    if not endpoint or not endpoint.strip() or not credential or not credential.strip():
        logger.error("Connection check skipped: endpoint and credential are required")
        return False

    store = SupabaseStore(endpoint, credential, table=table, timeout=timeout)
    try:
        await store.probe()
        return True
    except SyncError as e:
        logger.error(f"Connection check failed for {endpoint}: {e}")
        return False
    except Exception as e:
        logger.error(f"Connection check failed for {endpoint}: {e}", exc_info=True)
        return False
    finally:
        await store.close()
