"""Resume-offset negotiation.

Asks the server how much of an artifact it already holds. Any answer other
than a clean size is treated as "nothing stored": re-sending bytes the
server already has is harmless (the offset check rejects it), while
skipping bytes it does not have would corrupt the artifact.
"""

from __future__ import annotations

import logging

import httpx

from resumable.client.api import APIError, HTTPClient, NotFoundError

logger = logging.getLogger(__name__)


class ResumeNegotiator:
    """Computes where an interrupted upload should restart."""

    def __init__(self, client: HTTPClient) -> None:
        self._client = client

    def resume_offset(self, name: str) -> int:
        """Return the server-side stored size of name, or 0.

        Args:
            name: Artifact name (unescaped).

        Returns:
            Bytes already stored; 0 if the artifact is absent or the
            query failed for any reason.
        """
        try:
            size = self._client.get_stored_size(name)
        except NotFoundError:
            logger.debug(f"No stored bytes for {name}, starting from zero")
            return 0
        except (APIError, httpx.HTTPError) as e:
            logger.warning(f"Size query for {name} failed ({e}), assuming zero bytes stored")
            return 0

        logger.debug(f"Server holds {size} bytes of {name}")
        return size
