"""
Inventory Client
Runs one remote inventory query and hands back the raw response text.

Responses are rendered as AWS-CLI-style JSON text (optionally projected with
the query's JMESPath expression) so the parsers only ever see a raw blob.
Transport failures come back as None, never as an exception.
"""

import json
import logging
import time
from typing import Dict, Optional, Tuple

import jmespath
from botocore.exceptions import BotoCoreError, ClientError
from jmespath.exceptions import JMESPathError

from models import QueryDescriptor

logger = logging.getLogger(__name__)


class InventoryClient:
    """
    Fetch collaborator for the acquisition pipeline.

    Clients are created lazily per (service, region) from the AuthConfig
    sessions, so every query carries its own region.
    """

    def __init__(self, auth_config, region: str = None):
        """
        Args:
            auth_config: AuthConfig instance
            region: Fallback region for queries that do not name one
        """
        self.auth = auth_config
        self.region = region or auth_config.region
        self._clients: Dict[Tuple[str, str], object] = {}

    def _client(self, service: str, region: str):
        key = (service, region)
        if key not in self._clients:
            self._clients[key] = self.auth.get_session(region).client(service)
        return self._clients[key]

    def fetch(self, query: QueryDescriptor) -> Optional[str]:
        """
        Execute a query.

        Args:
            query: Service, operation (boto3 method name), parameters, optional
                   JMESPath projection and region

        Returns:
            Raw JSON text, or None when the call failed
        """
        region = query.region or self.region
        started = time.monotonic()
        logger.info("Inventory request start: %s (region=%s)", query.describe(), region)

        try:
            client = self._client(query.service, region)
            operation = getattr(client, query.operation, None)
            if operation is None:
                logger.warning("Unsupported operation requested: %s.%s",
                               query.service, query.operation)
                return None

            response = operation(**query.params)
            response.pop('ResponseMetadata', None)
            if query.query:
                response = jmespath.search(query.query, response)
            blob = json.dumps(response, indent=4, default=str)

        except ClientError as e:
            logger.warning("%s.%s API call failed: %s",
                           query.service, query.operation, e)
            return None
        except BotoCoreError as e:
            logger.warning("%s.%s request failed: %s",
                           query.service, query.operation, e)
            return None
        except JMESPathError as e:
            logger.warning("Invalid projection %r for %s.%s: %s",
                           query.query, query.service, query.operation, e)
            return None

        elapsed_ms = int((time.monotonic() - started) * 1000)
        logger.debug("Inventory request success: %s.%s (%d bytes, %d ms)",
                     query.service, query.operation, len(blob), elapsed_ms)
        return blob

    __call__ = fetch
