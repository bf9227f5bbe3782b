"""
Authentication and Session Management
Supports named-profile (local) and ambient-credential (AWS) execution modes
"""

import logging
import boto3
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, Optional, Tuple
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    NoCredentialsError,
    PartialCredentialsError,
    ProfileNotFound,
    ReadTimeoutError,
)

from models import ExecutionMode

logger = logging.getLogger(__name__)

# Error codes meaning the credentials were found but rejected
AUTH_FAILURE_CODES = [
    'ExpiredToken',
    'ExpiredTokenException',
    'AccessDenied',
    'AccessDeniedException',
    'InvalidClientTokenId',
    'UnrecognizedClientException',
    'SignatureDoesNotMatch',
    'UnauthorizedOperation',
]


class LoginErrorCode(Enum):
    """Why the login check failed"""
    CREDENTIALS_MISSING = "credentials-missing"
    CREDENTIALS_LOAD_FAILED = "credentials-load-failed"
    CALLER_IDENTITY_FAILED = "caller-identity-failed"
    NETWORK = "network"
    UNKNOWN = "unknown"


class LoginError(Exception):
    """Raised by AuthConfig.check_login"""

    def __init__(self, code: LoginErrorCode, detail: str):
        super().__init__(f"{code.value}: {detail}")
        self.code = code
        self.detail = detail


class AuthConfig:
    """
    Handles authentication for both local and AWS execution.

    LOCAL mode: Uses the named profile (or the default credential chain when
                no profile is given).
    AWS mode:   Uses ambient credentials (instance/container role).
    """

    def __init__(self,
                 mode: ExecutionMode = ExecutionMode.LOCAL,
                 profile_name: Optional[str] = None,
                 region: str = "us-east-1"):
        """
        Initialize authentication configuration.

        Args:
            mode: Execution mode (local or AWS)
            profile_name: AWS CLI profile name (local mode only)
            region: Default region for sessions created without one
        """
        self.mode = mode
        self.profile_name = profile_name
        self.region = region
        self._session_cache: Dict[str, Tuple[boto3.Session, datetime]] = {}

    def get_session(self, region: Optional[str] = None) -> boto3.Session:
        """
        Get a session for a region, cached for 50 minutes.

        Args:
            region: Region for the session (defaults to the configured region)

        Returns:
            boto3.Session
        """
        region = region or self.region

        # Check cache first
        if region in self._session_cache:
            cached_session, expiry = self._session_cache[region]
            if datetime.utcnow() < expiry:
                return cached_session

        if self.mode == ExecutionMode.LOCAL and self.profile_name:
            session = boto3.Session(
                profile_name=self.profile_name,
                region_name=region
            )
        else:
            session = boto3.Session(region_name=region)

        expiry = datetime.utcnow() + timedelta(minutes=50)
        self._session_cache[region] = (session, expiry)

        return session

    def check_login(self) -> str:
        """
        Verify credentials with STS GetCallerIdentity.

        Returns:
            "<account> (<arn>)" for the caller

        Raises:
            LoginError: classified by LoginErrorCode
        """
        logger.info("AWS login check started (profile=%s, region=%s)",
                    self.profile_name or 'default', self.region)
        try:
            sts = self.get_session().client('sts')
            identity = sts.get_caller_identity()
        except (NoCredentialsError, ProfileNotFound) as e:
            raise LoginError(LoginErrorCode.CREDENTIALS_MISSING, str(e))
        except PartialCredentialsError as e:
            raise LoginError(LoginErrorCode.CREDENTIALS_LOAD_FAILED, str(e))
        except (EndpointConnectionError, ConnectTimeoutError, ReadTimeoutError) as e:
            raise LoginError(LoginErrorCode.NETWORK, str(e))
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', '')
            if error_code in AUTH_FAILURE_CODES:
                raise LoginError(LoginErrorCode.CALLER_IDENTITY_FAILED, str(e))
            raise LoginError(LoginErrorCode.UNKNOWN, str(e))
        except BotoCoreError as e:
            raise LoginError(LoginErrorCode.UNKNOWN, str(e))

        account = identity.get('Account', '')
        arn = identity.get('Arn', '')
        logger.info("AWS caller identity verified: %s", arn)
        return f"{account} ({arn})"

    def clear_session_cache(self):
        """Clear cached sessions (useful for testing)"""
        self._session_cache.clear()
