"""Auth-token resolution.

A collector token may be given literally or as an AWS Secrets Manager ARN;
ARNs are resolved once at startup.
"""

from __future__ import annotations

from typing import Any

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from hecrelay.errors import ConfigError

_log = structlog.get_logger(component="secrets")

_SECRETS_MANAGER_PREFIX = "arn:aws:secretsmanager:"


def is_secret_reference(token: str) -> bool:
    return token.startswith(_SECRETS_MANAGER_PREFIX)


def resolve_token(token: str, region: str, client: Any | None = None) -> str:
    """Return the literal token, fetching it from Secrets Manager if *token* is an ARN.

    Raises:
        ConfigError: if the secret cannot be read or has no string value.
    """
    if not is_secret_reference(token):
        return token

    _log.info("resolving_token_from_secrets_manager")
    sm = client or boto3.client("secretsmanager", region_name=region)
    try:
        response = sm.get_secret_value(SecretId=token)
    except (BotoCoreError, ClientError) as exc:
        raise ConfigError(f"Failed to read HEC token from Secrets Manager: {exc}") from exc

    secret = response.get("SecretString")
    if not secret:
        raise ConfigError("Secrets Manager returned no SecretString for the HEC token")
    return secret
