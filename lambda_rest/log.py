"""Structured logging for the lambda_rest package.

All modules log through the single powertools logger created here so every
record carries the same service name and JSON layout in CloudWatch.

Example:
    .. code-block:: python

        from lambda_rest import log

        log.info("Executing action", extra={"operation": "search"})
"""

from aws_lambda_powertools import Logger

from .constants import SERVICE_NAME

logger = Logger(service=SERVICE_NAME)

debug = logger.debug
info = logger.info
warning = logger.warning
error = logger.error
exception = logger.exception
