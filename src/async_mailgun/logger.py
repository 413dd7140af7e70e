# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Logging utilities for the Mailgun client library.

The library never installs handlers or formatters. The embedding
application is expected to configure logging (``logging.basicConfig()`` or
its own dictConfig) so records emitted here end up wherever the rest of the
application logs go.

Example:
    Typical usage in a module::

        from async_mailgun.logger import get_logger

        logger = get_logger("MailgunClient")
        logger.info("Message accepted")
"""

import logging


def get_logger(name: str = "AsyncMailgun") -> logging.Logger:
    """Retrieve a logger instance for the library.

    Args:
        name: The logger name. Defaults to "AsyncMailgun".

    Returns:
        A ``logging.Logger`` instance bound to the given name.
    """
    return logging.getLogger(name)
