# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Configuration loader for Mailgun credentials.

Settings come from an optional INI file with environment variables as
fallbacks. Values in the file win over the environment.

Example:
    Configuration file format (mailgun.ini)::

        [mailgun]
        api_key = key-3ax6xnjp29jd6fds4gc373sgvjxteol0
        domain = samples.mailgun.org
        # Optional, defaults to https://api.mailgun.net/v2
        api_url = https://api.eu.mailgun.net/v2

    Environment variables:
      MAILGUN_CONFIG - Path to the INI file (optional)
      MAILGUN_API_KEY - API key
      MAILGUN_DOMAIN - Sending domain
      MAILGUN_API_URL - API base URL

    Loading::

        config = load_config("/etc/myapp/mailgun.ini")
        client = MailgunClient.from_config(config)
"""

from __future__ import annotations

import configparser
import os
from dataclasses import dataclass
from pathlib import Path

from async_mailgun.logger import get_logger

DEFAULT_API_URL = "https://api.mailgun.net/v2"

logger = get_logger("MailgunConfig")


@dataclass
class MailgunConfig:
    """Credentials and endpoint for a Mailgun client.

    Attributes:
        api_key: Private API key.
        domain: Sending domain the messages are posted to.
        api_url: API base URL without the domain part.
    """

    api_key: str
    domain: str
    api_url: str = DEFAULT_API_URL

    def __repr__(self) -> str:
        return f"MailgunConfig(domain='{self.domain}', api_url='{self.api_url}')"


def load_config(config_path: str | os.PathLike[str] | None = None) -> MailgunConfig:
    """Load Mailgun settings from an INI file and the environment.

    Args:
        config_path: INI file to read. Defaults to ``MAILGUN_CONFIG`` if set;
            without either, only environment variables are used.

    Returns:
        MailgunConfig: The merged settings.

    Raises:
        FileNotFoundError: If an explicit config file does not exist.
        ValueError: If the API key or domain is missing after merging.
    """
    if config_path is None:
        config_path = os.getenv("MAILGUN_CONFIG")

    parser = configparser.ConfigParser()
    if config_path is not None:
        if not Path(config_path).exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        parser.read(config_path)
        if not parser.has_section("mailgun"):
            logger.info("No [mailgun] section found in %s", config_path)

    def get(option: str, fallback: str | None = None) -> str | None:
        if parser.has_option("mailgun", option):
            return parser.get("mailgun", option).strip()
        return fallback

    api_key = get("api_key", os.getenv("MAILGUN_API_KEY"))
    domain = get("domain", os.getenv("MAILGUN_DOMAIN"))
    api_url = get("api_url", os.getenv("MAILGUN_API_URL")) or DEFAULT_API_URL

    if not api_key or not domain:
        raise ValueError("Mailgun api_key and domain must be set (MAILGUN_API_KEY / MAILGUN_DOMAIN)")

    return MailgunConfig(api_key=api_key, domain=domain, api_url=api_url.rstrip("/"))
