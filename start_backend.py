#!/usr/bin/env python3
"""
Startup script for the Invoice2Sheet backend
"""

import logging
import sys

import requests

from app import app
from extraction.config import get_config

logger = logging.getLogger("start_backend")


def check_openai(config) -> bool:
    """Check that an OpenAI key is configured"""
    if config.validate_ai_config():
        logger.info("OpenAI key is set (model: %s)", config.openai_model)
        return True
    logger.error("OPENAI_API_KEY is not set; /api/parse will answer 500")
    return False


def check_supabase(config) -> bool:
    """Check that Supabase is configured and its auth service answers"""
    if not config.storage_configured():
        logger.warning("Supabase is not configured; history will not be saved")
        return False
    storage = config.get_storage_config()
    try:
        response = requests.get(
            f"{storage['url']}/auth/v1/health",
            headers={"apikey": storage["service_key"]},
            timeout=5,
        )
    except requests.exceptions.ConnectionError:
        logger.error("Supabase at %s is not reachable", storage["url"])
        return False
    except requests.RequestException as e:
        logger.error("Error checking Supabase: %s", e)
        return False
    if response.status_code != 200:
        logger.error("Supabase auth responded with status %s", response.status_code)
        return False
    logger.info("Supabase auth is reachable")
    return True


def main():
    config = get_config()
    logger.info("Starting Invoice2Sheet backend...")

    if not check_openai(config):
        sys.exit(1)
    check_supabase(config)

    logger.info("API health: http://localhost:8000/health")
    app.run(host="0.0.0.0", port=8000, debug=not config.is_production())


if __name__ == "__main__":
    main()
