"""
Self-ping keeping a sleeping host (free-tier PaaS) awake
"""
import logging
import time

import requests

logger = logging.getLogger(__name__)


def ping(url, timeout=30, retries=3, backoff=5, sleep=time.sleep):
    """
    GET url until it answers 2xx; at most `retries` attempts `backoff` seconds apart.

    Returns True on success. Never raises for network failures.
    """
    for attempt in range(1, retries + 1):
        try:
            response = requests.get(url, timeout=timeout, headers={'User-Agent': 'keep-alive'})
            if response.ok:
                logger.info(f"Keep-alive ping ok: {url} ({response.status_code})")
                return True
            logger.warning(f"Keep-alive ping attempt {attempt}/{retries} got {response.status_code} from {url}")
        except requests.RequestException as e:
            logger.warning(f"Keep-alive ping attempt {attempt}/{retries} failed for {url}: {e}")
        if attempt < retries:
            sleep(backoff)
    logger.error(f"Keep-alive ping gave up after {retries} attempts: {url}")
    return False


def ping_from_config(config):
    url = config.get('KEEP_ALIVE_URL')
    if not url:
        return False
    return ping(
        url.rstrip('/') + '/api/keep-alive/ping',
        timeout=config['KEEP_ALIVE_TIMEOUT'],
        retries=config['KEEP_ALIVE_RETRIES'],
        backoff=config['KEEP_ALIVE_BACKOFF'],
    )
