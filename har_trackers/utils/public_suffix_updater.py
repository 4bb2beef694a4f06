import os
import logging
from datetime import datetime, timedelta

import requests

from har_trackers.config import PSL_CACHE_FILE, PSL_MAX_AGE_DAYS, PSL_URL
from har_trackers.models import ConfigurationError

logger = logging.getLogger(__name__)


def encode_rule(rule):
    """Convert a PSL rule to the ASCII form hostnames have in URLs.

    The list writes internationalized suffixes in Unicode ("公司.cn") while
    hostnames are punycode ("xn--55qx5d.cn"). The "!" and "*." prefixes are kept.
    """
    prefix = ''
    if rule.startswith('!'):
        prefix, rule = '!', rule[1:]
    labels = rule.split('.')
    encoded = []
    for label in labels:
        if label == '*' or label.isascii():
            encoded.append(label)
        else:
            encoded.append(label.encode('idna').decode('ascii'))
    return prefix + '.'.join(encoded)


def parse_public_suffix_list(lines):
    """Extract the rules from the lines of a PSL file (comments and blanks skipped)."""
    suffixes = set()
    for line in lines:
        line = line.strip()
        if not line or line.startswith('//'):
            continue
        # A rule ends at the first whitespace
        rule = line.split()[0].lower()
        try:
            suffixes.add(encode_rule(rule))
        except UnicodeError as e:
            logger.warning("Skipping public suffix rule %r: %s", rule, e)
    return suffixes


def load_public_suffix_file(path):
    with open(path, 'r', encoding='utf-8') as f:
        return parse_public_suffix_list(f)


def update_public_suffix_list(force_update=False, cache_file=PSL_CACHE_FILE,
                              max_age_days=PSL_MAX_AGE_DAYS, timeout=30):
    """Download or update the Public Suffix List.

    Args:
        force_update (bool): If True, download new list regardless of cache age
        cache_file (str): Where the downloaded list is kept
        max_age_days (int): Age after which the cached list is refreshed
        timeout (int): HTTP timeout in seconds

    Returns:
        set: Set of public suffix rules

    Raises:
        ConfigurationError: no list could be downloaded and no cached copy exists
    """
    cache_max_age = timedelta(days=max_age_days)

    if not force_update and os.path.exists(cache_file):
        mtime = datetime.fromtimestamp(os.path.getmtime(cache_file))
        if datetime.now() - mtime < cache_max_age:
            logger.debug("Using cached Public Suffix List %s", cache_file)
            return load_public_suffix_file(cache_file)

    try:
        logger.info("Downloading fresh Public Suffix List...")
        response = requests.get(PSL_URL, timeout=timeout)
        response.raise_for_status()
        response.encoding = 'utf-8'

        os.makedirs(os.path.dirname(cache_file) or '.', exist_ok=True)
        with open(cache_file, 'w', encoding='utf-8') as f:
            f.write(response.text)

        suffixes = parse_public_suffix_list(response.text.splitlines())
        logger.info("Downloaded %d public suffixes", len(suffixes))
        return suffixes

    except (requests.RequestException, OSError) as e:
        logger.error("Error downloading Public Suffix List: %s", e)
        if os.path.exists(cache_file):
            logger.warning("Using cached version as fallback")
            return load_public_suffix_file(cache_file)
        raise ConfigurationError(f"the Public Suffix List is unavailable: {e}") from e
