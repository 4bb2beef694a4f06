import os
import re
import json
from typing import Tuple

from har_trackers.config import HAR_EXTENSION
from har_trackers.models import CapturedEntry, CapturedSession, Cookie

_ATTEMPT_SUFFIX = re.compile(r'^(?P<site>.+)-(?P<attempt>\d+)$')


class HarParseError(Exception):
    """The captured session log cannot be read."""


def site_from_filename(filename) -> Tuple[str, int]:
    """Split a HAR filename into the website name and the capture attempt.

    example.com-3.har -> ("example.com", 3)
    example.com.har   -> ("example.com", 0)
    """
    name = os.path.basename(filename)
    if name.endswith(HAR_EXTENSION):
        name = name[:-len(HAR_EXTENSION)]
    match = _ATTEMPT_SUFFIX.match(name)
    if match:
        return match.group('site'), int(match.group('attempt'))
    return name, 0


def _text(value):
    return '' if value is None else str(value)


def _parse_entry(raw):
    url = raw['request']['url']
    response = raw.get('response') or {}
    content = response.get('content') or {}
    cookies = tuple(
        Cookie(
            domain=_text(cookie.get('domain')),
            name=_text(cookie.get('name')),
            value=_text(cookie.get('value')),
            path=_text(cookie.get('path')),
        )
        for cookie in response.get('cookies') or []
    )
    return CapturedEntry(url=url, mimetype=_text(content.get('mimeType')), cookies=cookies)


def load_session(path, site=None) -> CapturedSession:
    """Read a HAR file into a CapturedSession.

    Raises:
        HarParseError: the file cannot be read or is not a HAR log
    """
    if site is None:
        site, _ = site_from_filename(path)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            har = json.load(f)
        entries = [_parse_entry(raw) for raw in har['log']['entries']]
    except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
        raise HarParseError(f"cannot parse {os.path.basename(path)}: {e.__class__.__name__}: {e}") from e
    return CapturedSession(site=site, path=path, entries=entries)
