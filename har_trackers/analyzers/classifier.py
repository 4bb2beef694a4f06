"""
Classification of third-party requests.

An entry that belongs to another organization than the website is put in at
most one category. The rules below are evaluated in order and the first rule
whose condition holds decides, even when it leaves the entry uncounted (an
image that is not a 1x1 pixel is never looked at as a cookie tracker).

    1. JavaScript           -> js (and js-query when the URL has a "?")
    2. Flash                -> flash
    3. Raster image         -> pixels if the image is 1x1, uncounted otherwise
    4. Response cookies     -> cookies, one row per cookie
    5. URL with parameters  -> parameters
"""
from dataclasses import dataclass
from typing import Callable, Tuple

from har_trackers.models import CapturedEntry, Category, Classification

JAVASCRIPT_MIMETYPES = frozenset({
    'application/x-javascript',
    'application/javascript',
    'text/javascript',
})
FLASH_MIMETYPE = 'application/x-shockwave-flash'
IMAGE_MIMETYPES = frozenset({
    'image/jpeg',
    'image/jpg',
    'image/png',
    'image/gif',
    'image/bmp',
    'image/x-icon',
})


@dataclass(frozen=True)
class ClassificationRule:
    name: str
    applies: Callable[[CapturedEntry], bool]
    assign: Callable[[CapturedEntry, object], Classification]


def _script(entry, prober):
    return Classification(Category.SCRIPT, rows=((entry.url,),), with_query=entry.has_query)


def _plugin(entry, prober):
    return Classification(Category.PLUGIN, rows=((entry.url,),))


def _image(entry, prober):
    probe = prober.probe(entry.url)
    if not probe.ok:
        return Classification(error=probe.error)
    if probe.is_pixel:
        return Classification(Category.PIXEL, rows=((entry.url,),))
    return Classification()


def _cookies(entry, prober):
    rows = tuple(
        (entry.url, cookie.domain, cookie.name, cookie.value, cookie.path)
        for cookie in entry.cookies
    )
    return Classification(Category.COOKIE, rows=rows)


def _parameters(entry, prober):
    return Classification(Category.PARAMETERS, rows=((entry.url,),))


CLASSIFICATION_RULES: Tuple[ClassificationRule, ...] = (
    ClassificationRule('javascript', lambda entry: entry.mimetype in JAVASCRIPT_MIMETYPES, _script),
    ClassificationRule('flash', lambda entry: entry.mimetype == FLASH_MIMETYPE, _plugin),
    ClassificationRule('image', lambda entry: entry.mimetype in IMAGE_MIMETYPES, _image),
    ClassificationRule('cookies', lambda entry: len(entry.cookies) > 0, _cookies),
    ClassificationRule('parameters', lambda entry: entry.has_query, _parameters),
)


def select_rule(entry, rules=CLASSIFICATION_RULES):
    """Return the first rule that applies to the entry, or None."""
    for rule in rules:
        if rule.applies(entry):
            return rule
    return None


def classify(entry: CapturedEntry, prober, rules=CLASSIFICATION_RULES) -> Classification:
    """Assign a category to an entry known to belong to another organization.

    The prober is only used for image entries.
    """
    rule = select_rule(entry, rules)
    if rule is None:
        return Classification()
    return rule.assign(entry, prober)
