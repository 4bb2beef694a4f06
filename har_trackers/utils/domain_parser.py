import ipaddress
from typing import List, Optional


def normalize_host(host):
    """Lowercase a hostname and strip surrounding whitespace and the root dot."""
    return host.strip().lower().rstrip('.')


def is_ip_address(host):
    try:
        ipaddress.ip_address(host)
        return True
    except ValueError:
        return False


def get_public_suffix(host, public_suffixes) -> Optional[str]:
    """Find the public suffix of a host using the Public Suffix List rules.

    Handles plain rules ("co.uk"), wildcard rules ("*.ck") and exception
    rules ("!www.ck"). When no rule matches, the last label is the suffix
    (the implicit "*" rule).

    Args:
        host (str): Hostname, already lowercased
        public_suffixes (set): Rules from the PSL

    Returns:
        str: The public suffix, e.g. "co.uk" for "analytics.example.co.uk"
    """
    labels = normalize_host(host).split('.')
    if not labels or not labels[0]:
        return None

    # Walk from the longest candidate to the shortest; the first hit is the longest rule
    for i in range(len(labels)):
        candidate = '.'.join(labels[i:])
        if '!' + candidate in public_suffixes:
            return '.'.join(labels[i + 1:])
        if candidate in public_suffixes:
            return candidate
        if i + 1 < len(labels) and '*.' + '.'.join(labels[i + 1:]) in public_suffixes:
            return candidate

    return labels[-1]


def get_registrable_domain(host, public_suffixes) -> Optional[str]:
    """Reduce a host to the domain an organization can register.

    Examples:
        www.a.example.com -> example.com
        metrics.example.co.uk -> example.co.uk
        co.uk -> None (a public suffix has no registrable domain)
    """
    host = normalize_host(host)
    if not host or is_ip_address(host):
        return None

    suffix = get_public_suffix(host, public_suffixes)
    if suffix is None or host == suffix:
        return None

    labels = host.split('.')
    suffix_length = len(suffix.split('.'))
    return '.'.join(labels[-(suffix_length + 1):])


def domain_walk(host, public_suffixes) -> List[str]:
    """List the names to query for a host, from the host up to its registrable domain.

    www.a.example.com -> [www.a.example.com, a.example.com, example.com]

    A host without a registrable domain is tried as-is only.
    """
    host = normalize_host(host)
    registrable = get_registrable_domain(host, public_suffixes)
    if registrable is None:
        return [host] if host else []

    names = []
    labels = host.split('.')
    for i in range(len(labels)):
        name = '.'.join(labels[i:])
        names.append(name)
        if name == registrable:
            break
    return names
