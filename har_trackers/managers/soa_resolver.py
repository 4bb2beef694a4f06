import os
import pickle
import atexit
import logging

import dns.exception
import dns.rdatatype
import dns.resolver
from cachetools import TTLCache

from har_trackers.config import (
    DNS_LIFETIME,
    SOA_CACHE_FILE,
    SOA_CACHE_MAXSIZE,
    SOA_CACHE_SAVE_EVERY,
    SOA_CACHE_TTL,
)
from har_trackers.models import Resolution
from har_trackers.utils.domain_parser import domain_walk, is_ip_address, normalize_host

logger = logging.getLogger(__name__)


class SOAResolver:
    """
    Resolves hostnames to the organization owning their DNS zone.

    The organization is the administrator mailbox (RNAME) of the SOA record of
    the zone. Hosts without their own SOA are resolved through their parent
    domains, up to the registrable domain.

    Every resolved name is kept in the SOA cache:
    host / domain -> administrator string. A mapping is never replaced once
    recorded, so repeated lookups of the same name are answered from memory.
    The cache is pickled to disk on exit and after every 100 additions.
    """

    def __init__(self, public_suffixes, cache_file=SOA_CACHE_FILE, use_cache=True,
                 lifetime=DNS_LIFETIME, resolver=None):
        self.public_suffixes = public_suffixes
        self.cache = TTLCache(maxsize=SOA_CACHE_MAXSIZE, ttl=SOA_CACHE_TTL)
        self.cache_file = cache_file
        self.use_cache = use_cache and cache_file is not None

        if resolver is None:
            resolver = dns.resolver.Resolver()
            resolver.lifetime = lifetime
        self._resolver = resolver

        self.soa_lookup_count = 0
        self.reverse_lookup_count = 0
        self.cache_additions = 0

        if self.use_cache:
            self._load_cache()
            # Register cleanup on exit
            atexit.register(self.save_cache)

    def _load_cache(self):
        """Load the SOA cache from file if it exists"""
        try:
            if os.path.exists(self.cache_file):
                with open(self.cache_file, 'rb') as f:
                    cached_data = pickle.load(f)
                for key, value in cached_data.items():
                    self.cache[key] = value
                logger.info("Loaded %d SOA entries from cache", len(cached_data))
        except (OSError, pickle.PickleError, EOFError) as e:
            logger.warning("Error loading SOA cache: %s", e)

    def save_cache(self):
        """Save the SOA cache to disk (public method that can be called manually)"""
        if not self.use_cache:
            return
        try:
            os.makedirs(os.path.dirname(self.cache_file) or '.', exist_ok=True)
            # Convert TTLCache to a regular dict for serialization
            cache_dict = dict(self.cache.items())
            with open(self.cache_file, 'wb') as f:
                pickle.dump(cache_dict, f)
            logger.debug("Saved %d SOA entries to cache, performed %d SOA lookups and %d reverse lookups",
                         len(cache_dict), self.soa_lookup_count, self.reverse_lookup_count)
        except (OSError, pickle.PickleError) as e:
            logger.error("Error saving SOA cache: %s", e)

    def _remember(self, name, organization):
        """Record a mapping unless the name is already known."""
        if name in self.cache:
            return
        self.cache[name] = organization
        self.cache_additions += 1
        if self.use_cache and self.cache_additions >= SOA_CACHE_SAVE_EVERY:
            self.save_cache()
            self.cache_additions = 0

    def _reverse_lookup(self, ip):
        """Get the hostname of an IP address from its PTR record."""
        self.reverse_lookup_count += 1
        answers = self._resolver.resolve_address(ip)
        return normalize_host(answers[0].target.to_text())

    def _query_soa(self, name):
        """Get the SOA administrator of a name, or None if the name has no SOA record.

        Timeouts and unreachable name servers are raised to the caller.
        """
        self.soa_lookup_count += 1
        try:
            answers = self._resolver.resolve(name, 'SOA')
        except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer):
            return None

        record = answers[0]
        if record.rdtype != dns.rdatatype.SOA:
            return None
        return record.rname.to_text()

    def resolve(self, host) -> Resolution:
        """
        Resolve a hostname (or IP address) to its organizational identifier.

        Args:
            host: Hostname or literal IP address

        Returns:
            Resolution: organization set on success, error set otherwise
        """
        original = normalize_host(host or '')
        if not original:
            return Resolution(host or '', error="empty hostname")

        if original in self.cache:
            return Resolution(original, organization=self.cache[original])

        lookup_host = original
        if is_ip_address(original):
            try:
                lookup_host = self._reverse_lookup(original)
            except dns.exception.DNSException as e:
                return Resolution(original, error=f"cannot get the hostname of {original} ({e.__class__.__name__})")
            logger.debug("Transformed IP %s to %s", original, lookup_host)

        visited = [original]
        if lookup_host != original:
            visited.append(lookup_host)

        organization = None
        for name in domain_walk(lookup_host, self.public_suffixes):
            if name in self.cache:
                organization = self.cache[name]
                break
            if name not in visited:
                visited.append(name)
            try:
                organization = self._query_soa(name)
            except dns.exception.DNSException as e:
                return Resolution(original, error=f"SOA lookup of {name} failed ({e.__class__.__name__})")
            if organization is not None:
                break

        if organization is None:
            return Resolution(original, error=f"no SOA record found for {lookup_host} up to its registrable domain")

        for name in visited:
            self._remember(name, organization)
        return Resolution(original, organization=organization)
