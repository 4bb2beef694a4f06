import os
import sys
import atexit
import shutil
import tempfile
import unittest

# Add project root to Python path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from har_trackers.managers.soa_resolver import SOAResolver
from har_trackers.utils.public_suffix_updater import parse_public_suffix_list
from dns_fakes import PUBLIC_SUFFIXES, FakeResolver


def make_resolver(fake, **kwargs):
    kwargs.setdefault('use_cache', False)
    return SOAResolver(PUBLIC_SUFFIXES, resolver=fake, **kwargs)


class TestSOAResolver(unittest.TestCase):

    def test_direct_soa(self):
        fake = FakeResolver(zones={'example.com': 'hostmaster.example.com.'})
        resolver = make_resolver(fake)

        resolution = resolver.resolve('example.com')

        self.assertTrue(resolution.ok)
        self.assertEqual(resolution.organization, 'hostmaster.example.com.')

    def test_second_lookup_is_a_cache_hit(self):
        """Resolving the same host twice performs a single DNS query"""
        fake = FakeResolver(zones={'example.com': 'hostmaster.example.com.'})
        resolver = make_resolver(fake)

        first = resolver.resolve('example.com')
        second = resolver.resolve('example.com')

        self.assertEqual(first.organization, second.organization)
        self.assertEqual(fake.count('SOA'), 1)

    def test_parent_fallback(self):
        """A host without its own SOA gets the SOA of its parent"""
        fake = FakeResolver(zones={'tracker.com': 'dns-admin.tracker.com.'})
        resolver = make_resolver(fake)

        resolution = resolver.resolve('ads.eu.tracker.com')

        self.assertEqual(resolution.organization, 'dns-admin.tracker.com.')
        self.assertEqual(
            [name for name, _ in fake.queries],
            ['ads.eu.tracker.com', 'eu.tracker.com', 'tracker.com'],
        )
        # The original host, the intermediate domain and the answering domain are cached
        for name in ('ads.eu.tracker.com', 'eu.tracker.com', 'tracker.com'):
            self.assertEqual(resolver.cache[name], 'dns-admin.tracker.com.')

    def test_walk_uses_cached_parent(self):
        fake = FakeResolver(zones={'tracker.com': 'dns-admin.tracker.com.'})
        resolver = make_resolver(fake)
        resolver.resolve('tracker.com')

        resolution = resolver.resolve('cdn.tracker.com')

        self.assertEqual(resolution.organization, 'dns-admin.tracker.com.')
        # cdn.tracker.com was queried once, tracker.com came from the cache
        self.assertEqual(fake.count('SOA'), 2)
        self.assertEqual(resolver.cache['cdn.tracker.com'], 'dns-admin.tracker.com.')

    def test_subdomain_with_own_zone(self):
        fake = FakeResolver(zones={
            'blog.example.com': 'admin.blogging-platform.net.',
            'example.com': 'hostmaster.example.com.',
        })
        resolver = make_resolver(fake)

        self.assertEqual(resolver.resolve('blog.example.com').organization, 'admin.blogging-platform.net.')
        self.assertEqual(resolver.resolve('www.example.com').organization, 'hostmaster.example.com.')

    def test_no_soa_up_to_registrable_domain(self):
        """The walk never goes above the registrable domain"""
        fake = FakeResolver(zones={'com': 'nstld.verisign-grs.com.'})
        resolver = make_resolver(fake)

        resolution = resolver.resolve('www.nowhere.com')

        self.assertFalse(resolution.ok)
        self.assertIn('no SOA record', resolution.error)
        self.assertNotIn(('com', 'SOA'), fake.queries)
        self.assertNotIn('www.nowhere.com', resolver.cache)

    def test_internationalized_suffix_is_never_queried(self):
        suffixes = parse_public_suffix_list(["cn", "公司.cn"])
        fake = FakeResolver(zones={
            'xn--55qx5d.cn': 'registry.cnnic.cn.',
            'a.xn--55qx5d.cn': 'admin.a-corp.cn.',
            'b.xn--55qx5d.cn': 'admin.b-corp.cn.',
        })
        resolver = SOAResolver(suffixes, resolver=fake, use_cache=False)

        first = resolver.resolve('www.a.xn--55qx5d.cn')
        second = resolver.resolve('www.b.xn--55qx5d.cn')

        self.assertEqual(first.organization, 'admin.a-corp.cn.')
        self.assertEqual(second.organization, 'admin.b-corp.cn.')
        self.assertNotIn(('xn--55qx5d.cn', 'SOA'), fake.queries)

    def test_timeout_is_a_failure(self):
        fake = FakeResolver(zones={'slow.com': 'admin.slow.com.'}, timeouts={'slow.com'})
        resolver = make_resolver(fake)

        resolution = resolver.resolve('slow.com')

        self.assertFalse(resolution.ok)
        self.assertIn('Timeout', resolution.error)

    def test_ip_address_is_reverse_resolved(self):
        fake = FakeResolver(
            zones={'example.com': 'hostmaster.example.com.'},
            ptr={'93.184.216.34': 'server-1.example.com'},
        )
        resolver = make_resolver(fake)

        resolution = resolver.resolve('93.184.216.34')

        self.assertEqual(resolution.organization, 'hostmaster.example.com.')
        self.assertEqual(resolver.cache['93.184.216.34'], 'hostmaster.example.com.')
        self.assertEqual(resolver.cache['server-1.example.com'], 'hostmaster.example.com.')

    def test_ip_address_without_hostname(self):
        fake = FakeResolver()
        resolver = make_resolver(fake)

        resolution = resolver.resolve('10.0.0.1')

        self.assertFalse(resolution.ok)
        self.assertIn('hostname', resolution.error)
        self.assertEqual(fake.count('SOA'), 0)

    def test_cached_mapping_is_never_replaced(self):
        fake = FakeResolver(zones={'example.com': 'hostmaster.example.com.'})
        resolver = make_resolver(fake)
        resolver.resolve('example.com')

        resolver._remember('example.com', 'someone-else.example.net.')

        self.assertEqual(resolver.cache['example.com'], 'hostmaster.example.com.')

    def test_hostname_is_normalized(self):
        fake = FakeResolver(zones={'example.com': 'hostmaster.example.com.'})
        resolver = make_resolver(fake)

        self.assertTrue(resolver.resolve('WWW.Example.com.').ok)
        self.assertIn('www.example.com', resolver.cache)


class TestSOACachePersistence(unittest.TestCase):

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.cache_file = os.path.join(self.temp_dir, 'cache', 'soa_cache.pickle')

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def test_cache_survives_between_runs(self):
        fake = FakeResolver(zones={'example.com': 'hostmaster.example.com.'})
        first_run = make_resolver(fake, cache_file=self.cache_file, use_cache=True)
        first_run.resolve('www.example.com')
        first_run.save_cache()

        other_fake = FakeResolver()
        second_run = make_resolver(other_fake, cache_file=self.cache_file, use_cache=True)
        resolution = second_run.resolve('www.example.com')

        self.assertEqual(resolution.organization, 'hostmaster.example.com.')
        self.assertEqual(other_fake.queries, [])
        for resolver in (first_run, second_run):
            atexit.unregister(resolver.save_cache)

    def test_save_reports_lookup_counts(self):
        fake = FakeResolver(
            zones={'example.com': 'hostmaster.example.com.'},
            ptr={'93.184.216.34': 'server-1.example.com'},
        )
        resolver = make_resolver(fake, cache_file=self.cache_file, use_cache=True)
        resolver.resolve('93.184.216.34')

        with self.assertLogs('har_trackers.managers.soa_resolver', level='DEBUG') as logs:
            resolver.save_cache()
        atexit.unregister(resolver.save_cache)

        self.assertIn('performed 2 SOA lookups and 1 reverse lookups', logs.output[0])

    def test_disabled_cache_writes_nothing(self):
        fake = FakeResolver(zones={'example.com': 'hostmaster.example.com.'})
        resolver = make_resolver(fake, cache_file=self.cache_file, use_cache=False)
        resolver.resolve('example.com')
        resolver.save_cache()

        self.assertFalse(os.path.exists(self.cache_file))


if __name__ == "__main__":
    unittest.main()
