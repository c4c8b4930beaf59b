#!/usr/bin/env python3
"""
Unit tests for the durable cache tier backends.
"""

import asyncio
import json
import tempfile
import unittest
from pathlib import Path

from skycast.cache.durable_store import (
    DurableTierError,
    JsonFileDurableStore,
    SqliteDurableStore,
)


class DurableStoreContract:
    """Behaviour shared by every durable store backend."""

    def make_store(self, directory: Path):
        raise NotImplementedError

    def setUp(self):
        self.test_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self.test_dir.cleanup)
        self.store = self.make_store(Path(self.test_dir.name))

    def test_missing_key_reads_none(self):
        self.assertIsNone(asyncio.run(self.store.read('current_Paris', 1_000)))

    def test_upsert_then_read(self):
        value = {'name': 'Paris', 'temp': 18.4}
        asyncio.run(self.store.upsert('current_Paris', value, 1_000, 61_000))

        record = asyncio.run(self.store.read('current_Paris', 2_000))

        self.assertEqual(record.value, value)
        self.assertEqual(record.cached_at, 1_000)
        self.assertEqual(record.expires_at, 61_000)

    def test_expired_entry_reads_none(self):
        asyncio.run(self.store.upsert('k', [1, 2], 1_000, 61_000))

        self.assertIsNotNone(asyncio.run(self.store.read('k', 60_999)))
        # expires_at must be strictly greater than now
        self.assertIsNone(asyncio.run(self.store.read('k', 61_000)))

    def test_upsert_replaces_existing_entry(self):
        asyncio.run(self.store.upsert('k', 'old', 1_000, 61_000))
        asyncio.run(self.store.upsert('k', 'new', 5_000, 65_000))

        record = asyncio.run(self.store.read('k', 6_000))
        self.assertEqual(record.value, 'new')
        self.assertEqual(record.cached_at, 5_000)

    def test_keys_are_independent(self):
        asyncio.run(self.store.upsert('current_Paris', 'current', 1_000, 61_000))
        asyncio.run(self.store.upsert('forecast_Paris', 'forecast', 1_000, 61_000))

        self.assertEqual(asyncio.run(self.store.read('current_Paris', 2_000)).value, 'current')
        self.assertEqual(asyncio.run(self.store.read('forecast_Paris', 2_000)).value, 'forecast')


class TestJsonFileDurableStore(DurableStoreContract, unittest.TestCase):
    """Test the JSON file backend."""

    def make_store(self, directory: Path):
        self.cache_file = directory / 'state' / 'weather_cache.json'
        return JsonFileDurableStore(str(self.cache_file))

    def test_creates_parent_directory(self):
        asyncio.run(self.store.upsert('k', 'v', 1, 2))
        self.assertTrue(self.cache_file.exists())
        with open(self.cache_file) as f:
            data = json.load(f)
        self.assertEqual(data['k'], {'value': 'v', 'cached_at': 1, 'expires_at': 2})

    def test_corrupt_file_raises_on_read(self):
        self.cache_file.parent.mkdir(parents=True)
        self.cache_file.write_text('{not json')
        with self.assertRaises(DurableTierError):
            asyncio.run(self.store.read('k', 0))

    def test_corrupt_file_is_replaced_on_write(self):
        self.cache_file.parent.mkdir(parents=True)
        self.cache_file.write_text('[]')
        asyncio.run(self.store.upsert('k', 'v', 1, 100))
        self.assertEqual(asyncio.run(self.store.read('k', 2)).value, 'v')

    def test_unserializable_value_raises(self):
        with self.assertRaises(DurableTierError):
            asyncio.run(self.store.upsert('k', object(), 1, 2))

    def test_concurrent_upserts_keep_every_key(self):
        keys = [f'current_city{i}' for i in range(30)]

        async def write_all():
            await asyncio.gather(*(
                self.store.upsert(key, {'i': i}, 1_000, 61_000)
                for i, key in enumerate(keys)
            ))

        asyncio.run(write_all())

        with open(self.cache_file) as f:
            data = json.load(f)
        self.assertEqual(sorted(data), sorted(keys))
        for i, key in enumerate(keys):
            self.assertEqual(asyncio.run(self.store.read(key, 2_000)).value, {'i': i})

    def test_concurrent_upserts_from_two_instances_on_one_file(self):
        other = JsonFileDurableStore(str(self.cache_file))

        async def write_all():
            await asyncio.gather(*(
                (self.store if i % 2 else other).upsert(f'k{i}', i, 1_000, 61_000)
                for i in range(20)
            ))

        asyncio.run(write_all())

        for i in range(20):
            self.assertEqual(asyncio.run(other.read(f'k{i}', 2_000)).value, i)

    def test_no_temp_file_left_after_write(self):
        asyncio.run(self.store.upsert('k', 'v', 1, 100))
        leftovers = [p.name for p in self.cache_file.parent.iterdir() if p.suffix == '.tmp']
        self.assertEqual(leftovers, [])


class TestSqliteDurableStore(DurableStoreContract, unittest.TestCase):
    """Test the SQLite backend."""

    def make_store(self, directory: Path):
        return SqliteDurableStore(str(directory / 'state' / 'weather_cache.db'))

    def test_shared_between_instances(self):
        """Two stores on one database see each other's writes."""
        other = SqliteDurableStore(str(self.store.db_path))
        asyncio.run(self.store.upsert('k', {'a': 1}, 1_000, 61_000))
        self.assertEqual(asyncio.run(other.read('k', 2_000)).value, {'a': 1})

    def test_unwritable_path_raises(self):
        blocker = Path(self.test_dir.name) / 'blocker'
        blocker.write_text('')
        store = SqliteDurableStore(str(blocker / 'cache.db'))
        with self.assertRaises(DurableTierError):
            asyncio.run(store.upsert('k', 'v', 1, 2))


if __name__ == '__main__':
    unittest.main()
