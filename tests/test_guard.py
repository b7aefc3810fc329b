import asyncio
import unittest
from datetime import date, time

from qtmon.storage.errors import UnknownIdentifierError
from qtmon.storage.guard import ReadWriteLock, StoreGuard

from fakes import account, balance


class ReadWriteLockTests(unittest.IsolatedAsyncioTestCase):
    async def test_readers_share(self):
        lock = ReadWriteLock()
        await lock.acquire_read()
        await asyncio.wait_for(lock.acquire_read(), timeout=1)
        self.assertEqual(lock.readers, 2)
        await lock.release_read()
        await lock.release_read()
        self.assertEqual(lock.readers, 0)

    async def test_writer_waits_for_readers(self):
        lock = ReadWriteLock()
        await lock.acquire_read()
        writer = asyncio.create_task(lock.acquire_write())
        await asyncio.sleep(0.01)
        self.assertFalse(writer.done())
        await lock.release_read()
        await asyncio.wait_for(writer, timeout=1)
        self.assertTrue(lock.writing)
        await lock.release_write()
        self.assertFalse(lock.writing)

    async def test_waiting_writer_blocks_new_readers(self):
        lock = ReadWriteLock()
        order = []
        await lock.acquire_read()

        async def write():
            await lock.acquire_write()
            order.append("write")
            await lock.release_write()

        async def read():
            await lock.acquire_read()
            order.append("read")
            await lock.release_read()

        w = asyncio.create_task(write())
        await asyncio.sleep(0.01)
        r = asyncio.create_task(read())
        await asyncio.sleep(0.01)
        self.assertEqual(order, [])
        await lock.release_read()
        await asyncio.wait_for(asyncio.gather(w, r), timeout=1)
        self.assertEqual(order, ["write", "read"])


class StoreGuardTests(unittest.IsolatedAsyncioTestCase):
    async def test_write_then_query(self):
        guard = StoreGuard()
        async with guard.write() as store:
            store.insert_account("Primary", account("123"))
            store.insert_balance("123", date(2024, 3, 4), time(9, 30), balance(1010.0), balance(1000.0))
        self.assertEqual(await guard.get_account_list(), ["Primary"])
        self.assertEqual(await guard.account_numbers(), ["123"])
        latest = await guard.get_latest_balance("Primary", date(2024, 3, 4))
        self.assertEqual(latest.total_equity, 1010.0)

    async def test_errors_release_lock(self):
        guard = StoreGuard()
        with self.assertRaises(UnknownIdentifierError):
            await guard.get_account_info("nope")
        self.assertEqual(guard.lock.readers, 0)
        async with guard.write():
            pass
        self.assertFalse(guard.lock.writing)


if __name__ == "__main__":
    unittest.main()
