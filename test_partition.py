from __future__ import annotations

import io
import os
import threading
import unittest

from cpack.partition import PartitionedFile, SharedSource
from cpack.reader import CPack
from cpack.errors import ArchiveIOError, PoisonedLockError

from test_reader import _build_cpack


DATA = bytes(range(256)) * 4


class FlakyIO(io.BytesIO):
    """BytesIO whose reads can be made to blow up or fail on demand."""

    explode = False
    fail = False

    def read(self, *args):
        if self.explode:
            raise RuntimeError("boom")
        if self.fail:
            raise OSError("read failed")
        return super().read(*args)


class WindowTests(unittest.TestCase):
    def setUp(self):
        self.source = SharedSource(io.BytesIO(DATA))

    def test_reads_stay_inside_window(self):
        view = PartitionedFile(self.source, 100, 10)
        self.assertEqual(view.read(), DATA[100:110])
        self.assertEqual(view.read(), b"")
        self.assertEqual(view.read(5), b"")

    def test_oversized_read_is_clamped(self):
        view = PartitionedFile(self.source, 10, 4)
        self.assertEqual(view.read(1000), DATA[10:14])

    def test_seek_whence_variants(self):
        view = PartitionedFile(self.source, 50, 20)
        self.assertEqual(view.seek(5), 5)
        self.assertEqual(view.read(3), DATA[55:58])
        self.assertEqual(view.seek(-2, os.SEEK_CUR), 6)
        self.assertEqual(view.read(1), DATA[56:57])
        self.assertEqual(view.seek(-4, os.SEEK_END), 16)
        self.assertEqual(view.read(), DATA[66:70])
        self.assertEqual(view.tell(), 20)

    def test_seek_past_end_reads_nothing(self):
        view = PartitionedFile(self.source, 50, 20)
        self.assertEqual(view.seek(500), 500)
        self.assertEqual(view.tell(), 500)
        self.assertEqual(view.read(), b"")

    def test_negative_seek_rejected(self):
        view = PartitionedFile(self.source, 50, 20)
        with self.assertRaises(ValueError):
            view.seek(-1)
        with self.assertRaises(ValueError):
            view.seek(-21, os.SEEK_END)
        with self.assertRaises(ValueError):
            view.seek(0, 7)
        self.assertEqual(view.tell(), 0)

    def test_reseeks_regardless_of_shared_cursor(self):
        a = PartitionedFile(self.source, 0, 8)
        b = PartitionedFile(self.source, 512, 8)
        self.assertEqual(a.read(4), DATA[0:4])
        self.assertEqual(b.read(4), DATA[512:516])
        with self.source.locked() as f:
            f.seek(900)
        self.assertEqual(a.read(4), DATA[4:8])
        self.assertEqual(b.read(4), DATA[516:520])

    def test_empty_window(self):
        view = PartitionedFile(self.source, 30, 0)
        self.assertEqual(len(view), 0)
        self.assertEqual(view.read(), b"")

    def test_invalid_window(self):
        with self.assertRaises(ValueError):
            PartitionedFile(self.source, -1, 4)
        with self.assertRaises(ValueError):
            PartitionedFile(self.source, 0, -4)

    def test_io_interface(self):
        view = PartitionedFile(self.source, 0, 16)
        self.assertTrue(view.readable())
        self.assertTrue(view.seekable())
        self.assertFalse(view.writable())
        buffered = io.BufferedReader(view)
        self.assertEqual(buffered.read(), DATA[:16])

    def test_closed_view(self):
        view = PartitionedFile(self.source, 0, 16)
        self.assertEqual(self.source.refcount, 1)
        view.close()
        view.close()
        self.assertEqual(self.source.refcount, 0)
        with self.assertRaises(ValueError):
            view.read()
        with self.assertRaises(ValueError):
            view.seek(0)

    def test_read_failure_is_io_error(self):
        raw = FlakyIO(DATA)
        view = PartitionedFile(SharedSource(raw), 0, 16)
        raw.fail = True
        with self.assertRaises(ArchiveIOError) as ctx:
            view.read(4)
        self.assertIsInstance(ctx.exception, OSError)
        raw.fail = False
        self.assertEqual(view.read(4), DATA[:4])


class SharedSourceTests(unittest.TestCase):
    def test_owned_source_closes_on_last_release(self):
        raw = io.BytesIO(DATA)
        src = SharedSource(raw, owned=True).retain()
        view = PartitionedFile(src, 0, 4)
        src.release()
        self.assertFalse(raw.closed)
        view.close()
        self.assertTrue(raw.closed)

    def test_unowned_source_left_open(self):
        raw = io.BytesIO(DATA)
        src = SharedSource(raw).retain()
        src.release()
        src.release()
        self.assertEqual(src.refcount, 0)
        self.assertFalse(raw.closed)

    def test_closed_owned_source_cannot_be_retained(self):
        raw = io.BytesIO(DATA)
        src = SharedSource(raw, owned=True).retain()
        src.release()
        self.assertTrue(src.closed)
        self.assertTrue(raw.closed)
        with self.assertRaises(ValueError):
            src.retain()
        with self.assertRaises(ValueError):
            PartitionedFile(src, 0, 4)
        self.assertEqual(src.refcount, 0)

    def test_rejected_view_gives_back_its_reference(self):
        class Unseekable(io.BytesIO):
            def seekable(self):
                return False

        src = SharedSource(Unseekable(DATA)).retain()
        with self.assertRaises(io.UnsupportedOperation):
            PartitionedFile(src, 0, 4)
        self.assertEqual(src.refcount, 1)

    def test_unexpected_error_poisons_lock(self):
        raw = FlakyIO(DATA)
        src = SharedSource(raw)
        view = PartitionedFile(src, 0, 16)
        raw.explode = True
        with self.assertRaises(RuntimeError):
            view.read(4)
        self.assertTrue(src.poisoned)
        raw.explode = False
        with self.assertRaises(PoisonedLockError):
            view.read(4)
        with self.assertRaises(PoisonedLockError):
            view.seek(0)
        with self.assertRaises(PoisonedLockError):
            PartitionedFile(src, 0, 4)

    def test_os_error_does_not_poison(self):
        raw = FlakyIO(DATA)
        src = SharedSource(raw)
        view = PartitionedFile(src, 0, 16)
        raw.fail = True
        with self.assertRaises(OSError):
            view.read(4)
        self.assertFalse(src.poisoned)

    def test_poisoned_archive_source(self):
        raw = FlakyIO(_build_cpack([b"alpha", b"beta"]))
        pack = CPack(raw)
        view = pack.get_file(0)
        raw.explode = True
        with self.assertRaises(RuntimeError):
            view.read()
        raw.explode = False
        with self.assertRaises(PoisonedLockError):
            pack.get_file(1)


class IsolationTests(unittest.TestCase):
    def test_interleaved_threads_see_only_their_entry(self):
        payload_a = bytes([0xAA]) * 65536
        payload_b = bytes(range(256)) * 256
        pack = CPack(io.BytesIO(_build_cpack([payload_a, payload_b])))
        results = {}
        barrier = threading.Barrier(2)

        def worker(file_id: int):
            view = pack.get_file(file_id)
            barrier.wait()
            chunks = []
            while True:
                chunk = view.read(97)
                if not chunk:
                    break
                chunks.append(chunk)
                # Move the shared cursor around between our own reads.
                view.seek(view.tell())
            results[file_id] = b"".join(chunks)

        threads = [threading.Thread(target=worker, args=(i,)) for i in (0, 1)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(results[0], payload_a)
        self.assertEqual(results[1], payload_b)

    def test_archive_closed_while_view_is_created(self):
        class CloseDuringCheck(io.BytesIO):
            pack = None

            def seekable(self):
                if self.pack is not None:
                    closer = threading.Thread(target=self.pack.close)
                    closer.start()
                    closer.join()
                return super().seekable()

        payload = b"survives"
        raw = CloseDuringCheck(_build_cpack([payload]))
        pack = CPack(raw, _owned=True)
        raw.pack = pack
        view = pack.get_file(0)
        raw.pack = None
        self.assertTrue(pack.closed)
        self.assertFalse(raw.closed)
        self.assertEqual(view.read(), payload)
        self.assertFalse(pack.source.poisoned)
        view.close()
        self.assertTrue(raw.closed)

    def test_many_views_same_entry_concurrently(self):
        payload = os.urandom(10000)
        pack = CPack(io.BytesIO(_build_cpack([b"x" * 100, payload, b"y" * 100])))
        errors = []

        def worker():
            for _ in range(20):
                with pack.get_file(1) as view:
                    if view.read() != payload:
                        errors.append("mismatch")

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertEqual(errors, [])


if __name__ == "__main__":
    unittest.main()
