import io
import unittest as ut

from rbstore.exc import RBStoreError
from rbstore.util import EventHaltFlag, HaltInterrupt, iter_chunks


class TestIterChunks(ut.TestCase):

    def test_bytes(self):
        self.assertEqual([b"abc", b"de"], list(iter_chunks(b"abcde", 3)))

    def test_readable(self):
        self.assertEqual([b"abc", b"de"], list(iter_chunks(io.BytesIO(b"abcde"), 3)))

    def test_iterable_is_rechunked(self):
        source = iter([b"a", b"bcdefgh", b"", b"ij"])
        self.assertEqual([b"abc", b"def", b"ghi", b"j"], list(iter_chunks(source, 3)))

    def test_iterable_never_exceeds_buffer(self):
        chunks = list(iter_chunks([b"x" * 10], 4))
        self.assertEqual([4, 4, 2], [len(c) for c in chunks])

    def test_empty_iterable(self):
        self.assertEqual([], list(iter_chunks(iter([]), 3)))

    def test_str_is_rejected(self):
        with self.assertRaises(RBStoreError) as h:
            list(iter_chunks("abc", 3))
        self.assertEqual("UTIL-1001", h.exception.internal_code)

    def test_unknown_source(self):
        with self.assertRaises(RBStoreError):
            list(iter_chunks(12, 3))

    def test_halt(self):
        halt_flag = EventHaltFlag()
        halt_flag.halt()
        with self.assertRaises(HaltInterrupt):
            list(iter_chunks([b"abc"], 3, halt_flag))
