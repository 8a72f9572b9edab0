import threading
import typing as t
import abc

from rbstore.exc import RBStoreError


class HaltInterrupt(KeyboardInterrupt):
    pass


class HaltFlag(t.Protocol):

    def check_continue(self, raise_ex: bool = True) -> bool:
        if not self._should_continue():
            if raise_ex:
                raise HaltInterrupt()
            return False
        return True

    def _should_continue(self) -> bool:
        raise NotImplementedError()

    @staticmethod
    def iterate(iterable: t.Iterable, halt_flag=None, raise_ex: bool = True):
        if halt_flag is None:
            yield from iterable
        else:
            for x in iterable:
                if not halt_flag.check_continue(raise_ex):
                    break
                yield x


class EventHaltFlag(HaltFlag):
    """Halt flag that trips once the given event is set."""

    def __init__(self, event: threading.Event = None):
        self._event = event or threading.Event()

    def halt(self):
        self._event.set()

    def _should_continue(self) -> bool:
        return not self._event.is_set()


@t.runtime_checkable
class Readable(t.Protocol):

    @abc.abstractmethod
    def read(self, chunk_size: int) -> bytes:
        pass


def iter_chunks(source, buffer_size: int, halt_flag: HaltFlag = None) -> t.Iterable[bytes]:
    """Yield the content of bytes, a readable object or an iterable of bytes in chunks."""
    if isinstance(source, (bytes, bytearray, memoryview)):
        data = bytes(source)
        for start in range(0, len(data), buffer_size):
            if halt_flag is not None:
                halt_flag.check_continue(True)
            yield data[start:start + buffer_size]
    elif isinstance(source, Readable):
        if halt_flag is not None:
            halt_flag.check_continue(True)
        x = source.read(buffer_size)
        while x:
            yield x
            if halt_flag is not None:
                halt_flag.check_continue(True)
            x = source.read(buffer_size)
    elif isinstance(source, str):
        raise RBStoreError("Cannot read chunks from [str], encode it to bytes first", "UTIL", 1001)
    elif hasattr(source, '__iter__'):
        buffer = bytearray()
        for piece in HaltFlag.iterate(source, halt_flag, True):
            buffer.extend(piece)
            while len(buffer) >= buffer_size:
                yield bytes(buffer[:buffer_size])
                del buffer[:buffer_size]
        if buffer:
            yield bytes(buffer)
    else:
        raise RBStoreError(f"Cannot read chunks from [{source.__class__.__name__}]", "UTIL", 1000)
