# =============================================================================
# Transport Adapter
# =============================================================================
# asyncio hands back a TLS connection as two halves: a StreamReader and a
# StreamWriter. The IMAP protocol layer (aioimaplib) wants the opposite
# shape: an asyncio.Protocol sitting on a single Transport.
#
#   DuplexStream    - one read/write/flush/close object over the two halves
#   StreamTransport - an asyncio.Transport that pumps a DuplexStream into a
#                     Protocol and forwards the Protocol's writes back
#
# Neither class buffers anything itself; the halves own all buffering.
# =============================================================================

import asyncio
import logging
import ssl
from typing import Any

logger = logging.getLogger(__name__)


class DuplexStream:
    """
    A single duplex byte stream composed from a reader and a writer half.

    Usage:
        >>> reader, writer = await asyncio.open_connection(host, port)
        >>> stream = DuplexStream(reader, writer)
        >>> stream.write(b"a1 NOOP\\r\\n")
        >>> await stream.flush()
        >>> data = await stream.read(4096)
        >>> stream.close()
    """

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._reader = reader
        self._writer = writer

    async def read(self, size: int = -1) -> bytes:
        """Read up to size bytes from the read half. Returns b"" at EOF."""
        return await self._reader.read(size)

    def write(self, data: bytes) -> int:
        """Queue data on the write half and return the number of bytes written."""
        self._writer.write(data)
        return len(data)

    async def flush(self) -> None:
        """Wait until the write half's buffer has drained."""
        await self._writer.drain()

    def close(self) -> None:
        """
        Shut down the write half.

        The read half is left alone; it sees EOF once the peer (or the TLS
        layer) finishes closing.
        """
        if not self._writer.is_closing():
            self._writer.close()

    async def wait_closed(self) -> None:
        """Wait for the connection to finish closing. Teardown errors are logged."""
        try:
            await self._writer.wait_closed()
        except (OSError, ssl.SSLError) as e:
            logger.debug(f"Error while closing stream: {e}")

    def is_closing(self) -> bool:
        return self._writer.is_closing()

    def get_extra_info(self, name: str, default: Any = None) -> Any:
        return self._writer.get_extra_info(name, default)


class StreamTransport(asyncio.Transport):
    """
    Drives an asyncio.Protocol from a DuplexStream.

    start() announces the connection to the protocol and spawns a read pump
    that forwards every chunk to protocol.data_received(). When the stream
    reaches EOF or fails, protocol.connection_lost() is called exactly once.
    """

    # Bytes requested from the stream per read
    READ_CHUNK = 64 * 1024

    def __init__(self, stream: DuplexStream, protocol: asyncio.Protocol) -> None:
        super().__init__()
        self._stream = stream
        self._protocol = protocol
        self._closing = False
        self._lost = False
        self._pump_task: asyncio.Task | None = None

    def start(self) -> None:
        """Attach the protocol and begin reading. Requires a running loop."""
        self._protocol.connection_made(self)
        self._pump_task = asyncio.get_running_loop().create_task(self._pump())

    async def _pump(self) -> None:
        exc: Exception | None = None
        try:
            while True:
                data = await self._stream.read(self.READ_CHUNK)
                if not data:
                    break
                self._protocol.data_received(data)
        except (OSError, ssl.SSLError) as e:
            logger.debug(f"Read pump stopped: {e}")
            exc = e
        except Exception as e:
            logger.warning(f"Protocol failed on received data: {e!r}")
            exc = e
        finally:
            self._connection_lost(exc)

    def _connection_lost(self, exc: Exception | None) -> None:
        if self._lost:
            return
        self._lost = True
        self._protocol.connection_lost(exc)

    async def wait_closed(self, timeout: float | None = None) -> None:
        """
        Wait for the read pump to observe EOF.

        Args:
            timeout: Seconds to wait before the pump is cancelled. None waits
                indefinitely.
        """
        if self._pump_task is None:
            return
        try:
            await asyncio.wait_for(self._pump_task, timeout)
        except asyncio.TimeoutError:
            logger.debug("Read pump still running after close, cancelled")

    # -------------------------------------------------------------------------
    # asyncio.Transport interface
    # -------------------------------------------------------------------------

    def write(self, data: bytes) -> None:
        if self._closing:
            return
        self._stream.write(data)

    def writelines(self, list_of_data) -> None:
        for data in list_of_data:
            self.write(data)

    def can_write_eof(self) -> bool:
        return False

    def close(self) -> None:
        if self._closing:
            return
        self._closing = True
        self._stream.close()

    def abort(self) -> None:
        self.close()

    def is_closing(self) -> bool:
        return self._closing or self._stream.is_closing()

    def get_extra_info(self, name: str, default: Any = None) -> Any:
        return self._stream.get_extra_info(name, default)
