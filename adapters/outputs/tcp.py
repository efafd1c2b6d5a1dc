"""
TCP output sink.

Runs a small asyncio server. The first client to connect receives every
sample as a CSV line ``"{patient_id},{timestamp},{label},{data}\\n"``; further
clients are turned away while it stays connected. Samples produced while no
client is connected are dropped.
"""

import asyncio

import structlog

logger = structlog.get_logger(__name__)


class TcpOutput:
    def __init__(self, host: str = "127.0.0.1", port: int = 8888) -> None:
        self.host = host
        self.port = port
        self.logger = logger.bind(component="tcp_output")
        self.dropped_samples = 0
        self._server: asyncio.Server | None = None
        self._writer: asyncio.StreamWriter | None = None

    @property
    def has_client(self) -> bool:
        return self._writer is not None and not self._writer.is_closing()

    @property
    def bound_port(self) -> int:
        """Actual listening port, useful when started with port 0."""
        if self._server is None or not self._server.sockets:
            raise RuntimeError("TCP output is not started")
        return self._server.sockets[0].getsockname()[1]

    async def start(self) -> None:
        if self._server is not None:
            return
        self._server = await asyncio.start_server(self._handle_client, self.host, self.port)
        self.logger.info("tcp_output_started", host=self.host, port=self.bound_port)

    async def stop(self) -> None:
        if self._writer is not None:
            writer, self._writer = self._writer, None
            writer.close()
            try:
                await writer.wait_closed()
            except ConnectionError as e:
                self.logger.debug("tcp_client_close_failed", error=str(e))
        if self._server is not None:
            server, self._server = self._server, None
            server.close()
            await server.wait_closed()
            self.logger.info("tcp_output_stopped")

    def output(self, patient_id: int, timestamp: int, label: str, data: str) -> None:
        if not self.has_client:
            self.dropped_samples += 1
            return
        message = f"{patient_id},{timestamp},{label},{data}\n"
        self._writer.write(message.encode("utf-8"))  # type: ignore[union-attr]

    async def _handle_client(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        peer = writer.get_extra_info("peername")
        if self.has_client:
            self.logger.warning("tcp_client_rejected", peer=str(peer))
            writer.close()
            return

        self._writer = writer
        self.logger.info("tcp_client_connected", peer=str(peer))
        try:
            # Clients only listen; reading until EOF tells us when they leave.
            while await reader.read(1024):
                pass
        except ConnectionError as e:
            self.logger.warning("tcp_client_connection_error", peer=str(peer), error=str(e))
        finally:
            if self._writer is writer:
                self._writer = None
                writer.close()
            self.logger.info("tcp_client_disconnected", peer=str(peer))
