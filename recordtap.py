#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
recordtap (single-file)

- Transparent TCP relay (listen -> fixed remote) that never terminates TLS.
- Decodes TLS record-layer framing in the clear for observability:
  - content type / version / length for every record
  - handshake type + 24-bit handshake length for Handshake records
  - alert level + description for Alert records
- Bytes are forwarded unmodified; records larger than 16384 bytes stop the direction.
- Each direction of a pair half-closes on its own (read half of the source,
  write half of the destination), the opposite direction keeps draining.

"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import os
import signal
import socket
import sys
import time
import types
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Set, Tuple

import yaml

import logging
from logging.handlers import RotatingFileHandler

__version__ = "1.0.0"

RECORD_HEADER_LEN = 5
# RFC 8446 5.1: TLSPlaintext.length MUST NOT exceed 2^14
MAX_RECORD_LEN = 16384

CONTENT_TYPE_HANDSHAKE = 22
CONTENT_TYPE_ALERT = 21

UNKNOWN = "unknown"

# прибрать шум asyncio logger
logging.getLogger("asyncio").setLevel(logging.ERROR)

# Module logger (configured in main())
LOG = logging.getLogger("recordtap")

# Throttled logging (best-effort; designed for single-threaded asyncio loop)
_LOG_THROTTLE_STATE: Dict[str, Tuple[float, int]] = {}
# key -> (last_ts, suppressed_count)


def log_throttled(
    level: int,
    key: str,
    msg: str,
    *args,
    interval_s: float = 2.0,
    exc_info: bool = False,
) -> None:
    """
    Log a message at most once per interval for a given key.

    Keeps a suppressed counter; when it logs again it appends:
      " (suppressed N similar messages)"
    """
    now = time.time()
    last_ts, suppressed = _LOG_THROTTLE_STATE.get(key, (0.0, 0))

    if (now - last_ts) < float(interval_s):
        _LOG_THROTTLE_STATE[key] = (last_ts, suppressed + 1)
        return

    _LOG_THROTTLE_STATE[key] = (now, 0)

    if suppressed:
        msg = f"{msg} (suppressed {suppressed} similar messages)"
    LOG.log(level, msg, *args, exc_info=exc_info)


def setup_logging(log_path: Optional[str] = None, level: str = "INFO") -> None:
    """Configure application logging.

    Defaults:
      - stderr only, when no log path is given
      - rotating file handler otherwise (to avoid unbounded growth)

    Args:
        log_path: Path to the log file, or None for stderr.
        level: Logging level name (e.g. INFO, DEBUG).
    """
    lvl = getattr(logging, (level or "INFO").upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(lvl)

    # Avoid duplicate handlers (e.g. reload/tests)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handler: logging.Handler
    if log_path:
        try:
            d = os.path.dirname(log_path)
            if d:
                os.makedirs(d, exist_ok=True)
            handler = RotatingFileHandler(
                log_path,
                maxBytes=10 * 1024 * 1024,   # 10 MB
                backupCount=5,
                encoding="utf-8",
            )
        except OSError as e:
            # Last resort: stderr
            sys.stderr.write(f"[recordtap] cannot open log file {log_path!r}: {e}; using stderr\n")
            handler = logging.StreamHandler(sys.stderr)
    else:
        handler = logging.StreamHandler(sys.stderr)

    handler.setLevel(lvl)
    handler.setFormatter(fmt)
    root.addHandler(handler)

    LOG.debug("Logging initialized: %s level=%s", log_path or "<stderr>", logging.getLevelName(lvl))


# ==========================================================
# Record classification
# ==========================================================

CONTENT_TYPE_TABLE: Mapping[int, str] = types.MappingProxyType({
    0: "Invalid",
    20: "Change Cipher Spec",
    21: "Alert",
    22: "Handshake",
    23: "Application Data",
})

HANDSHAKE_TYPE_TABLE: Mapping[int, str] = types.MappingProxyType({
    0: "Hello Request",
    1: "Client Hello",
    2: "Server Hello",
    4: "New Session Ticket",
    5: "End Of Early Data",
    8: "Encrypted Extensions",
    11: "Certificate",
    12: "Server Key Exchange",
    13: "Certificate Request",
    14: "Server Hello Done",
    15: "Certificate Verify",
    16: "Client Key Exchange",
    20: "Finished",
    24: "Key Update",
    254: "Message Hash",
})

ALERT_LEVEL_TABLE: Mapping[int, str] = types.MappingProxyType({
    1: "Warning",
    2: "Fatal",
})

ALERT_DESCRIPTION_TABLE: Mapping[int, str] = types.MappingProxyType({
    0: "Close Notify",
    10: "Unexpected Message",
    20: "Bad Record MAC",
    22: "Record Overflow",
    30: "Decompression Failure",
    40: "Handshake Failure",
    41: "No Certificate",
    42: "Bad Certificate",
    43: "Unsupported Certificate",
    44: "Certificate Revoked",
    45: "Certificate Expired",
    46: "Certificate Unknown",
    47: "Illegal Parameter",
    48: "Unknown CA",
    49: "Access Denied",
    50: "Decode Error",
    51: "Decrypt Error",
    60: "Export Restriction",
    70: "Protocol Version",
    71: "Insufficient Security",
    80: "Internal Error",
    86: "Inappropriate Fallback",
    90: "User Canceled",
    100: "No Renegotiation",
    109: "Missing Extension",
    110: "Unsupported Extension",
    112: "Unrecognized Name",
    113: "Bad Certificate Status Response",
    115: "Unknown PSK Identity",
    116: "Certificate Required",
    120: "No Application Protocol",
})


def lookup_name(table: Mapping[int, str], code: int) -> str:
    """Total lookup: unmapped codes map to UNKNOWN instead of raising."""
    return table.get(code, UNKNOWN)


@dataclass(frozen=True)
class RecordHeader:
    content_type: int
    version: int
    length: int

    @classmethod
    def parse(cls, raw: bytes) -> "RecordHeader":
        if len(raw) != RECORD_HEADER_LEN:
            raise ValueError(f"record header must be {RECORD_HEADER_LEN} bytes, got {len(raw)}")
        return cls(
            content_type=raw[0],
            version=int.from_bytes(raw[1:3], "big"),
            length=int.from_bytes(raw[3:5], "big"),
        )

    @property
    def is_oversized(self) -> bool:
        return self.length > MAX_RECORD_LEN


@dataclass
class RecordLabels:
    """
    Human-readable labels for one record.

    Sub-fields are None unless the content type carries them and the payload
    is long enough to hold them (handshake: 4 bytes, alert: 2 bytes).
    """
    content_type: int
    content_type_name: str

    handshake_type: Optional[int] = None
    handshake_type_name: Optional[str] = None
    handshake_length: Optional[int] = None

    alert_level: Optional[int] = None
    alert_level_name: Optional[str] = None
    alert_description: Optional[int] = None
    alert_description_name: Optional[str] = None

    def extra_text(self) -> str:
        parts = []
        if self.handshake_type is not None:
            parts.append(f"handshake_type={self.handshake_type_name} ({self.handshake_type})")
        if self.handshake_length is not None:
            parts.append(f"handshake_length={self.handshake_length}")
        if self.alert_level is not None:
            parts.append(f"alert_level={self.alert_level_name} ({self.alert_level})")
        if self.alert_description is not None:
            parts.append(f"alert_description={self.alert_description_name} ({self.alert_description})")
        if not parts:
            return ""
        return " " + " ".join(parts)


def classify_record(content_type: int, payload: bytes) -> RecordLabels:
    """
    Map a content-type code (and, for Handshake/Alert, the leading payload
    bytes) to labels. Pure; never raises for any code or payload length.
    """
    labels = RecordLabels(
        content_type=content_type,
        content_type_name=lookup_name(CONTENT_TYPE_TABLE, content_type),
    )

    if content_type == CONTENT_TYPE_HANDSHAKE:
        if len(payload) >= 1:
            labels.handshake_type = payload[0]
            labels.handshake_type_name = lookup_name(HANDSHAKE_TYPE_TABLE, payload[0])
        if len(payload) >= 4:
            labels.handshake_length = int.from_bytes(payload[1:4], "big")

    elif content_type == CONTENT_TYPE_ALERT:
        if len(payload) >= 1:
            labels.alert_level = payload[0]
            labels.alert_level_name = lookup_name(ALERT_LEVEL_TABLE, payload[0])
        if len(payload) >= 2:
            labels.alert_description = payload[1]
            labels.alert_description_name = lookup_name(ALERT_DESCRIPTION_TABLE, payload[1])

    return labels


# ==========================================================
# Config model
# ==========================================================

class ConfigError(ValueError):
    pass


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: Optional[str] = None
    jsonl_path: Optional[str] = None


@dataclass
class RelayConfig:
    listen: str = ""
    remote: str = ""
    ipv4_only: bool = True
    # None => no dial timeout (block until the OS gives up)
    connect_timeout: Optional[float] = None
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def dump_example_config() -> str:
    example = {
        "listen": "0.0.0.0:8443",
        "remote": "192.0.2.10:443",
        "ipv4_only": True,
        "connect_timeout": None,
        "logging": {
            "level": "INFO",
            "file": None,
            "jsonl_path": "./records.jsonl",
        },
    }
    return yaml.safe_dump(example, sort_keys=False)


def _parse_hostport(addr: str) -> Tuple[str, int]:
    try:
        host, port_s = addr.rsplit(":", 1)
        port = int(port_s)
    except ValueError:
        raise ConfigError(f"invalid address {addr!r}, expected host:port") from None
    if not 0 <= port <= 65535:
        raise ConfigError(f"invalid port in {addr!r}")
    # [::1]:443
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return host, port


def load_config(path: str) -> RelayConfig:
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"cannot read config {path!r}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"cannot parse config {path!r}: {e}") from e

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError("Config must be a mapping")

    log_raw = raw.get("logging") or {}
    if not isinstance(log_raw, dict):
        raise ConfigError("'logging' must be a mapping")

    timeout = raw.get("connect_timeout")
    try:
        connect_timeout = float(timeout) if timeout is not None else None
    except (TypeError, ValueError):
        raise ConfigError(f"invalid connect_timeout: {timeout!r}") from None

    cfg = RelayConfig(
        listen=str(raw.get("listen") or ""),
        remote=str(raw.get("remote") or ""),
        ipv4_only=bool(raw.get("ipv4_only", True)),
        connect_timeout=connect_timeout,
        logging=LoggingConfig(
            level=str(log_raw.get("level", "INFO")),
            file=log_raw.get("file"),
            jsonl_path=log_raw.get("jsonl_path"),
        ),
    )
    if cfg.listen:
        _parse_hostport(cfg.listen)
    if cfg.remote:
        _parse_hostport(cfg.remote)
    return cfg


def validate_config(cfg: RelayConfig) -> RelayConfig:
    """Both addresses are mandatory; everything else has a default."""
    if not cfg.listen or not cfg.remote:
        raise ConfigError("both a listen address (-l) and a remote address (-r) are required")
    _parse_hostport(cfg.listen)
    _parse_hostport(cfg.remote)
    if cfg.connect_timeout is not None and cfg.connect_timeout <= 0:
        raise ConfigError("connect_timeout must be positive")
    return cfg


# ==========================================================
# Records (JSONL output)
# ==========================================================

@dataclass
class RecordEvent:
    kind: str  # "record"
    ts: float
    src: str
    dst: str
    content_type: int
    content_type_name: str
    version: int
    length: int

    handshake_type: Optional[int] = None
    handshake_type_name: Optional[str] = None
    handshake_length: Optional[int] = None
    alert_level: Optional[int] = None
    alert_level_name: Optional[str] = None
    alert_description: Optional[int] = None
    alert_description_name: Optional[str] = None

    @classmethod
    def from_labels(cls, src: str, dst: str, header: RecordHeader, labels: RecordLabels) -> "RecordEvent":
        sub = dataclasses.asdict(labels)
        return cls(
            kind="record",
            ts=time.time(),
            src=src,
            dst=dst,
            version=header.version,
            length=header.length,
            **sub,
        )

    def to_json(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)


@dataclass
class DirectionCloseRecord:
    """
    Emitted once per direction when the relay loop ends.

    reason:
      - eof / oversize / rst / broken_pipe / error
    """
    kind: str  # "close"
    ts: float
    src: str
    dst: str
    reason: str
    records: int = 0
    bytes: int = 0

    def to_json(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)


class JsonlWriter:
    def __init__(self, path: str):
        self.path = path
        self._fh = open(self.path, "a", encoding="utf-8")

    def write(self, obj: Dict[str, Any]) -> None:
        self._fh.write(json.dumps(obj, ensure_ascii=False) + "\n")
        self._fh.flush()

    def close(self) -> None:
        self._fh.close()


def _emit(sink: Optional[JsonlWriter], rec: Any) -> None:
    if sink is None:
        return
    try:
        sink.write(rec.to_json())
    except (OSError, ValueError):
        # JSONL is secondary to forwarding
        log_throttled(
            logging.WARNING,
            "jsonl.write",
            "JSONL write failed path=%s",
            sink.path,
            interval_s=5.0,
            exc_info=True,
        )


# ==========================================================
# Relay engine
# ==========================================================

def classify_close_reason(
    exc: Optional[BaseException],
    eof: bool = False,
    oversize: bool = False,
) -> str:
    """
    Classify an exception/state into a concise direction close reason.

    Examples:
      - eof (peer FIN, short read) / oversize (record > 16384)
      - rst / broken_pipe / error
    """
    if oversize:
        return "oversize"
    if eof or isinstance(exc, asyncio.IncompleteReadError):
        return "eof"
    if exc is None:
        return "normal"
    if isinstance(exc, ConnectionResetError):
        return "rst"
    if isinstance(exc, BrokenPipeError):
        return "broken_pipe"
    return "error"


def _fmt_peer(peer: Any) -> str:
    if not peer:
        return "?"
    if isinstance(peer, (tuple, list)) and len(peer) >= 2:
        host, port = peer[0], peer[1]
        if ":" in str(host):
            return f"[{host}]:{port}"
        return f"{host}:{port}"
    return str(peer)


@dataclass
class Endpoint:
    """
    One side of a connection pair.

    reader/writer are the asyncio stream halves; label is the remote peer
    address and is only used for logging.
    """
    reader: asyncio.StreamReader
    writer: asyncio.StreamWriter
    label: str

    @classmethod
    def from_streams(cls, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> "Endpoint":
        return cls(reader, writer, _fmt_peer(writer.get_extra_info("peername")))

    def close_read(self) -> None:
        sock = self.writer.get_extra_info("socket")
        if sock is None:
            return
        try:
            sock.shutdown(socket.SHUT_RD)
        except OSError:
            # already disconnected
            LOG.debug("shutdown(SHUT_RD) failed peer=%s", self.label, exc_info=True)

    def close_write(self) -> None:
        if self.writer.is_closing():
            return
        try:
            if self.writer.can_write_eof():
                self.writer.write_eof()
        except (OSError, RuntimeError):
            LOG.debug("write_eof failed peer=%s", self.label, exc_info=True)

    async def aclose(self) -> None:
        try:
            self.writer.close()
            await self.writer.wait_closed()
        except OSError:
            LOG.debug("close failed peer=%s", self.label, exc_info=True)


async def _forward(dst: Endpoint, header: bytes, payload: bytes) -> Optional[BaseException]:
    """Write header then payload; both writes are attempted, first error wins."""
    err: Optional[BaseException] = None
    for chunk in (header, payload):
        try:
            dst.writer.write(chunk)
        except (OSError, RuntimeError) as e:
            if err is None:
                err = e
    if err is None:
        try:
            await dst.writer.drain()
        except (OSError, RuntimeError) as e:
            err = e
    return err


async def relay_direction(src: Endpoint, dst: Endpoint, sink: Optional[JsonlWriter] = None) -> str:
    """
    Forward TLS records from src to dst until EOF, I/O error or an
    oversized record, logging one line per record.

    On exit the read half of src and the write half of dst are closed; the
    opposite direction is left alone. Returns the close reason.
    """
    records = 0
    nbytes = 0
    reason = "normal"
    try:
        while True:
            try:
                raw_header = await src.reader.readexactly(RECORD_HEADER_LEN)
            except (asyncio.IncompleteReadError, OSError) as e:
                reason = classify_close_reason(e)
                break

            header = RecordHeader.parse(raw_header)
            if header.is_oversized:
                reason = classify_close_reason(None, oversize=True)
                LOG.warning(
                    "[%s --> %s] record length %d exceeds %d, closing direction",
                    src.label, dst.label, header.length, MAX_RECORD_LEN,
                )
                break

            try:
                payload = await src.reader.readexactly(header.length)
            except (asyncio.IncompleteReadError, OSError) as e:
                reason = classify_close_reason(e)
                break

            err = await _forward(dst, raw_header, payload)
            if err is not None:
                reason = classify_close_reason(err)
                LOG.debug("[%s --> %s] write failed: %r", src.label, dst.label, err)
                break

            records += 1
            nbytes += RECORD_HEADER_LEN + header.length

            labels = classify_record(header.content_type, payload)
            LOG.info(
                "[%s --> %s] forwarded record: content_type=%s (%d) version=0x%04X length=%d%s",
                src.label,
                dst.label,
                labels.content_type_name,
                header.content_type,
                header.version,
                header.length,
                labels.extra_text(),
            )
            _emit(sink, RecordEvent.from_labels(src.label, dst.label, header, labels))
    finally:
        src.close_read()
        dst.close_write()
        LOG.info(
            "[%s --> %s] direction closed: reason=%s records=%d bytes=%d",
            src.label, dst.label, reason, records, nbytes,
        )
        _emit(sink, DirectionCloseRecord(
            kind="close",
            ts=time.time(),
            src=src.label,
            dst=dst.label,
            reason=reason,
            records=records,
            bytes=nbytes,
        ))
    return reason


# ==========================================================
# Listener + connection pair establisher
# ==========================================================

class RelayServer:
    """
    Runtime for the single listen -> remote relay.

    Responsibilities:
      - start a TCP server and accept connections (asyncio.start_server)
      - per accepted connection: dial the remote; on failure close the client,
        on success run two independent relay_direction tasks
      - keep track of handler/direction tasks so stop() can cancel them
    """
    def __init__(self, cfg: RelayConfig):
        self.cfg = cfg
        self.active_pairs = 0

        self._server: Optional[asyncio.AbstractServer] = None
        self._tasks: Set[asyncio.Task] = set()
        self._sink: Optional[JsonlWriter] = None
        self._family = socket.AF_INET if cfg.ipv4_only else socket.AF_UNSPEC

    @property
    def listen_addr(self) -> Optional[Tuple[str, int]]:
        if self._server is None or not self._server.sockets:
            return None
        name = self._server.sockets[0].getsockname()
        return name[0], name[1]

    async def start(self) -> None:
        host, port = _parse_hostport(self.cfg.listen)

        if self.cfg.logging.jsonl_path:
            self._sink = JsonlWriter(self.cfg.logging.jsonl_path)

        try:
            self._server = await asyncio.start_server(
                self._handle_client,
                host=host or None,
                port=port,
                family=self._family,
                start_serving=True,
            )
        except OSError:
            LOG.error("Listener start failed: listen=%s", self.cfg.listen, exc_info=True)
            if self._sink is not None:
                self._sink.close()
                self._sink = None
            raise

        LOG.info("Listening on %s, relaying to %s", _fmt_peer(self.listen_addr), self.cfg.remote)

    async def stop(self) -> None:
        # stop accepting new conns
        srv = self._server
        if srv is not None:
            srv.close()

        tasks = list(self._tasks)
        for t in tasks:
            t.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks = set()

        if srv is not None:
            await srv.wait_closed()
            self._server = None

        if self._sink is not None:
            self._sink.close()
            self._sink = None
        LOG.info("Listener stopped: listen=%s", self.cfg.listen)

    def _track(self, task: asyncio.Task) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _open_upstream(self) -> Tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        host, port = _parse_hostport(self.cfg.remote)
        dial = asyncio.open_connection(host=host, port=port, family=self._family)
        if self.cfg.connect_timeout is None:
            return await dial
        return await asyncio.wait_for(dial, timeout=self.cfg.connect_timeout)

    async def _handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        """
        Accept-handler used by asyncio.start_server.

        Steps:
          1) dial the remote (no retry)
          2) on failure: close the client connection, log, done
          3) on success: client->remote and remote->client run as two tasks
          4) once both directions finished: fully close both sockets

        The client socket is closed on every exit path, including
        cancellation while the dial is still pending.
        """
        current = asyncio.current_task()
        if current is not None:
            self._track(current)

        inbound = Endpoint.from_streams(reader, writer)
        outbound: Optional[Endpoint] = None
        self.active_pairs += 1
        try:
            try:
                u_reader, u_writer = await self._open_upstream()
            except (OSError, asyncio.TimeoutError) as e:
                LOG.warning("Upstream connect failed client=%s remote=%s: %r", inbound.label, self.cfg.remote, e)
                return

            outbound = Endpoint.from_streams(u_reader, u_writer)
            LOG.info("Relaying %s <-> %s", inbound.label, outbound.label)

            t_in = asyncio.create_task(relay_direction(inbound, outbound, self._sink))
            t_out = asyncio.create_task(relay_direction(outbound, inbound, self._sink))
            self._track(t_in)
            self._track(t_out)
            await asyncio.gather(t_in, t_out)
        finally:
            await inbound.aclose()
            if outbound is not None:
                await outbound.aclose()
                LOG.debug("Pair closed %s <-> %s", inbound.label, outbound.label)
            self.active_pairs -= 1


async def run_relay(cfg: RelayConfig, stop_ev: Optional[asyncio.Event] = None) -> None:
    server = RelayServer(cfg)
    await server.start()

    if stop_ev is None:
        stop_ev = asyncio.Event()

    def _sig(*_):
        stop_ev.set()

    loop = asyncio.get_running_loop()
    for s in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(s, _sig)
        except (NotImplementedError, RuntimeError):
            pass

    try:
        await stop_ev.wait()
    finally:
        await server.stop()


def build_config(args: argparse.Namespace) -> RelayConfig:
    cfg = load_config(args.config) if args.config else RelayConfig()
    if args.listen:
        cfg.listen = args.listen
    if args.remote:
        cfg.remote = args.remote
    if args.ipv6:
        cfg.ipv4_only = False
    if args.log:
        cfg.logging.file = args.log
    if args.log_level:
        cfg.logging.level = args.log_level
    if args.jsonl:
        cfg.logging.jsonl_path = args.jsonl
    return validate_config(cfg)


def make_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="recordtap",
        description=(
            "Transparent TCP relay that logs TLS record-layer framing.\n"
            "TLS is never terminated: bytes are forwarded unmodified.\n"
        ),
        formatter_class=argparse.RawTextHelpFormatter,
    )
    p.add_argument("-l", "--listen", default=None, help="Local bind address host:port")
    p.add_argument("-r", "--remote", default=None, help="Remote target address host:port")
    p.add_argument("--config", default=None, help="Path to config YAML (CLI flags override it)")
    p.add_argument("--log", default=None, help="Path to log file (default: stderr)")
    p.add_argument("--log-level", default=None,
                   help="Log level: DEBUG, INFO, WARNING, ERROR (default: INFO)")
    p.add_argument("--jsonl", default=None, help="Append one JSON object per record to this file")
    p.add_argument("--ipv6", action="store_true", help="Allow IPv6 for listen/remote (default: IPv4 only)")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    g = p.add_mutually_exclusive_group()
    g.add_argument("--check", action="store_true", help="Validate config and exit.")
    g.add_argument("--dump-example-config", action="store_true", help="Print example config and exit.")
    return p


def main(argv: Optional[list] = None) -> int:
    args = make_parser().parse_args(argv)

    if args.dump_example_config:
        print(dump_example_config())
        return 0

    try:
        cfg = build_config(args)
    except ConfigError as e:
        print(f"Config error: {e}", file=sys.stderr)
        return 2

    if args.check:
        print("OK")
        return 0

    setup_logging(cfg.logging.file, cfg.logging.level)

    try:
        asyncio.run(run_relay(cfg))
    except OSError as e:
        LOG.error("Fatal: %s", e)
        return 1
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
