#!/usr/bin/env python3
"""
Manual traffic generator for a running recordtap relay.

Crafted modes write hand-built TLS records (no real TLS) and half-close;
whatever the upstream sends back is read until EOF and summarised.
Mode "tls" performs a real TLS handshake through the relay instead, so the
relay log shows a genuine ClientHello/ServerHello/.../Alert sequence.

  python test-suite/record_client.py --relay-host 127.0.0.1 --relay-port 8443 --mode mixed
"""
import argparse
import asyncio
import os
import ssl
from typing import List, Tuple


def build_record(content_type: int, payload: bytes, version: int = 0x0303) -> bytes:
    return (
        bytes([content_type])
        + version.to_bytes(2, "big")
        + len(payload).to_bytes(2, "big")
        + payload
    )


def build_handshake(msg_type: int, body: bytes) -> bytes:
    return bytes([msg_type]) + len(body).to_bytes(3, "big") + body


def build_scenario(mode: str) -> bytes:
    if mode == "appdata":
        return build_record(23, b"\x01\x02\x03\x04\x05")
    if mode == "handshake":
        return build_record(22, build_handshake(1, b"\x00" * 16), version=0x0301)
    if mode == "alert":
        return build_record(21, b"\x02\x00")
    if mode == "boundary":
        return build_record(23, os.urandom(16384))
    if mode == "oversize":
        # header declares 16640 bytes; relay must drop the direction without forwarding
        return b"\x17\x03\x03\x41\x00" + b"\x00" * 64
    if mode == "unknown":
        return build_record(99, b"?") + build_record(22, build_handshake(77, b"")) + build_record(21, b"\x09\xfe")
    if mode == "mixed":
        return (
            build_record(22, build_handshake(1, os.urandom(48)), version=0x0301)
            + build_record(20, b"\x01")
            + build_record(23, os.urandom(1024))
            + build_record(21, b"\x01\x00")
        )
    raise ValueError(f"unsupported mode: {mode}")


def split_records(data: bytes) -> List[Tuple[int, int, int]]:
    """Best-effort (content_type, version, length) list for received bytes."""
    out: List[Tuple[int, int, int]] = []
    i = 0
    while i + 5 <= len(data):
        ln = int.from_bytes(data[i+3:i+5], "big")
        out.append((data[i], int.from_bytes(data[i+1:i+3], "big"), ln))
        i += 5 + ln
    return out


async def crafted_via_relay(host: str, port: int, mode: str, read_timeout: float) -> None:
    data = build_scenario(mode)
    reader, writer = await asyncio.open_connection(host=host, port=port)
    try:
        writer.write(data)
        await writer.drain()
        if writer.can_write_eof():
            writer.write_eof()
        back = await asyncio.wait_for(reader.read(), timeout=read_timeout)
    finally:
        writer.close()
        await writer.wait_closed()

    print(f"[client] mode={mode} sent={len(data)} bytes received={len(back)} bytes")
    for ct, ver, ln in split_records(back):
        print(f"[client]   <- content_type={ct} version=0x{ver:04X} length={ln}")


async def tls_via_relay(host: str, port: int, sni: str, read_timeout: float) -> None:
    # lab mode: the point is the framing seen by the relay, not server identity
    ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    ctx.check_hostname = False
    ctx.verify_mode = ssl.CERT_NONE

    reader, writer = await asyncio.open_connection(host=host, port=port, ssl=ctx, server_hostname=sni)
    try:
        sslobj = writer.get_extra_info("ssl_object")
        print(f"[client] tls ok version={sslobj.version() if sslobj else None}")
        req = (
            f"HEAD / HTTP/1.1\r\n"
            f"Host: {sni}\r\n"
            f"User-Agent: record_client\r\n"
            f"Connection: close\r\n"
            f"\r\n"
        ).encode("iso-8859-1")
        writer.write(req)
        await writer.drain()
        resp = await asyncio.wait_for(reader.read(65536), timeout=read_timeout)
        first = resp.split(b"\r\n", 1)[0].decode("iso-8859-1", errors="replace")
        print(f"[client] response: {first!r}")
    finally:
        writer.close()
        try:
            await writer.wait_closed()
        except (ssl.SSLError, ConnectionResetError):
            pass


async def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--relay-host", required=True)
    ap.add_argument("--relay-port", type=int, required=True)
    ap.add_argument(
        "--mode",
        choices=["appdata", "handshake", "alert", "boundary", "oversize", "unknown", "mixed", "tls"],
        required=True,
    )
    ap.add_argument("--sni", default="localhost", help="SNI for --mode tls")
    ap.add_argument("--cycles", type=int, default=1)
    ap.add_argument("--interval", type=float, default=0.0)
    ap.add_argument("--read-timeout", type=float, default=5.0)

    # quiet mode for negative tests
    ap.add_argument(
        "--quiet-expected",
        action="store_true",
        help="Suppress traceback for expected negative-test exceptions (EOF/reset/timeout).",
    )

    args = ap.parse_args()

    def _is_expected_negative_exc(e: BaseException) -> bool:
        if isinstance(e, (EOFError, ConnectionResetError, BrokenPipeError, asyncio.IncompleteReadError)):
            return True
        if isinstance(e, (asyncio.TimeoutError, TimeoutError)):
            return True
        return False

    try:
        for i in range(max(1, args.cycles)):
            if args.mode == "tls":
                await tls_via_relay(args.relay_host, args.relay_port, args.sni, args.read_timeout)
            else:
                await crafted_via_relay(args.relay_host, args.relay_port, args.mode, args.read_timeout)
            if args.interval > 0 and i + 1 < args.cycles:
                await asyncio.sleep(args.interval)

    except Exception as e:
        if args.quiet_expected and _is_expected_negative_exc(e):
            et = type(e).__name__
            msg = str(e) if str(e) else "<no message>"
            print(f"[client] expected negative-test exception: {et}: {msg}")
            raise SystemExit(1)
        raise


if __name__ == "__main__":
    asyncio.run(main())
