#!/usr/bin/env python3
import argparse
import asyncio
import json
from datetime import datetime

import websockets
from websockets.asyncio.client import connect

RECONNECT_DELAY = 0.5  # seconds


class MessageError(Exception):
    pass


def log(message):
    timestamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]
    print(f"[{timestamp}] {message}", flush=True)


def extract_value(message, key):
    """Return the value stored under ``key`` in a JSON text message.

    Numbers come back as float, strings as str. Anything else raises
    MessageError.
    """
    try:
        data = json.loads(message)
    except (TypeError, ValueError) as e:
        raise MessageError(f"not JSON: {message!r}") from e
    if not isinstance(data, dict):
        raise MessageError(f"not a JSON object: {message!r}")
    if key not in data:
        raise MessageError(f"no fitting key ({key}): {message!r}")

    value = data[key]
    if isinstance(value, bool) or value is None:
        raise MessageError(f"unknown data type for {key}: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        return value
    raise MessageError(f"unknown data type for {key}: {value!r}")


async def listen_once(uri, key, on_value):
    async with connect(uri) as websocket:
        log(f"Connected to {uri}; waiting for messages")
        try:
            async for message in websocket:
                try:
                    value = extract_value(message, key)
                except MessageError as e:
                    log(f"Got message from {uri} without usable value: {e}")
                    continue
                on_value(value)
        except websockets.exceptions.ConnectionClosed:
            pass
    log(f"Server closed connection ({uri})")


async def listen(uri, key, on_value, reconnect_delay=RECONNECT_DELAY):
    while True:
        try:
            await listen_once(uri, key, on_value)
        except (OSError, websockets.exceptions.WebSocketException) as e:
            log(f"Lost connection ({uri}): {e}")
        log(f"Waiting {reconnect_delay:.2f}s to reconnect to {uri}")
        await asyncio.sleep(reconnect_delay)


def print_value(value):
    kind = "float" if isinstance(value, float) else "symbol"
    log(f"Received {value!r} as {kind}")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Print values sent by a websocket server as {KEY: VALUE} messages.")
    parser.add_argument("host", nargs="?", default="localhost")
    parser.add_argument("port", nargs="?", type=int, default=8080)
    parser.add_argument("path", nargs="?", default="")
    parser.add_argument("key", nargs="?", default="key")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    uri = f"ws://{args.host}:{args.port}/{args.path.lstrip('/')}"
    log(f"Connecting to {uri} and waiting for JSON messages with key \"{args.key}\"")
    try:
        asyncio.run(listen(uri, args.key, print_value))
    except KeyboardInterrupt:
        log("Client stopped")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
