#!/usr/bin/env python3
import argparse
import asyncio
import functools

import websockets
from websockets.asyncio.server import serve

from recv_client import MessageError, extract_value, log, print_value

HOST = "0.0.0.0"


async def handle_client(websocket, key, on_value):
    log("Client connected; waiting for messages.")
    try:
        async for message in websocket:
            try:
                value = extract_value(message, key)
            except MessageError as e:
                log(f"Got message without usable value: {e}")
                continue
            on_value(value)
    except websockets.exceptions.ConnectionClosed:
        pass
    log("Client disconnected.")


async def start_receiver(port, key, host=HOST, on_value=print_value):
    handler = functools.partial(handle_client, key=key, on_value=on_value)
    return await serve(handler, host, port)


async def run(port, key, host=HOST):
    server = await start_receiver(port, key, host)
    log(f"Listening on port {server.sockets[0].getsockname()[1]} for JSON messages with key \"{key}\"")
    try:
        await asyncio.Future()  # Run forever
    finally:
        server.close()
        await server.wait_closed()


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Print values that websocket clients send as {KEY: VALUE} messages.")
    parser.add_argument("port", nargs="?", type=int, default=8080)
    parser.add_argument("key", nargs="?", default="key")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    try:
        asyncio.run(run(args.port, args.key))
    except OSError as e:
        log(f"Error: could not listen on port {args.port}: {e}")
        return 1
    except KeyboardInterrupt:
        log("Server stopped")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
