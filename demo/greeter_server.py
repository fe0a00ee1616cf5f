#!/usr/bin/env python3
import asyncio
import functools
import json
import logging
import os
import threading
from datetime import datetime

import websockets
from websockets.asyncio.server import serve

HOST = "0.0.0.0"
PORT = int(os.environ.get("PORT", 8080))
SEPARATOR = "=" * 47

GREETINGS = (
    json.dumps({"key": 3.14}),
    json.dumps({"key": "Some useful message might be handy"}),
)

CONNECTED = "CONNECTED"
CLOSED = "CLOSED"


def log(message):
    timestamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]
    print(f"[{timestamp}] {message}", flush=True)


class BindError(Exception):
    def __init__(self, port, cause):
        super().__init__(f"Could not listen on port {port}: {cause}")
        self.port = port
        self.cause = cause


class HandshakeError(Exception):
    pass


class SendError(Exception):
    def __init__(self, session_id, cause):
        super().__init__(f"Send to {session_id} failed: {cause}")
        self.session_id = session_id


class SessionRegistry:
    """Active sessions of this process. Add and remove hold the lock."""

    def __init__(self):
        self._sessions = set()
        self._lock = threading.Lock()

    def add(self, session):
        with self._lock:
            self._sessions.add(session)

    def remove(self, session):
        with self._lock:
            self._sessions.discard(session)

    def ids(self):
        with self._lock:
            return [session.id for session in self._sessions]

    def __contains__(self, session):
        with self._lock:
            return session in self._sessions

    def __len__(self):
        with self._lock:
            return len(self._sessions)


class Session:
    def __init__(self, channel, session_id, registry=None):
        self._id = session_id
        self.channel = channel
        self.registry = registry
        self.state = CONNECTED

    @property
    def id(self):
        return self._id

    @property
    def closed(self):
        return self.state == CLOSED

    def received(self, message):
        if self.closed:
            return
        log(f"User '{self.id}' sent the message '{message}'")

    async def send(self, message):
        if self.closed:
            return False
        try:
            await self.channel.send(message)
        except websockets.exceptions.ConnectionClosed as e:
            raise SendError(self.id, e) from e
        return True

    async def close(self):
        if self.closed:
            return
        self.state = CLOSED
        if self.registry is not None:
            self.registry.remove(self)
        log(f"The client {self.id} has just disconnected.")
        await self.channel.close()


def session_id_for(connection):
    key = connection.request.headers.get("Sec-WebSocket-Key")
    if not key:
        return str(connection.id)
    return key


def open_session(connection, registry):
    session = Session(connection, session_id_for(connection), registry)
    registry.add(session)
    log(f"The client {session.id} has just connected.")
    return session


def handshake_error(connection, response):
    reason = f"{response.status_code} {response.reason_phrase}"
    cause = connection.protocol.handshake_exc
    if cause is not None:
        reason = f"{reason}: {cause}"
    return HandshakeError(reason)


def log_rejected_handshake(connection, request, response):
    """Log upgrades that websockets answered with anything but 101."""
    if response.status_code != 101:
        log(f"Dropping connection from {connection.remote_address}: {handshake_error(connection, response)}")
    return None


async def greet(session):
    for message in GREETINGS:
        try:
            if not await session.send(message):
                return
        except SendError as e:
            log(f"Error: {e}")
            await session.close()
            return


async def handle_connection(connection, registry):
    session = open_session(connection, registry)
    try:
        await greet(session)
        async for message in connection:
            if session.closed:
                break
            session.received(message)
    except websockets.exceptions.ConnectionClosed:
        pass
    finally:
        await session.close()


async def start_listener(port=PORT, host=HOST, registry=None):
    if registry is None:
        registry = SessionRegistry()
    handler = functools.partial(handle_connection, registry=registry)
    try:
        server = await serve(handler, host, port, process_response=log_rejected_handshake)
    except OSError as e:
        raise BindError(port, e) from e
    return server


async def stop_listener(server):
    # open sessions are left to finish on their own
    server.close(close_connections=False)
    await server.wait_closed()


async def run(port=PORT, host=HOST):
    server = await start_listener(port, host)
    print(f"Server Listening on port {server.sockets[0].getsockname()[1]}", flush=True)
    print(SEPARATOR, flush=True)
    try:
        await asyncio.Future()  # Run forever
    finally:
        await stop_listener(server)


def main(port=PORT, host=HOST):
    logging.basicConfig(format="[%(asctime)s] %(name)s: %(message)s", level=logging.WARNING)
    try:
        asyncio.run(run(port, host))
    except BindError as e:
        log(f"Error: {e}")
        return 1
    except KeyboardInterrupt:
        log("Server stopped")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
