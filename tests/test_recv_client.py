import asyncio
import socket

import pytest

from greeter_server import GREETINGS
from recv_client import MessageError, extract_value, listen, listen_once, parse_args

from conftest import wait_until


class TestExtractValue:
    def test_number_becomes_float(self):
        assert extract_value('{"key": 3.14}', "key") == 3.14
        assert extract_value('{"key": 2}', "key") == 2.0
        assert isinstance(extract_value('{"key": 2}', "key"), float)

    def test_string_is_kept(self):
        assert extract_value('{"key": "Some useful message might be handy"}', "key") == "Some useful message might be handy"

    def test_other_key_is_ignored(self):
        assert extract_value('{"key": "a", "other": 1}', "other") == 1.0

    @pytest.mark.parametrize(
        "message",
        [
            "not json",
            '["key", 1]',
            '{"other": 1}',
            '{"key": true}',
            '{"key": null}',
            '{"key": [1, 2]}',
            '{"key": {"nested": 1}}',
        ],
    )
    def test_unusable_messages(self, message):
        with pytest.raises(MessageError):
            extract_value(message, "key")


async def test_receives_greeting_values(uri):
    values = []
    task = asyncio.create_task(listen_once(uri, "key", values.append))
    try:
        await wait_until(lambda: len(values) == len(GREETINGS))
    finally:
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    assert values == [3.14, "Some useful message might be handy"]


async def test_reconnects_after_connection_failure(capsys):
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]

    task = asyncio.create_task(listen(f"ws://127.0.0.1:{port}/", "key", print, reconnect_delay=0.01))
    await asyncio.sleep(0.2)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    output = capsys.readouterr().out
    assert "Lost connection" in output
    assert len([line for line in output.splitlines() if "Waiting 0.01s to reconnect" in line]) > 1


def test_default_arguments():
    args = parse_args([])
    assert (args.host, args.port, args.path, args.key) == ("localhost", 8080, "", "key")


def test_positional_arguments():
    args = parse_args(["example.org", "9000", "feed", "level"])
    assert (args.host, args.port, args.path, args.key) == ("example.org", 9000, "feed", "level")
