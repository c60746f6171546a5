"""Shared fakes for chain engine tests."""

from typing import List, Optional

import pytest

from cli_task_chain.channels.base import BaseChannel
from cli_task_chain.models.channel import ChannelResult


class ScriptedChannel(BaseChannel):
    """Channel that replays a list of pane captures, one per read.

    The last capture keeps being returned once the script runs out. Sends
    are recorded and answered from ``send_results`` (success when empty).
    """

    def __init__(self, captures: Optional[List[str]] = None, send_results=None):
        self.captures = list(captures or [""])
        self.send_results = list(send_results or [])
        self.reads = 0
        self.sent: List[str] = []
        self.on_send = None
        self.on_read = None

    def exists(self, session_id):
        return True

    def read(self, session_id, max_lines):
        index = min(self.reads, len(self.captures) - 1)
        self.reads += 1
        if self.on_read is not None:
            self.on_read()
        capture = self.captures[index]
        if isinstance(capture, Exception):
            raise capture
        if isinstance(capture, ChannelResult):
            return capture
        return ChannelResult.success(text=capture)

    def send(self, session_id, text):
        self.sent.append(text)
        if self.on_send is not None:
            self.on_send(text)
        if self.send_results:
            result = self.send_results.pop(0)
            if isinstance(result, Exception):
                raise result
            return result
        return ChannelResult.success()

    def spawn(self, working_dir=None):
        return ChannelResult.success(session_id="auto_1")


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_channel():
    return ScriptedChannel
