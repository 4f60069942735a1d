import io
import logging
import queue
import sys

import pytest

from dhcpclient.v4 import daemon
from dhcpclient.v4.client import TimerFired, TimerKind
from dhcpclient.v4.daemon import TimerScheduler, configure_logging


def test_timer_scheduler_posts_event():
	events = queue.Queue()
	scheduler = TimerScheduler(events)
	event = TimerFired(1, TimerKind.RETRY, 1)

	scheduler.schedule(0.01, event)

	assert events.get(timeout=2) == event
	assert scheduler.timers == set()


def test_timer_scheduler_cancel():
	events = queue.Queue()
	scheduler = TimerScheduler(events)

	handle = scheduler.schedule(60, TimerFired(1, TimerKind.LEASE_EXPIRY, 1))
	scheduler.cancel_all()
	handle.timer.join(timeout=2)

	assert not handle.timer.is_alive()
	assert events.empty()


def test_cancelled_timers_are_released():
	events = queue.Queue()
	scheduler = TimerScheduler(events)

	handles = [scheduler.schedule(60, TimerFired(1, TimerKind.RETRY, serial))
		for serial in range(5)]
	for handle in handles:
		handle.cancel()

	assert scheduler.timers == set()
	for handle in handles:
		handle.timer.join(timeout=2)
		assert not handle.timer.is_alive()
	assert events.empty()


def test_configure_logging_to_stream():
	stream = io.StringIO()
	logger = configure_logging(output=stream, level=logging.DEBUG)

	logger.info('%s - bound to %s', 'eth0', '10.0.2.15')

	line = stream.getvalue().strip()
	assert line.endswith('|INFO|eth0 - bound to 10.0.2.15')


def test_configure_logging_dash_is_stderr():
	logger = configure_logging(output='-')

	assert logger.handlers[0].stream is daemon.stderr


def test_main_logs_to_stderr_by_default(monkeypatch):
	outputs = []

	def fake_configure_logging(output, level):
		outputs.append(output)
		return logging.getLogger('test')

	def fail_describe_iface(name):
		raise OSError(19, 'No such device')

	monkeypatch.setattr(sys, 'argv', ['dhcpclient', 'eth0'])
	monkeypatch.setattr(daemon, 'list_ifaces', lambda: ['eth0'])
	monkeypatch.setattr(daemon, 'configure_logging', fake_configure_logging)
	monkeypatch.setattr(daemon, 'describe_iface', fail_describe_iface)

	with pytest.raises(SystemExit):
		daemon.main()

	assert outputs == ['-']
