# SPDX-License-Identifier: MIT

__all__ = ['configure_logging', 'TimerHandle', 'TimerScheduler',
	'BroadcastTransport', 'LeaseApplier', 'DHCPClientDaemon', 'main']

import logging
import queue
import socket
import threading
from ipaddress import IPv4Address
from sys import stderr
from time import sleep

from .client import (Client, Start, DatagramReceived, DEFAULT_RETRY_DELAY)
from .listener import listen, broadcast
from .transaction import InterfaceDescriptor
from ..platform_specific import (get_ip_from_iface, get_mac_from_iface,
	list_ifaces, set_params)


def configure_logging(output='-', level='INFO'):
	if isinstance(output, str):
		if output == '-':
			log_handler = logging.StreamHandler(stderr)
		else:
			log_handler = logging.FileHandler(output)
	else:
		log_handler = logging.StreamHandler(output)

	log_format = '{asctime}|{name}|{levelname}|{message}'
	log_handler.setFormatter(logging.Formatter(log_format, style='{'))

	logger = logging.Logger(__name__)
	logger.addHandler(log_handler)

	logger.setLevel(level)

	return logger


class TimerHandle:
	def __init__(self, scheduler, timer):
		self.scheduler = scheduler
		self.timer = timer

	def cancel(self):
		with self.scheduler.lock:
			self.scheduler.timers.discard(self.timer)
		self.timer.cancel()


class TimerScheduler:
	"""Turns timer firings into events on the daemon's queue"""

	def __init__(self, events):
		self.events = events
		self.timers = set()
		self.lock = threading.Lock()

	def schedule(self, delay, event):
		def fire():
			with self.lock:
				self.timers.discard(timer)
			self.events.put(event)

		timer = threading.Timer(delay, fire)
		timer.daemon = True
		with self.lock:
			self.timers.add(timer)
		timer.start()
		return TimerHandle(self, timer)

	def cancel_all(self):
		with self.lock:
			timers, self.timers = self.timers, set()
		for timer in timers:
			timer.cancel()


class BroadcastTransport:
	def __init__(self, logger):
		self.logger = logger

	def send(self, interface, data):
		try:
			broadcast(interface.name, data)
		except OSError as e:
			# NOTE(tori): a lost DISCOVER or REQUEST looks the same to us as a
			# server that never answered
			self.logger.error('%s - could not send (caused by %r)',
				interface.name, e)


class LeaseApplier:
	def __init__(self, logger):
		self.logger = logger

	def __call__(self, interface, address, netmask, gateway):
		try:
			set_params(interface.name, address, netmask, gateway)
		except OSError as e:
			self.logger.error('%s - could not apply lease (caused by %r)',
				interface.name, e)


class DHCPClientDaemon:
	"""Runs a Client on one event processing thread

	A receive thread and the timer threads only ever put events on a queue;
	the event thread is the only one that touches the transaction table.
	"""

	def receive_target(self):
		while self.running:
			try:
				data, address = self.receive_socket.recvfrom(65535)
			except socket.timeout:
				continue
			except OSError as e:
				if self.running:
					self.logger.error('could not receive (caused by %r)', e)
				continue
			self.events.put(DatagramReceived(data))

	def event_target(self):
		while self.running:
			try:
				event = self.events.get(timeout=1)
			except queue.Empty:
				continue
			try:
				self.client.dispatch(event)
			except Exception as e:
				self.logger.error('could not process %s (caused by %r)',
					type(event).__name__, e)

	def __init__(self, logger, interfaces, retry_delay=DEFAULT_RETRY_DELAY,
		evict_orphans=True):
		self.logger = logger
		self.interfaces = list(interfaces)
		self.events = queue.Queue()
		self.scheduler = TimerScheduler(self.events)
		self.client = Client(logger, BroadcastTransport(logger),
			LeaseApplier(logger), self.scheduler, retry_delay=retry_delay,
			evict_orphans=evict_orphans)
		self.running = False
		self.receive_socket = None
		self.receive_thread = None
		self.event_thread = None

	def run(self):
		if self.running:
			return False
		self.receive_socket = listen()
		self.receive_socket.settimeout(1)
		self.running = True
		self.events.put(Start(self.interfaces))
		self.receive_thread = threading.Thread(target=self.receive_target)
		self.event_thread = threading.Thread(target=self.event_target)
		self.receive_thread.start()
		self.event_thread.start()
		return True

	def stop(self):
		if not self.running:
			return False
		self.running = False
		self.scheduler.cancel_all()
		self.receive_thread.join()
		self.event_thread.join()
		self.receive_socket.close()
		return True


def describe_iface(name):
	try:
		address = get_ip_from_iface(name)
	except OSError:
		address = IPv4Address(0)
	return InterfaceDescriptor(name, get_mac_from_iface(name), address)


def main():
	import argparse

	parser = argparse.ArgumentParser()
	parser.add_argument('-f', '--log-file', default='-',
		help='location to log messages, - for stderr')
	parser.add_argument('-l', '--log-level', default='INFO', choices=('ALL',
		'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'), type=str.upper,
		help='verbosity of log messages, in descending order')
	parser.add_argument('-r', '--retry-delay', default=DEFAULT_RETRY_DELAY,
		type=float, help='seconds to wait before discovering again after a NAK')
	parser.add_argument('--keep-orphans', action='store_true',
		help='keep superseded transactions in the table')
	parser.add_argument('interfaces', metavar='IF', nargs='+',
		choices=list_ifaces(),
		help='interfaces on which to lease: any of %(choices)s')
	args = parser.parse_args()

	level = 0 if args.log_level == 'ALL' else getattr(logging, args.log_level)
	logger = configure_logging(output=args.log_file, level=level)

	try:
		interfaces = [describe_iface(name) for name in args.interfaces]
		daemon = DHCPClientDaemon(logger, interfaces,
			retry_delay=args.retry_delay,
			evict_orphans=not args.keep_orphans)
		daemon.run()
	except Exception as e:
		logger.error('could not start client (caused by %r)', e)
		raise SystemExit(1)

	try:
		while True:
			sleep(1)
	except KeyboardInterrupt:
		pass
	finally:
		daemon.stop()


if __name__ == '__main__':
	main()

# vim:set ft=python ts=4 sw=4 ai noet cc=80:
