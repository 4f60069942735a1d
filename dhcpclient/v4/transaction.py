# SPDX-License-Identifier: MIT

__all__ = ['Phase', 'InterfaceDescriptor', 'Transaction', 'TransactionTable',
	'parse_mac']

import enum
from ipaddress import IPv4Address
from random import randrange
from time import monotonic

from ..error import DHCPv4Error


@enum.unique
class Phase(enum.Enum):
	DISCOVERING = 'discovering'
	REQUESTING = 'requesting'
	BOUND = 'bound'


def parse_mac(value):
	if isinstance(value, str):
		try:
			value = bytes.fromhex(value.replace(':', '').replace('-', ''))
		except ValueError:
			raise DHCPv4Error('invalid MAC address: %r' % value) from None
	value = bytes(value)
	if len(value) not in range(1, 17):
		raise DHCPv4Error('invalid hardware address length: %r' % value)
	return value


class InterfaceDescriptor:
	"""One network interface taking part in DHCP

	Identity is the interface name; only the held address changes, and only
	the client engine changes it.
	"""

	def __init__(self, name, mac_address, current_ip_address=0):
		self.name = name
		self.mac_address = parse_mac(mac_address)
		self.current_ip_address = IPv4Address(current_ip_address)

	def __eq__(self, other):
		if not isinstance(other, InterfaceDescriptor):
			return NotImplemented
		return self.name == other.name

	def __hash__(self):
		return hash(self.name)

	def __repr__(self):
		return '%s(%r, %r, %r)' % (type(self).__name__, self.name,
			self.mac_address.hex(':'), str(self.current_ip_address))


class Transaction:
	def __init__(self, interface, xid=None, clock=monotonic):
		self.interface = interface
		if xid is None:
			xid = randrange(0x100000000)
		self.xid = xid
		self.clock = clock
		self.started = clock()
		self.phase = Phase.DISCOVERING
		self.offered_lease_time = None
		self.server_identifier = None
		self.accepted_offer = False
		self.has_lease = False
		self.timer = None
		self.timer_serial = 0
		self._serials = 0

	def __repr__(self):
		return '%s(%s, xid=%#010x, phase=%s)' % (type(self).__name__,
			self.interface.name, self.xid, self.phase.name)

	@property
	def elapsed(self):
		seconds = int(self.clock() - self.started)
		return min(max(seconds, 0), 0xFFFF)

	def accept_offer(self, lease_time, server_identifier=None):
		self.offered_lease_time = lease_time
		self.server_identifier = server_identifier
		self.accepted_offer = True
		self.phase = Phase.REQUESTING

	def bind(self, address):
		self.has_lease = True
		self.phase = Phase.BOUND
		self.interface.current_ip_address = IPv4Address(address)

	def reset(self):
		self.accepted_offer = False
		self.has_lease = False
		self.phase = Phase.DISCOVERING

	def next_timer_serial(self):
		self._serials += 1
		return self._serials

	def set_timer(self, timer, serial=0):
		"""Replace the pending timer; only events carrying `serial` count"""
		self.cancel_timer()
		self.timer = timer
		self.timer_serial = serial

	def cancel_timer(self):
		if self.timer is not None:
			self.timer.cancel()
			self.timer = None


class TransactionTable:
	"""Outstanding negotiations keyed by transaction ID

	Every key equals the xid of the transaction it maps to. The table is not
	locked: all reads and writes must come from the client's single event
	processing context.
	"""

	def __init__(self, evict_orphans=True):
		self.evict_orphans = evict_orphans
		self._transactions = {}
		self._current = {}

	def __len__(self):
		return len(self._transactions)

	def __contains__(self, xid):
		return xid in self._transactions

	def __iter__(self):
		return iter(self._transactions.values())

	def get(self, xid):
		return self._transactions.get(xid)

	def current(self, interface):
		xid = self._current.get(interface.name)
		if xid is None:
			return None
		return self._transactions.get(xid)

	def insert(self, transaction):
		"""Add `transaction`, superseding the interface's previous one

		Returns the evicted transaction, if any. With `evict_orphans` off the
		previous entry stays in the table but is never looked up again.
		"""
		previous = self.current(transaction.interface)
		evicted = None
		if (previous is not None and self.evict_orphans
			and previous.xid != transaction.xid):
			previous.cancel_timer()
			del self._transactions[previous.xid]
			evicted = previous
		# NOTE(tori): xid collisions are not detected; 2**32 random values
		# make them unlikely enough for a handful of interfaces
		self._transactions[transaction.xid] = transaction
		self._current[transaction.interface.name] = transaction.xid
		return evicted

# vim:set ft=python ts=4 sw=4 ai noet cc=80:
