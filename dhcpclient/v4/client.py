# SPDX-License-Identifier: MIT

__all__ = ['TimerKind', 'Start', 'DatagramReceived', 'TimerFired', 'Client',
	'DEFAULT_RETRY_DELAY', 'DEFAULT_LEASE_TIME']

import enum
from collections import namedtuple
from ipaddress import IPv4Address
from time import monotonic

from .message import DHCPMessage, Flags, HardwareType, MessageType, Operation
from .options import OptionTag
from .transaction import Transaction, TransactionTable
from ..error import DHCPv4Error

DEFAULT_RETRY_DELAY = 10
DEFAULT_LEASE_TIME = 3600

PARAMETER_REQUEST_LIST = bytes([
	OptionTag.SUBNET_MASK,
	OptionTag.ROUTER,
	OptionTag.IP_ADDRESS_LEASE_TIME,
])

# NOTE(tori): other clients on the subnet broadcast these too, they are not
# addressed to us
IGNORED_MESSAGE_TYPES = (
	MessageType.DISCOVER,
	MessageType.REQUEST,
	MessageType.RELEASE,
)


@enum.unique
class TimerKind(enum.Enum):
	RETRY = 'retry'
	LEASE_EXPIRY = 'lease-expiry'


Start = namedtuple('Start', 'interfaces')
DatagramReceived = namedtuple('DatagramReceived', 'data')
# NOTE(tori): `serial` tells a timer apart from the ones it replaced; a
# cancelled timer may already have queued its event
TimerFired = namedtuple('TimerFired', 'transaction_id kind serial')


def classful_netmask(address):
	first_octet = IPv4Address(address).packed[0]
	if first_octet < 128:
		return IPv4Address('255.0.0.0')
	if first_octet < 192:
		return IPv4Address('255.255.0.0')
	return IPv4Address('255.255.255.0')


class Client:
	"""DHCPv4 client engine

	Decides what to send and when; the transport, the lease applier and the
	scheduler are supplied by the caller:

	- `transport.send(interface, data)` broadcasts a datagram to the server
	  port on `interface`
	- `apply_lease(interface, address, netmask, gateway)` installs a lease;
	  `gateway` may be None
	- `scheduler.schedule(delay, event)` delivers `event` back to
	  `dispatch()` after `delay` seconds, returning a handle with `cancel()`

	Every method must be called from one event processing context; nothing
	here is locked.
	"""

	def __init__(self, logger, transport, apply_lease, scheduler,
		retry_delay=DEFAULT_RETRY_DELAY, evict_orphans=True, clock=monotonic):
		self.logger = logger
		self.transport = transport
		self.apply_lease = apply_lease
		self.scheduler = scheduler
		self.retry_delay = retry_delay
		self.clock = clock
		self.transactions = TransactionTable(evict_orphans=evict_orphans)

	def dispatch(self, event):
		if isinstance(event, DatagramReceived):
			self.on_datagram(event.data)
		elif isinstance(event, TimerFired):
			self.on_timer(event.kind, event.transaction_id, event.serial)
		elif isinstance(event, Start):
			self.start(event.interfaces)
		else:
			raise TypeError('unknown event: %r' % (event,))

	def start(self, interfaces):
		for interface in interfaces:
			self.discover(interface)

	def make_request_packet(self, transaction, message_type):
		interface = transaction.interface
		packet = DHCPMessage(
			op=Operation.REQUEST,
			htype=HardwareType.ETH10MB,
			xid=transaction.xid,
			secs=transaction.elapsed,
			flags=Flags.BROADCAST,
			ciaddr=interface.current_ip_address,
			hwaddr=interface.mac_address,
		)
		packet.message_type = message_type
		packet.options[OptionTag.PARAMETER_REQUEST_LIST] = (
			PARAMETER_REQUEST_LIST)
		return packet

	def send(self, transaction, packet):
		try:
			data = packet.encode()
		except DHCPv4Error as e:
			self.logger.error('%s - could not encode %s (caused by %r)',
				transaction.interface.name, packet.message_type.name, e)
			return False

		self.logger.debug('%s - sending %r', transaction.interface.name,
			packet)
		self.transport.send(transaction.interface, data)
		return True

	def discover(self, interface):
		transaction = Transaction(interface, clock=self.clock)

		self.logger.info('%s - discovering with xid %#010x', interface.name,
			transaction.xid)
		if not interface.current_ip_address.is_unspecified:
			self.logger.debug('%s - currently holding %s', interface.name,
				interface.current_ip_address)

		packet = self.make_request_packet(transaction, MessageType.DISCOVER)
		if not self.send(transaction, packet):
			return None

		evicted = self.transactions.insert(transaction)
		if evicted is not None:
			self.logger.debug('%s - dropped orphaned transaction %r',
				interface.name, evicted)
		return transaction

	def request(self, transaction, offer):
		interface = transaction.interface
		self.logger.info('%s - requesting %s', interface.name, offer.your_ip)

		packet = self.make_request_packet(transaction, MessageType.REQUEST)
		packet.options[OptionTag.REQUESTED_IP_ADDRESS] = offer.your_ip
		server_identifier = offer.options.get(OptionTag.SERVER_IDENTIFIER)
		if server_identifier is not None:
			packet.options[OptionTag.SERVER_IDENTIFIER] = server_identifier

		if not self.send(transaction, packet):
			return False

		transaction.accept_offer(
			offer.options.get(OptionTag.IP_ADDRESS_LEASE_TIME),
			server_identifier
		)
		return True

	def on_datagram(self, data):
		try:
			packet = DHCPMessage.decode(data)
		except DHCPv4Error as e:
			self.logger.error('could not decode packet (caused by %r)', e)
			return

		message_type = packet.message_type
		if message_type is None:
			self.logger.warning('dropping %#010x: no message type',
				packet.transaction_id)
			return

		transaction = self.transactions.get(packet.transaction_id)
		if transaction is None:
			self.logger.debug('not looking for %#010x (%s)',
				packet.transaction_id, message_type.name)
			return

		self.logger.debug('%s - received %r', transaction.interface.name,
			packet)

		if message_type in IGNORED_MESSAGE_TYPES:
			return

		handler = getattr(self, 'handle_%s' % message_type.name, None)
		if handler is None:
			self.logger.warning('%s - not handled: %s (%d)',
				transaction.interface.name, message_type.name,
				packet.options.get(OptionTag.MESSAGE_TYPE))
			return

		handler(transaction, packet)

	def handle_OFFER(self, transaction, packet):
		interface = transaction.interface
		self.logger.info('%s - offered %s for %s seconds', interface.name,
			packet.your_ip,
			packet.options.get(OptionTag.IP_ADDRESS_LEASE_TIME))

		if transaction.has_lease:
			return
		if transaction.accepted_offer:
			# NOTE(tori): first offer wins, there is no picking the best one
			self.logger.debug('%s - already accepted an offer', interface.name)
			return

		self.request(transaction, packet)

	def handle_ACK(self, transaction, packet):
		interface = transaction.interface
		address = packet.your_ip
		options = packet.options

		lease_time = options.get(OptionTag.IP_ADDRESS_LEASE_TIME,
			transaction.offered_lease_time)
		if lease_time is None:
			self.logger.warning('%s - no lease time, assuming %d seconds',
				interface.name, DEFAULT_LEASE_TIME)
			lease_time = DEFAULT_LEASE_TIME

		netmask = options.get(OptionTag.SUBNET_MASK)
		if netmask is None:
			netmask = classful_netmask(address)
			self.logger.warning('%s - no subnet mask, assuming %s',
				interface.name, netmask)

		routers = options.get_many(OptionTag.ROUTER, 1)
		gateway = routers[0] if routers is not None else None

		transaction.bind(address)
		self.logger.info('%s - bound to %s/%s via %s for %d seconds',
			interface.name, address, netmask, gateway, lease_time)

		self.arm_timer(transaction, lease_time, TimerKind.LEASE_EXPIRY)
		self.apply_lease(interface, address, netmask, gateway)

	def handle_NAK(self, transaction, packet):
		interface = transaction.interface
		self.logger.info('%s - server refused %s, retrying in %s seconds',
			interface.name, packet.your_ip, self.retry_delay)

		transaction.reset()
		self.arm_timer(transaction, self.retry_delay, TimerKind.RETRY)

	def arm_timer(self, transaction, delay, kind):
		serial = transaction.next_timer_serial()
		transaction.set_timer(self.scheduler.schedule(delay,
			TimerFired(transaction.xid, kind, serial)), serial)

	def on_timer(self, kind, transaction_id, serial):
		transaction = self.transactions.get(transaction_id)
		if transaction is None:
			self.logger.debug('stale %s timer for %#010x', kind.value,
				transaction_id)
			return
		if transaction.timer is None or transaction.timer_serial != serial:
			self.logger.debug('%s - cancelled %s timer for %#010x',
				transaction.interface.name, kind.value, transaction_id)
			return
		transaction.timer = None

		if kind is TimerKind.LEASE_EXPIRY:
			self.logger.info('%s - lease on %s expired',
				transaction.interface.name,
				transaction.interface.current_ip_address)
			transaction.reset()

		self.discover(transaction.interface)

# vim:set ft=python ts=4 sw=4 ai noet cc=80:
