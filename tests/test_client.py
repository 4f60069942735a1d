import logging
from ipaddress import IPv4Address

import pytest

from dhcpclient.v4.client import (Client, DatagramReceived, Start, TimerFired,
	TimerKind, DEFAULT_LEASE_TIME)
from dhcpclient.v4.message import DHCPMessage, Flags, MessageType, Operation
from dhcpclient.v4.options import OptionTag
from dhcpclient.v4.transaction import InterfaceDescriptor, Phase

MAC = '52:54:00:12:34:56'


class FakeTransport:
	def __init__(self):
		self.sent = []

	def send(self, interface, data):
		self.sent.append((interface, DHCPMessage.decode(data)))


class FakeTimer:
	def __init__(self, delay, event):
		self.delay = delay
		self.event = event
		self.cancelled = False

	def cancel(self):
		self.cancelled = True


class FakeScheduler:
	def __init__(self):
		self.timers = []

	def schedule(self, delay, event):
		timer = FakeTimer(delay, event)
		self.timers.append(timer)
		return timer


class LeaseRecorder:
	def __init__(self):
		self.calls = []

	def __call__(self, interface, address, netmask, gateway):
		self.calls.append((interface.name, address, netmask, gateway))


def make_client(**kwargs):
	client = Client(logging.getLogger('test'), FakeTransport(),
		LeaseRecorder(), FakeScheduler(), **kwargs)
	return client, client.transport, client.apply_lease, client.scheduler


def make_reply(xid, message_type, yiaddr='10.0.2.15', options=None):
	packet = DHCPMessage(op=Operation.REPLY, xid=xid, yiaddr=yiaddr,
		flags=Flags.BROADCAST, hwaddr=bytes.fromhex(MAC.replace(':', '')))
	packet.message_type = message_type
	for tag, value in (options or {}).items():
		packet.options[tag] = value
	return packet.encode()


def make_offer(xid, yiaddr='10.0.2.15', lease_time=86400, options=None):
	options = {OptionTag.IP_ADDRESS_LEASE_TIME: lease_time, **(options or {})}
	return make_reply(xid, MessageType.OFFER, yiaddr, options)


def make_ack(xid, yiaddr='10.0.2.15', lease_time=86400):
	return make_reply(xid, MessageType.ACK, yiaddr, {
		OptionTag.SUBNET_MASK: '255.255.255.0',
		OptionTag.ROUTER: ['10.0.2.2'],
		OptionTag.IP_ADDRESS_LEASE_TIME: lease_time,
	})


def start_one(client, transport, name='eth0'):
	iface = InterfaceDescriptor(name, MAC)
	client.start([iface])
	interface, discover = transport.sent[-1]
	return iface, discover.transaction_id


def bound_client(**kwargs):
	client, transport, leases, scheduler = make_client(**kwargs)
	iface, xid = start_one(client, transport)
	client.on_datagram(make_offer(xid))
	client.on_datagram(make_ack(xid))
	return client, transport, leases, scheduler, iface, xid


def test_start_discovers_on_every_interface():
	client, transport, leases, scheduler = make_client()
	ifaces = [InterfaceDescriptor('eth0', MAC),
		InterfaceDescriptor('eth1', '52:54:00:ab:cd:ef')]

	client.start(ifaces)

	assert [iface.name for iface, packet in transport.sent] == ['eth0', 'eth1']
	for iface, packet in transport.sent:
		assert packet.operation == Operation.REQUEST
		assert packet.message_type is MessageType.DISCOVER
		assert packet.hardware_address == iface.mac_address
		assert packet.flags & Flags.BROADCAST
		assert client.transactions.get(packet.transaction_id).interface is iface
		assert OptionTag.REQUESTED_IP_ADDRESS not in packet.options
	assert len(client.transactions) == 2


def test_concrete_lease_scenario():
	client, transport, leases, scheduler = make_client()
	eth0 = InterfaceDescriptor('eth0', MAC)

	client.dispatch(Start([eth0]))
	assert len(transport.sent) == 1
	iface, discover = transport.sent[0]
	assert discover.message_type is MessageType.DISCOVER
	assert discover.hardware_address == bytes.fromhex('525400123456')
	xid = discover.transaction_id

	client.dispatch(DatagramReceived(make_offer(xid)))
	assert len(transport.sent) == 2
	iface, request = transport.sent[1]
	assert request.message_type is MessageType.REQUEST
	assert request.transaction_id == xid
	assert request.options.get(OptionTag.REQUESTED_IP_ADDRESS) == (
		IPv4Address('10.0.2.15'))

	client.dispatch(DatagramReceived(make_ack(xid)))
	assert leases.calls == [('eth0', IPv4Address('10.0.2.15'),
		IPv4Address('255.255.255.0'), IPv4Address('10.0.2.2'))]
	assert eth0.current_ip_address == IPv4Address('10.0.2.15')
	assert client.transactions.get(xid).phase is Phase.BOUND
	assert len(transport.sent) == 2


def test_first_offer_wins():
	client, transport, leases, scheduler = make_client()
	iface, xid = start_one(client, transport)

	client.on_datagram(make_offer(xid, yiaddr='10.0.2.15'))
	client.on_datagram(make_offer(xid, yiaddr='10.0.2.99'))

	requests = [packet for iface, packet in transport.sent
		if packet.message_type is MessageType.REQUEST]
	assert len(requests) == 1
	assert requests[0].options.get(OptionTag.REQUESTED_IP_ADDRESS) == (
		IPv4Address('10.0.2.15'))
	assert client.transactions.get(xid).phase is Phase.REQUESTING


def test_offer_after_lease_is_ignored():
	client, transport, leases, scheduler, iface, xid = bound_client()
	sent = len(transport.sent)

	client.on_datagram(make_offer(xid, yiaddr='10.0.2.99'))

	assert len(transport.sent) == sent


def test_request_echoes_server_identifier():
	client, transport, leases, scheduler = make_client()
	iface, xid = start_one(client, transport)

	client.on_datagram(make_offer(xid, options={
		OptionTag.SERVER_IDENTIFIER: '10.0.2.2'}))

	iface, request = transport.sent[-1]
	assert request.options.get(OptionTag.SERVER_IDENTIFIER) == (
		IPv4Address('10.0.2.2'))


@pytest.mark.parametrize('message_type', [
	MessageType.OFFER, MessageType.ACK, MessageType.NAK])
def test_unmatched_xid_is_noop(message_type):
	client, transport, leases, scheduler = make_client()
	iface, xid = start_one(client, transport)
	before = {t.xid: t.phase for t in client.transactions}
	sent = len(transport.sent)

	client.on_datagram(make_reply((xid + 1) % 0x100000000, message_type))

	assert {t.xid: t.phase for t in client.transactions} == before
	assert len(transport.sent) == sent
	assert scheduler.timers == []
	assert leases.calls == []


def test_lease_cycle_expiry_rediscovers():
	client, transport, leases, scheduler, iface, xid = bound_client()
	transaction = client.transactions.get(xid)

	assert len(leases.calls) == 1
	assert len(scheduler.timers) == 1
	timer = scheduler.timers[0]
	assert timer.delay == 86400
	assert timer.event[:2] == (xid, TimerKind.LEASE_EXPIRY)

	sent = len(transport.sent)
	client.dispatch(timer.event)

	assert transaction.phase is Phase.DISCOVERING
	assert not transaction.has_lease
	assert not transaction.accepted_offer
	assert len(transport.sent) == sent + 1
	iface, discover = transport.sent[-1]
	assert discover.message_type is MessageType.DISCOVER
	assert iface.name == 'eth0'
	assert discover.client_ip == IPv4Address('10.0.2.15')
	assert client.transactions.current(iface).xid == discover.transaction_id


def test_nak_arms_retry_and_rediscovers():
	client, transport, leases, scheduler = make_client(retry_delay=10)
	iface, xid = start_one(client, transport)
	client.on_datagram(make_offer(xid))
	transaction = client.transactions.get(xid)

	client.on_datagram(make_reply(xid, MessageType.NAK, yiaddr='0.0.0.0'))

	assert transaction.phase is Phase.DISCOVERING
	assert not transaction.accepted_offer
	assert not transaction.has_lease
	assert len(scheduler.timers) == 1
	assert scheduler.timers[0].delay == 10
	assert scheduler.timers[0].event[:2] == (xid, TimerKind.RETRY)
	assert leases.calls == []

	sent = len(transport.sent)
	client.dispatch(scheduler.timers[0].event)

	assert len(transport.sent) == sent + 1
	iface, discover = transport.sent[-1]
	assert discover.message_type is MessageType.DISCOVER
	assert discover.transaction_id != xid
	assert iface.name == 'eth0'
	assert xid not in client.transactions
	assert discover.transaction_id in client.transactions


def test_nak_retry_keeps_orphans():
	client, transport, leases, scheduler = make_client(evict_orphans=False)
	iface, xid = start_one(client, transport)
	client.on_datagram(make_reply(xid, MessageType.NAK))

	client.dispatch(scheduler.timers[0].event)

	iface, discover = transport.sent[-1]
	assert xid in client.transactions
	assert discover.transaction_id in client.transactions
	assert len(client.transactions) == 2


def test_stale_timer_is_ignored():
	client, transport, leases, scheduler = make_client()
	sent = len(transport.sent)

	client.on_timer(TimerKind.RETRY, 0x12345678, 1)

	assert len(transport.sent) == sent
	assert len(client.transactions) == 0


def test_second_ack_replaces_timer():
	client, transport, leases, scheduler, iface, xid = bound_client()

	client.on_datagram(make_ack(xid, lease_time=600))

	assert scheduler.timers[0].cancelled
	assert not scheduler.timers[1].cancelled
	assert scheduler.timers[1].delay == 600
	assert client.transactions.get(xid).timer is scheduler.timers[1]


def test_replaced_lease_timer_event_is_ignored():
	client, transport, leases, scheduler, iface, xid = bound_client()
	client.on_datagram(make_ack(xid, lease_time=600))
	sent = len(transport.sent)

	# already queued when the second ACK cancelled it
	client.dispatch(scheduler.timers[0].event)

	transaction = client.transactions.get(xid)
	assert transaction.phase is Phase.BOUND
	assert transaction.timer is scheduler.timers[1]
	assert len(transport.sent) == sent

	client.dispatch(scheduler.timers[1].event)

	assert len(transport.sent) == sent + 1
	assert transaction.phase is Phase.DISCOVERING


def test_retry_timer_event_after_ack_is_ignored():
	client, transport, leases, scheduler = make_client()
	iface, xid = start_one(client, transport)
	client.on_datagram(make_reply(xid, MessageType.NAK))
	client.on_datagram(make_ack(xid))
	sent = len(transport.sent)

	client.dispatch(scheduler.timers[0].event)

	assert scheduler.timers[0].cancelled
	assert client.transactions.get(xid).phase is Phase.BOUND
	assert len(transport.sent) == sent


def test_timer_event_with_unknown_serial_is_ignored():
	client, transport, leases, scheduler, iface, xid = bound_client()
	sent = len(transport.sent)

	client.dispatch(TimerFired(xid, TimerKind.LEASE_EXPIRY, 99))

	assert client.transactions.get(xid).phase is Phase.BOUND
	assert len(transport.sent) == sent


def test_ack_fallbacks():
	client, transport, leases, scheduler = make_client()
	iface, xid = start_one(client, transport)
	client.on_datagram(make_offer(xid, yiaddr='172.16.5.4', lease_time=1200))

	client.on_datagram(make_reply(xid, MessageType.ACK, yiaddr='172.16.5.4'))

	assert leases.calls == [('eth0', IPv4Address('172.16.5.4'),
		IPv4Address('255.255.0.0'), None)]
	assert scheduler.timers[0].delay == 1200


def test_ack_without_any_lease_time():
	client, transport, leases, scheduler = make_client()
	iface, xid = start_one(client, transport)
	client.on_datagram(make_reply(xid, MessageType.OFFER))

	client.on_datagram(make_reply(xid, MessageType.ACK))

	assert scheduler.timers[0].delay == DEFAULT_LEASE_TIME
	assert leases.calls[0][2] == IPv4Address('255.0.0.0')


def test_malformed_datagrams_are_dropped():
	client, transport, leases, scheduler = make_client()
	iface, xid = start_one(client, transport)
	sent = len(transport.sent)

	client.on_datagram(b'\x02\x01\x06\x00')
	client.on_datagram(b'\x00'*600)
	client.on_datagram(make_offer(xid)[:240])

	assert len(transport.sent) == sent
	assert client.transactions.get(xid).phase is Phase.DISCOVERING


@pytest.mark.parametrize('message_type', [
	MessageType.DECLINE, MessageType.DISCOVER, MessageType.REQUEST,
	MessageType.RELEASE])
def test_unhandled_message_types_do_not_mutate(message_type):
	client, transport, leases, scheduler = make_client()
	iface, xid = start_one(client, transport)
	client.on_datagram(make_offer(xid))
	transaction = client.transactions.get(xid)
	sent = len(transport.sent)

	client.on_datagram(make_reply(xid, message_type))

	assert transaction.phase is Phase.REQUESTING
	assert transaction.accepted_offer
	assert len(transport.sent) == sent
	assert scheduler.timers == []


def test_unrecognized_message_type_does_not_mutate():
	client, transport, leases, scheduler = make_client()
	iface, xid = start_one(client, transport)
	packet = DHCPMessage.decode(make_offer(xid))
	packet.options.set_raw(OptionTag.MESSAGE_TYPE, b'\x2a')
	sent = len(transport.sent)

	client.on_datagram(packet.encode())

	assert client.transactions.get(xid).phase is Phase.DISCOVERING
	assert len(transport.sent) == sent


def test_unknown_event():
	client, transport, leases, scheduler = make_client()

	with pytest.raises(TypeError):
		client.dispatch(object())
