# SPDX-License-Identifier: MIT

__all__ = ['Operation', 'HardwareType', 'Flags', 'MessageType', 'DHCPMessage',
	'MAGIC_COOKIE', 'HEADER_SIZE', 'MIN_PACKET_SIZE', 'MAX_PACKET_SIZE',
	'OPTIONS_MAX_LENGTH']

import enum
import struct
from collections import namedtuple
from ipaddress import IPv4Address
from random import randrange

from .options import OptionSet, OptionTag, parse_options
from ..error import DHCPv4Error, MalformedPacketError


@enum.unique
class Operation(enum.IntEnum):
	REQUEST = 1
	REPLY = 2


# NOTE(tori): hardware types come from the following:
# https://www.iana.org/assignments/arp-parameters/arp-parameters.xhtml
@enum.unique
class HardwareType(enum.IntEnum):
	ETH10MB = 1
	IEEE802 = 6
	INFINIBAND = 32


@enum.unique
class Flags(enum.IntFlag):
	BROADCAST = 1 << 15


@enum.unique
class MessageType(enum.IntEnum):
	UNRECOGNIZED = 0
	DISCOVER = 1
	OFFER = 2
	REQUEST = 3
	DECLINE = 4
	ACK = 5
	NAK = 6
	RELEASE = 7

	@classmethod
	def _missing_(cls, value):
		return cls.UNRECOGNIZED


MAGIC_COOKIE = b'\x63\x82\x53\x63'

HEADER_SIZE = 236
MIN_PACKET_SIZE = HEADER_SIZE + len(MAGIC_COOKIE)
# NOTE(tori): 576 byte minimum IPv4 datagram, minus IP and UDP headers
MAX_PACKET_SIZE = 548
OPTIONS_MAX_LENGTH = MAX_PACKET_SIZE - MIN_PACKET_SIZE
# NOTE(tori): some relays drop anything shorter than a BOOTP packet (300)
OPTIONS_MIN_LENGTH = 300 - MIN_PACKET_SIZE


def try_enum(enum_type, value):
	try:
		return enum_type(value)
	except ValueError:
		return value


class DHCPMessage:
	NAMES = namedtuple('Fields', 'op htype hlen hops xid secs flags ciaddr'
		' yiaddr siaddr giaddr chaddr sname file', defaults=(None,)*14)
	CODEC = struct.Struct(
		'!'			# network byte order (big)
		'BBBB'		# op, htype, hlen, hops
		'I'			# xid
		'HH'		# secs, flags
		'4s'		# ciaddr (client ip)
		'4s'		# yiaddr (given ip by server)
		'4s'		# siaddr (server ip address)
		'4s'		# giaddr (gateway ip address)
		'16s'		# chaddr (client hardware address)
		'64s'		# server host name (null-terminated)
		'128s'		# boot file name (null-terminated)
	)

	@property
	def operation(self):
		return try_enum(Operation, self.raw_data['op'])

	@operation.setter
	def operation(self, value):
		self.raw_data['op'] = Operation(value).value

	@property
	def hardware_type(self):
		return try_enum(HardwareType, self.raw_data['htype'])

	@hardware_type.setter
	def hardware_type(self, value):
		self.raw_data['htype'] = HardwareType(value).value

	@property
	def hardware_address(self):
		return self.raw_data['chaddr'][:self.raw_data['hlen']]

	@hardware_address.setter
	def hardware_address(self, value):
		value = bytes(value)
		if len(value) > 16:
			raise DHCPv4Error('hardware address too long: `%r`' % value)
		self.raw_data['chaddr'] = (value + b'\0'*16)[:16]
		self.raw_data['hlen'] = len(value)

	@property
	def hops(self):
		return self.raw_data['hops']

	@hops.setter
	def hops(self, value):
		if value not in range(0x100):
			raise DHCPv4Error('`%r` not in range(0x100)' % value)
		self.raw_data['hops'] = value

	@property
	def transaction_id(self):
		return self.raw_data['xid']

	@transaction_id.setter
	def transaction_id(self, value):
		if value not in range(0x100000000):
			raise DHCPv4Error('`%r` not in range(0x100000000)' % value)
		self.raw_data['xid'] = value

	@property
	def seconds(self):
		return self.raw_data['secs']

	@seconds.setter
	def seconds(self, value):
		if value not in range(0x10000):
			raise DHCPv4Error('`%r` not in range(0x10000)' % value)
		self.raw_data['secs'] = value

	@property
	def flags(self):
		return Flags(self.raw_data['flags'])

	@flags.setter
	def flags(self, value):
		if value not in range(0x10000):
			raise DHCPv4Error('`%r` not in range(0x10000)' % value)
		self.raw_data['flags'] = int(value)

	@property
	def client_ip(self):
		return IPv4Address(self.raw_data['ciaddr'])

	@client_ip.setter
	def client_ip(self, value):
		self.raw_data['ciaddr'] = IPv4Address(value).packed

	@property
	def your_ip(self):
		return IPv4Address(self.raw_data['yiaddr'])

	@your_ip.setter
	def your_ip(self, value):
		self.raw_data['yiaddr'] = IPv4Address(value).packed

	@property
	def server_ip(self):
		return IPv4Address(self.raw_data['siaddr'])

	@server_ip.setter
	def server_ip(self, value):
		self.raw_data['siaddr'] = IPv4Address(value).packed

	@property
	def gateway_ip(self):
		return IPv4Address(self.raw_data['giaddr'])

	@gateway_ip.setter
	def gateway_ip(self, value):
		self.raw_data['giaddr'] = IPv4Address(value).packed

	@property
	def server_name(self):
		return self.raw_data['sname'].rstrip(b'\0')

	@server_name.setter
	def server_name(self, value):
		if len(value) > 64:
			raise DHCPv4Error('encoded server name too long: `%r`' % value)
		self.raw_data['sname'] = (bytes(value) + b'\0'*64)[:64]

	@property
	def boot_file_name(self):
		return self.raw_data['file'].rstrip(b'\0')

	@boot_file_name.setter
	def boot_file_name(self, value):
		if len(value) > 128:
			raise DHCPv4Error('encoded boot file name too long: `%r`' % value)
		self.raw_data['file'] = (bytes(value) + b'\0'*128)[:128]

	@property
	def options(self):
		# NOTE(tori): options are parsed on first access, so a packet we end
		# up dropping never pays for it
		if self._opts is None:
			self._opts = parse_options(self.raw_options)
		return self._opts

	@options.setter
	def options(self, value):
		self._opts = OptionSet(value)
		self.raw_options = b''

	@property
	def message_type(self):
		value = self.options.get(OptionTag.MESSAGE_TYPE)
		if value is None:
			return None
		return MessageType(value)

	@message_type.setter
	def message_type(self, value):
		value = MessageType(value)
		if value is MessageType.UNRECOGNIZED:
			raise DHCPv4Error('cannot send an unrecognized message type')
		self.options[OptionTag.MESSAGE_TYPE] = value

	def __init__(self, *, op, htype=HardwareType.ETH10MB, hops=0, xid=None,
		secs=0, flags=0, ciaddr=0, yiaddr=0, siaddr=0, giaddr=0,
		hwaddr=b'\x00\x00\x00\x00\x00\x00', sname=b'', file=b'',
		options=None):
		self.raw_data = self.NAMES()._asdict()
		self.operation = op
		self.hardware_type = htype
		self.hops = hops
		if xid is None:
			xid = randrange(0x100000000)
		self.transaction_id = xid
		self.seconds = secs
		self.flags = flags
		self.client_ip = ciaddr
		self.your_ip = yiaddr
		self.server_ip = siaddr
		self.gateway_ip = giaddr
		self.hardware_address = hwaddr
		self.server_name = sname
		self.boot_file_name = file
		self.options = options

	def _repr_parts(self):
		return (
			'operation={op}'.format(op=self.operation),
			'hardware_type={htype}'.format(htype=self.hardware_type),
			'hardware_address={hwaddr}'.format(
				hwaddr=self.hardware_address.hex(':')),
			'hops={hops}'.format(hops=hex(self.hops)),
			'transaction_id={xid}'.format(xid=hex(self.transaction_id)),
			'seconds={secs}'.format(secs=self.seconds),
			'flags={flags}'.format(flags=hex(self.raw_data['flags'])),
			'client_ip={ciaddr}'.format(ciaddr=self.client_ip),
			'your_ip={yiaddr}'.format(yiaddr=self.your_ip),
			'server_ip={siaddr}'.format(siaddr=self.server_ip),
			'gateway_ip={giaddr}'.format(giaddr=self.gateway_ip),
			'server_name={sname!r}'.format(sname=self.server_name),
			'boot_file_name={file!r}'.format(file=self.boot_file_name),
			'options={options!r}'.format(options=self.options)
		)

	def __repr__(self):
		return '{cls}({parts})'.format(
			cls=type(self).__name__,
			parts=','.join(self._repr_parts())
		)

	def __eq__(self, other):
		if not isinstance(other, DHCPMessage):
			return NotImplemented
		return (self.raw_data == other.raw_data
			and self.options == other.options)

	def encode(self):
		ordered_data = [self.raw_data[field] for field in self.NAMES._fields]
		options = self.options.encode(max_length=OPTIONS_MAX_LENGTH,
			pad_length=OPTIONS_MIN_LENGTH)
		return self.CODEC.pack(*ordered_data) + MAGIC_COOKIE + options

	@classmethod
	def decode(cls, packet):
		packet = bytes(packet)
		if len(packet) < MIN_PACKET_SIZE:
			raise MalformedPacketError('packet too short: %d < %d bytes'
				% (len(packet), MIN_PACKET_SIZE))
		if len(packet) > MAX_PACKET_SIZE:
			raise MalformedPacketError('packet too long: %d > %d bytes'
				% (len(packet), MAX_PACKET_SIZE))
		cookie = packet[HEADER_SIZE:MIN_PACKET_SIZE]
		if cookie != MAGIC_COOKIE:
			raise MalformedPacketError('bad magic cookie: %r' % cookie)

		self = cls.__new__(cls)
		data = cls.CODEC.unpack_from(packet)
		self.raw_data = cls.NAMES._make(data)._asdict()
		self.raw_options = packet[MIN_PACKET_SIZE:]
		self._opts = None
		return self

# vim:set ft=python ts=4 sw=4 ai noet cc=80:
