# SPDX-License-Identifier: MIT

__all__ = ['OptionTag', 'OptionSet', 'parse_options', 'encode_option',
	'decode_option']

import enum
from ipaddress import IPv4Address
from struct import Struct, error as StructError

from ..error import DHCPv4Error, OptionsTooLargeError


# NOTE(tori): only the options the client actually consumes or sends are
# named here; anything else is kept as raw bytes and round-trips untouched
@enum.unique
class OptionTag(enum.IntEnum):
	PAD = 0
	SUBNET_MASK = 1
	ROUTER = 3
	REQUESTED_IP_ADDRESS = 50
	IP_ADDRESS_LEASE_TIME = 51
	MESSAGE_TYPE = 53
	SERVER_IDENTIFIER = 54
	PARAMETER_REQUEST_LIST = 55
	END = 255


uint8 = Struct('!B')
uint32 = Struct('!I')


def make_unpacker(struct):
	def unpacker(b):
		result, = struct.unpack(b)
		return result
	return unpacker


def encode_ip(decoded):
	try:
		return IPv4Address(decoded).packed
	except Exception:
		raise ValueError('invalid decoded IP: %r' % (decoded,)) from None


def decode_ip(encoded):
	if len(encoded) != 4:
		raise ValueError('invalid encoded IP: %r' % (encoded,))
	return IPv4Address(bytes(encoded))


def encode_ips(decoded):
	if not decoded:
		raise ValueError('IP list must not be empty')
	return b''.join(encode_ip(value) for value in decoded)


def decode_ips(encoded):
	if not encoded or len(encoded)%4 != 0:
		raise ValueError('invalid encoded IP list: %r' % (encoded,))
	return [decode_ip(encoded[i:i + 4]) for i in range(0, len(encoded), 4)]


ip_codec = (encode_ip, decode_ip)
ip_list_codec = (encode_ips, decode_ips)
uint8_codec = (uint8.pack, make_unpacker(uint8))
uint32_codec = (uint32.pack, make_unpacker(uint32))
bytes_codec = (bytes, bytes)

codecs = {
	OptionTag.SUBNET_MASK: ip_codec,
	OptionTag.ROUTER: ip_list_codec,
	OptionTag.REQUESTED_IP_ADDRESS: ip_codec,
	OptionTag.IP_ADDRESS_LEASE_TIME: uint32_codec,
	OptionTag.MESSAGE_TYPE: uint8_codec,
	OptionTag.SERVER_IDENTIFIER: ip_codec,
	OptionTag.PARAMETER_REQUEST_LIST: bytes_codec,
}


def get_tag(value):
	try:
		return OptionTag(value)
	except ValueError:
		return value


def encode_option(tag, value):
	encoder, decoder = codecs.get(tag, bytes_codec)
	try:
		return encoder(value)
	except (ValueError, TypeError, StructError) as e:
		raise DHCPv4Error('cannot encode %r for option %r (caused by %r)'
			% (value, get_tag(tag), e)) from None


def decode_option(tag, value):
	"""Decode raw option bytes, returning None if they do not fit the tag"""
	encoder, decoder = codecs.get(tag, bytes_codec)
	try:
		return decoder(value)
	except (ValueError, TypeError, StructError):
		return None


class OptionSet:
	"""Typed view over a DHCP option area

	Values are stored as raw bytes keyed by tag; typed access goes through
	the codec table, and a value that does not decode is reported as absent.
	"""

	def __init__(self, values=None):
		self._options = {}
		if values is None:
			return
		if isinstance(values, OptionSet):
			values = values._options
		if isinstance(values, dict):
			values = values.items()
		for tag, value in values:
			self[tag] = value

	def __getitem__(self, tag):
		value = self.get(tag)
		if value is None:
			raise KeyError(get_tag(tag))
		return value

	def __setitem__(self, tag, value):
		if tag in (OptionTag.PAD, OptionTag.END):
			raise DHCPv4Error('option %r carries no value' % get_tag(tag))
		if tag not in range(0x100):
			raise DHCPv4Error('`%r` not in range(0x100)' % (tag,))
		self._options[get_tag(tag)] = encode_option(tag, value)

	def __delitem__(self, tag):
		del self._options[get_tag(tag)]

	def __contains__(self, tag):
		return tag in self._options

	def __iter__(self):
		return iter(self._options)

	def __len__(self):
		return len(self._options)

	def __eq__(self, other):
		if not isinstance(other, OptionSet):
			return NotImplemented
		return self._options == other._options

	def __repr__(self):
		return '%s({%s})' % (type(self).__name__, ', '.join(
			'%s: %r' % (get_tag(tag), self.get(tag))
			for tag in self._options
		))

	def keys(self):
		return self._options.keys()

	def items(self):
		return ((tag, self.get(tag)) for tag in self._options)

	def raw(self, tag):
		return self._options.get(tag)

	def set_raw(self, tag, value):
		self._options[get_tag(tag)] = bytes(value)

	def get(self, tag, default=None):
		value = self._options.get(tag)
		if value is None:
			return default
		decoded = decode_option(tag, value)
		if decoded is None:
			return default
		return decoded

	def get_many(self, tag, min_count):
		"""Return the first `min_count` entries of a list option, or None"""
		values = self.get(tag)
		if not isinstance(values, list) or len(values) < min_count:
			return None
		return values[:min_count]

	def encode(self, max_length=None, pad_length=None):
		opts = b''
		for tag, value in self._options.items():
			if len(value) > 255:
				raise OptionsTooLargeError('option %r is %d bytes long'
					% (tag, len(value)))
			opts += bytes([tag, len(value), *value])
		opts += bytes([OptionTag.END])
		if max_length is not None and len(opts) > max_length:
			raise OptionsTooLargeError('options too large: %d > %d bytes'
				% (len(opts), max_length))
		if pad_length is not None:
			opts += b'\x00'*max(0, pad_length - len(opts))
		return opts


def parse_options(raw_data):
	"""Walk the tag/length/value triples of an option area

	Parsing stops at the End tag or at the end of the buffer; a trailing
	option whose length runs past the buffer is dropped. When a tag repeats,
	the last value wins.
	"""
	options = OptionSet()
	raw_data = bytes(raw_data)
	offset = 0

	while offset < len(raw_data):
		tag = raw_data[offset]
		if tag == OptionTag.END:
			break
		if tag == OptionTag.PAD:
			offset += 1
			continue
		if offset + 1 >= len(raw_data):
			break
		length = raw_data[offset + 1]
		value = raw_data[offset + 2:offset + 2 + length]
		if len(value) != length:
			break
		options.set_raw(tag, value)
		offset += 2 + length

	return options

# vim:set ft=python ts=4 sw=4 ai noet cc=80:
