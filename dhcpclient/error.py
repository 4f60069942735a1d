# SPDX-License-Identifier: MIT

__all__ = ['DHCPv4Error', 'MalformedPacketError', 'OptionsTooLargeError']


class Error(Exception):
	"""Base class for DHCP client errors"""
	pass


class DHCPv4Error(Error):
	"""Base class for DHCPv4 errors"""
	pass


class MalformedPacketError(DHCPv4Error):
	"""Raised when a datagram cannot be decoded as a DHCPv4 packet"""
	pass


class OptionsTooLargeError(DHCPv4Error):
	"""Raised when encoded options do not fit in the option area"""
	pass

# vim:set ft=python ts=4 sw=4 ai noet cc=80:
