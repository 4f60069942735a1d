"""DHCP client

DHCPv4 client protocol engine: negotiates, holds and renews leases on one
or more interfaces

"""

__author__ = 'Tori Wolf <wiredwolf@wiredwolf.gg>'
__version__ = '0.1.0'
__date__ = '2026-10-17'
# SPDX-License-Identifier: MIT
__license__ = 'MIT'
__copyright__ = '2026 Tori Wolf'

try:
	from . import v4 as ipv4
except ImportError as e:
	print('Could not import DHCP client: %r' % e)
	raise

__all__ = ['ipv4']

# vim:set ft=python ts=4 sw=4 ai noet cc=80:
