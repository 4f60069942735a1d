# SPDX-License-Identifier: MIT

import socket

from ..platform_specific import broadcast_listen, broadcast_send

DHCP_ADDRESS = '0.0.0.0'
DHCP_TYPE = socket.SOCK_DGRAM

DHCP_SERVER_PORT = 67
DHCP_CLIENT_PORT = 68


def listen(iface=None):
	return broadcast_listen(DHCP_ADDRESS, DHCP_CLIENT_PORT, DHCP_TYPE,
		interface=iface)


def broadcast(iface, data):
	return broadcast_send(iface, data, DHCP_SERVER_PORT)

# vim:set ft=python ts=4 sw=4 ai noet cc=80:
