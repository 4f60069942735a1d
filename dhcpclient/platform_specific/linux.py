# SPDX-License-Identifier: CC0-1.0

import os
import socket
import struct
import subprocess
from fcntl import ioctl
from ipaddress import IPv4Address

# NOTE(tori): constant from net/if.h
IF_NAMESIZE = 16
# NOTE(tori): constants from sys/ioctl.h
SIOCGIFADDR = 0x8915
SIOCSIFADDR = 0x8916
SIOCSIFNETMASK = 0x891C
SIOCGIFHWADDR = 0x8927


def _ifname(ifname):
	if isinstance(ifname, str):
		ifname = ifname.encode('utf-8')
	if len(ifname) >= IF_NAMESIZE:
		raise ValueError('interface name too long: %r' % ifname)
	return ifname


def _ifreq(request, ifreq):
	# NOTE(tori): fails on unassigned ip address with errno 99, which is
	# "Cannot assign requested address", and on an unknown interface with
	# errno 19, which is "No such device"
	with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
		return ioctl(sock.fileno(), request, ifreq)


def _sockaddr_ifreq(ifname, address):
	# NOTE(tori): `struct ifreq` holding a `struct sockaddr_in`, see ip(7)
	# and netdevice(7); the family is in host byte order, the rest is not
	return struct.pack('=16sH2x4s8x8x', _ifname(ifname), socket.AF_INET,
		IPv4Address(address).packed)


def get_ip_from_iface(ifname):
	ifreq = _ifreq(SIOCGIFADDR, struct.pack('256s', _ifname(ifname)))
	# NOTE(tori): find information in ip(7) as `struct sockaddr_in`
	return IPv4Address(ifreq[20:24])


def get_mac_from_iface(ifname):
	ifreq = _ifreq(SIOCGIFHWADDR, struct.pack('256s', _ifname(ifname)))
	# NOTE(tori): find information in packet(7) as `struct sockaddr_ll`
	return ifreq[18:24]


def list_ifaces():
	return os.listdir('/sys/class/net')


def broadcast_listen(target_address, target_port, target_type,
	target_family=None, interface=None):
	addrinfos = socket.getaddrinfo(target_address, target_port)
	for addrinfo in addrinfos:
		family, type_, proto, canonname, sockaddr = addrinfo
		if ((family == target_family or target_family is None)
			and (type_ == target_type)):
			sock = socket.socket(family, type_, proto)
			sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
			sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
			if interface is not None:
				sock.setsockopt(socket.SOL_SOCKET, socket.SO_BINDTODEVICE,
					_ifname(interface) + b'\0')
			sock.bind((target_address, target_port))
			return sock
	else:
		raise Exception('could not listen')


def broadcast_send(ifname, data, target_port, target_address='255.255.255.255'):
	with socket.socket(socket.AF_INET, socket.SOCK_DGRAM,
		socket.IPPROTO_UDP) as sock:
		sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
		sock.setsockopt(socket.SOL_SOCKET, socket.SO_BINDTODEVICE,
			_ifname(ifname) + b'\0')
		return sock.sendto(data, (target_address, target_port))


def set_params(ifname, address, netmask, gateway=None):
	_ifreq(SIOCSIFADDR, _sockaddr_ifreq(ifname, address))
	_ifreq(SIOCSIFNETMASK, _sockaddr_ifreq(ifname, netmask))
	if gateway is None:
		return

	# XXX(tori): SIOCADDRT wants a `struct rtentry` holding a pointer to the
	# device name, which we can't build with struct alone, so ask iproute2
	result = subprocess.run(
		['ip', 'route', 'replace', 'default', 'via', str(gateway), 'dev',
			_ifname(ifname).decode('utf-8')],
		stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True)
	if result.returncode != 0:
		raise OSError('could not set default gateway %s on %s: %s'
			% (gateway, ifname, result.stderr.strip()))

# vim:set ft=python ts=4 sw=4 ai noet cc=80:
