"""dhcpclient.v4

DHCPv4 client: packet codec, option set, transaction table and engine

"""

__author__ = 'Tori Wolf <wiredwolf@wiredwolf.gg>'
__date__ = '2026-10-17'
# SPDX-License-Identifier: MIT
__license__ = 'MIT'
__copyright__ = '2026 Tori Wolf'

try:
	from .message import *
	from .message import __all__ as message_all
	from .options import *
	from .options import __all__ as options_all
	from .transaction import *
	from .transaction import __all__ as transaction_all
	from .client import *
	from .client import __all__ as client_all
except ImportError as e:
	print('Could not import DHCP client')
	raise

# NOTE(tori): the daemon pulls in platform_specific, import it explicitly
# from dhcpclient.v4.daemon where sockets are wanted

__all__ = [
	*message_all,
	*options_all,
	*transaction_all,
	*client_all,
]

# vim:set ft=python ts=4 sw=4 ai noet cc=80:
