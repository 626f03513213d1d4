"""Reverse DNS lookups of remote addresses."""

from __future__ import annotations

import abc
from ipaddress import IPv4Address
from typing import Optional, Union

import dns.exception
import dns.resolver
import dns.reversename

from bandwatch.network.connection import IpAddress

DNS_PORT = 53


class Lookup(abc.ABC):
    """Something that finds the host name of an address."""

    @abc.abstractmethod
    def lookup(self, ip: IpAddress) -> Optional[str]:
        """Return the host name of ip, or None when it could not be found out."""


class Resolver(Lookup):
    """Looks up PTR records, from the system's name servers or a given one."""

    def __init__(self, dns_server: Optional[Union[IPv4Address, str]] = None) -> None:
        if dns_server is None:
            self.backend = dns.resolver.Resolver()
        else:
            self.backend = dns.resolver.Resolver(configure=False)
            self.backend.nameservers = [str(IPv4Address(dns_server))]
            self.backend.port = DNS_PORT

    def lookup(self, ip: IpAddress) -> Optional[str]:
        """The first PTR name; the address itself when it has none."""
        try:
            answer = self.backend.resolve(dns.reversename.from_address(str(ip)), "PTR")
        except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer):
            # Remember addresses without a name so they are not retried forever.
            return str(ip)
        except (dns.exception.DNSException, OSError, ValueError):
            return None
        return next((record.to_text() for record in answer), None)