import subprocess
from ipaddress import ip_address
from unittest import mock

import pytest

from bandwatch.network.connection import Protocol
from bandwatch.system.lsof_utils import (
    RawConnection,
    get_connections,
    parse_connections,
    run_lsof,
)

IPV6_LINE_RAW_OUTPUT = "ProcessName     29266 user    9u  IPv6 0x5d53dfe5445cee01      0t0  UDP [fe80:4::aede:48ff:fe00:1122]:1111->[fe80:4::aede:48ff:fe33:4455]:2222"
LINE_RAW_OUTPUT = "ProcessName 29266 user   39u  IPv4 0x28ffb9c0021196bf      0t0  UDP 192.168.0.1:1111->198.252.206.25:2222"
FULL_RAW_OUTPUT = """
com.apple   590 etoledom  193u  IPv4 0x28ffb9c041115627      0t0  TCP 192.168.1.37:60298->31.13.83.36:443 (ESTABLISHED)
com.apple   590 etoledom  198u  IPv4 0x28ffb9c04110ea8f      0t0  TCP 192.168.1.37:60299->31.13.83.8:443 (ESTABLISHED)
com.apple   590 etoledom  203u  IPv4 0x28ffb9c04110ea8f      0t0  TCP 192.168.1.37:60299->31.13.83.8:443 (ESTABLISHED)
com.apple   590 etoledom  204u  IPv4 0x28ffb9c04111253f      0t0  TCP 192.168.1.37:60374->140.82.114.26:443
"""

BOTH = [LINE_RAW_OUTPUT, IPV6_LINE_RAW_OUTPUT]


def test_iterator_multiline():
    assert len(parse_connections(FULL_RAW_OUTPUT)) == 4


def test_iterator_yields_last_line_first():
    connections = parse_connections(FULL_RAW_OUTPUT)
    assert connections[0].local_port == "60374"
    assert connections[-1].local_port == "60298"


@pytest.mark.parametrize("line", BOTH)
def test_raw_connection_is_created_from_raw_output(line):
    conn = RawConnection.parse(line)
    assert conn.local_port == "1111"
    assert conn.remote_port == "2222"


def test_raw_connection_is_not_created_from_wrong_raw_output():
    assert RawConnection.parse("not a process") is None


@pytest.mark.parametrize("line", BOTH)
def test_raw_connection_parse_local_port(line):
    assert RawConnection.parse(line).to_local_socket().port == 1111


@pytest.mark.parametrize("line", BOTH)
def test_raw_connection_parse_protocol(line):
    assert RawConnection.parse(line).to_local_socket().protocol is Protocol.UDP


@pytest.mark.parametrize("line", BOTH)
def test_raw_connection_parse_process_name(line):
    assert RawConnection.parse(line).process_name == "ProcessName"


def test_ipv6_addresses_lose_brackets():
    conn = RawConnection.parse(IPV6_LINE_RAW_OUTPUT)
    assert conn.local_ip == "fe80:4::aede:48ff:fe00:1122"
    assert conn.remote_ip == "fe80:4::aede:48ff:fe33:4455"
    assert conn.remote_port == "2222"


def test_listening_wildcard_ipv4():
    line = "nginx 100 root 6u IPv4 0xabc 0t0 TCP *:4567 (LISTEN)"
    conn = RawConnection.parse(line)
    sock = conn.to_local_socket()
    assert sock.ip == ip_address("0.0.0.0")
    assert sock.port == 4567
    assert (conn.remote_ip, conn.remote_port) == ("0.0.0.0", "0")


def test_listening_any_port_ipv6():
    line = "daemon 100 root 6u IPv6 0xabc 0t0 UDP *:*"
    conn = RawConnection.parse(line)
    assert conn.to_local_socket().ip == ip_address("::0")
    assert conn.to_local_socket().port == 0


def test_escaped_space_in_process_name():
    line = "Google\\x20Chrome 1 user 9u IPv4 0xabc 0t0 TCP 10.0.0.2:5000->1.1.1.1:443"
    assert RawConnection.parse(line).process_name == "Google Chrome"


def test_other_protocols_are_ignored():
    line = "proc 1 user 9u IPv4 0xabc 0t0 ICMP 10.0.0.2:5000->1.1.1.1:443"
    assert RawConnection.parse(line) is None


def test_run_lsof_passes_arguments():
    completed = subprocess.CompletedProcess(["lsof"], 0, stdout=LINE_RAW_OUTPUT.encode())
    with mock.patch("subprocess.run", return_value=completed) as run:
        output = run_lsof(["-n", "-P"])
    assert output == LINE_RAW_OUTPUT
    assert run.call_args.args[0] == ["lsof", "-n", "-P"]


def test_get_connections_parses_lsof_output():
    completed = subprocess.CompletedProcess(["lsof"], 0, stdout=FULL_RAW_OUTPUT.encode())
    with mock.patch("subprocess.run", return_value=completed) as run:
        connections = get_connections()
    assert len(connections) == 4
    assert run.call_args.args[0] == ["lsof", "-n", "-P", "-i4", "-i6", "+c", "0"]