# bandwatch

`bandwatch` is a terminal utility that shows current network utilization
broken down by process, by connection and by remote address.

It reads raw packets on one or more network interfaces, works out which
local process owns each connection, and optionally resolves remote addresses
to host names with reverse DNS lookups (PTR records).

## Installation

```
pip install .
```

To run the test suite:

```
pip install .[test]
pytest
```

## Platform support

Packet capture uses Linux raw packet sockets (`AF_PACKET`), so monitoring
works on Linux only. On other systems every interface fails to open with an
"Unsupported interface type" error and `bandwatch` exits with status 2.

Process names are read from `/proc` on Linux. The package also has code that
lists open sockets with `lsof` (macOS, FreeBSD) and with the system's socket
table through `psutil` (Windows), but without packet capture on those systems
the monitor does not run there.

## Permissions

Capturing packets needs raw socket access, which usually means running
`bandwatch` as root (for example with `sudo`) or giving it the
`cap_net_raw` and `cap_net_admin` capabilities. If no interface can be
opened, `bandwatch` prints which interfaces failed and why, and exits with
status 2. Only interfaces that are up and have at least one address are
used.

## Usage

```
bandwatch [options]
```

or, equivalently, `python -m bandwatch.app [options]`.

| Option | Meaning |
| --- | --- |
| `-i`, `--interface NAME` | Listen on this interface only, e.g. `eth0` |
| `-r`, `--raw` | Machine-friendly line output instead of the full-screen view |
| `-n`, `--no-resolve` | Do not resolve IP addresses to host names |
| `-p`, `--processes` | Show the processes table only |
| `-c`, `--connections` | Show the connections table only |
| `-a`, `--addresses` | Show the remote addresses table only |
| `-t`, `--total-utilization` | Show cumulative totals instead of rates |
| `-s`, `--show-dns` | Include DNS traffic (remote port 53) in what is shown |
| `-d`, `--dns-server IP` | IPv4 address of a DNS server to use instead of the system default |

With none of `-p`, `-c` or `-a`, all three tables are shown.

Exit status is 0 after a normal quit, 2 on an error (the message is printed
to standard error prefixed with `Error:`), and 130 when interrupted.

### Full-screen view

The full-screen view needs standard input and standard output to be a
terminal; when piping, use `--raw`. The screen refreshes once a second.
Rates are averaged over the last five refreshes; with `--total-utilization`
values accumulate instead, and the elapsed time is shown on the right of the
header when there is room.

Keys:

- `space` pauses and resumes the display
- `tab` rotates the tables between the available panes
- `q` or `Ctrl-C` quits

On narrow or short terminals fewer tables are shown, the middle column of a
table is dropped, and long entries are shortened by cutting out their middle.

### Raw output

With `--raw`, every refresh prints a block such as:

```
Refreshing:
process: <1700000000> "curl" up/down Bps: 41/1520 connections: 1
connection: <1700000000> <eth0>:51234 => 192.0.2.10:443 (tcp) up/down Bps: 41/1520 process: "curl"
remote_address: <1700000000> 192.0.2.10 up/down Bps: 41/1520 connections: 1

```

The number in angle brackets is a Unix timestamp. When nothing was seen,
the block holds `<NO TRAFFIC>` instead. Traffic whose owning process could
not be found is listed under `<UNKNOWN>`. Raw output suits piping into other
tools:

```
sudo bandwatch --raw --no-resolve | grep '^process:'
```