import pytest

from kproc.errors import CommandExecutionError, InvalidInputError
from kproc.probes import parsing


def test_dedupe_keeps_first_seen_order():
    assert parsing.dedupe([3, 1, 3, 2, 1]) == [3, 1, 2]


def test_substring_matcher_is_case_insensitive():
    match = parsing.build_matcher("node", False)
    assert match("Node")
    assert match("/usr/bin/NODE server.js")
    assert not match("python")
    assert not match("")


def test_regex_matcher_searches():
    match = parsing.build_matcher("no.e", True)
    assert match("node")
    assert match("my-NOPE-tool")
    assert not match("python")


def test_regex_matcher_needs_whole_pattern():
    match = parsing.build_matcher("node.*--inspect", True)
    assert match("node --inspect app.js")
    assert match("NODE app.js --INSPECT=9229")
    assert not match("node app.js")
    assert not match("node")


def test_invalid_regex():
    with pytest.raises(InvalidInputError, match="Invalid regex pattern"):
        parsing.build_matcher("(unclosed", True)


def test_parse_pid_lines():
    assert parsing.parse_pid_lines("123\n456\n\n123\nabc\n0\n") == [123, 456]
    assert parsing.parse_pid_lines("") == []


NETSTAT = """
Active Connections

  Proto  Local Address          Foreign Address        State           PID
  TCP    0.0.0.0:3000           0.0.0.0:0              LISTENING       4242
  TCP    [::]:3000              [::]:0                 LISTENING       4242
  TCP    127.0.0.1:30001        0.0.0.0:0              LISTENING       5151
  TCP    127.0.0.1:8080         127.0.0.1:52000        ESTABLISHED     777
  UDP    0.0.0.0:5353           *:*                                    0
"""


def test_parse_netstat_pids_is_a_substring_filter():
    # ':3000' also matches ':30001', the same way findstr does
    assert parsing.parse_netstat_pids(NETSTAT, 3000) == [4242, 5151]
    assert parsing.parse_netstat_pids(NETSTAT, 8080) == [777]
    assert parsing.parse_netstat_pids(NETSTAT, 9999) == []


def test_parse_netstat_ports():
    assert parsing.parse_netstat_ports(NETSTAT, 4242) == [3000]
    assert parsing.parse_netstat_ports(NETSTAT, 777) == [8080]


def test_parse_ps_listing():
    text = (
        "    1 systemd         /sbin/init splash\n"
        "  812 node            node /srv/app/server.js --port 3000\n"
        "garbage\n"
    )
    rows = parsing.parse_ps_listing(text)
    assert rows == [
        parsing.PsRow(1, "systemd", "/sbin/init splash"),
        parsing.PsRow(812, "node", "node /srv/app/server.js --port 3000"),
    ]


def test_parse_ps_snapshot():
    row = parsing.parse_ps_snapshot("  812 node  node server.js --watch   1  2.5  0.7\n")
    assert row == parsing.SnapshotRow(812, "node", "node server.js --watch", 1, "2.5", "0.7")
    assert parsing.parse_ps_snapshot("") is None


def test_parse_windows_ps_json_shapes():
    assert parsing.parse_windows_ps_json("") == []
    assert parsing.parse_windows_ps_json("null") == []
    assert parsing.parse_windows_ps_json('{"ProcessId": 4}') == [{"ProcessId": 4}]
    assert parsing.parse_windows_ps_json('[{"ProcessId": 4}, 7, {"ProcessId": 8}]') == [
        {"ProcessId": 4},
        {"ProcessId": 8},
    ]


def test_parse_windows_ps_json_rejects_garbage():
    with pytest.raises(CommandExecutionError) as info:
        parsing.parse_windows_ps_json("{not json")
    assert info.value.command == "PowerShell"


@pytest.mark.parametrize(
    "addr, port",
    [
        ("127.0.0.1:8080", 8080),
        ("[::1]:443", 443),
        ("[fe80::1%4]:5353", 5353),
        ("*:*", None),
    ],
)
def test_parse_port_from_address(addr, port):
    assert parsing.parse_port_from_address(addr) == port


def test_parse_lsof_ports():
    text = (
        "COMMAND  PID USER   FD   TYPE DEVICE SIZE/OFF NODE NAME\n"
        "node    1234 me     21u  IPv4 0x1        0t0  TCP *:3000 (LISTEN)\n"
        "node    1234 me     22u  IPv4 0x2        0t0  TCP 127.0.0.1:3000->127.0.0.1:51000 (ESTABLISHED)\n"
        "node    1234 me     23u  IPv6 0x3        0t0  TCP [::1]:9229 (LISTEN)\n"
    )
    assert parsing.parse_lsof_ports(text) == [3000, 9229]
