import pytest

from tcpcount.cli import parse_args
from tcpcount.filters import ConnectionFilter


def test_no_arguments_give_empty_filter():
    assert parse_args([]) == ConnectionFilter()


def test_all_options_short_form():
    flt = parse_args(["-p", "42", "-n", "curl", "-H", "example.com", "-P", "443"])
    assert flt == ConnectionFilter(pid=42, process_name="curl", remote_host="example.com", remote_port=443)


def test_long_options():
    flt = parse_args(["--pid", "7", "--process-name", "nginx", "--host", "10.0.0", "--port", "80"])
    assert flt == ConnectionFilter(pid=7, process_name="nginx", remote_host="10.0.0", remote_port=80)


def test_invalid_pid_is_ignored_with_warning(capsys):
    flt = parse_args(["-p", "abc"])
    assert flt.pid is None
    assert "Warning: Invalid PID 'abc', ignoring" in capsys.readouterr().err


def test_negative_pid_is_invalid(capsys):
    flt = parse_args(["--pid=-1"])
    assert flt.pid is None
    assert "Invalid PID '-1'" in capsys.readouterr().err


def test_port_out_of_range_is_ignored(capsys):
    flt = parse_args(["-P", "70000"])
    assert flt.remote_port is None
    assert "Warning: Invalid port '70000', ignoring" in capsys.readouterr().err


def test_leading_plus_is_accepted():
    assert parse_args(["-P", "+80"]).remote_port == 80


def test_largest_port_is_accepted():
    assert parse_args(["-P", "65535"]).remote_port == 65535


def test_pid_upper_bound():
    assert parse_args(["-p", "4294967295"]).pid == 4294967295
    assert parse_args(["-p", "4294967296"]).pid is None


def test_version_option(capsys):
    with pytest.raises(SystemExit) as excinfo:
        parse_args(["--version"])
    assert excinfo.value.code == 0
    assert "tcpcount 0.1.0" in capsys.readouterr().out


def test_unknown_option_exits():
    with pytest.raises(SystemExit) as excinfo:
        parse_args(["--bogus"])
    assert excinfo.value.code != 0