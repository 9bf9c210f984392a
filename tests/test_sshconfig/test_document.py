"""Tests for parsing and serializing SSH config documents."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from ssh_buddy.sshconfig.document import (
    Blank,
    Comment,
    GlobalDirective,
    HostHeader,
    HostOption,
    ParsedDocument,
    SSHHostConfig,
    create_default_host,
    create_empty_document,
    get_host_display_name,
    host_matches_pattern,
    parse,
    serialize,
)

SAMPLE = """\
# Global settings
Include ~/.ssh/config.d/*
ServerAliveInterval 60

Host github
  HostName github.com
  User git
  IdentityFile ~/.ssh/id_ed25519
  IdentitiesOnly yes

# Work machines
Host work-*
    user deploy
\tPort 2222
  SendEnv LANG LC_*

Host *
  AddKeysToAgent yes
  UseKeychain yes
"""


# --- Round trip ---


@pytest.mark.parametrize(
    "text",
    [
        "",
        "\n",
        SAMPLE,
        "Host a\n  HostName 1.2.3.4\n\nHost b\n  HostName x",
        "Host a\r\n  HostName example.com\r\n",
        "   \n\t\n# only comments\n",
        "Host a\n    HostName   spaced.example.com   \n",
        "garbage-without-value\nHost a\n  HostName x\n",
    ],
)
def test_serialize_parse_round_trip(text: str):
    assert serialize(parse(text)) == text


def test_round_trip_is_stable_twice():
    once = serialize(parse(SAMPLE))
    assert serialize(parse(once)) == SAMPLE


# --- Line classification ---


def test_lines_before_first_host_are_global():
    doc = parse(SAMPLE)
    assert isinstance(doc.lines[0], Comment)
    assert doc.lines[1] == GlobalDirective(
        key="Include", value="~/.ssh/config.d/*", raw="Include ~/.ssh/config.d/*"
    )
    assert isinstance(doc.lines[2], GlobalDirective)
    assert isinstance(doc.lines[3], Blank)
    assert isinstance(doc.lines[4], HostHeader)


def test_global_directives_do_not_create_hosts():
    doc = parse("ServerAliveInterval 60\nCompression yes\n")
    assert doc.hosts == []


def test_options_after_host_are_host_options():
    doc = parse("Host a\n  HostName x\n")
    assert doc.lines[1] == HostOption(key="HostName", value="x", raw="  HostName x")


def test_line_without_value_becomes_comment():
    doc = parse("Host a\n  BrokenLine\n  HostName x\n")
    assert doc.lines[1] == Comment(text="  BrokenLine")
    assert doc.hosts[0].hostname == "x"


def test_host_keyword_is_case_insensitive():
    doc = parse("HOST a\n  hostname x\n")
    assert doc.host_names == ["a"]
    assert doc.hosts[0].options == {"HostName": "x"}


def test_whitespace_only_line_is_blank():
    doc = parse("Host a\n   \n")
    assert doc.lines[1] == Blank(raw="   ")


# --- Host projection ---


def test_hosts_in_file_order():
    doc = parse(SAMPLE)
    assert doc.host_names == ["github", "work-*", "*"]


def test_projection_types_values():
    doc = parse(SAMPLE)
    github = doc.get_host("github")
    assert github is not None
    assert github.hostname == "github.com"
    assert github.user == "git"
    assert github.identity_file == "~/.ssh/id_ed25519"
    assert github.identities_only is True

    work = doc.get_host("work-*")
    assert work is not None
    assert work.user == "deploy"
    assert work.port == 2222
    assert work.extra_options == [("SendEnv", "LANG LC_*")]


def test_boolean_coercion():
    doc = parse("Host a\n  ForwardAgent YES\n  Compression true\n  UseKeychain no\n")
    host = doc.hosts[0]
    assert host.options["ForwardAgent"] is True
    assert host.options["Compression"] is True
    assert host.options["UseKeychain"] is False


def test_non_numeric_port_keeps_raw_string():
    host = parse("Host a\n  Port ssh\n").hosts[0]
    assert host.port == "ssh"


def test_first_value_wins_and_repeats_go_to_extras():
    doc = parse("Host a\n  IdentityFile ~/.ssh/one\n  IdentityFile ~/.ssh/two\n")
    host = doc.hosts[0]
    assert host.identity_file == "~/.ssh/one"
    assert host.extra_options == [("IdentityFile", "~/.ssh/two")]


def test_unknown_directive_keeps_original_casing():
    host = parse("Host a\n  pubkeyAcceptedAlgorithms +ssh-rsa\n").hosts[0]
    assert host.extra_options == [("pubkeyAcceptedAlgorithms", "+ssh-rsa")]
    assert host.get("PubkeyAcceptedAlgorithms") == "+ssh-rsa"


def test_get_resolves_canonical_and_host():
    host = parse("Host a\n  hostname x\n").hosts[0]
    assert host.get("HOSTNAME") == "x"
    assert host.get("host") == "a"
    assert host.get("User") is None


def test_hosts_projection_matches_lines_after_from_lines():
    doc = parse(SAMPLE)
    rebuilt = ParsedDocument.from_lines(doc.lines)
    assert rebuilt.hosts == doc.hosts


# --- SSHHostConfig ---


def test_options_reject_non_canonical_keys():
    with pytest.raises(ValidationError):
        SSHHostConfig(host="a", options={"SendEnv": "LANG"})


def test_from_pairs_accepts_typed_values():
    host = SSHHostConfig.from_pairs("a", [("port", 22), ("forwardagent", True)])
    assert host.options == {"Port": 22, "ForwardAgent": True}


def test_option_items_skips_empty_values():
    host = create_default_host("new")
    assert host.option_items() == []


def test_option_items_renders_booleans_as_yes_no():
    host = SSHHostConfig(host="a", options={"IdentitiesOnly": True, "Compression": False})
    assert host.option_items() == [("IdentitiesOnly", "yes"), ("Compression", "no")]


# --- Generated lines ---


def test_generated_lines_render_canonically():
    doc = ParsedDocument.from_lines(
        [
            GlobalDirective(key="LogLevel", value="INFO"),
            Blank(),
            HostHeader(name="a"),
            HostOption(key="HostName", value="x"),
        ]
    )
    assert serialize(doc) == "LogLevel INFO\n\nHost a\n  HostName x"


# --- Helpers ---


def test_create_empty_document():
    doc = create_empty_document()
    assert doc.lines == []
    assert doc.hosts == []
    assert serialize(doc) == ""


def test_create_default_host():
    host = create_default_host("new-server")
    assert host.host == "new-server"
    assert set(host.options) == {"HostName", "User", "IdentityFile"}


def test_display_name_for_wildcard():
    assert get_host_display_name(SSHHostConfig(host="*")) == "Default (all hosts)"
    assert get_host_display_name(SSHHostConfig(host="web")) == "web"


@pytest.mark.parametrize(
    ("hostname", "pattern", "expected"),
    [
        ("anything", "*", True),
        ("web1.example.com", "*.example.com", True),
        ("example.com", "*.example.com", False),
        ("web1", "web?", True),
        ("web12", "web?", False),
        ("a.b", "a.b", True),
        ("axb", "a.b", False),
    ],
)
def test_host_matches_pattern(hostname: str, pattern: str, expected: bool):
    assert host_matches_pattern(hostname, pattern) is expected
