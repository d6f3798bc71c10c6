from __future__ import annotations

import json

from click.testing import CliRunner

from atrecord import cli as cli_module
from atrecord.cli import cli
from atrecord.runtime import get_verbose_logging
from atrecord.validators import is_valid_tid


def _run(*args: str, input: str | None = None):
    return CliRunner().invoke(cli, list(args), input=input)


def test_tid_prints_requested_count() -> None:
    result = _run("tid", "-n", "3")

    assert result.exit_code == 0
    lines = result.output.splitlines()
    assert len(lines) == 3
    assert all(is_valid_tid(line) for line in lines)


def test_uri_compose_and_parse() -> None:
    composed = _run("uri", "compose", "did:plc:abc", "app.bsky.feed.post", "3k")
    assert composed.exit_code == 0
    assert composed.output.strip() == "at://did:plc:abc/app.bsky.feed.post/3k"

    parsed = _run("uri", "parse", "at://did:plc:abc/app.bsky.feed.post/3k")
    assert parsed.exit_code == 0
    assert json.loads(parsed.output) == {
        "authority": "did:plc:abc",
        "collection": "app.bsky.feed.post",
        "rkey": "3k",
        "kind": "post",
    }


def test_uri_parse_failure_exits_nonzero() -> None:
    result = _run("uri", "parse", "at://did:plc:abc/app.bsky.feed.post")

    assert result.exit_code == 1
    assert "not an at://authority/collection/rkey URI" in result.output


def test_uri_url() -> None:
    result = _run(
        "uri", "url", "at://did:plc:abc/app.bsky.feed.post/3k", "--handle", "a.test"
    )

    assert result.output.strip() == "https://bsky.app/profile/a.test/post/3k"


def test_validate() -> None:
    assert _run("validate", "did", "did:plc:abc123").output.strip() == "valid"
    invalid = _run("validate", "handle", "alice")
    assert invalid.exit_code == 1
    assert invalid.output.strip() == "invalid"


def test_facets_reads_stdin() -> None:
    result = _run("facets", input="🎉 #hi @alice.test\n")

    assert result.exit_code == 0
    assert json.loads(result.output) == [
        {
            "index": {"byteStart": 5, "byteEnd": 8},
            "features": [{"$type": "app.bsky.richtext.facet#tag", "tag": "hi"}],
        },
        {
            "index": {"byteStart": 9, "byteEnd": 20},
            "features": [{"$type": "app.bsky.richtext.facet#mention", "did": ""}],
            "_unresolvedHandle": "alice.test",
        },
    ]


def test_post_drops_unresolved_mentions() -> None:
    result = _run(
        "post",
        "hey @alice.test",
        "--created-at",
        "2024-01-02T03:04:05.678Z",
    )

    assert result.exit_code == 0
    assert json.loads(result.output) == {
        "$type": "app.bsky.feed.post",
        "text": "hey @alice.test",
        "createdAt": "2024-01-02T03:04:05.678Z",
        "langs": ["en"],
    }


def test_post_with_resolved_mention_reply_and_embed() -> None:
    embed = {"$type": "app.bsky.embed.external", "external": {"uri": "https://x.org"}}

    result = _run(
        "post",
        "hey @alice.test",
        "--mention",
        "@alice.test=did:plc:alice",
        "--lang",
        "en",
        "--lang",
        "ja",
        "--reply-parent",
        "at://did:plc:p/app.bsky.feed.post/1",
        "bafyparent",
        "--embed-json",
        json.dumps(embed),
    )

    assert result.exit_code == 0
    record = json.loads(result.output)
    assert record["langs"] == ["en", "ja"]
    assert record["facets"] == [
        {
            "index": {"byteStart": 4, "byteEnd": 15},
            "features": [
                {"$type": "app.bsky.richtext.facet#mention", "did": "did:plc:alice"}
            ],
        }
    ]
    parent = {"uri": "at://did:plc:p/app.bsky.feed.post/1", "cid": "bafyparent"}
    assert record["reply"] == {"root": parent, "parent": parent}
    assert record["embed"] == embed


def test_post_uses_configured_default_langs(monkeypatch) -> None:
    monkeypatch.setenv("ATRECORD_DEFAULT_LANGS", "pt,en")

    result = _run("post", "olá")

    assert json.loads(result.output)["langs"] == ["pt", "en"]


def test_post_quote() -> None:
    quoted = {"uri": "at://did:plc:q/app.bsky.feed.post/3", "cid": "bafyq"}

    result = _run("post", "look", "--quote", quoted["uri"], quoted["cid"])

    assert result.exit_code == 0
    assert json.loads(result.output)["embed"] == {
        "$type": "app.bsky.embed.record",
        "record": quoted,
    }


def test_post_quote_with_media_embed() -> None:
    quoted = {"uri": "at://did:plc:q/app.bsky.feed.post/3", "cid": "bafyq"}
    images = {"$type": "app.bsky.embed.images", "images": []}

    result = _run(
        "post",
        "look",
        "--quote",
        quoted["uri"],
        quoted["cid"],
        "--embed-json",
        json.dumps(images),
    )

    assert result.exit_code == 0
    assert json.loads(result.output)["embed"] == {
        "$type": "app.bsky.embed.recordWithMedia",
        "record": {"$type": "app.bsky.embed.record", "record": quoted},
        "media": images,
    }


def test_stdin_read_has_no_deprecation_warning(recwarn) -> None:
    result = _run("length", input="hello\n")

    assert result.output.strip() == "5/300 graphemes (295 remaining)"
    assert not [
        w
        for w in recwarn
        if issubclass(w.category, DeprecationWarning) and "atrecord" in w.filename
    ]


def test_post_rejects_bad_options() -> None:
    assert _run("post", "x", "--embed-json", "[1]").exit_code == 2
    assert _run("post", "x", "--created-at", "yesterday").exit_code == 2
    assert _run("post", "x", "--mention", "alice.test").exit_code == 2
    assert _run("post", "x", "--reply-root", "at://a/b/c", "cid").exit_code == 2


def test_render_and_length() -> None:
    rendered = _run("render", "go #python")
    assert rendered.output.strip() == (
        "go [#python](https://bsky.app/hashtag/python)"
    )

    assert _run("length", "👍🏽 ok").output.strip() == "4/300 graphemes (296 remaining)"
    assert _run("length", "a" * 301).output.strip() == "301/300 graphemes (1 over)"


def test_write_file_option(tmp_path) -> None:
    target = tmp_path / "out.txt"

    result = _run("--write-file", str(target), "uri", "compose", "a", "b", "c")

    assert result.exit_code == 0
    assert target.read_text(encoding="utf-8") == "at://a/b/c\n"


def test_copy_option_uses_clipboard(monkeypatch) -> None:
    copied: list[str] = []
    monkeypatch.setattr(cli_module, "copy", copied.append)

    result = _run("--copy", "validate", "tid", "3jzfcijpj2z2a")

    assert result.exit_code == 0
    assert copied == ["valid"]


def test_verbose_flag_logs_and_resets() -> None:
    result = _run("-v", "facets", "#a #b")

    assert "[facets] extracted 2 facet(s)" in result.output
    assert get_verbose_logging() is False


def test_help_lists_command_groups() -> None:
    result = _run("--help")

    assert result.exit_code == 0
    assert "IDENTIFIERS" in result.output
    assert "RICH TEXT" in result.output


def test_broken_config_does_not_break_commands(tmp_path) -> None:
    config = tmp_path / "broken.yaml"
    config.write_text("default_langs: [ja, en\nverbose: true\n", encoding="utf-8")

    result = _run("--config", str(config), "tid")

    assert result.exit_code == 0
    assert is_valid_tid(result.output.strip().splitlines()[-1])
