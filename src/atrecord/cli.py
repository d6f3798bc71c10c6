import json
import sys
from collections.abc import Sequence
from datetime import datetime

import click
from click.formatting import term_len
from pyperclip import copy

from .facets import extract_facets, resolve_mentions
from .records import (
    ReplyRef,
    StrongRef,
    build_post_record,
    build_record_embed,
    build_record_with_media_embed,
)
from .richtext import POST_GRAPHEME_LIMIT, grapheme_length, render_rich_text
from .runtime import reset_verbose_logging, set_verbose_logging
from .settings import build_settings
from .tid import generate_tid
from .uri import compose_at_uri, parse_at_uri, to_bsky_url
from .validators import is_valid_did, is_valid_handle, is_valid_tid

COMMAND_GROUPS = (
    ("Identifiers", ("tid", "uri", "validate")),
    ("Rich text", ("facets", "post", "render", "length")),
)
HELP_COL_MAX = 30
HELP_COL_SPACING = 2

_VALIDATORS = {
    "did": is_valid_did,
    "handle": is_valid_handle,
    "tid": is_valid_tid,
}


def _write_bold_section(
    formatter: click.HelpFormatter, title: str, records: list[tuple[str, str]]
) -> None:
    if not records:
        return
    formatter.write("\n")
    formatter.write(click.style(title, bold=True) + "\n")
    formatter.indent()
    formatter.write_dl(records, col_max=HELP_COL_MAX, col_spacing=HELP_COL_SPACING)
    formatter.dedent()


def _command_help_limit(formatter: click.HelpFormatter, names: Sequence[str]) -> int:
    if not names:
        return 45
    max_name = max(term_len(name) for name in names)
    first_col = min(max_name, HELP_COL_MAX) + HELP_COL_SPACING
    return max(formatter.width - first_col - 2, 10)


class OrderedGroup(click.Group):
    def __init__(
        self,
        *args,
        command_groups: Sequence[tuple[str, Sequence[str]]] | None = None,
        **kwargs,
    ) -> None:
        super().__init__(*args, **kwargs)
        self._command_groups = [
            (title, list(commands)) for title, commands in (command_groups or [])
        ]

    def list_commands(self, ctx: click.Context) -> list[str]:
        ordered = [
            name
            for _, commands in self._command_groups
            for name in commands
            if name in self.commands
        ]
        remaining = [
            name for name in super().list_commands(ctx) if name not in ordered
        ]
        return ordered + remaining

    def format_commands(
        self, ctx: click.Context, formatter: click.HelpFormatter
    ) -> None:
        grouped: dict[str | None, list[tuple[str, click.Command]]] = {}
        for name in self.list_commands(ctx):
            cmd = self.get_command(ctx, name)
            if cmd is None or cmd.hidden:
                continue
            title = next(
                (
                    group_title
                    for group_title, commands in self._command_groups
                    if name in commands
                ),
                None,
            )
            grouped.setdefault(title, []).append((name, cmd))
        titles = [title for title, _ in self._command_groups] + [None]
        for title in titles:
            entries = grouped.get(title)
            if not entries:
                continue
            limit = _command_help_limit(formatter, [name for name, _ in entries])
            rows = [
                (name, cmd.get_short_help_str(limit=limit)) for name, cmd in entries
            ]
            _write_bold_section(formatter, (title or "Other").upper(), rows)


def _read_text(text: str | None) -> str:
    if text is not None:
        return text
    if sys.stdin.isatty():
        raise click.UsageError("Provide TEXT or pipe it on stdin.")
    data = sys.stdin.read()
    if data.endswith("\n"):
        data = data[:-1]
    return data


def _parse_mention_pairs(pairs: Sequence[str]) -> dict[str, str]:
    mapping: dict[str, str] = {}
    for pair in pairs:
        handle, sep, did = pair.partition("=")
        handle = handle.strip().lstrip("@")
        did = did.strip()
        if not sep or not handle or not is_valid_did(did):
            raise click.BadParameter(
                f"expected HANDLE=DID, got {pair!r}", param_hint="--mention"
            )
        mapping[handle.lower()] = did
    return mapping


def _extract(text: str, mentions: Sequence[str]):
    extraction = extract_facets(text)
    if not mentions:
        return extraction.facets
    mapping = _parse_mention_pairs(mentions)
    return resolve_mentions(
        extraction.facets, lambda handle: mapping.get(handle.lower())
    )


def _parse_created_at(value: str | None) -> datetime | None:
    if value is None:
        return None
    cleaned = value.strip()
    if cleaned.endswith("Z"):
        cleaned = cleaned[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(cleaned)
    except ValueError as exc:
        raise click.BadParameter(
            f"not an ISO 8601 timestamp: {value!r}", param_hint="--created-at"
        ) from exc


def _parse_embed(value: str | None) -> dict | None:
    if value is None:
        return None
    try:
        embed = json.loads(value)
    except json.JSONDecodeError as exc:
        raise click.BadParameter(str(exc), param_hint="--embed-json") from exc
    if not isinstance(embed, dict) or not isinstance(embed.get("$type"), str):
        raise click.BadParameter(
            "embed must be a JSON object with a $type", param_hint="--embed-json"
        )
    return embed


def _to_json(payload) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False)


@click.group(
    cls=OrderedGroup,
    command_groups=COMMAND_GROUPS,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option(
    "-v", "--verbose", is_flag=True, help="Log processing details to stderr."
)
@click.option(
    "-c",
    "--copy",
    "copy_output",
    is_flag=True,
    help="Copy output to clipboard instead of printing to console.",
)
@click.option(
    "--write-file",
    type=click.Path(dir_okay=False),
    help="Optional output file path (overrides clipboard/console output).",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Config file (defaults to $XDG_CONFIG_HOME/atrecord/config.yaml).",
)
@click.pass_context
def cli(ctx, verbose, copy_output, write_file, config_path):
    """
    atrecord - AT Protocol identifiers, rich text facets and post records
    """
    ctx.ensure_object(dict)
    settings = build_settings(
        {"verbose": True} if verbose else None, config_path=config_path
    )
    ctx.obj["settings"] = settings
    ctx.obj["copy"] = copy_output
    ctx.obj["write_file"] = write_file
    if copy_output and write_file:
        raise click.BadParameter("--copy and --write-file are mutually exclusive")
    token = set_verbose_logging(settings.verbose)
    ctx.call_on_close(lambda: reset_verbose_logging(token))


@cli.result_callback()
@click.pass_context
def process_output(ctx, subcommand_output, *args, **kwargs):
    """
    Write the subcommand's text to a file, the clipboard, or the console.
    """
    if not subcommand_output:
        return
    write_file = ctx.obj["write_file"]
    if write_file:
        with open(write_file, "w", encoding="utf-8") as f:
            f.write(subcommand_output + "\n")
        click.echo(f"Wrote output to {write_file}", err=True)
    elif ctx.obj["copy"]:
        try:
            copy(subcommand_output)
            click.echo("Copied output to clipboard.", err=True)
        except Exception as e:
            click.echo(f"Error copying to clipboard: {e}", err=True)
    else:
        click.echo(subcommand_output)


@cli.command("tid")
@click.option(
    "-n",
    "--count",
    type=click.IntRange(min=1),
    default=1,
    show_default=True,
    help="Number of TIDs to generate.",
)
def tid_cmd(count):
    """
    Generate timestamp identifiers for record keys.
    """
    return "\n".join(generate_tid() for _ in range(count))


@cli.group("uri")
def uri_group():
    """
    Compose and parse at:// URIs.
    """


@uri_group.command("compose")
@click.argument("authority")
@click.argument("collection")
@click.argument("rkey")
def uri_compose(authority, collection, rkey):
    """
    Join AUTHORITY, COLLECTION and RKEY into an at:// URI.
    """
    return compose_at_uri(authority, collection, rkey)


@uri_group.command("parse")
@click.argument("uri")
def uri_parse(uri):
    """
    Split an at:// URI into its parts (JSON).
    """
    parsed = parse_at_uri(uri)
    if parsed is None:
        raise click.ClickException(
            f"not an at://authority/collection/rkey URI: {uri}"
        )
    return _to_json(
        {
            "authority": parsed.authority,
            "collection": parsed.collection,
            "rkey": parsed.rkey,
            "kind": parsed.kind,
        }
    )


@uri_group.command("url")
@click.argument("uri")
@click.option("--handle", default=None, help="Show the handle instead of the DID.")
def uri_url(uri, handle):
    """
    Print the bsky.app web URL for a post or profile URI.
    """
    url = to_bsky_url(uri, handle=handle)
    if url is None:
        raise click.ClickException(f"no web URL for {uri}")
    return url


@cli.command("validate")
@click.argument("kind", type=click.Choice(sorted(_VALIDATORS)))
@click.argument("value")
@click.pass_context
def validate_cmd(ctx, kind, value):
    """
    Check a DID, handle or TID. Prints valid or invalid; exits with status 1
    when invalid.
    """
    if not _VALIDATORS[kind](value):
        click.echo("invalid")
        ctx.exit(1)
    return "valid"


@cli.command("facets")
@click.argument("text", required=False)
@click.option(
    "--mention",
    "mentions",
    multiple=True,
    metavar="HANDLE=DID",
    help="Resolve a mentioned handle to a DID (repeatable).",
)
def facets_cmd(text, mentions):
    """
    Extract mention, link and hashtag facets (JSON). Reads stdin without TEXT.
    """
    facets = _extract(_read_text(text), mentions)
    return _to_json([facet.to_dict(include_unresolved=True) for facet in facets])


@cli.command("post")
@click.argument("text", required=False)
@click.option(
    "--lang",
    "langs",
    multiple=True,
    help="Language code (repeatable). Defaults to the configured languages.",
)
@click.option(
    "--mention",
    "mentions",
    multiple=True,
    metavar="HANDLE=DID",
    help="Resolve a mentioned handle to a DID (repeatable).",
)
@click.option("--reply-root", nargs=2, default=None, metavar="URI CID")
@click.option("--reply-parent", nargs=2, default=None, metavar="URI CID")
@click.option(
    "--quote",
    nargs=2,
    default=None,
    metavar="URI CID",
    help="Quote a record. Combined with --embed-json, that embed is the media.",
)
@click.option("--embed-json", default=None, help="Embed object as JSON.")
@click.option("--created-at", default=None, help="ISO 8601 timestamp.")
@click.pass_context
def post_cmd(
    ctx,
    text,
    langs,
    mentions,
    reply_root,
    reply_parent,
    quote,
    embed_json,
    created_at,
):
    """
    Build an app.bsky.feed.post record (JSON). Reads stdin without TEXT.

    Mentions without a --mention mapping are left out of the facets.
    """
    text = _read_text(text)
    reply = None
    if reply_root and not reply_parent:
        raise click.BadParameter(
            "--reply-root needs --reply-parent", param_hint="--reply-root"
        )
    if reply_parent:
        parent = StrongRef(*reply_parent)
        root = StrongRef(*reply_root) if reply_root else parent
        reply = ReplyRef(root=root, parent=parent)

    embed = _parse_embed(embed_json)
    if quote:
        quoted = StrongRef(*quote)
        if embed is None:
            embed = build_record_embed(quoted)
        else:
            embed = build_record_with_media_embed(quoted, embed)

    record = build_post_record(
        text,
        facets=_extract(text, mentions),
        created_at=_parse_created_at(created_at),
        langs=langs or ctx.obj["settings"].default_langs,
        reply=reply,
        embed=embed,
    )
    return _to_json(record.to_dict())


@cli.command("render")
@click.argument("text", required=False)
@click.option(
    "--mention",
    "mentions",
    multiple=True,
    metavar="HANDLE=DID",
    help="Resolve a mentioned handle to a DID (repeatable).",
)
def render_cmd(text, mentions):
    """
    Render text as Markdown with its facets turned into links.
    """
    text = _read_text(text)
    return render_rich_text(text, _extract(text, mentions))


@cli.command("length")
@click.argument("text", required=False)
def length_cmd(text):
    """
    Count graphemes against the post length limit.
    """
    count = grapheme_length(_read_text(text))
    remaining = POST_GRAPHEME_LIMIT - count
    if remaining < 0:
        return f"{count}/{POST_GRAPHEME_LIMIT} graphemes ({-remaining} over)"
    return f"{count}/{POST_GRAPHEME_LIMIT} graphemes ({remaining} remaining)"


def main():
    cli()


if __name__ == "__main__":
    main()
