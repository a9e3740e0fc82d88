from pathlib import Path

from thothixctl.envfile import (
    SKIP_COMMENT,
    SKIP_MALFORMED,
    SKIP_OUTSIDE_SECTION,
    ConfigSection,
    load_env_values,
    parse_sections,
    render_sections,
    strip_quotes,
)

SAMPLE = """\
# Thothix environment
VAULT_ADDR=http://localhost:8200

# :database - PostgreSQL connection
DB_HOST=localhost
DB_PASSWORD="pa ss"

DB_PORT=5432

# :Clerk - Authentication provider
CLERK_SECRET_KEY='sk_test_123'
# local only
DEBUG=true
"""


def _entries(section: ConfigSection) -> list[tuple[str, str, str]]:
    return [(e.original_key, e.key, e.value) for e in section.entries]


def test_sections_in_order_with_lowercase_keys() -> None:
    result = parse_sections(SAMPLE)

    assert list(result.sections) == ["database", "clerk"]
    clerk = result.get("clerk")
    assert clerk.name == "Clerk"
    assert clerk.description == "Authentication provider"
    assert _entries(clerk) == [("CLERK_SECRET_KEY", "clerk_secret_key", "sk_test_123")]


def test_blank_lines_keep_section_open() -> None:
    database = parse_sections(SAMPLE).get("database")

    assert database.document() == {
        "db_host": "localhost",
        "db_password": "pa ss",
        "db_port": "5432",
    }


def test_plain_comment_closes_section() -> None:
    text = "# :db - Database\nHOST=localhost\n# just a note\nPORT=5432\n"

    result = parse_sections(text)

    assert result.get("db").document() == {"host": "localhost"}
    assert [(s.reason, s.text) for s in result.skipped] == [
        (SKIP_COMMENT, "# just a note"),
        (SKIP_OUTSIDE_SECTION, "PORT"),
    ]


def test_values_outside_sections_are_reported_not_stored() -> None:
    result = parse_sections(SAMPLE)

    outside = [s.text for s in result.skipped if s.reason == SKIP_OUTSIDE_SECTION]
    assert outside == ["VAULT_ADDR", "DEBUG"]
    assert all("vault_addr" not in s.document() for s in result)


def test_only_first_equals_splits_and_quotes_are_stripped() -> None:
    result = parse_sections('# :app - App\nTOKEN="abc=def"\n')

    assert result.get("app").document() == {"token": "abc=def"}


def test_whitespace_around_key_and_value_is_trimmed() -> None:
    result = parse_sections("# :app - App\n  NAME =  ' thothix '  \n")

    assert result.get("app").document() == {"name": " thothix "}


def test_malformed_lines_are_skipped_without_closing_section() -> None:
    result = parse_sections("# :app - App\nnot an assignment\n=orphan\nPORT=8080\n")

    assert result.get("app").document() == {"port": "8080"}
    assert [s.reason for s in result.skipped] == [SKIP_MALFORMED, SKIP_MALFORMED]
    assert result.skipped[0].section == "app"


def test_empty_section_is_kept() -> None:
    result = parse_sections("# :empty - Nothing here\n\n# :app - App\nA=1\n")

    assert list(result.sections) == ["empty", "app"]
    assert result.get("empty").entries == []


def test_repeated_header_last_one_wins() -> None:
    result = parse_sections("# :db - First\nA=1\n# :DB - Second\nB=2\n")

    assert len(result) == 1
    section = result.get("db")
    assert section.name == "DB"
    assert section.description == "Second"
    assert section.document() == {"b": "2"}


def test_header_requires_identifier_characters() -> None:
    result = parse_sections("# :my section - Spaces are not allowed\nA=1\n")

    assert len(result) == 0
    assert result.skipped[0].reason == SKIP_COMMENT


def test_parser_never_fails_on_garbage() -> None:
    assert len(parse_sections("")) == 0
    assert len(parse_sections("\x00\n===\n#\n# :\n")) == 0


def test_crlf_input() -> None:
    result = parse_sections("# :db - Database\r\nHOST=localhost\r\n")

    assert result.get("db").document() == {"host": "localhost"}


def test_render_then_parse_reproduces_sections() -> None:
    sections = [
        ConfigSection(name="database", key="database", description="PostgreSQL"),
        ConfigSection(name="Clerk", key="clerk", description=""),
        ConfigSection(name="misc", key="misc", description="Odd values"),
    ]
    sections[0].add("DB_URL", "postgres://u:p@host/db?sslmode=disable")
    sections[0].add("DB_PASSWORD", "has spaces and = signs")
    sections[1].add("CLERK_KEY", "sk_live_abc")
    sections[2].add("EMPTY", "")
    sections[2].add("QUOTED", '"already quoted"')
    sections[2].add("PADDED", "  padded  ")
    sections[2].add("HASH", "value # not a comment")
    sections[2].add("APOSTROPHE", "it's")

    parsed = parse_sections(render_sections(sections))

    assert [(s.key, _entries(s)) for s in parsed] == [(s.key, _entries(s)) for s in sections]


def test_strip_quotes_removes_one_quote_per_side() -> None:
    assert strip_quotes('"value"') == "value"
    assert strip_quotes("'value'") == "value"
    assert strip_quotes('"open') == "open"
    assert strip_quotes('""') == ""
    assert strip_quotes("plain") == "plain"


def test_load_env_values(tmp_path: Path) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text("# :vault - Vault\nVAULT_ADDR=\"http://vault:8200\"\n\n# note\nNGROK_AUTHTOKEN=abc=123\n")

    assert load_env_values(env_file) == {
        "VAULT_ADDR": "http://vault:8200",
        "NGROK_AUTHTOKEN": "abc=123",
    }
    assert load_env_values(tmp_path / "missing.env") == {}


def test_only_newlines_end_a_line() -> None:
    section = ConfigSection(name="misc", key="misc", description="Control characters")
    section.add("FORM_FEED", "left\x0cright")
    section.add("LINE_SEP", "up\u2028down")
    section.add("NEL", "a\x85b")

    parsed = parse_sections(render_sections([section]))

    assert parsed.get("misc").document() == {
        "form_feed": "left\x0cright",
        "line_sep": "up\u2028down",
        "nel": "a\x85b",
    }
    assert parsed.skipped == []
