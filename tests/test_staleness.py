# File: tests/test_staleness.py
from datetime import datetime, timedelta, timezone

from html_cache.config import RenderConfig
from html_cache.renderer.models import CacheRecord, UrlEntry
from html_cache.staleness import (
    Decision,
    build_record,
    content_hash,
    decide,
    normalize_html,
    url_hash,
)

T = datetime(2024, 1, 1)
T2 = datetime(2024, 2, 1)


def make_record(**overrides) -> CacheRecord:
    data = dict(
        id="42",
        url_hash=url_hash("https://x/a"),
        url="https://x/a",
        rendered_at=datetime(2024, 1, 2),
        source_modified_at=T,
        content_hash="h" * 32,
        content=b"<html>old</html>",
    )
    data.update(overrides)
    return CacheRecord(**data)


def test_url_hash_is_lowercase_md5_hex():
    digest = url_hash("https://x/a")
    assert len(digest) == 32
    assert digest == digest.lower()
    assert set(digest) <= set("0123456789abcdef")
    assert url_hash("") == "d41d8cd98f00b204e9800998ecf8427e"


def test_skip_on_unchanged_source_timestamp_without_content_hash():
    entry = UrlEntry(uri="https://x/a", last_modified=T)
    assert decide(make_record(), entry) is Decision.SKIP_NOT_MODIFIED


def test_new_url_requires_render():
    entry = UrlEntry(uri="https://x/a", last_modified=T)
    assert decide(None, entry) is Decision.UPDATE
    assert decide(None, entry, "abc") is Decision.UPDATE


def test_skip_on_unchanged_content_despite_timestamp_bump():
    entry = UrlEntry(uri="https://x/a", last_modified=T2)
    existing = make_record(content_hash="same")

    assert decide(existing, entry) is Decision.UPDATE
    decision = decide(existing, entry, "same")
    assert decision is Decision.SKIP_UNCHANGED
    assert decision.skipped


def test_update_on_genuine_change():
    entry = UrlEntry(uri="https://x/a", last_modified=T2)
    existing = make_record()
    assert decide(existing, entry, "different") is Decision.UPDATE
    assert not Decision.UPDATE.skipped


def test_build_record_preserves_id_and_overwrites_fields():
    entry = UrlEntry(uri="https://x/a", last_modified=T2)
    rendered = datetime(2024, 2, 2)

    record = build_record(make_record(), entry, b"<html>new</html>", "new-hash", rendered)

    assert record.id == "42"
    assert record.url_hash == url_hash(entry.uri)
    assert record.source_modified_at == T2
    assert record.rendered_at == rendered
    assert record.content_hash == "new-hash"
    assert record.content == b"<html>new</html>"


def test_build_record_without_existing_has_no_id():
    entry = UrlEntry(uri="https://x/b", last_modified=T)
    record = build_record(None, entry, b"x", content_hash(b"x"), T)
    assert record.id is None
    assert record.url == "https://x/b"


def test_normalize_html_strips_volatile_markers():
    html = (
        '<html><head><meta name="fragment" content="!">'
        '<script src="/theme/frontend/app/build/main.js?ver=1712"></script>'
        "</head><body>A</body></html>"
    )
    other_version = html.replace("ver=1712", "ver=1800")
    patterns = RenderConfig().strip_patterns

    normalized = normalize_html(html, patterns)

    assert normalized == "<html><head></head><body>A</body></html>"
    assert normalize_html(other_version, patterns) == normalized


def test_timestamp_check_compares_instants_across_timezones():
    aware = UrlEntry(uri="https://x/a", last_modified=datetime(2024, 1, 1, 3, tzinfo=timezone(timedelta(hours=3))))
    stored_as_utc = make_record(source_modified_at=datetime(2024, 1, 1, 0))

    assert decide(stored_as_utc, aware) is Decision.SKIP_NOT_MODIFIED
    assert decide(make_record(source_modified_at=datetime(2024, 1, 1, 3)), aware) is Decision.UPDATE
