from __future__ import annotations

import os
from pathlib import Path

import pytest

from liveprobe.engine.candidates import (
    MAX_CANDIDATES,
    _read_wordlist,
    build_candidates,
    load_wordlist,
    parse_extensions,
    parse_port_spec,
    with_extensions,
)
from liveprobe.engine.catalog import QUICK_PORTS, STANDARD_SUBDOMAINS, ProfileCatalog
from liveprobe.engine.errors import InvalidProfile


def test_quick_ports_profile_is_deterministic():
    first = build_candidates("ports", "quick")
    second = build_candidates("ports", "quick")
    assert first.items == second.items == QUICK_PORTS
    assert first.truncated is False
    assert first.requested == len(QUICK_PORTS)


def test_intense_and_all_port_profiles():
    intense = build_candidates("ports", "intense")
    everything = build_candidates("ports", "all")
    assert 0 < len(intense) <= 100
    assert set(intense.items) <= set(everything.items)


def test_custom_port_ranges_expand_in_written_order():
    cs = build_candidates("ports", "custom", custom="80,443,8000-8003")
    assert cs.items == (80, 443, 8000, 8001, 8002, 8003)


def test_custom_port_range_and_list_are_deduplicated():
    cs = build_candidates("ports", "custom", custom="22,20-23,22")
    assert cs.items == (22, 20, 21, 23)


@pytest.mark.parametrize(
    "spec",
    ["80,abc", "0", "65536", "100-90", "1-70000", "", " , "],
)
def test_malformed_port_specs_raise_invalid_profile(spec):
    with pytest.raises(InvalidProfile):
        build_candidates("ports", "custom", custom=spec)


def test_parse_port_spec_single_range():
    assert parse_port_spec("1-3") == [1, 2, 3]


def test_combined_profiles_are_an_ordered_union():
    cs = build_candidates("ports", "quick+custom", custom="80,9999")
    assert cs.items[: len(QUICK_PORTS)] == QUICK_PORTS
    assert cs.items[-1] == 9999
    assert cs.items.count(80) == 1


def test_oversized_range_is_truncated_to_cap():
    cs = build_candidates("ports", "custom", custom="1-2000")
    assert len(cs) == MAX_CANDIDATES == 1024
    assert cs.truncated is True
    assert cs.requested == 2000
    assert cs.items[0] == 1
    assert cs.items[-1] == 1024


def test_custom_limit_applies():
    cs = build_candidates("ports", "custom", custom="1-10", limit=4)
    assert cs.items == (1, 2, 3, 4)
    assert cs.truncated is True


def test_unknown_profile_and_kind_raise():
    with pytest.raises(InvalidProfile):
        build_candidates("ports", "turbo")
    with pytest.raises(InvalidProfile):
        build_candidates("udp", "quick")
    with pytest.raises(InvalidProfile):
        build_candidates("ports", "custom")


def test_invalid_profile_is_a_value_error():
    with pytest.raises(ValueError):
        build_candidates("paths", "nope")


def test_paths_custom_are_normalized_with_leading_slash():
    cs = build_candidates("paths", "custom", custom="admin, /login ,admin")
    assert cs.items == ("/admin", "/login")


def test_path_extensions_append_variants_after_base_paths():
    cs = build_candidates("paths", "custom", custom="/admin,/robots.txt,/vendor/", extensions="php,.html")
    assert cs.items == ("/admin", "/robots.txt", "/vendor/", "/admin.php", "/admin.html")


def test_extensions_rejected_outside_paths():
    with pytest.raises(InvalidProfile):
        build_candidates("ports", "quick", extensions="php")


def test_parse_extensions_and_with_extensions_helpers():
    assert parse_extensions("php, js,php") == ["php", "js"]
    assert parse_extensions(None) == []
    with pytest.raises(InvalidProfile):
        parse_extensions("p/hp")
    assert with_extensions(["/a", "/b.txt"], ["bak"]) == ["/a", "/b.txt", "/a.bak"]


def test_path_profiles_extensive_extends_medium():
    medium = build_candidates("paths", "medium")
    extensive = build_candidates("paths", "extensive")
    assert extensive.items[: len(medium)] == medium.items
    assert len(extensive) > len(medium)
    assert all(isinstance(p, str) and p.startswith("/") for p in extensive)


def test_subdomain_profiles():
    standard = build_candidates("subdomains", "standard")
    extensive = build_candidates("subdomains", "extensive")
    assert standard.items == tuple(dict.fromkeys(STANDARD_SUBDOMAINS))
    assert set(standard.items) < set(extensive.items)


def test_custom_subdomain_labels_are_lowercased():
    cs = build_candidates("subdomains", "custom", custom="WWW,api,Dev.Internal")
    assert cs.items == ("www", "api", "dev.internal")
    with pytest.raises(InvalidProfile):
        build_candidates("subdomains", "custom", custom="bad label")


def test_wordlist_profile_skips_comments_and_invalid(tmp_path: Path):
    wordlist = tmp_path / "labels.txt"
    wordlist.write_text("# header\nwww\n\nAPI\nbad label\napi\nmail\n", encoding="utf-8")
    cs = build_candidates("subdomains", "wordlist", wordlist=str(wordlist))
    assert cs.items == ("www", "api", "mail")


def test_wordlist_cache_reloads_after_change(tmp_path: Path):
    wordlist = tmp_path / "labels.txt"
    wordlist.write_text("one\n", encoding="utf-8")
    assert load_wordlist(wordlist) == ("one",)
    wordlist.write_text("one\ntwo\n", encoding="utf-8")
    stat = wordlist.stat()
    os.utime(wordlist, (stat.st_atime, stat.st_mtime + 5))
    assert load_wordlist(wordlist) == ("one", "two")


def test_wordlist_cache_is_bounded(tmp_path: Path):
    for idx in range(20):
        wordlist = tmp_path / f"labels-{idx}.txt"
        wordlist.write_text(f"host{idx}\n", encoding="utf-8")
        assert load_wordlist(wordlist) == (f"host{idx}",)
    info = _read_wordlist.cache_info()
    assert info.currsize <= info.maxsize == 8


def test_unreadable_wordlist_raises(tmp_path: Path):
    with pytest.raises(InvalidProfile):
        build_candidates("subdomains", "wordlist", wordlist=str(tmp_path / "missing.txt"))
    with pytest.raises(InvalidProfile):
        build_candidates("subdomains", "wordlist")
    with pytest.raises(InvalidProfile):
        build_candidates("ports", "wordlist", wordlist=str(tmp_path / "missing.txt"))


def test_custom_catalog_is_used():
    catalog = ProfileCatalog(ports={"tiny": ((7, 9),)})
    assert build_candidates("ports", "tiny", catalog=catalog).items == (7, 9)
    with pytest.raises(InvalidProfile):
        build_candidates("ports", "quick", catalog=catalog)
