from __future__ import annotations

from expense_analyzer import parser
from expense_analyzer.parser import pack_chunks, parse_file, parse_files


def test_pack_chunks_never_splits_a_page():
    pages = ["a" * 40, "b" * 40, "c" * 90, "", "d" * 10]
    chunks = pack_chunks(pages, 100)
    assert chunks == ["a" * 40 + "\n" + "b" * 40, "c" * 90, "d" * 10]


def test_pack_chunks_oversized_page_is_its_own_chunk():
    assert pack_chunks(["x" * 150, "y"], 100) == ["x" * 150, "y"]


def test_small_text_file_is_one_chunk(tmp_path):
    path = tmp_path / "statement.txt"
    path.write_text("03/01 COFFEE 4.50\n03/02 TEA 2.00\n", encoding="utf-8")
    assert parse_file(path) == ["03/01 COFFEE 4.50\n03/02 TEA 2.00\n"]


def test_blank_file_yields_no_chunks(tmp_path):
    path = tmp_path / "empty.txt"
    path.write_text("  \n\n", encoding="utf-8")
    assert parse_file(path) == []


def test_long_text_is_cut_on_lines(tmp_path):
    path = tmp_path / "long.txt"
    path.write_text("\n".join(["line-%02d" % i for i in range(10)]), encoding="utf-8")
    chunks = parse_file(path, max_chars=20)
    assert all(len(c) <= 20 for c in chunks)
    assert "\n".join(chunks).split("\n") == ["line-%02d" % i for i in range(10)]


def test_chunk_size_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("EA_CHUNK_CHARS", "10")
    path = tmp_path / "s.txt"
    path.write_text("aaaaaaaa\nbbbbbbbb\n", encoding="utf-8")
    assert parse_file(path) == ["aaaaaaaa", "bbbbbbbb"]


def test_pdf_pages_are_packed(tmp_path, monkeypatch):
    monkeypatch.setattr(parser, "pdf_pages", lambda _p: ["page one", "page two"])
    path = tmp_path / "statement.PDF"
    path.write_bytes(b"%PDF-1.4")
    assert parse_file(path, max_chars=100) == ["page one\npage two"]
    assert parse_files([path, path], max_chars=8) == ["page one", "page two", "page one", "page two"]
