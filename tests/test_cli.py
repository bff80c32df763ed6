import pytest
from typer.testing import CliRunner

from rankd.cli.app import app
from rankd.core.types import MediaKind, RankedEntry
from rankd.infra.repository.duckdb import DuckDBRankingRepository

runner = CliRunner()


@pytest.fixture(autouse=True)
def _chdir_tmp(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def db(tmp_path):
    return tmp_path / "ranks.duckdb"


def _invoke(db, *args, input=None):
    return runner.invoke(app, ["--db", str(db), *args], input=input)


def _partition(db, kind=MediaKind.MOVIE) -> list[RankedEntry]:
    repo = DuckDBRankingRepository.connect(db)
    try:
        return repo.list_partition(kind)
    finally:
        repo.close()


def _add(db, title, external_id, answers="", tier="good"):
    return _invoke(db, "add", title, "--id", external_id, "--tier", tier, input=answers)


def _titles(db, kind=MediaKind.MOVIE) -> list[str]:
    return [entry.title for entry in _partition(db, kind)]


def test_init_creates_database(db):
    result = _invoke(db, "init")

    assert result.exit_code == 0, result.output
    assert "Database ready at:" in result.output
    assert "0 movies / 0 series ranked" in result.output
    assert db.exists()


def test_add_first_title_needs_no_comparisons(db):
    result = _add(db, "Inception", "tt1375666")

    assert result.exit_code == 0, result.output
    assert "#1 in Movies" in result.output
    assert "10.0" in result.output
    assert _titles(db) == ["Inception"]


def test_add_asks_comparisons_until_placed(db):
    _add(db, "Inception", "tt1375666")
    _add(db, "Memento", "tt0209144", answers="w\n")

    result = _add(db, "Heat", "tt0113277", answers="better\nb\n")

    assert result.exit_code == 0, result.output
    assert "Comparison 1 of at most 2" in result.output
    assert "Is Heat better or worse than #2 Memento?" in result.output
    assert "#1 in Movies" in result.output
    assert _titles(db) == ["Heat", "Inception", "Memento"]


def test_undo_and_unknown_answers(db):
    _add(db, "Inception", "tt1375666")

    result = _add(db, "Memento", "tt0209144", answers="u\nmaybe\nb\n")

    assert result.exit_code == 0, result.output
    assert "Nothing to undo." in result.output
    assert "Unknown answer 'maybe'." in result.output
    assert _titles(db) == ["Memento", "Inception"]


def test_quit_saves_nothing(db):
    _add(db, "Inception", "tt1375666")

    result = _add(db, "Memento", "tt0209144", answers="q\n")

    assert result.exit_code == 0, result.output
    assert "Cancelled; nothing was saved." in result.output
    assert _titles(db) == ["Inception"]


def test_duplicate_add_fails(db):
    _add(db, "Inception", "tt1375666")

    result = _add(db, "Inception", "tt1375666")

    assert result.exit_code == 1
    assert "Already ranked:" in result.output
    assert _titles(db) == ["Inception"]


def test_series_have_their_own_list(db):
    _add(db, "Inception", "tt1375666")
    result = _invoke(db, "add", "The Wire", "--id", "tt0306414", "--kind", "series", "--tier", "good")

    assert result.exit_code == 0, result.output
    assert "#1 in TV Shows" in result.output
    assert _titles(db, MediaKind.SERIES) == ["The Wire"]


def test_list_shows_scores(db):
    _add(db, "Inception", "tt1375666")
    _add(db, "Memento", "tt0209144", answers="w\n", tier="medium")

    result = _invoke(db, "list")

    assert result.exit_code == 0, result.output
    assert "Ranked Movies" in result.output
    assert "Inception" in result.output
    assert "Memento" in result.output
    assert "6.9" in result.output


def test_list_empty(db):
    result = _invoke(db, "list", "--kind", "series")
    assert result.exit_code == 0, result.output
    assert "No tv shows ranked yet." in result.output


def test_delete_closes_gap(db):
    for title, external_id, answers in (("A", "a", ""), ("B", "b", "w\n"), ("C", "c", "w\nw\n")):
        _add(db, title, external_id, answers=answers)
    b = _partition(db)[1]

    result = _invoke(db, "delete", b.id, "--yes")

    assert result.exit_code == 0, result.output
    assert "Removed B (was #2)." in result.output
    assert [(entry.title, entry.rank) for entry in _partition(db)] == [("A", 1), ("C", 2)]


def test_delete_can_be_declined(db):
    _add(db, "A", "a")
    entry = _partition(db)[0]

    result = _invoke(db, "delete", entry.id, input="n\n")

    assert result.exit_code == 0
    assert _titles(db) == ["A"]


def test_delete_unknown_entry(db):
    result = _invoke(db, "delete", "nope", "-y")
    assert result.exit_code == 1
    assert "Not found:" in result.output


def test_move(db):
    for title, external_id, answers in (("A", "a", ""), ("B", "b", "w\n"), ("C", "c", "w\nw\n")):
        _add(db, title, external_id, answers=answers)
    c = _partition(db)[2]

    result = _invoke(db, "move", c.id, "1")

    assert result.exit_code == 0, result.output
    assert "C is now #1." in result.output
    assert _titles(db) == ["C", "A", "B"]

    rejected = _invoke(db, "move", c.id, "9")
    assert rejected.exit_code == 1
    assert "Nothing was changed." in rejected.output


def test_rerank_least_compared(db):
    _add(db, "A", "a")
    _add(db, "B", "b", answers="w\n")

    result = _invoke(db, "rerank", "--least-compared", input="w\n")

    assert result.exit_code == 0, result.output
    assert "A #1 -> #2" in result.output
    assert _titles(db) == ["B", "A"]


def test_rerank_quit_keeps_rank(db):
    _add(db, "A", "a")
    _add(db, "B", "b", answers="w\n")
    b = _partition(db)[1]

    result = _invoke(db, "rerank", b.id, input="q\n")

    assert result.exit_code == 0, result.output
    assert "B stays at #2." in result.output
    assert _titles(db) == ["A", "B"]


def test_rerank_needs_a_target(db):
    result = _invoke(db, "rerank")
    assert result.exit_code == 1
    assert "--least-compared" in result.output


def test_doctor_reports_and_fixes_damage(db):
    for title, external_id, answers in (("A", "a", ""), ("B", "b", "w\n")):
        _add(db, title, external_id, answers=answers)

    assert _invoke(db, "doctor").exit_code == 0

    repo = DuckDBRankingRepository.connect(db)
    repo.conn.con.execute('UPDATE ranked_entries SET "rank" = 5 WHERE external_id = ?', ["b"])
    repo.close()

    damaged = _invoke(db, "doctor")
    assert damaged.exit_code == 1
    assert "missing ranks [2]" in damaged.output

    fixed = _invoke(db, "doctor", "--fix")
    assert fixed.exit_code == 0, fixed.output
    assert "Renumbered 1 movies." in fixed.output
    assert [(entry.title, entry.rank) for entry in _partition(db)] == [("A", 1), ("B", 2)]


def test_invalid_config_file_exits_cleanly(db, tmp_path):
    (tmp_path / ".rankd.toml").write_text("[paths\n")

    result = _invoke(db, "init")

    assert result.exit_code == 1
    assert "Configuration error:" in result.output


def test_empty_title_is_rejected_with_message(db):
    result = _add(db, "", "x")

    assert result.exit_code == 1
    assert "Invalid input:" in result.output
    assert "title" in result.output
    assert _titles(db) == []


def test_badly_typed_config_is_rejected_with_message(db, tmp_path):
    (tmp_path / ".rankd.toml").write_text("[paths]\ndb_path = 3\n")

    result = _invoke(db, "init")

    assert result.exit_code == 1
    assert "Invalid input:" in result.output
    assert "paths.db_path" in result.output


def test_list_limit(db):
    _add(db, "A", "a")
    _add(db, "B", "b", answers="w\n")

    limited = _invoke(db, "list", "--limit", "1")
    assert limited.exit_code == 0, limited.output
    assert "A" in limited.output
    assert " B " not in limited.output

    assert _invoke(db, "list", "--limit", "0").exit_code == 2
