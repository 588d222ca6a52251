"""End-to-end tests for the build/filter/purge pipelines."""

from datetime import UTC, datetime, timedelta
from email.utils import format_datetime

import pytest

from muttalias.errors import AliasStoreError, MailStoreError
from muttalias.orchestrator.pipelines import run_build, run_filter, run_purge
from muttalias.schemas.alias import MergeOptions, MergeOutcome

MANUAL = 'alias boss "The Boss" <boss@example.com>'
GENERATED = 'alias old <old@example.com> # mutt-alias: e-mail sent on 2020-01-01@00:00:00'


@pytest.fixture
def sent_dir(tmp_path, write_message):
    sent = tmp_path / "Sent"
    write_message(
        sent / "cur" / "1",
        'Doe, John <John.Doe@Example.com>, "Smith, Jane" <jane@example.com>',
    )
    write_message(
        sent / "cur" / "2",
        "=?UTF-8?B?Sm9zw6k=?= <jose@example.com>,\n boss@example.com",
        date="Wed, 16 Oct 2024 09:00:00 +0000",
    )
    write_message(sent / "new" / "3", "no-reply@service.example", date="garbage")
    return sent


@pytest.fixture
def alias_path(tmp_path):
    path = tmp_path / "aliases"
    path.write_text(MANUAL + "\n")
    return path


class TestRunBuild:
    def test_builds_aliases(self, alias_path, sent_dir):
        progress: list[str] = []
        result = run_build(
            alias_file=alias_path,
            directories=[sent_dir],
            options=MergeOptions(),
            on_progress=progress.append,
        )

        assert result.outcome == MergeOutcome.UPDATED
        assert result.messages_scanned == 3
        assert result.added == 4
        assert result.duplicates == 1
        assert progress == [f"Processing {sent_dir}"]

        lines = alias_path.read_text().splitlines()
        assert lines == [
            MANUAL,
            'alias john-doe "Doe, John" <john.doe@example.com> '
            "# mutt-alias: e-mail sent on 2024-10-15@12:30:00",
            'alias jane-smith "Smith, Jane" <jane@example.com> '
            "# mutt-alias: e-mail sent on 2024-10-15@12:30:00",
            'alias jose "José" <jose@example.com> '
            "# mutt-alias: e-mail sent on 2024-10-16@09:00:00",
            "alias no-reply <no-reply@service.example> "
            "# mutt-alias: e-mail sent on garbage",
        ]

    def test_second_run_changes_nothing(self, alias_path, sent_dir):
        run_build(alias_file=alias_path, directories=[sent_dir], options=MergeOptions())
        first = alias_path.read_text()
        result = run_build(alias_file=alias_path, directories=[sent_dir], options=MergeOptions())
        assert result.added == 0
        assert alias_path.read_text() == first

    def test_filter_and_strip_comma(self, alias_path, sent_dir):
        options = MergeOptions(filter_new=True, keep_comma_in_display_name=False)
        result = run_build(alias_file=alias_path, directories=[sent_dir], options=options)
        assert result.filtered_new == 1
        text = alias_path.read_text()
        assert "no-reply" not in text
        assert '"Doe John" <john.doe@example.com>' in text

    def test_max_age_uses_message_date(self, alias_path, tmp_path, write_message):
        now = datetime.now(UTC)
        sent = tmp_path / "Sent"
        write_message(sent / "recent", "recent@example.com", date=format_datetime(now - timedelta(days=2)))
        write_message(sent / "stale", "stale@example.com", date=format_datetime(now - timedelta(days=40)))
        write_message(sent / "undated", "undated@example.com", date="garbage")

        result = run_build(
            alias_file=alias_path,
            directories=[sent],
            options=MergeOptions(max_age_days=30),
            now=now,
        )
        assert result.added == 1
        assert result.too_old == 2
        assert "recent@example.com" in alias_path.read_text()

    def test_purge_then_rebuild(self, tmp_path, sent_dir):
        path = tmp_path / "aliases"
        path.write_text(f"{MANUAL}\n{GENERATED}\n")
        result = run_build(alias_file=path, directories=[sent_dir], options=MergeOptions(purge=True))
        assert result.purged == 1
        assert "old@example.com" not in path.read_text()

    def test_purge_without_messages_is_update(self, tmp_path):
        path = tmp_path / "aliases"
        path.write_text(f"{MANUAL}\n{GENERATED}\n")
        empty = tmp_path / "empty"
        empty.mkdir()
        result = run_build(alias_file=path, directories=[empty], options=MergeOptions(purge=True))
        assert result.outcome == MergeOutcome.UPDATED
        assert path.read_text() == MANUAL + "\n"

    def test_backup_copy(self, alias_path, sent_dir):
        run_build(alias_file=alias_path, directories=[sent_dir], options=MergeOptions(), backup=True)
        assert (alias_path.parent / "aliases.prev").read_text() == MANUAL + "\n"

    def test_new_store_created(self, tmp_path, sent_dir):
        path = tmp_path / "mutt" / "aliases"
        result = run_build(alias_file=path, directories=[sent_dir], options=MergeOptions(), new=True)
        assert result.added == 5
        assert len(path.read_text().splitlines()) == 5

    def test_no_messages_is_no_op(self, alias_path, tmp_path):
        empty = tmp_path / "empty"
        empty.mkdir()
        result = run_build(alias_file=alias_path, directories=[empty], options=MergeOptions())
        assert result.outcome == MergeOutcome.NO_OP
        assert alias_path.read_text() == MANUAL + "\n"

    def test_missing_store_is_fatal(self, tmp_path, sent_dir):
        with pytest.raises(AliasStoreError):
            run_build(alias_file=tmp_path / "missing", directories=[sent_dir], options=MergeOptions())

    def test_missing_directory_leaves_store_untouched(self, alias_path, sent_dir, tmp_path):
        with pytest.raises(MailStoreError):
            run_build(
                alias_file=alias_path,
                directories=[sent_dir, tmp_path / "nope"],
                options=MergeOptions(),
            )
        assert alias_path.read_text() == MANUAL + "\n"

    def test_cc_header(self, alias_path, tmp_path, write_message):
        sent = tmp_path / "Sent"
        write_message(sent / "1", "a@example.com", extra=b"Cc: Bee <b@example.com>\n")
        result = run_build(
            alias_file=alias_path,
            directories=[sent],
            options=MergeOptions(),
            header_names=("To", "Cc"),
        )
        assert result.added == 2
        assert 'alias bee "Bee" <b@example.com>' in alias_path.read_text()


class TestRunFilterAndPurge:
    def test_filter(self, tmp_path):
        path = tmp_path / "aliases"
        path.write_text(f"{MANUAL}\nalias bot <noreply@example.com>\n")
        result = run_filter(alias_file=path)
        assert result.filtered_all == 1
        assert result.outcome == MergeOutcome.UPDATED
        assert path.read_text() == MANUAL + "\n"

    def test_purge(self, tmp_path):
        path = tmp_path / "aliases"
        path.write_text(f"{MANUAL}\n{GENERATED}\n")
        result = run_purge(alias_file=path, backup=True)
        assert result.purged == 1
        assert path.read_text() == MANUAL + "\n"
        assert (tmp_path / "aliases.prev").read_text() == f"{MANUAL}\n{GENERATED}\n"

    def test_purge_nothing(self, tmp_path):
        path = tmp_path / "aliases"
        path.write_text(MANUAL + "\n")
        result = run_purge(alias_file=path)
        assert result.outcome == MergeOutcome.NO_OP
