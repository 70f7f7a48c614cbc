import json
from pathlib import Path
import threading

import pytest

from casepulse.publish import JsonDashboardWriter, SnapshotPublisher, snapshot_to_payload
from casepulse.transform import transform


def snapshot_for(case_id: str, reason: str = "Produto danificado"):
    return transform(
        [
            {
                "Nº": case_id,
                "Data comunicação": "25/12/2025",
                "Estado": "Aberto",
                "Fornecedor": "Acme",
                "Motivo": reason,
            }
        ]
    )


class RecordingPresenter:
    def __init__(self) -> None:
        self.calls = []

    def apply_snapshot(self, snapshot, previous) -> None:
        self.calls.append((snapshot, previous))


def test_publisher_keeps_previous_for_diffing() -> None:
    presenter = RecordingPresenter()
    publisher = SnapshotPublisher([presenter])
    first, second = snapshot_for("1"), snapshot_for("2")

    publisher.publish(first)
    publisher.publish(second)

    assert publisher.current is second
    assert publisher.previous is first
    assert presenter.calls == [(first, None), (second, first)]


class FlakyPresenter:
    def __init__(self) -> None:
        self.fail = False

    def apply_snapshot(self, snapshot, previous) -> None:
        if self.fail:
            raise OSError("disk full")


def test_failed_presenter_does_not_advance_published_state() -> None:
    presenter = RecordingPresenter()
    flaky = FlakyPresenter()
    publisher = SnapshotPublisher([presenter, flaky])
    first = snapshot_for("1")
    publisher.publish(first)
    flaky.fail = True

    with pytest.raises(OSError):
        publisher.publish(snapshot_for("2"))

    assert publisher.current is first
    assert publisher.previous is None

    flaky.fail = False
    third = snapshot_for("3")
    publisher.publish(third)
    assert presenter.calls[-1] == (third, first)


def test_last_write_wins_under_concurrent_publishes() -> None:
    publisher = SnapshotPublisher()
    snapshots = [snapshot_for(str(i)) for i in range(20)]
    threads = [threading.Thread(target=publisher.publish, args=(snapshot,)) for snapshot in snapshots]

    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert publisher.current in snapshots


def test_payload_truncates_long_reasons() -> None:
    payload = snapshot_to_payload(snapshot_for("1", reason="x" * 80))

    row = payload["recent_open_cases"][0]
    assert row["reason"] == "x" * 50 + "..."
    assert row["communication_date"] == "25/12/2025"
    assert row["status"] == "Aberto"
    assert payload["kpis"] == {"total_cases": 1, "open_cases": 1, "resolved_ok": 0, "resolved_not_ok": 0}
    assert payload["status_breakdown"][0] == {"status": "Aberto", "count": 1}
    assert payload["top_vendors"] == [{"vendor": "Acme", "count": 1}]


def test_json_writer_replaces_file(tmp_path: Path) -> None:
    output = tmp_path / "out" / "dashboard.json"
    writer = JsonDashboardWriter(output)

    writer.apply_snapshot(snapshot_for("1"), None)
    writer.apply_snapshot(snapshot_for("2"), None)

    payload = json.loads(output.read_text(encoding="utf-8"))
    assert payload["recent_open_cases"][0]["case_id"] == "2"
    assert "last_updated" in payload
    assert [path.name for path in output.parent.iterdir()] == ["dashboard.json"]
