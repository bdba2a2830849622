from typing import Any, Dict, Iterable, List

from services.payload_fields import FieldProber

NO_VALUE = "—"


def _displayable(value: Any) -> Any:
    # Payload strings may hold lone surrogates that cannot be sent as UTF-8.
    if isinstance(value, str):
        return value.encode("utf-8", "replace").decode("utf-8")
    return value


def build_dashboard_rows(records: Iterable[Dict[str, Any]], prober: FieldProber) -> List[Dict[str, Any]]:
    """Flatten stored callbacks into the cells shown on the dashboard table.

    Values are left unescaped; the template relies on Jinja2 autoescaping.
    """
    rows: List[Dict[str, Any]] = []
    for record in records:
        if not isinstance(record, dict):
            continue
        summary = prober.summarize(
            record.get("payload"),
            status_default="unknown",
            task_id_default=NO_VALUE,
            download_url_default="",
        )
        rows.append(
            {
                "id": _displayable(record.get("id", "")),
                "received_at": _displayable(record.get("receivedAt", "")),
                "status": _displayable(summary.status),
                "task_id": _displayable(summary.task_id),
                "download_url": _displayable(summary.download_url),
            }
        )
    return rows
