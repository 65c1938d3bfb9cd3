import json
import logging
import os

import pandas as pd

from contacts_config import LOG_DIR
from contacts_importer import ImportResult

REPORT_COLUMNS = ["Position", "Contact", "Action", "Folder", "Contact Id", "Detail"]


def write_import_report(result: ImportResult, timestamp: str, source: str = "", output_dir: str = LOG_DIR):
    """Writes the run summary and per-contact outcomes to a timestamped JSON file."""
    os.makedirs(output_dir, exist_ok=True)
    log_path = os.path.join(output_dir, f"import_log_{timestamp}.json")
    logging.info(f"Writing import report to '{log_path}'")

    full_log = {
        "source": source,
        "summary": result.summary(),
        "statistics": result.statistics.model_dump(),
        "folder_counts": result.folder_counts,
        "invalid": [i.model_dump() for i in result.invalid],
        "errors": [e.model_dump() for e in result.errors],
        "details": [o.model_dump() for o in result.outcomes],
    }

    try:
        with open(log_path, "w", encoding="utf-8") as f:
            json.dump(full_log, f, indent=2, ensure_ascii=False)
        logging.info(f"Successfully wrote {len(result.outcomes)} detailed log entries with summary.")
    except Exception as e:
        logging.error(f"Failed to write import report: {e}")
        return None
    return log_path


def write_import_csv_report(result: ImportResult, timestamp: str, output_dir: str = LOG_DIR):
    """Writes the per-contact outcomes to a timestamped CSV file."""
    if not result.outcomes:
        return None

    os.makedirs(output_dir, exist_ok=True)
    log_path = os.path.join(output_dir, f"import_log_{timestamp}.csv")
    logging.info(f"Writing detailed CSV log to '{log_path}'")

    rows = [
        {
            "Position": o.position,
            "Contact": o.label,
            "Action": o.action,
            "Folder": o.folder,
            "Contact Id": o.contact_id or "",
            "Detail": o.detail,
        }
        for o in result.outcomes
    ]

    try:
        pd.DataFrame(rows, columns=REPORT_COLUMNS).to_csv(log_path, index=False, encoding="utf-8-sig")
        logging.info(f"Successfully wrote {len(rows)} detailed log entries to CSV.")
    except Exception as e:
        logging.error(f"Failed to write detailed CSV log: {e}")
        return None
    return log_path
