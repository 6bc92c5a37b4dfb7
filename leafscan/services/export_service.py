# leafscan/services/export_service.py
import csv
import json
import os
from datetime import datetime, timezone

import numpy as np

from leafscan.core.config import Config

CSV_COLUMNS = ["created_at", "scan_id", "resnet", "disease", "biotic", "classifier", "image_b64"]


def _scores_json(output) -> str:
    # big ints survive as JSON integers
    return json.dumps(np.asarray(output).reshape(-1).tolist())


def export_raw_outputs(scan_id: str, outputs: dict, image_b64: str, path: str = None) -> str:
    """
    Append the raw model outputs of one scan to a CSV file (one row per
    scan) for offline inspection of model behaviour.
    """
    path = path or Config.SCAN_EXPORT_PATH
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)

    write_header = not os.path.exists(path) or os.path.getsize(path) == 0
    row = {
        "created_at": datetime.now(timezone.utc).isoformat(),
        "scan_id": scan_id,
        "resnet": _scores_json(outputs["resnet"]),
        "disease": _scores_json(outputs["disease"]),
        "biotic": _scores_json(outputs["biotic"]),
        "classifier": _scores_json(outputs["classifier"]),
        "image_b64": image_b64,
    }

    with open(path, "a", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=CSV_COLUMNS)
        if write_header:
            writer.writeheader()
        writer.writerow(row)
    return path
