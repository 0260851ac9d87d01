from __future__ import annotations

import json
import os
from typing import Any, Dict, Iterable, List


def read_jsonl(path: str) -> List[Dict[str, Any]]:
    if not os.path.exists(path):
        return []
    out: List[Dict[str, Any]] = []
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line:
                out.append(json.loads(line))
    return out


def events(path: str, name: str) -> List[Dict[str, Any]]:
    return [e for e in read_jsonl(path) if e.get("event") == name]


def assert_not_in_logs(objs: Iterable[Dict[str, Any]], *secrets: str) -> None:
    blob = json.dumps(list(objs), ensure_ascii=False)
    for s in secrets:
        assert s not in blob
