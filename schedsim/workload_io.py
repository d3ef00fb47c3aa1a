from __future__ import annotations

import csv
import json
import random
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .errors import ConfigurationError, ValidationError
from .metrics import rounded, summarize_process_metrics
from .models import MultilevelConfig, ProcessSpec, QueueSpec, ScheduleResult

CSV_FIELDS = ["id", "label", "arrivalTime", "burstTime", "priority"]

# Accepted spellings per field, canonical name first.
_ALIASES = {
    "id": ("id", "pid"),
    "label": ("label", "name"),
    "arrivalTime": ("arrivalTime", "arrival_time"),
    "burstTime": ("burstTime", "burst_time"),
    "priority": ("priority",),
}


def load_workload(path: str | Path) -> List[ProcessSpec]:
    """
    Load a workload from a JSON or CSV file into a list of ProcessSpec objects.
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix == ".json":
        return _load_json(path)
    if suffix == ".csv":
        return _load_csv(path)

    raise ValidationError(f"Unsupported workload format: {suffix} (use .json or .csv)")


def _load_json(path: Path) -> List[ProcessSpec]:
    with path.open("r", encoding="utf-8") as f:
        try:
            raw = json.load(f)
        except json.JSONDecodeError as exc:
            raise ValidationError(f"{path}: invalid JSON ({exc})") from exc

    if isinstance(raw, dict) and "processes" in raw:
        raw = raw["processes"]
    if not isinstance(raw, list):
        raise ValidationError("JSON workload must be a list of process objects")

    return specs_from_records(raw)


def _load_csv(path: Path) -> List[ProcessSpec]:
    with path.open("r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        return specs_from_records(list(reader))


def _lookup(mapping: Mapping[str, Any], field: str) -> Any:
    for name in _ALIASES[field]:
        value = mapping.get(name)
        if value not in (None, ""):
            return value
    return None


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        return int(value.strip())
    raise ValueError(value)


def spec_from_record(mapping: Any, position: Optional[int] = None) -> ProcessSpec:
    """
    Build one ProcessSpec from an imported record, checking every field.
    """
    where = "record" if position is None else f"record #{position}"
    if not isinstance(mapping, Mapping):
        raise ValidationError(f"{where} is not an object", record=mapping)

    problems: List[str] = []
    values: Dict[str, int] = {}
    for field, minimum, required in (
        ("id", 1, True),
        ("arrivalTime", 0, True),
        ("burstTime", 1, True),
        ("priority", 1, False),
    ):
        raw = _lookup(mapping, field)
        if raw is None:
            if required:
                problems.append(f"{where}: missing {field}")
            continue
        try:
            value = _as_int(raw)
        except ValueError:
            problems.append(f"{where}: {field} must be an integer, got {raw!r}")
            continue
        if value < minimum:
            problems.append(f"{where}: {field} must be >= {minimum}, got {value}")
        values[field] = value

    label = next((mapping[n] for n in _ALIASES["label"] if n in mapping), None)
    if label is not None and not str(label).strip():
        problems.append(f"{where}: label must not be empty")

    if problems:
        raise ValidationError(problems, record=dict(mapping))

    pid = values["id"]
    return ProcessSpec(
        pid=pid,
        label=str(label).strip() if label is not None else f"P{pid}",
        arrival_time=values["arrivalTime"],
        burst_time=values["burstTime"],
        priority=values.get("priority", 1),
    )


def specs_from_records(records: Iterable[Any]) -> List[ProcessSpec]:
    """
    Convert imported records, rejecting bad fields and duplicate ids.
    """
    specs: List[ProcessSpec] = []
    seen: Dict[int, int] = {}
    for position, record in enumerate(records, start=1):
        spec = spec_from_record(record, position)
        if spec.pid in seen:
            raise ValidationError(
                f"record #{position}: duplicate id {spec.pid} (first used by record #{seen[spec.pid]})",
                record=dict(record),
            )
        seen[spec.pid] = position
        specs.append(spec)
    return specs


def spec_to_record(spec: ProcessSpec) -> Dict[str, Any]:
    return {
        "id": spec.pid,
        "label": spec.label,
        "arrivalTime": spec.arrival_time,
        "burstTime": spec.burst_time,
        "priority": spec.priority,
    }


def dump_workload(specs: Iterable[ProcessSpec], path: str | Path) -> None:
    path = Path(path)
    records = [spec_to_record(s) for s in specs]
    suffix = path.suffix.lower()

    if suffix == ".json":
        path.write_text(json.dumps(records, indent=2) + "\n", encoding="utf-8")
        return
    if suffix == ".csv":
        with path.open("w", encoding="utf-8", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=CSV_FIELDS)
            writer.writeheader()
            writer.writerows(records)
        return

    raise ValidationError(f"Unsupported workload format: {suffix} (use .json or .csv)")


def multilevel_config_from_mapping(raw: Any) -> MultilevelConfig:
    if not isinstance(raw, Mapping) or not isinstance(raw.get("queues"), list):
        raise ConfigurationError("Multilevel config must be an object with a 'queues' list")

    queues = []
    for entry in raw["queues"]:
        try:
            quantum = entry.get("quantum")
            queues.append(
                QueueSpec(
                    name=str(entry["name"]),
                    policy=str(entry["policy"]),
                    rank=int(entry["rank"]),
                    quantum=None if quantum is None else int(quantum),
                )
            )
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid queue entry: {entry!r}") from exc

    raw_assignment = raw.get("assignment") or {}
    if not isinstance(raw_assignment, Mapping):
        raise ConfigurationError(
            f"Multilevel config 'assignment' must be an object of id -> queue name, got {raw_assignment!r}"
        )

    assignment: Dict[int, str] = {}
    for pid, name in raw_assignment.items():
        try:
            assignment[int(pid)] = str(name)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid process id in assignment: {pid!r}") from exc

    return MultilevelConfig(queues=queues, assignment=assignment)


def load_multilevel_config(path: str | Path) -> MultilevelConfig:
    """
    Read a multilevel queue layout, e.g.::

        {"queues": [{"name": "system", "policy": "round-robin", "rank": 0, "quantum": 2},
                    {"name": "batch", "policy": "fcfs", "rank": 1}],
         "assignment": {"1": "system", "2": "batch"}}
    """
    with Path(path).open("r", encoding="utf-8") as f:
        try:
            raw = json.load(f)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"{path}: invalid JSON ({exc})") from exc
    return multilevel_config_from_mapping(raw)


def result_to_dict(result: ScheduleResult) -> Dict[str, Any]:
    return {
        "algorithm": result.algorithm,
        "policy": result.policy,
        "quantum": result.quantum,
        "finalTime": result.final_time,
        "timeline": [
            {"id": iv.pid, "label": iv.label, "startTime": iv.start_time, "endTime": iv.end_time}
            for iv in result.timeline
        ],
        "processes": summarize_process_metrics(result.completed),
        "metrics": asdict(rounded(result.metrics)),
    }


def dump_result(result: ScheduleResult, path: str | Path) -> None:
    Path(path).write_text(json.dumps(result_to_dict(result), indent=2) + "\n", encoding="utf-8")


def generate_workload(count: int, seed: Optional[int] = None) -> List[ProcessSpec]:
    """
    Random workload: arrival 0-9, burst 1-15, priority 1-5, ids 1..count.
    """
    if count < 0:
        raise ValidationError(f"count must be >= 0, got {count}")
    rng = random.Random(seed)
    specs = []
    for pid in range(1, count + 1):
        specs.append(
            ProcessSpec(
                pid=pid,
                label=f"P{pid}",
                arrival_time=rng.randint(0, 9),
                burst_time=rng.randint(1, 15),
                priority=rng.randint(1, 5),
            )
        )
    return specs
