"""
Cycle timing utilities for Manga Narrator
캡처 번호별로 노드 소요 시간과 비전 분석 5초 목표 달성 여부를 기록
"""
import json
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
from .. import config
from ..core.constants import TIMING_LOG_DIR, TIMING_LOG_PREFIX
from .logging import log_error


# capture_index -> {"started_at", "steps": {step: seconds}, "analysis": {...}}
_cycle_timings: Dict[int, Dict[str, Any]] = {}
# (capture_index, step) -> 시작 시각
_open_steps: Dict[Tuple[int, str], float] = {}
_timing_lock = threading.Lock()


def _cycle_entry(capture_index: int) -> Dict[str, Any]:
    entry = _cycle_timings.get(capture_index)
    if entry is None:
        entry = {
            "started_at": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            "steps": {},
            "analysis": None,
        }
        _cycle_timings[capture_index] = entry
    return entry


def log_workflow_step_start(step_name: str, capture_index: int = 0) -> float:
    """
    사이클 노드 시작 시각을 기록합니다.

    Args:
        step_name: 노드 이름 ("analyze", "narrate", "speak")
        capture_index: 세션 내 캡처 번호

    Returns:
        시작 시각 (timestamp)
    """
    start_time = time.time()
    with _timing_lock:
        _cycle_entry(capture_index)
        _open_steps[(capture_index, step_name)] = start_time
    return start_time


def log_workflow_step_end(step_name: str, capture_index: int = 0) -> float:
    """
    노드 완료를 기록합니다.

    Returns:
        소요 시간 (초), 시작 기록이 없으면 0.0
    """
    end_time = time.time()
    with _timing_lock:
        start_time = _open_steps.pop((capture_index, step_name), None)
        if start_time is None:
            return 0.0
        duration = end_time - start_time
        _cycle_entry(capture_index)["steps"][step_name] = round(duration, 3)
    return duration


def record_analysis_timing(capture_index: int, elapsed: float, within_target: bool) -> None:
    """AnalysisService.validate_analysis_timing()의 결과를 캡처 기록에 붙입니다."""
    with _timing_lock:
        _cycle_entry(capture_index)["analysis"] = {
            "elapsed_seconds": round(float(elapsed), 3),
            "within_target": bool(within_target),
        }


def get_workflow_timing_summary() -> dict:
    """
    기록된 캡처 사이클 요약

    Returns:
        {"cycles", "steps": {step: {count, avg_seconds, max_seconds}},
         "analysis": {count, over_target, max_seconds}} (기록이 없으면 빈 dict)
    """
    with _timing_lock:
        if not _cycle_timings:
            return {}

        step_durations: Dict[str, list] = {}
        analysis_times = []
        over_target = 0
        for entry in _cycle_timings.values():
            for step_name, seconds in entry["steps"].items():
                step_durations.setdefault(step_name, []).append(seconds)
            analysis = entry["analysis"]
            if analysis is not None:
                analysis_times.append(analysis["elapsed_seconds"])
                if not analysis["within_target"]:
                    over_target += 1

        summary: Dict[str, Any] = {
            "cycles": len(_cycle_timings),
            "steps": {
                step_name: {
                    "count": len(values),
                    "avg_seconds": round(sum(values) / len(values), 3),
                    "max_seconds": max(values),
                }
                for step_name, values in step_durations.items()
            },
        }
        if analysis_times:
            summary["analysis"] = {
                "count": len(analysis_times),
                "over_target": over_target,
                "max_seconds": max(analysis_times),
            }
        return summary


def save_workflow_timing_log() -> Optional[Path]:
    """
    세션의 캡처별 타이밍을 logs/workflow_timing_<timestamp>.json으로 저장합니다.

    Returns:
        저장된 파일 경로 (실패 시 None)
    """
    summary = get_workflow_timing_summary()
    with _timing_lock:
        cycles = {str(index): entry for index, entry in sorted(_cycle_timings.items())}

    try:
        logs_dir = config.application_path / TIMING_LOG_DIR
        logs_dir.mkdir(parents=True, exist_ok=True)
        log_file = logs_dir / f"{TIMING_LOG_PREFIX}{datetime.now().strftime('%Y%m%d_%H%M%S')}.json"

        with open(log_file, "w", encoding="utf-8") as f:
            json.dump({"saved_at": datetime.now().isoformat(), "cycles": cycles, "summary": summary}, f, indent=2)

        print(f"⏱️  Timing log saved: {log_file}", flush=True)
        return log_file
    except OSError as e:
        log_error(f"Failed to save workflow timing log: {e}", context="timing", exception=e)
        return None


def reset_workflow_timing() -> None:
    """세션이 멈출 때 누적된 기록을 비웁니다."""
    with _timing_lock:
        _cycle_timings.clear()
        _open_steps.clear()
