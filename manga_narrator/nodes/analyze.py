"""
Analyze node: 캡처 이미지를 비전 모델로 분석
"""
from langchain_core.runnables import RunnableConfig

from ..core.error_handler import ErrorHandler
from ..core.exceptions import AnalysisCancelled
from ..state import CycleState
from ..utils.timing import log_workflow_step_start, log_workflow_step_end, record_analysis_timing


def analyze_node(state: CycleState, config: RunnableConfig) -> CycleState:
    """
    Args:
        state: CycleState
        config: configurable에 analysis_service, cancel_event 포함

    Returns:
        analysis가 채워진 CycleState
    """
    log_workflow_step_start("analyze", state["capture_index"])
    configurable = config.get("configurable", {})
    service = configurable["analysis_service"]
    cancel_event = configurable.get("cancel_event")

    print(f"\n[Analyze] Capture #{state['capture_index']}...", flush=True)
    try:
        analysis = service.analyze(
            state["image_bytes"],
            mime_type=state.get("mime_type") or "image/png",
            cancel_event=cancel_event,
        )
        state["analysis"] = analysis
        print(f"  ✓ {len(analysis.panels)} panel(s) detected", flush=True)

        elapsed = getattr(service, "last_elapsed", None)
        if isinstance(elapsed, (int, float)):
            record_analysis_timing(state["capture_index"], elapsed, bool(service.last_timing_ok))
    except AnalysisCancelled:
        state["cancelled"] = True
        print("  ⚠ Analysis cancelled", flush=True)
    except Exception as e:
        state["errors"].append(ErrorHandler.handle_node_error("analyze", e))
    finally:
        log_workflow_step_end("analyze", state["capture_index"])

    return state
