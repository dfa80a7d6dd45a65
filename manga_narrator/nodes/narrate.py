"""
Narrate node: 분석 결과를 내레이션 세그먼트로 변환
"""
from langchain_core.runnables import RunnableConfig

from ..core.error_handler import ErrorHandler
from ..state import CycleState
from ..utils.timing import log_workflow_step_start, log_workflow_step_end


def narrate_node(state: CycleState, config: RunnableConfig) -> CycleState:
    log_workflow_step_start("narrate", state["capture_index"])
    service = config.get("configurable", {})["narration_service"]

    print("\n[Narrate] Building narration...", flush=True)
    try:
        result = service.generate(state["analysis"], state.get("previous_narration"))
        if result.skipped:
            state["skipped"] = True
            state["skip_reason"] = result.reason
            ErrorHandler.handle_warning("narrate", f"Skipped ({result.reason})")
        else:
            state["segments"] = list(result.segments)
            state["narration_baseline"] = result.baseline
            print(f"  ✓ {len(result.segments)} segment(s)", flush=True)
    except Exception as e:
        state["errors"].append(ErrorHandler.handle_node_error("narrate", e))
    finally:
        log_workflow_step_end("narrate", state["capture_index"])

    return state
