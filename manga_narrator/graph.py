"""
LangGraph StateGraph assembly for one narration cycle
"""
from langgraph.graph import StateGraph, END

from .state import CycleState
from .nodes.analyze import analyze_node
from .nodes.narrate import narrate_node
from .nodes.speak import speak_node


def route_after_analyze(state: CycleState) -> str:
    """
    분석 완료 후 분기: 정지되었으면 종료, 실패했으면 error_handler
    """
    if state.get("cancelled"):
        return "end"
    if state.get("errors") or state.get("analysis") is None:
        return "error_handler"
    return "narrate"


def route_after_narrate(state: CycleState) -> str:
    """
    SKIP이면 음성 없이 종료
    """
    if state.get("errors"):
        return "error_handler"
    if state.get("skipped") or not state.get("segments"):
        return "end"
    return "speak"


def route_after_speak(state: CycleState) -> str:
    if state.get("errors"):
        return "error_handler"
    return "end"


def error_handler_node(state: CycleState) -> CycleState:
    """
    에러 처리 노드: 사이클을 중단하고 에러 요약을 출력
    """
    errors = state.get("errors", [])
    if not errors:
        state["errors"].append({
            "node_name": "analyze",
            "error_message": "No analysis produced",
            "error_kind": None,
            "segment_id": None,
        })

    last = state["errors"][-1]
    print(f"  ✗ Cycle aborted at {last['node_name']}: {last['error_message']}", flush=True)
    return state


def create_cycle_graph() -> StateGraph:
    """
    캡처 한 번을 처리하는 StateGraph 생성

    analyze -> narrate -> speak, SKIP이면 narrate에서 종료,
    실패하면 error_handler로 분기

    Returns:
        컴파일된 StateGraph
    """
    workflow = StateGraph(CycleState)

    workflow.add_node("analyze", analyze_node)
    workflow.add_node("narrate", narrate_node)
    workflow.add_node("speak", speak_node)
    workflow.add_node("error_handler", error_handler_node)

    workflow.set_entry_point("analyze")

    workflow.add_conditional_edges(
        "analyze",
        route_after_analyze,
        {
            "narrate": "narrate",
            "error_handler": "error_handler",
            "end": END,
        }
    )
    workflow.add_conditional_edges(
        "narrate",
        route_after_narrate,
        {
            "speak": "speak",
            "error_handler": "error_handler",
            "end": END,
        }
    )
    workflow.add_conditional_edges(
        "speak",
        route_after_speak,
        {
            "error_handler": "error_handler",
            "end": END,
        }
    )
    workflow.add_edge("error_handler", END)

    return workflow.compile()


def compile_cycle_graph() -> StateGraph:
    """
    그래프를 컴파일하여 반환
    """
    return create_cycle_graph()
