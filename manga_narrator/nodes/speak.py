"""
Speak node: 세그먼트를 순서대로 음성으로 읽음 (각 발화 완료까지 대기)
"""
from langchain_core.runnables import RunnableConfig

from ..core.constants import DEFAULT_SPEECH_RATE
from ..core.error_handler import ErrorHandler
from ..state import CycleState
from ..utils.timing import log_workflow_step_start, log_workflow_step_end


def speak_node(state: CycleState, config: RunnableConfig) -> CycleState:
    """
    Args:
        state: CycleState (segments 필요)
        config: configurable에 narration_service, prosody_service,
            speech_service, cancel_event 포함

    Returns:
        spoken_count가 갱신된 CycleState
    """
    log_workflow_step_start("speak", state["capture_index"])
    configurable = config.get("configurable", {})
    narration_service = configurable["narration_service"]
    prosody_service = configurable["prosody_service"]
    speech_service = configurable.get("speech_service")
    cancel_event = configurable.get("cancel_event")

    settings = state.get("settings") or {}
    base_rate = settings.get("speech_rate", DEFAULT_SPEECH_RATE)
    preferred_voice = settings.get("voice") or None
    available_voices = getattr(speech_service, "available_voices", None) or None

    segments = state.get("segments", [])
    if speech_service is None:
        print(f"\n[Speak] No speech backend, {len(segments)} segment(s) not spoken", flush=True)
        log_workflow_step_end("speak", state["capture_index"])
        return state

    print(f"\n[Speak] {len(segments)} segment(s)...", flush=True)

    for index, segment in enumerate(segments, start=1):
        if cancel_event is not None and cancel_event.is_set():
            state["cancelled"] = True
            break
        try:
            text = narration_service.format_for_speech(segment.text)
            if not text:
                ErrorHandler.handle_warning("speak", "Nothing to speak, skipped", segment_id=index)
                continue
            params = prosody_service.map_to_voice_params(
                segment,
                base_rate=base_rate,
                preferred_voice=preferred_voice,
                available_voices=available_voices,
            )
            result = speech_service.render(text, params, cancel_event=cancel_event)
        except Exception as e:
            state["errors"].append(ErrorHandler.handle_node_error("speak", e, segment_id=index))
            break

        if not result.completed:
            state["cancelled"] = True
            break
        state["spoken_count"] += 1
        print(f"  ✓ [{index}/{len(segments)}] {params.voice_name} ({segment.emotion.value}, {params.speed:.2f}x)", flush=True)

    log_workflow_step_end("speak", state["capture_index"])
    return state
