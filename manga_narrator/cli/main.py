"""
Typer-based CLI application entry point
"""
import json
import time
from pathlib import Path
from typing import Optional

import typer
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

app = typer.Typer(
    name="manga-narrator",
    help="📖 Manga Narrator - live narration of manga pages",
    add_completion=False,
    rich_markup_mode="rich"
)
console = Console()

_STATUS_STYLES = {
    "idle": "dim",
    "capturing": "cyan",
    "analyzing": "yellow",
    "narrating": "green",
    "paused": "magenta",
    "error": "bold red",
}

_MIME_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
}


def _print_status_event(event: dict) -> None:
    if event.get("type") == "error":
        console.print(f"[bold red]✗[/bold red] {event['message']}")
        return
    style = _STATUS_STYLES.get(event.get("status"), "white")
    console.print(f"[{style}]● {event.get('status')}[/{style}] {event.get('message', '')}")


@app.command()
def run():
    """
    화면을 주기적으로 캡처하며 실시간으로 내레이션합니다 (Ctrl+C로 종료).
    """
    from ..config import initialize_api_keys
    from ..services.capture_service import ScreenCaptureService
    from ..services.tts_service import SpeechService
    from ..session_manager import NarrationSession

    console.print(Panel.fit(
        "[bold cyan]📖 Manga Narrator[/bold cyan]\nPress Ctrl+C to stop",
        border_style="cyan"
    ))
    initialize_api_keys()

    session = NarrationSession(
        speech_service=SpeechService(),
        capture_service=ScreenCaptureService(),
    )
    session.status_channel.subscribe(_print_status_event)
    session.start()

    try:
        while True:
            time.sleep(0.5)
    except KeyboardInterrupt:
        console.print()
    finally:
        status = session.get_status()
        session.stop()
        console.print(
            f"[green]✓[/green] Stopped after {status['capture_count']} capture(s), "
            f"{status['uptime']:.0f}s"
        )


@app.command()
def analyze(
    image: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="만화 페이지 이미지 파일"),
    speak: bool = typer.Option(False, "--speak", help="내레이션을 음성으로 합성"),
    as_json: bool = typer.Option(False, "--json", help="분석 결과 JSON 출력"),
):
    """
    이미지 한 장을 분석하고 내레이션을 출력합니다.
    """
    from ..config import initialize_api_keys
    from ..core.config_manager import get_default_config_manager
    from ..graph import compile_cycle_graph
    from ..services.analysis_service import AnalysisService
    from ..services.narration_service import NarrationService
    from ..services.prosody_service import ProsodyService
    from ..state import create_cycle_state

    initialize_api_keys()
    config_manager = get_default_config_manager()
    settings = config_manager.get_settings()

    speech_service = None
    if speak:
        from ..services.tts_service import SpeechService
        speech_service = SpeechService()
        speech_service.load_voices()

    mime_type = _MIME_TYPES.get(image.suffix.lower(), "image/png")
    initial_state = create_cycle_state(image.read_bytes(), 1, None, settings, mime_type)
    graph_config = {
        "configurable": {
            "analysis_service": AnalysisService(config_manager=config_manager),
            "narration_service": NarrationService(),
            "prosody_service": ProsodyService(),
            "speech_service": speech_service,
            "cancel_event": None,
        }
    }

    with console.status("[cyan]Analyzing manga page...[/cyan]"):
        final_state = compile_cycle_graph().invoke(initial_state, config=graph_config)

    errors = final_state.get("errors", [])
    if errors:
        from ..core.error_handler import ErrorHandler
        last = errors[-1]
        console.print(f"[bold red]✗[/bold red] {ErrorHandler.user_message_for_kind(last.get('error_kind'), last.get('error_message', ''))}")
        raise typer.Exit(code=1)

    analysis = final_state.get("analysis")
    if as_json and analysis is not None:
        console.print_json(json.dumps(analysis.to_dict(), ensure_ascii=False))
    elif analysis is not None:
        console.print(Panel(analysis.overall_scene or "-", title="Scene", border_style="cyan"))
        table = Table(box=box.ROUNDED, show_header=True, header_style="bold magenta")
        table.add_column("Order", justify="center", style="cyan", width=6)
        table.add_column("Panel", justify="center", width=6)
        table.add_column("Emotions", style="yellow")
        table.add_column("Dialogue", style="green")
        for position, index in enumerate(analysis.reading_order, 1):
            if 0 <= index < len(analysis.panels):
                panel = analysis.panels[index]
                table.add_row(str(position), str(panel.id), ", ".join(panel.emotions), " / ".join(panel.dialogue))
        console.print(table)

    if final_state.get("skipped"):
        console.print(f"[yellow]⚠[/yellow] No narration ({final_state.get('skip_reason')})")
        return

    for segment in final_state.get("segments", []):
        console.print(f"[green]▶[/green] [dim]{segment.gender.value}/{segment.emotion.value}[/dim] {segment.text}")
    if speak:
        console.print(f"[green]✓[/green] Spoke {final_state.get('spoken_count', 0)} segment(s)")


@app.command()
def list_voices(
    backend: bool = typer.Option(False, "--backend", "-b", help="TTS 백엔드가 제공하는 음성도 표시"),
):
    """
    사용 가능한 음성 목록을 표시합니다.
    """
    from ..models.voice import VOICE_BANKS

    console.print(Panel.fit(
        "[bold cyan]🎤 Available voices[/bold cyan]",
        border_style="cyan"
    ))
    console.print()

    for group_key, bank in VOICE_BANKS.items():
        table = Table(
            title=f"{bank['label']} - {bank.get('description', '')}",
            box=box.ROUNDED,
            show_header=True,
            header_style="bold magenta"
        )
        table.add_column("#", justify="center", style="cyan", width=6)
        table.add_column("Voice", style="green", width=25)
        table.add_column("Default", justify="center", style="yellow", width=10)

        default_voice = bank.get("default", "")
        for idx, voice in enumerate(bank["voices"], 1):
            is_default = "✓" if voice["name"] == default_voice else ""
            table.add_row(str(idx), voice["display"], is_default)

        console.print(table)
        console.print()

    if not backend:
        return

    from ..services.tts_service import SpeechService

    backend_voices = SpeechService().load_voices()
    if not backend_voices:
        console.print("[yellow]⚠[/yellow] No voices reported by the TTS backend")
        return

    table = Table(title="TTS backend", box=box.ROUNDED, show_header=True, header_style="bold magenta")
    table.add_column("Voice", style="green")
    table.add_column("Languages", style="cyan")
    table.add_column("Gender", style="yellow")
    for info in backend_voices:
        table.add_row(info.name, ", ".join(info.language_codes), info.gender.value)
    console.print(table)


@app.command()
def config(
    show: bool = typer.Option(False, "--show", "-s", help="현재 설정 표시"),
    set_key: Optional[str] = typer.Option(None, "--set", help="설정 값 지정 (예: --set speech_rate=1.2)")
):
    """
    설정을 관리합니다.
    """
    from ..core.config_manager import get_default_config_manager
    from ..server import mask_api_key

    manager = get_default_config_manager()

    if show:
        settings = manager.get_settings()
        settings["api_key"] = mask_api_key(settings.get("api_key", ""))
        console.print(Panel.fit(
            f"[bold cyan]Current settings[/bold cyan] ({manager.config_path})\n\n"
            f"{json.dumps(settings, indent=2, ensure_ascii=False)}",
            border_style="cyan"
        ))
    elif set_key:
        if "=" not in set_key:
            console.print("[red]✗[/red] Use KEY=VALUE, e.g. [cyan]--set capture_interval=15[/cyan]")
            raise typer.Exit(code=1)
        key, value = set_key.split("=", 1)
        saved = manager.save_settings({key.strip(): value.strip()})
        shown = saved.get(key.strip(), value.strip())
        if key.strip() in ("api_key", "apiKey"):
            shown = mask_api_key(saved.get("api_key", ""))
        console.print(f"[green]✓[/green] {key.strip()} = {shown}")
    else:
        console.print("[yellow]ℹ[/yellow] Usage: [cyan]manga-narrator config --show[/cyan] or [cyan]manga-narrator config --set KEY=VALUE[/cyan]")


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="바인딩 주소"),
    port: int = typer.Option(8000, help="포트"),
):
    """
    REST API 서버를 실행합니다.
    """
    import uvicorn
    from ..server import app as api_app

    uvicorn.run(api_app, host=host, port=port, log_level="info")


if __name__ == "__main__":
    app()
